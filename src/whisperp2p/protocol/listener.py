"""
whisperp2p/protocol/listener.py

Inbound side: accept peer connections and run the flood pipeline.

For every message decoded from a connection:

1. Ask the SeenCache. A duplicate is dropped without display, re-flood
   or redial.
2. Otherwise hand it to the application, re-flood it to every known peer
   and ask for a link back to its originator.

Step 1 is what keeps a cycle in the peer graph from amplifying a message:
each node forwards a given id at most once.
"""

import logging
from typing import Callable, Optional, TYPE_CHECKING

import trio

from ..config import NodeConfig, format_addr
from ..errors import MessageDecodeError
from .broadcaster import Broadcaster
from .messages import Whisper, WhisperDecoder
from .seen_cache import SeenCache

if TYPE_CHECKING:
    from ..metrics import MetricsCollector

logger = logging.getLogger("whisperp2p.protocol.listener")

RECEIVE_SIZE = 4096


def _remote_label(stream: trio.SocketStream) -> str:
    try:
        host, port = stream.socket.getpeername()[:2]
        return format_addr(host, port)
    except OSError:
        return "unknown"


class Listener:
    """
    Accepts inbound connections and serves one decode loop per connection.

    Usage:
        listener = Listener(config, seen_cache, broadcaster,
                            on_message=show, redial=node.connect_to_peer)
        listeners = await nursery.start(listener.serve)
    """

    def __init__(
        self,
        config: NodeConfig,
        seen_cache: SeenCache,
        broadcaster: Broadcaster,
        on_message: Callable[[Whisper], None],
        redial: Callable[[str], None],
        metrics: Optional["MetricsCollector"] = None,
    ):
        """
        Initialize Listener.

        Args:
            config: Node settings (bind host/port, message size limit)
            seen_cache: Cache consulted before anything else happens
            broadcaster: Used to re-flood new messages
            on_message: Receives each new message for the application
            redial: Called with each new message's origin address
            metrics: Optional metrics collector
        """
        self.config = config
        self.seen_cache = seen_cache
        self.broadcaster = broadcaster
        self.on_message = on_message
        self.redial = redial
        self.metrics = metrics

    async def serve(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """
        Bind and accept connections forever.

        Reports the bound ``trio.SocketListener`` list through
        ``task_status`` when used with ``nursery.start``. Bind and
        non-transient accept errors propagate.
        """
        await trio.serve_tcp(
            self.serve_connection,
            self.config.listen_port,
            host=self.config.listen_host,
            task_status=task_status,
        )

    async def serve_connection(self, stream: trio.SocketStream) -> None:
        """Decode messages from one inbound connection until it ends."""
        peer = _remote_label(stream)
        logger.debug(f"Accepted connection from {peer}")
        decoder = WhisperDecoder(self.config.max_message_bytes)
        try:
            while True:
                data = await stream.receive_some(RECEIVE_SIZE)
                if not data:
                    decoder.close()
                    break
                for whisper in decoder.feed(data):
                    self.handle_whisper(whisper)
        except MessageDecodeError as e:
            logger.warning(f"Dropping connection from {peer}: {e}")
        except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as e:
            logger.debug(f"Connection from {peer} broken: {e}")
        except Exception as e:
            logger.error(f"Error serving connection from {peer}: {e}")
        finally:
            with trio.CancelScope(shield=True):
                await stream.aclose()
            logger.info(f"Closed connection to {peer}")

    def handle_whisper(self, whisper: Whisper) -> bool:
        """
        Run one decoded message through dedup, delivery, re-flood and redial.

        Returns:
            True if the message was new, False if it was a duplicate
        """
        if self.seen_cache.check_and_mark(whisper.id):
            logger.debug(f"Duplicate {whisper.id} dropped")
            if self.metrics:
                self.metrics.record_duplicate()
            return False

        if self.metrics:
            self.metrics.record_received()
        self.on_message(whisper)
        self.broadcaster.broadcast(whisper)
        self.redial(whisper.origin_addr)
        return True
