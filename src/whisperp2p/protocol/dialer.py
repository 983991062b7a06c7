"""
whisperp2p/protocol/dialer.py

Outbound side of a peer link.

One ``Dialer.dial`` task runs per peer address. It claims the address in
the PeerRegistry, connects, and writes every message the Broadcaster puts
on its channel until the connection fails or the registry entry is
removed. Whatever happens, the entry is released on exit so the registry
never points at a dead connection.

Nothing is retried here. A dropped peer comes back only through an
explicit ``Node.connect_to_peer`` or when one of its messages arrives and
triggers a redial.
"""

import logging
from typing import Optional, TYPE_CHECKING

import trio

from ..config import NodeConfig, parse_addr
from .messages import encode_whisper
from .peer_registry import PeerLink, PeerRegistry

if TYPE_CHECKING:
    from ..metrics import MetricsCollector

logger = logging.getLogger("whisperp2p.protocol.dialer")

RECEIVE_SIZE = 4096


class Dialer:
    """
    Establishes and drains outbound peer connections.

    Usage:
        dialer = Dialer(local_addr, registry, config)
        nursery.start_soon(dialer.dial, "10.0.0.2:9000")
    """

    def __init__(
        self,
        local_addr: str,
        registry: PeerRegistry,
        config: Optional[NodeConfig] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        """
        Initialize Dialer.

        Args:
            local_addr: This node's own ``host:port``; never dialed
            registry: Registry shared with the Broadcaster
            config: Node settings (connect timeout)
            metrics: Optional metrics collector
        """
        self.local_addr = local_addr
        self.registry = registry
        self.config = config or NodeConfig()
        self.metrics = metrics

    async def dial(self, addr: str) -> bool:
        """
        Connect to ``addr`` and serve its outbound link until it ends.

        Returns:
            True if a connection was established, False if the dial was
            skipped (self, already connected, bad address) or failed
        """
        if addr == self.local_addr:
            return False

        try:
            host, port = parse_addr(addr)
        except ValueError as e:
            logger.warning(f"Not dialing {addr!r}: {e}")
            return False

        link = self.registry.add(addr)
        if link is None:
            logger.debug(f"Already connected to {addr}")
            return False

        try:
            logger.info(f"Dialing {addr}")
            try:
                with trio.fail_after(self.config.connect_timeout):
                    stream = await trio.open_tcp_stream(host, port)
            except (OSError, trio.TooSlowError) as e:
                logger.warning(f"Error dialing {addr}: {e}")
                if self.metrics:
                    self.metrics.record_dial(success=False)
                return False

            if self.metrics:
                self.metrics.record_dial(success=True)
            logger.info(f"Connected to {addr}")

            try:
                await self._serve_link(link, stream)
            finally:
                with trio.CancelScope(shield=True):
                    await stream.aclose()
                logger.info(f"Closed connection to {addr}")
            return True

        finally:
            self.registry.release(link)
            link.receive_channel.close()

    async def _serve_link(self, link: PeerLink, stream: trio.SocketStream) -> None:
        """Drain the link's channel onto the stream; stop when either side ends."""
        async with trio.open_nursery() as nursery:

            async def drain() -> None:
                await self._drain(link, stream)
                nursery.cancel_scope.cancel()

            async def watch() -> None:
                await self._watch_for_close(link.addr, stream)
                nursery.cancel_scope.cancel()

            nursery.start_soon(drain)
            nursery.start_soon(watch)

    async def _drain(self, link: PeerLink, stream: trio.SocketStream) -> None:
        async for whisper in link.receive_channel:
            data = encode_whisper(whisper)
            try:
                await stream.send_all(data)
            except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as e:
                logger.warning(f"Error sending to {link.addr}: {e}")
                return
            if self.metrics:
                self.metrics.record_message_sent(len(data))
        logger.debug(f"Link to {link.addr} removed from registry")

    async def _watch_for_close(self, addr: str, stream: trio.SocketStream) -> None:
        """Return once the remote end closes or breaks the connection."""
        try:
            while True:
                data = await stream.receive_some(RECEIVE_SIZE)
                if not data:
                    logger.debug(f"{addr} closed the connection")
                    return
        except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as e:
            logger.debug(f"Connection to {addr} broken: {e}")
