"""
whisperp2p/node.py

Main interface for a whisperp2p node.

Ties the flood protocol together: the listener accepts inbound
connections, dialers own outbound links, and every new message is shown
to subscribers, re-flooded to all peers and used to open a link back to
its originator.

Usage:
    from whisperp2p import Node, NodeConfig

    node = Node(NodeConfig(listen_port=9000))
    node.subscribe(lambda whisper: print(whisper.body))

    async with trio.open_nursery() as nursery:
        await nursery.start(node.run)
        node.connect_to_peer("10.0.0.2:9000")
        node.submit_local_message("hello")
"""

from typing import Callable, List, Optional
import logging

import trio

from .config import NodeConfig, format_addr, resolve_local_ip
from .metrics import MetricsCollector
from .protocol.broadcaster import Broadcaster
from .protocol.dialer import Dialer
from .protocol.listener import Listener
from .protocol.messages import Whisper
from .protocol.peer_registry import PeerRegistry
from .protocol.seen_cache import SeenCache

logger = logging.getLogger("whisperp2p.node")

MessageCallback = Callable[[Whisper], None]


class Node:
    """
    One participant in the flood-broadcast network.

    The node owns its seen cache and peer registry; nothing is process
    global, so several nodes can run side by side in one process.

    Attributes:
        local_addr: ``host:port`` advertised in originated messages
        connected_peers: Number of registered outbound links
    """

    def __init__(self, config: Optional[NodeConfig] = None):
        """
        Initialize Node.

        Args:
            config: Node settings (defaults to ``NodeConfig()``)

        Raises:
            ConfigError: if the config is invalid
        """
        self.config = (config or NodeConfig()).validate()
        self.metrics = MetricsCollector(self)
        self.seen_cache = SeenCache(max_size=self.config.seen_cache_size)
        self.registry = PeerRegistry(queue_size=self.config.peer_queue_size)
        self.broadcaster = Broadcaster(self.registry, self.metrics)
        self.listener = Listener(
            self.config,
            self.seen_cache,
            self.broadcaster,
            on_message=self._deliver,
            redial=self.connect_to_peer,
            metrics=self.metrics,
        )
        self.dialer: Optional[Dialer] = None

        self._callbacks: List[MessageCallback] = []
        self._local_addr: Optional[str] = None
        self._listen_port: Optional[int] = None
        self._nursery: Optional[trio.Nursery] = None
        self._started = False

    # ========== Lifecycle ==========

    async def run(self, task_status=trio.TASK_STATUS_IGNORED) -> None:
        """
        Bind the listener and serve until cancelled or ``stop()`` is called.

        Use with ``nursery.start(node.run)``; the node is reported as started
        once it is listening and its local address is known.

        Raises:
            ConfigError: if the local address cannot be determined
            OSError: if the listen port cannot be bound
        """
        if self._started:
            raise RuntimeError("Node already running")

        host = self.config.advertise_host or await trio.to_thread.run_sync(resolve_local_ip)

        try:
            async with trio.open_nursery() as nursery:
                self._nursery = nursery
                listeners = await nursery.start(self.listener.serve)
                self._listen_port = listeners[0].socket.getsockname()[1]
                self._local_addr = format_addr(host, self._listen_port)
                self.dialer = Dialer(self._local_addr, self.registry, self.config, self.metrics)
                self._started = True

                logger.info(f"Local address: {self._local_addr}")
                logger.info(f"Listening on {self.config.listen_host}:{self._listen_port}")

                for addr in self.config.bootstrap_peers:
                    self.connect_to_peer(addr)

                task_status.started(self)
        finally:
            self._started = False
            self._nursery = None
            logger.info("Node stopped")

    def stop(self) -> None:
        """Cancel the listener and every connection task."""
        if self._nursery is not None:
            logger.info("Stopping node...")
            self._nursery.cancel_scope.cancel()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def local_addr(self) -> Optional[str]:
        return self._local_addr

    @property
    def listen_port(self) -> Optional[int]:
        """Port actually bound (differs from config when it was 0)."""
        return self._listen_port

    # ========== Operations ==========

    def submit_local_message(self, body: str) -> Whisper:
        """
        Originate a message and flood it to every peer.

        The new id is recorded as seen first, so copies that come back
        around a cycle are dropped.

        Returns:
            The created Whisper
        """
        self._require_started()
        whisper = Whisper.create(self._local_addr, body)
        self.seen_cache.check_and_mark(whisper.id)
        self.metrics.record_originated()
        self.broadcaster.broadcast(whisper)
        return whisper

    def connect_to_peer(self, addr: str) -> None:
        """
        Start a Dialer for ``addr`` in the background.

        Safe to call repeatedly: a dial for the local address or for an
        already connected peer ends immediately.
        """
        self._require_started()
        if addr == self._local_addr:
            return
        self._nursery.start_soon(self.dialer.dial, addr)

    # ========== Received messages ==========

    def subscribe(self, callback: MessageCallback) -> None:
        """Call ``callback(whisper)`` for every new message received."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: MessageCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _deliver(self, whisper: Whisper) -> None:
        for callback in list(self._callbacks):
            try:
                callback(whisper)
            except Exception as e:
                logger.error(f"Message callback failed for {whisper.id}: {e}")

    # ========== Peers ==========

    @property
    def connected_peers(self) -> int:
        return len(self.registry)

    def get_connected_peers(self) -> List[str]:
        """Addresses with a registered outbound link."""
        return self.registry.addresses()

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Node not started. Run it with nursery.start(node.run) first")

    def __repr__(self) -> str:
        return f"Node(addr={self._local_addr}, peers={self.connected_peers}, started={self._started})"
