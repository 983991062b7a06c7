"""
whisperp2p - Peer-to-peer flood-broadcast messaging

Every node listens for inbound connections, keeps one outbound connection
per known peer, and forwards each new message to all of its peers exactly
once. A seen-message cache stops copies that come back around cycles in
the peer graph.

Built on trio with:
- One task per inbound and per outbound connection
- Non-blocking, drop-on-saturation fan-out to peers
- Opportunistic redial of each message's originator
- Prometheus metrics for monitoring

Usage:
    import trio
    from whisperp2p import Node, NodeConfig

    async def main():
        node = Node(NodeConfig(listen_port=9000))
        node.subscribe(lambda whisper: print(whisper.origin_addr, whisper.body))

        async with trio.open_nursery() as nursery:
            await nursery.start(node.run)
            node.connect_to_peer("10.0.0.2:9000")
            node.submit_local_message("hello")

    trio.run(main)

Metrics Usage:
    prometheus_output = node.metrics.collect()
"""

from .node import Node
from .config import (
    NodeConfig,
    DEFAULT_PORT,
    parse_addr,
    format_addr,
)
from .errors import WhisperError, ConfigError, MessageDecodeError
from .metrics import MetricsCollector
from .nicknames import NicknameBook
from .protocol import (
    Whisper,
    WhisperDecoder,
    SeenCache,
    PeerRegistry,
    PeerLink,
    Broadcaster,
    Dialer,
    Listener,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "Node",
    "NodeConfig",
    "DEFAULT_PORT",
    "parse_addr",
    "format_addr",
    # Errors
    "WhisperError",
    "ConfigError",
    "MessageDecodeError",
    # Metrics & display
    "MetricsCollector",
    "NicknameBook",
    # Protocol
    "Whisper",
    "WhisperDecoder",
    "SeenCache",
    "PeerRegistry",
    "PeerLink",
    "Broadcaster",
    "Dialer",
    "Listener",
]
