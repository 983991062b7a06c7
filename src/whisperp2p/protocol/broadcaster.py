"""
whisperp2p/protocol/broadcaster.py

Flood fan-out of one message to every registered peer.

Delivery is best effort: each peer channel gets one non-blocking attempt.
A peer whose Dialer is behind (channel full) simply misses the message;
the caller is never blocked and never told.
"""

import logging
from typing import Optional, TYPE_CHECKING

import trio

from .messages import Whisper
from .peer_registry import PeerRegistry

if TYPE_CHECKING:
    from ..metrics import MetricsCollector

logger = logging.getLogger("whisperp2p.protocol.broadcaster")


class Broadcaster:
    """Hands a message to every peer channel currently in the registry."""

    def __init__(self, registry: PeerRegistry, metrics: Optional["MetricsCollector"] = None):
        self.registry = registry
        self.metrics = metrics

    def broadcast(self, whisper: Whisper) -> int:
        """
        Offer ``whisper`` to every registered peer without blocking.

        Returns:
            Number of peer channels that accepted the message
        """
        delivered = 0
        dropped = 0
        for channel in self.registry.snapshot():
            try:
                channel.send_nowait(whisper)
                delivered += 1
            except trio.WouldBlock:
                dropped += 1
            except (trio.ClosedResourceError, trio.BrokenResourceError):
                # Link removed after the snapshot was taken
                continue

        if dropped:
            logger.debug(f"Broadcast {whisper.id}: {delivered} delivered, {dropped} dropped")
        if self.metrics:
            self.metrics.record_broadcast(delivered, dropped)
        return delivered
