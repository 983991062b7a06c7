"""
whisperp2p/protocol/peer_registry.py

Authoritative record of which outbound peer links currently exist.

Each entry maps a peer address (``host:port``) to a trio memory channel.
The send side stays in the registry so the Broadcaster can fan messages
out; the receive side belongs to the single Dialer task that owns the
link and drains it onto the wire.

Usage:
    registry = PeerRegistry(queue_size=1)

    link = registry.add("10.0.0.2:9000")
    if link is None:
        return  # already connected

    async for whisper in link.receive_channel:
        ...

    registry.release(link)
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import trio

from ..config import DEFAULT_PEER_QUEUE_SIZE

logger = logging.getLogger("whisperp2p.protocol.peer_registry")


@dataclass(eq=False)
class PeerLink:
    """
    Handle to one registered outbound link.

    ``send_channel`` is shared with the Broadcaster; ``receive_channel`` is
    owned by the Dialer that called ``PeerRegistry.add``.
    """
    addr: str
    send_channel: trio.MemorySendChannel
    receive_channel: trio.MemoryReceiveChannel
    created_at: float = field(default_factory=time.time)


class PeerRegistry:
    """
    Concurrency-safe map of peer address to delivery channel.

    At most one entry exists per address. ``add`` is the only place an
    entry is created, and the first caller wins; later callers for the same
    address get None until the entry is removed.
    """

    def __init__(self, queue_size: int = DEFAULT_PEER_QUEUE_SIZE):
        """
        Initialize PeerRegistry.

        Args:
            queue_size: Buffered slots per peer channel (0 = unbuffered)
        """
        if queue_size < 0:
            raise ValueError(f"queue_size must be >= 0, got {queue_size}")
        self.queue_size = queue_size
        self._links: Dict[str, PeerLink] = {}
        self._lock = threading.Lock()

    def add(self, addr: str) -> Optional[PeerLink]:
        """
        Register an outbound link for ``addr``.

        Returns:
            The new PeerLink, or None if ``addr`` is already registered
        """
        with self._lock:
            if addr in self._links:
                return None
            send_channel, receive_channel = trio.open_memory_channel(self.queue_size)
            link = PeerLink(addr=addr, send_channel=send_channel, receive_channel=receive_channel)
            self._links[addr] = link
        logger.debug(f"Registered peer {addr}")
        return link

    def remove(self, addr: str) -> None:
        """
        Delete the entry for ``addr`` if present. Idempotent.

        Closes the entry's send side so its Dialer stops draining.
        """
        with self._lock:
            link = self._links.pop(addr, None)
        if link is not None:
            link.send_channel.close()
            logger.debug(f"Removed peer {addr}")

    def release(self, link: PeerLink) -> None:
        """
        Remove ``link`` only if it is still the registered entry for its address.

        Used by the owning Dialer on exit so that it never deletes an entry
        created by a newer Dialer for the same address.
        """
        with self._lock:
            if self._links.get(link.addr) is link:
                del self._links[link.addr]
            else:
                link = None
        if link is not None:
            link.send_channel.close()
            logger.debug(f"Released peer {link.addr}")

    def snapshot(self) -> List[trio.MemorySendChannel]:
        """Copy out the send side of every registered link."""
        with self._lock:
            return [link.send_channel for link in self._links.values()]

    def addresses(self) -> List[str]:
        """Copy out every registered address."""
        with self._lock:
            return list(self._links.keys())

    def get(self, addr: str) -> Optional[PeerLink]:
        with self._lock:
            return self._links.get(addr)

    def __contains__(self, addr: object) -> bool:
        with self._lock:
            return addr in self._links

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)
