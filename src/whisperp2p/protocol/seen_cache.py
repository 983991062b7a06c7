"""
whisperp2p/protocol/seen_cache.py

Record of message ids this node has already processed.

Flooding forwards every new message to every peer, so any cycle in the
peer graph brings a message back. The cache is what stops the loop: each
id is let through once and refused afterwards.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

logger = logging.getLogger("whisperp2p.protocol.seen_cache")


class SeenCache:
    """
    Thread-safe set of seen message ids with an atomic check-and-mark.

    By default the cache grows for the life of the process. Passing
    ``max_size`` bounds it, evicting the oldest ids first; an id evicted
    that way is accepted again if it ever comes back.

    Usage:
        cache = SeenCache()
        if cache.check_and_mark(whisper.id):
            return  # duplicate
    """

    def __init__(self, max_size: Optional[int] = None):
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._seen: "OrderedDict[str, bool]" = OrderedDict()
        self._lock = threading.Lock()
        self._evicted = 0

    def check_and_mark(self, message_id: str) -> bool:
        """
        Record ``message_id`` and report whether it was already recorded.

        Returns:
            True if the id was seen before (drop the message),
            False on first sighting (the id is now recorded)
        """
        with self._lock:
            if message_id in self._seen:
                return True
            self._seen[message_id] = True
            if self.max_size is not None:
                while len(self._seen) > self.max_size:
                    self._seen.popitem(last=False)
                    self._evicted += 1
            return False

    @property
    def evicted(self) -> int:
        """Number of ids dropped to respect ``max_size``."""
        return self._evicted

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            return message_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
