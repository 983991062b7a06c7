"""
whisperp2p/nicknames.py

Display labels for peer addresses. Used only when printing messages;
protocol code never consults it.
"""

import threading
from typing import Dict, Optional


class NicknameBook:
    """Thread-safe address -> nickname map."""

    def __init__(self, local_addr: Optional[str] = None):
        self.local_addr = local_addr
        self._names: Dict[str, str] = {}
        self._lock = threading.Lock()

    def set(self, addr: str, nick: str) -> None:
        with self._lock:
            self._names[addr] = nick

    def get(self, addr: str) -> Optional[str]:
        with self._lock:
            return self._names.get(addr)

    def label(self, addr: str) -> str:
        """``you`` for the local address, else the nickname, else the address."""
        if self.local_addr is not None and addr == self.local_addr:
            return "you"
        return self.get(addr) or addr
