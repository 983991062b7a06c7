"""
whisperp2p/protocol/

Flood-broadcast protocol: message model and codec, seen-message cache,
peer registry, fan-out, and the inbound/outbound connection tasks.
"""

from .messages import Whisper, WhisperDecoder, encode_whisper, new_message_id
from .seen_cache import SeenCache
from .peer_registry import PeerRegistry, PeerLink
from .broadcaster import Broadcaster
from .dialer import Dialer
from .listener import Listener

__all__ = [
    "Whisper",
    "WhisperDecoder",
    "encode_whisper",
    "new_message_id",
    "SeenCache",
    "PeerRegistry",
    "PeerLink",
    "Broadcaster",
    "Dialer",
    "Listener",
]
