"""
whisperp2p/errors.py

Exception types raised by whisperp2p.
"""


class WhisperError(Exception):
    """Base class for whisperp2p errors."""


class ConfigError(WhisperError, ValueError):
    """Invalid or missing node configuration. Fatal before serving."""


class MessageDecodeError(WhisperError):
    """Malformed or truncated message on a connection."""
