"""
whisperp2p/config.py

Configuration constants and data classes for whisperp2p.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import os
import socket

from .errors import ConfigError


# Default listening port
DEFAULT_PORT = 9000

# Per-peer delivery channel capacity (0 = unbuffered rendezvous)
DEFAULT_PEER_QUEUE_SIZE = 1

# Largest single encoded message accepted from the wire
MAX_MESSAGE_BYTES = 64 * 1024

# Seconds to wait for an outbound TCP connect
CONNECT_TIMEOUT = 10.0

MIN_PORT = 0
MAX_PORT = 65535

# Environment variable prefix for NodeConfig.from_env()
ENV_PREFIX = "WHISPERP2P_"


def validate_port(port: int) -> int:
    """Validate a TCP port number (0 means an ephemeral port)."""
    if not isinstance(port, int) or isinstance(port, bool):
        raise ConfigError(f"port must be an integer, got {type(port).__name__}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigError(f"port must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    return port


def parse_listen_port(value: str) -> int:
    """
    Validate a listen port given as text on the command line.

    Rejects empty values and anything under four characters, then
    range-checks.
    """
    value = (value or "").strip()
    if len(value) < 4 or len(value) > 5 or not value.isdigit():
        raise ConfigError(f"Invalid listen port ({value})")
    port = int(value)
    if port < 1:
        raise ConfigError(f"Invalid listen port ({value})")
    return validate_port(port)


def parse_addr(addr: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` peer address.

    IPv6 hosts may be bracketed (``[::1]:9000``).

    Raises:
        ValueError: if the address has no host or no valid port
    """
    host, sep, port_text = addr.strip().rpartition(":")
    if not sep or not host or not port_text.isdigit():
        raise ValueError(f"Invalid peer address: {addr!r}")
    port = int(port_text)
    if port < 1 or port > MAX_PORT:
        raise ValueError(f"Invalid peer port in address: {addr!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def format_addr(host: str, port: int) -> str:
    """Join host and port into the ``host:port`` form used as peer identity."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def resolve_local_ip() -> str:
    """
    Resolve this machine's hostname to an IP address.

    Raises:
        ConfigError: if the hostname cannot be resolved
    """
    try:
        hostname = socket.gethostname()
        return socket.gethostbyname(hostname)
    except OSError as e:
        raise ConfigError(f"Unable to determine local ip: {e}") from e


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


@dataclass
class NodeConfig:
    """
    Settings for one whisperp2p node.

    Usage:
        config = NodeConfig(listen_port=9000)
        config = NodeConfig.from_env()
    """

    # Listener
    listen_host: str = "0.0.0.0"
    listen_port: int = DEFAULT_PORT

    # Host part of the address advertised in originated messages.
    # None = resolve the local hostname.
    advertise_host: Optional[str] = None

    # Delivery
    peer_queue_size: int = DEFAULT_PEER_QUEUE_SIZE
    seen_cache_size: Optional[int] = None  # None = keep every id forever

    # Transport
    connect_timeout: float = CONNECT_TIMEOUT
    max_message_bytes: int = MAX_MESSAGE_BYTES

    # Peers dialed once at startup
    bootstrap_peers: List[str] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    def validate(self) -> "NodeConfig":
        """
        Check all fields.

        Raises:
            ConfigError: if any field is out of range
        """
        validate_port(self.listen_port)
        if self.peer_queue_size < 0:
            raise ConfigError(f"peer_queue_size must be >= 0, got {self.peer_queue_size}")
        if self.seen_cache_size is not None and self.seen_cache_size < 1:
            raise ConfigError(f"seen_cache_size must be >= 1 or None, got {self.seen_cache_size}")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be positive, got {self.connect_timeout}")
        if self.max_message_bytes < 1:
            raise ConfigError(f"max_message_bytes must be positive, got {self.max_message_bytes}")
        for addr in self.bootstrap_peers:
            try:
                parse_addr(addr)
            except ValueError as e:
                raise ConfigError(str(e)) from e
        return self

    @classmethod
    def from_env(cls) -> "NodeConfig":
        """
        Build a config from ``WHISPERP2P_*`` environment variables.

        Recognised: LISTEN_HOST, LISTEN_PORT, ADVERTISE_HOST, PEER_QUEUE_SIZE,
        SEEN_CACHE_SIZE, CONNECT_TIMEOUT, MAX_MESSAGE_BYTES, BOOTSTRAP_PEERS
        (comma separated), LOG_LEVEL.
        """
        bootstrap = os.environ.get(ENV_PREFIX + "BOOTSTRAP_PEERS", "")
        config = cls(
            listen_host=os.environ.get(ENV_PREFIX + "LISTEN_HOST", "0.0.0.0"),
            listen_port=_env_int("LISTEN_PORT", DEFAULT_PORT),
            advertise_host=os.environ.get(ENV_PREFIX + "ADVERTISE_HOST") or None,
            peer_queue_size=_env_int("PEER_QUEUE_SIZE", DEFAULT_PEER_QUEUE_SIZE),
            seen_cache_size=_env_int("SEEN_CACHE_SIZE", None),
            connect_timeout=_env_float("CONNECT_TIMEOUT", CONNECT_TIMEOUT),
            max_message_bytes=_env_int("MAX_MESSAGE_BYTES", MAX_MESSAGE_BYTES),
            bootstrap_peers=[a.strip() for a in bootstrap.split(",") if a.strip()],
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
        )
        return config.validate()
