"""
whisperp2p/tests/test_config.py

Tests for configuration and address helpers.
"""

import socket

import pytest


class TestPorts:
    """Test port validation."""

    def test_validate_port_range(self):
        """Test boundaries of the TCP port range."""
        from whisperp2p.config import validate_port
        from whisperp2p.errors import ConfigError

        assert validate_port(0) == 0
        assert validate_port(65535) == 65535
        with pytest.raises(ConfigError):
            validate_port(-1)
        with pytest.raises(ConfigError):
            validate_port(65536)
        with pytest.raises(ConfigError):
            validate_port(True)
        with pytest.raises(ConfigError):
            validate_port("9000")

    def test_parse_listen_port(self):
        """Test accepted command-line ports."""
        from whisperp2p.config import parse_listen_port

        assert parse_listen_port("9000") == 9000
        assert parse_listen_port(" 12345 ") == 12345
        assert parse_listen_port("65535") == 65535

    @pytest.mark.parametrize("value", ["", "12", "900", "abcd", "123456", "70000", "0000"])
    def test_parse_listen_port_rejects(self, value):
        """Test short, non-numeric and out-of-range ports."""
        from whisperp2p.config import parse_listen_port
        from whisperp2p.errors import ConfigError

        with pytest.raises(ConfigError, match="Invalid listen port|port must be"):
            parse_listen_port(value)


class TestAddresses:
    """Test host:port parsing and formatting."""

    def test_parse_addr(self):
        """Test IPv4, hostname and bracketed IPv6 forms."""
        from whisperp2p.config import parse_addr

        assert parse_addr("10.0.0.1:9000") == ("10.0.0.1", 9000)
        assert parse_addr("example.org:80") == ("example.org", 80)
        assert parse_addr("[::1]:9000") == ("::1", 9000)

    @pytest.mark.parametrize("addr", ["", "10.0.0.1", ":9000", "host:", "host:abc", "host:0", "host:70000"])
    def test_parse_addr_rejects(self, addr):
        """Test malformed addresses raise ValueError."""
        from whisperp2p.config import parse_addr

        with pytest.raises(ValueError):
            parse_addr(addr)

    def test_format_addr(self):
        """Test IPv6 hosts are bracketed."""
        from whisperp2p.config import format_addr, parse_addr

        assert format_addr("10.0.0.1", 9000) == "10.0.0.1:9000"
        assert format_addr("::1", 9000) == "[::1]:9000"
        assert parse_addr(format_addr("::1", 9000)) == ("::1", 9000)

    def test_resolve_local_ip_failure(self, monkeypatch):
        """Test an unresolvable hostname becomes a ConfigError."""
        from whisperp2p.config import resolve_local_ip
        from whisperp2p.errors import ConfigError

        def fail(hostname):
            raise socket.gaierror("no such host")

        monkeypatch.setattr(socket, "gethostbyname", fail)

        with pytest.raises(ConfigError, match="Unable to determine local ip"):
            resolve_local_ip()


class TestNodeConfig:
    """Test NodeConfig defaults, validation and environment loading."""

    def test_defaults(self):
        """Test default values."""
        from whisperp2p.config import DEFAULT_PORT, NodeConfig

        config = NodeConfig()

        assert config.listen_port == DEFAULT_PORT
        assert config.peer_queue_size == 1
        assert config.seen_cache_size is None
        assert config.bootstrap_peers == []
        assert config.validate() is config

    @pytest.mark.parametrize("overrides", [
        {"listen_port": 70000},
        {"peer_queue_size": -1},
        {"seen_cache_size": 0},
        {"connect_timeout": 0},
        {"max_message_bytes": 0},
        {"bootstrap_peers": ["nope"]},
    ])
    def test_validate_rejects(self, overrides):
        """Test each out-of-range field."""
        from whisperp2p.config import NodeConfig
        from whisperp2p.errors import ConfigError

        with pytest.raises(ConfigError):
            NodeConfig(**overrides).validate()

    def test_from_env(self, monkeypatch):
        """Test WHISPERP2P_* variables are applied."""
        from whisperp2p.config import NodeConfig

        monkeypatch.setenv("WHISPERP2P_LISTEN_PORT", "9100")
        monkeypatch.setenv("WHISPERP2P_ADVERTISE_HOST", "192.168.1.5")
        monkeypatch.setenv("WHISPERP2P_PEER_QUEUE_SIZE", "0")
        monkeypatch.setenv("WHISPERP2P_SEEN_CACHE_SIZE", "1000")
        monkeypatch.setenv("WHISPERP2P_CONNECT_TIMEOUT", "2.5")
        monkeypatch.setenv("WHISPERP2P_BOOTSTRAP_PEERS", "10.0.0.2:9000, 10.0.0.3:9000,")
        monkeypatch.setenv("WHISPERP2P_LOG_LEVEL", "debug")

        config = NodeConfig.from_env()

        assert config.listen_port == 9100
        assert config.advertise_host == "192.168.1.5"
        assert config.peer_queue_size == 0
        assert config.seen_cache_size == 1000
        assert config.connect_timeout == 2.5
        assert config.bootstrap_peers == ["10.0.0.2:9000", "10.0.0.3:9000"]
        assert config.log_level == "DEBUG"

    def test_from_env_rejects_bad_number(self, monkeypatch):
        """Test a non-numeric variable names itself in the error."""
        from whisperp2p.config import NodeConfig
        from whisperp2p.errors import ConfigError

        monkeypatch.setenv("WHISPERP2P_LISTEN_PORT", "ninety")

        with pytest.raises(ConfigError, match="WHISPERP2P_LISTEN_PORT"):
            NodeConfig.from_env()
