"""
whisperp2p/tests/conftest.py

Shared fixtures for whisperp2p tests.
"""

import pytest
import trio


@pytest.fixture
def wait_for():
    """Poll a predicate under trio until it holds or the timeout expires."""

    async def _wait_for(predicate, timeout: float = 5.0, interval: float = 0.01):
        with trio.fail_after(timeout):
            while not predicate():
                await trio.sleep(interval)

    return _wait_for


@pytest.fixture
def local_config():
    """Factory for configs bound to an ephemeral localhost port."""
    from whisperp2p.config import NodeConfig

    def _make(**overrides):
        params = dict(
            listen_host="127.0.0.1",
            listen_port=0,
            advertise_host="127.0.0.1",
            connect_timeout=2.0,
        )
        params.update(overrides)
        return NodeConfig(**params)

    return _make
