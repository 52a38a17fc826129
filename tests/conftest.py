"""Pytest configuration and shared fixtures."""

import pytest

from call_correlator import CorrelationEngine, Envelope, LoopbackChannel


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


def reply_with_suffix(envelope: Envelope) -> Envelope:
    """Responder that answers "X" with "X-reply" under the same id."""
    return Envelope.create(envelope.id, f"{envelope.payload}-reply")


@pytest.fixture
def channel() -> LoopbackChannel:
    """Loopback channel with no auto-replies."""
    return LoopbackChannel()


@pytest.fixture
def echo_channel() -> LoopbackChannel:
    """Loopback channel that replies to every envelope."""
    return LoopbackChannel(responder=reply_with_suffix)


@pytest.fixture
def engine(channel: LoopbackChannel):
    """Engine bound to the plain loopback channel."""
    engine = CorrelationEngine(channel.pair())
    yield engine
    engine.close()
