"""Unit tests for the inbound adapter."""

import logging

import pytest

from call_correlator import Envelope, ResponseArrived, adapt_incoming, adapt_incoming_stream
from call_correlator.transport import to_envelope


async def _stream(items):
    for item in items:
        yield item


class TestToEnvelope:
    """Test coercion of raw inbound items."""

    def test_envelope_passes_through(self):
        """An Envelope is returned as the same object."""
        envelope = Envelope.create(1, "x")

        assert to_envelope(envelope) is envelope

    def test_mapping_validated(self):
        """A {id, payload} mapping becomes an Envelope."""
        envelope = to_envelope({"id": 2, "payload": {"ok": True}})

        assert envelope == Envelope.create(2, {"ok": True})

    @pytest.mark.parametrize(
        "raw",
        [
            {"payload": "no id"},
            {"id": -3, "payload": "negative"},
            "not a mapping",
            None,
        ],
    )
    def test_malformed_returns_none(self, raw, caplog):
        """Anything that isn't an envelope is logged and rejected."""
        with caplog.at_level(logging.WARNING, logger="call_correlator.transport.inbound_adapter"):
            assert to_envelope(raw) is None

        assert "Skipping malformed inbound envelope" in caplog.text


class TestAdaptIncomingStream:
    """Test the async stream reshaping."""

    @pytest.mark.asyncio
    async def test_preserves_order(self):
        """Events come out in the order envelopes went in."""
        raw = [Envelope.create(i, f"r{i}") for i in (2, 0, 1)]

        events = [event async for event in adapt_incoming_stream(_stream(raw))]

        assert all(isinstance(event, ResponseArrived) for event in events)
        assert [event.envelope.id for event in events] == [2, 0, 1]

    @pytest.mark.asyncio
    async def test_mixed_raw_items(self):
        """Envelopes and mappings can share a stream."""
        raw = [Envelope.create(0, "a"), {"id": 1, "payload": "b"}]

        events = [event async for event in adapt_incoming_stream(_stream(raw))]

        assert [(e.envelope.id, e.envelope.payload) for e in events] == [(0, "a"), (1, "b")]

    @pytest.mark.asyncio
    async def test_skips_malformed_and_continues(self):
        """A bad item does not end the stream."""
        raw = [{"id": 0, "payload": "a"}, {"garbage": True}, {"id": 1, "payload": "b"}]

        events = [event async for event in adapt_incoming_stream(_stream(raw))]

        assert [e.envelope.id for e in events] == [0, 1]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        """No input, no events."""
        events = [event async for event in adapt_incoming_stream(_stream([]))]

        assert events == []


class TestAdaptIncoming:
    """Test the synchronous counterpart."""

    def test_reshapes_iterable(self):
        """Plain iterables are adapted lazily and in order."""
        events = list(adapt_incoming([{"id": 5, "payload": "x"}, Envelope.create(6, "y")]))

        assert [e.envelope.id for e in events] == [5, 6]
