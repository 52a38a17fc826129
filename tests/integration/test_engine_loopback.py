"""Integration tests: CorrelationEngine driven end to end over a LoopbackChannel.

These run the inbound loop as a real asyncio task, so responses travel
through the channel queue and the inbound adapter before being matched.
"""

from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from call_correlator import Completed, CorrelationEngine, Envelope, LoopbackChannel


class TestRequestResponse:
    """Tests for awaiting responses through the run loop."""

    @pytest.mark.anyio
    async def test_request_resolves(self, echo_channel: LoopbackChannel):
        async with CorrelationEngine(echo_channel.pair()) as engine:
            runner = asyncio.create_task(engine.run())

            assert await engine.request("A") == "A-reply"

            echo_channel.close()
            await runner

        assert engine.pending_count == 0

    @pytest.mark.anyio
    async def test_concurrent_requests(self, echo_channel: LoopbackChannel):
        """Many in-flight requests each get their own reply."""
        async with CorrelationEngine(echo_channel.pair()) as engine:
            runner = asyncio.create_task(engine.run())

            replies = await asyncio.gather(*(engine.request(f"q{i}") for i in range(20)))

            assert replies == [f"q{i}-reply" for i in range(20)]
            assert engine.stats.completed == 20
            echo_channel.close()
            await runner

    @pytest.mark.anyio
    async def test_out_of_order_replies(self, channel: LoopbackChannel):
        """Replies delivered in reverse still resolve the right requests."""
        async with CorrelationEngine(channel.pair()) as engine:
            runner = asyncio.create_task(engine.run())
            tasks = [asyncio.create_task(engine.request(f"q{i}")) for i in range(3)]

            while len(channel.sent) < 3:
                await asyncio.sleep(0)
            for envelope in reversed(channel.sent):
                channel.deliver({"id": envelope.id, "payload": f"{envelope.payload}-late"})

            assert await asyncio.gather(*tasks) == ["q0-late", "q1-late", "q2-late"]
            channel.close()
            await runner


class TestRunLoop:
    """Tests for the inbound loop."""

    @pytest.mark.anyio
    async def test_on_completed_receives_outcomes(self, echo_channel: LoopbackChannel):
        outcomes: list[Completed] = []

        async with CorrelationEngine(echo_channel.pair()) as engine:
            await engine.call("A", lambda payload: payload.upper())
            await engine.call("B", lambda payload: payload.upper())
            echo_channel.close()

            await engine.run(on_completed=outcomes.append)

        assert outcomes == [Completed(id=0, effect="A-REPLY"), Completed(id=1, effect="B-REPLY")]

    @pytest.mark.anyio
    async def test_run_survives_failing_continuation(self, echo_channel: LoopbackChannel, caplog):
        received = []

        def boom(payload):
            raise RuntimeError("continuation failed")

        async with CorrelationEngine(echo_channel.pair()) as engine:
            await engine.call("A", boom)
            await engine.call("B", received.append)
            echo_channel.close()

            with caplog.at_level(logging.ERROR, logger="call_correlator.engine"):
                await engine.run()

        assert received == ["B-reply"]
        assert "Continuation for call 0 failed" in caplog.text

    @pytest.mark.anyio
    async def test_run_drops_unmatched_and_malformed(self, channel: LoopbackChannel):
        dropped = []

        async with CorrelationEngine(channel.pair(), on_unmatched=dropped.append) as engine:
            received = []
            await engine.call("A", received.append)

            channel.deliver({"id": 42, "payload": "stray"})
            channel.deliver({"not": "an envelope"})
            channel.deliver({"id": 0, "payload": "A-reply"})
            channel.close()

            await engine.run()

        assert received == ["A-reply"]
        assert dropped == [Envelope.create(42, "stray")]
        assert engine.stats.unmatched == 1

    @pytest.mark.anyio
    async def test_outcomes_iterator(self, channel: LoopbackChannel):
        """outcomes() yields only matched calls, in arrival order."""
        async with CorrelationEngine(channel.pair()) as engine:
            await engine.call("A", lambda p: f"k1({p})")
            await engine.call("B", lambda p: f"k2({p})")

            channel.deliver(Envelope.create(1, "B-reply"))
            channel.deliver(Envelope.create(7, "?"))
            channel.deliver(Envelope.create(0, "A-reply"))
            channel.close()

            results = [completed async for completed in engine.outcomes()]

        assert results == [
            Completed(id=1, effect="k2(B-reply)"),
            Completed(id=0, effect="k1(A-reply)"),
        ]
        assert engine.pending_count == 0


class TestThreadedCalls:
    """Tests for calls issued from several threads."""

    def test_ids_unique_across_threads(self, channel: LoopbackChannel):
        """Allocate+register is atomic: no id is issued twice."""
        engine = CorrelationEngine(channel.pair())

        async def issue(count: int) -> None:
            for i in range(count):
                await engine.call(i, lambda p: None)

        threads = [threading.Thread(target=asyncio.run, args=(issue(50),)) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(e.id for e in channel.sent) == list(range(200))
        assert engine.pending_count == 200
        engine.close()
