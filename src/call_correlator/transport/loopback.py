"""In-memory loopback channel.

Implements both OutboundChannel and InboundChannel on top of an
asyncio.Queue. No actual I/O - everything is in-memory. Intended for tests,
demos, and hosts that bridge to a transport by hand.

Usage:
    channel = LoopbackChannel(responder=lambda env: Envelope.create(env.id, env.payload.upper()))
    engine = CorrelationEngine(channel.pair())

    reply = await engine.request("ping")   # -> "PING"
    assert channel.sent[0].payload == "ping"
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any

from ..protocol.envelope import Envelope
from .base import ChannelPair

logger = logging.getLogger(__name__)

# Builds the reply for an outbound envelope, or None to stay silent
Responder = Callable[[Envelope[Any]], "Envelope[Any] | Mapping[str, Any] | None"]

_CLOSED = object()


class LoopbackChannel:
    """Outbound and inbound channel backed by a single in-memory queue."""

    def __init__(self, responder: Responder | None = None) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._sent: list[Envelope[Any]] = []
        self._responder = responder
        self._closed = False
        self._pair = ChannelPair(self, self)

    @property
    def sent(self) -> list[Envelope[Any]]:
        """All envelopes sent through this channel, in send order."""
        return self._sent.copy()

    @property
    def closed(self) -> bool:
        return self._closed

    def set_responder(self, responder: Responder | None) -> None:
        """Replace the canned responder (None disables auto-replies)."""
        self._responder = responder

    async def send(self, envelope: Envelope[Any]) -> None:
        """Record the envelope and queue the responder's reply, if any."""
        if self._closed:
            raise ConnectionError("Loopback channel is closed")
        self._sent.append(envelope)
        logger.debug(f"Loopback sent envelope {envelope.id}")

        if self._responder is not None:
            reply = self._responder(envelope)
            if reply is not None:
                self.deliver(reply)

    def deliver(self, envelope: Envelope[Any] | Mapping[str, Any]) -> None:
        """Inject an inbound item, as if it arrived from the far side."""
        if self._closed:
            raise ConnectionError("Loopback channel is closed")
        self._queue.put_nowait(envelope)

    def close(self) -> None:
        """End the inbound stream once queued items have been consumed."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> AsyncIterator[Envelope[Any] | Mapping[str, Any]]:
        """Yield delivered items until the channel is closed."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                break
            yield item

    def pair(self) -> ChannelPair:
        """This channel as both halves of a ChannelPair.

        Always the same pair, so two engines built on one loopback still
        collide on ownership.
        """
        return self._pair
