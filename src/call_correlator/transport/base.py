"""Channel abstraction at the engine boundary.

The engine talks to the outside world through two one-way channels:
- OutboundChannel: accepts envelopes, fire-and-forget
- InboundChannel: yields response envelopes, in whatever order they arrive

How bytes actually move is up to the implementation. A channel pair must be
owned by exactly one engine: two engines reading the same inbound channel
would each see responses meant for the other's registry and drop them.
ChannelPair enforces that ownership.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol, runtime_checkable

from ..errors import ChannelAlreadyBoundError
from ..protocol.envelope import Envelope

logger = logging.getLogger(__name__)


@runtime_checkable
class OutboundChannel(Protocol):
    """Protocol for the request side of the boundary."""

    async def send(self, envelope: Envelope[Any]) -> None:
        """Hand an envelope to the channel.

        Returns once the channel has accepted it. There is no reply; the
        response, if any, shows up later on the inbound channel.
        """
        ...


@runtime_checkable
class InboundChannel(Protocol):
    """Protocol for the response side of the boundary."""

    def receive(self) -> AsyncIterator[Envelope[Any] | Mapping[str, Any]]:
        """Yield inbound envelopes (or raw ``{"id", "payload"}`` mappings).

        Iteration ends when the channel is closed.
        """
        ...


class ChannelPair:
    """An outbound/inbound channel pair that can be owned by one engine.

    Usage:
        pair = ChannelPair(outbound, inbound)
        engine = CorrelationEngine(pair)   # claims the pair
        CorrelationEngine(pair)            # raises ChannelAlreadyBoundError
    """

    def __init__(self, outbound: OutboundChannel, inbound: InboundChannel) -> None:
        self.outbound = outbound
        self.inbound = inbound
        self._owner: object | None = None
        self._lock = threading.Lock()

    @property
    def owner(self) -> object | None:
        """The object currently bound to this pair, if any."""
        return self._owner

    @property
    def is_bound(self) -> bool:
        return self._owner is not None

    def claim(self, owner: object) -> None:
        """Bind the pair to ``owner``.

        Raises:
            ChannelAlreadyBoundError: If another owner already holds the pair
        """
        with self._lock:
            if self._owner is not None and self._owner is not owner:
                raise ChannelAlreadyBoundError(
                    f"Channel pair is already bound to {type(self._owner).__name__} "
                    f"at {id(self._owner):#x}"
                )
            self._owner = owner
        logger.info(f"Channel pair bound to {type(owner).__name__}")

    def release(self, owner: object) -> None:
        """Unbind the pair. Releasing from a non-owner is ignored."""
        with self._lock:
            if self._owner is not owner:
                return
            self._owner = None
        logger.info(f"Channel pair released by {type(owner).__name__}")
