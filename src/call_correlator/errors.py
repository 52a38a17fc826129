"""Exceptions raised by the correlation engine.

An inbound envelope that matches no pending call is not an error: it is
dropped (see ``CorrelationEngine.handle_incoming``). Everything here is a
misuse of the engine or a failure at the channel boundary.
"""

from __future__ import annotations

from typing import Any


class CorrelatorError(Exception):
    """Base class for call_correlator errors."""

    pass


class IdentifierExhaustedError(CorrelatorError):
    """Raised when the identifier counter has passed its upper bound."""

    def __init__(self, next_id: int, limit: int) -> None:
        super().__init__(f"Identifier space exhausted: next id {next_id} exceeds limit {limit}")
        self.next_id = next_id
        self.limit = limit


class ChannelAlreadyBoundError(CorrelatorError):
    """Raised when a second engine tries to own an already claimed channel pair."""

    pass


class EngineClosedError(CorrelatorError):
    """Raised when a call is issued on a closed engine."""

    pass


class OutboundSendError(CorrelatorError):
    """Raised when the outbound channel fails to accept an envelope.

    The pending entry for ``envelope_id`` has already been removed when this
    is raised.
    """

    def __init__(self, envelope_id: int, message: str) -> None:
        super().__init__(message)
        self.envelope_id = envelope_id


class ContinuationError(CorrelatorError):
    """Raised by ``dispatch.handle_incoming`` when a continuation fails.

    The matched entry was removed before the continuation ran. ``state`` is
    that post-removal state, so the caller can keep it and the failed
    continuation can never run again. The original exception is chained as
    ``__cause__``.
    """

    def __init__(self, envelope_id: int, state: Any) -> None:
        super().__init__(f"Continuation for call {envelope_id} failed")
        self.envelope_id = envelope_id
        self.state = state
