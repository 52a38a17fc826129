"""Dispatch handler: the engine's transition functions.

All functions here are pure with respect to engine state. They take an
EngineState and return a new one alongside what the caller should do next:

- submit_call: allocate an id, register the continuation, return the
  envelope to transmit (transmission itself is the caller's job)
- handle_incoming: look up the envelope id, remove the entry, run the
  continuation with the payload
- dispatch: route either internal message to the right transition

Each transition is applied as one step; callers never observe a state
where an id is allocated but not registered, or matched but still pending.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from .config import MAX_IDENTIFIER
from .errors import ContinuationError
from .ids import allocate
from .protocol.envelope import Envelope
from .protocol.events import (
    CallRequested,
    Completed,
    Emit,
    InternalEvent,
    Outcome,
    ResponseArrived,
)
from .registry import Continuation, insert, take_and_remove
from .state import EngineState

logger = logging.getLogger(__name__)


def build_envelope(
    payload: Any,
    state: EngineState,
    limit: int = MAX_IDENTIFIER,
) -> tuple[Envelope[Any], EngineState]:
    """Wrap ``payload`` in an envelope carrying a freshly allocated id."""
    envelope_id, state = allocate(state, limit)
    return Envelope.create(envelope_id, payload), state


def submit_call(
    payload: Any,
    continuation: Continuation,
    state: EngineState,
    limit: int = MAX_IDENTIFIER,
) -> tuple[EngineState, Envelope[Any]]:
    """Issue a call.

    Args:
        payload: Request payload to send
        continuation: Called once with the response payload
        state: Current engine state
        limit: Highest identifier that may be allocated

    Returns:
        The new state and the envelope to hand to the outbound channel
    """
    envelope, state = build_envelope(payload, state, limit)
    state = replace(state, registry=insert(envelope.id, continuation, state.registry))
    logger.debug(f"Registered call {envelope.id} ({state.pending_count} pending)")
    return state, envelope


def take_pending(
    envelope: Envelope[Any],
    state: EngineState,
) -> tuple[EngineState, Continuation | None]:
    """Remove the pending entry for ``envelope`` without running it.

    Returns the state unchanged and None when nothing is waiting on the id.
    """
    continuation, registry = take_and_remove(envelope.id, state.registry)
    if continuation is None:
        return state, None
    return replace(state, registry=registry), continuation


def handle_incoming(
    envelope: Envelope[Any],
    state: EngineState,
) -> tuple[EngineState, Completed | None]:
    """Match an inbound envelope against the pending calls.

    On a hit the entry is removed first and then the continuation runs with
    the envelope payload; its return value becomes the Completed effect.

    On a miss nothing changes and None is returned. No error is raised.

    Raises:
        ContinuationError: If the continuation raises. The error carries the
            post-removal state in ``state`` and chains the original
            exception, so the failed continuation is never run again.
    """
    state, continuation = take_pending(envelope, state)
    if continuation is None:
        return state, None
    try:
        effect = continuation(envelope.payload)
    except Exception as e:
        raise ContinuationError(envelope.id, state) from e
    return state, Completed(id=envelope.id, effect=effect)


def dispatch(
    event: InternalEvent,
    state: EngineState,
    limit: int = MAX_IDENTIFIER,
) -> tuple[EngineState, Outcome | None]:
    """Apply one internal message to the state."""
    if isinstance(event, CallRequested):
        state, envelope = submit_call(event.payload, event.continuation, state, limit)
        return state, Emit(envelope=envelope)
    if isinstance(event, ResponseArrived):
        return handle_incoming(event.envelope, state)
    raise TypeError(f"Unknown event type: {type(event).__name__}")
