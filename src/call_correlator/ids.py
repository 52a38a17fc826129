"""Identifier allocation."""

from __future__ import annotations

from dataclasses import replace

from .config import MAX_IDENTIFIER
from .errors import IdentifierExhaustedError
from .state import EngineState


def allocate(state: EngineState, limit: int = MAX_IDENTIFIER) -> tuple[int, EngineState]:
    """Claim the next identifier.

    Returns the current ``next_id`` and a state advanced by one. Identifiers
    are never wrapped or reused: once ``next_id`` is past ``limit`` this
    raises IdentifierExhaustedError and the state is left as it was.
    """
    envelope_id = state.next_id
    if envelope_id > limit:
        raise IdentifierExhaustedError(envelope_id, limit)
    return envelope_id, replace(state, next_id=envelope_id + 1)
