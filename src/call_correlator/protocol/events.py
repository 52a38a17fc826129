"""Internal messages understood by the dispatch handler.

Inputs:
- CallRequested: the application issues a call
- ResponseArrived: an envelope came in from the inbound channel

Outcomes:
- Emit: envelope to hand to the outbound channel
- Completed: a continuation ran; carries whatever it produced
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from .envelope import Envelope


@dataclass(frozen=True)
class CallRequested:
    """A new call: payload to send and the continuation for its response."""

    payload: Any
    continuation: Callable[[Any], Any]


@dataclass(frozen=True)
class ResponseArrived:
    """An inbound envelope, reshaped for the dispatch handler."""

    envelope: Envelope[Any]


@dataclass(frozen=True)
class Emit:
    """Outbound envelope produced by a CallRequested transition."""

    envelope: Envelope[Any]


@dataclass(frozen=True)
class Completed:
    """A matched response whose continuation has run."""

    id: int
    effect: Any = None


InternalEvent = Union[CallRequested, ResponseArrived]
Outcome = Union[Emit, Completed]
