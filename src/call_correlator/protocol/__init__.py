"""Message shapes for the correlation engine.

Key concepts:
- Envelope: {id, payload} pair exchanged with the external channel
- CallRequested / ResponseArrived: the two inputs of the dispatch handler
- Emit / Completed: the outcomes those inputs produce
"""

from .envelope import Envelope
from .events import CallRequested, Completed, Emit, InternalEvent, Outcome, ResponseArrived

__all__ = [
    "Envelope",
    "CallRequested",
    "ResponseArrived",
    "Emit",
    "Completed",
    "InternalEvent",
    "Outcome",
]
