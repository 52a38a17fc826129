"""call_correlator - match asynchronous responses to the calls that caused them.

Calls go out on a fire-and-forget outbound channel; responses come back on a
separate inbound channel, later and in any order. The engine tags every call
with an increasing integer id, remembers a continuation per id, and runs that
continuation when an envelope with the same id comes back.

Functional core (pure, state in / state out):
    init, submit_call, handle_incoming, dispatch

Engine shell (owns a channel pair, locking, logging, hooks):
    CorrelationEngine
"""

from .config import MAX_IDENTIFIER, EngineConfig
from .dispatch import build_envelope, dispatch, handle_incoming, submit_call, take_pending
from .engine import CorrelationEngine, EngineStats
from .errors import (
    ChannelAlreadyBoundError,
    ContinuationError,
    CorrelatorError,
    EngineClosedError,
    IdentifierExhaustedError,
    OutboundSendError,
)
from .ids import allocate
from .protocol import CallRequested, Completed, Emit, Envelope, ResponseArrived
from .registry import Continuation, insert, take_and_remove
from .state import EngineState, init
from .transport import (
    ChannelPair,
    InboundChannel,
    LoopbackChannel,
    OutboundChannel,
    adapt_incoming,
    adapt_incoming_stream,
)

__version__ = "0.1.0"

__all__ = [
    # Functional core
    "init",
    "allocate",
    "insert",
    "take_and_remove",
    "build_envelope",
    "submit_call",
    "handle_incoming",
    "take_pending",
    "dispatch",
    "EngineState",
    "Continuation",
    # Messages
    "Envelope",
    "CallRequested",
    "ResponseArrived",
    "Emit",
    "Completed",
    # Channel boundary
    "OutboundChannel",
    "InboundChannel",
    "ChannelPair",
    "LoopbackChannel",
    "adapt_incoming",
    "adapt_incoming_stream",
    # Engine shell
    "CorrelationEngine",
    "EngineStats",
    "EngineConfig",
    "MAX_IDENTIFIER",
    # Errors
    "CorrelatorError",
    "IdentifierExhaustedError",
    "ChannelAlreadyBoundError",
    "EngineClosedError",
    "OutboundSendError",
    "ContinuationError",
]
