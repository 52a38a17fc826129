"""Channel boundary for the correlation engine.

Provides:
- OutboundChannel / InboundChannel protocols
- ChannelPair, which binds a channel pair to exactly one engine
- The inbound adapter that reshapes raw envelopes into ResponseArrived
- LoopbackChannel, an in-memory implementation for tests and demos

No wire transport lives here; hosts plug in their own channels.
"""

from .base import ChannelPair, InboundChannel, OutboundChannel
from .inbound_adapter import adapt_incoming, adapt_incoming_stream, to_envelope
from .loopback import LoopbackChannel

__all__ = [
    # Base abstractions
    "OutboundChannel",
    "InboundChannel",
    "ChannelPair",
    # Inbound adapter
    "adapt_incoming",
    "adapt_incoming_stream",
    "to_envelope",
    # In-memory implementation
    "LoopbackChannel",
]
