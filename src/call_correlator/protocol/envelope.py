"""Envelope definition for the channel boundary.

An envelope pairs a call identifier with a payload. The same shape travels
in both directions:
- Outbound: built by the engine around a request payload
- Inbound: received from the channel around a response payload

The identifier is the only link between a response and the call that
produced it.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

PayloadT = TypeVar("PayloadT")


class Envelope(BaseModel, Generic[PayloadT]):
    """An identified payload crossing the channel boundary.

    Example (outbound request):
        {"id": 0, "payload": "A"}

    Example (inbound response to that request):
        {"id": 0, "payload": "A-reply"}
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0)
    payload: PayloadT

    @classmethod
    def create(cls, envelope_id: int, payload: PayloadT) -> Envelope[PayloadT]:
        """Factory method for creating envelopes."""
        return cls(id=envelope_id, payload=payload)
