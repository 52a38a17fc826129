"""Inbound adapter.

Thin layer that turns the raw stream coming off an inbound channel into
ResponseArrived messages for the dispatch handler.

Accepted items:
- Envelope instances, passed through as-is
- Mappings shaped like {"id": 3, "payload": ...}, validated into Envelope

Items are yielded in the order received. Nothing is buffered or reordered.
Items that are not envelopes are logged and skipped; the stream keeps going.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Mapping
from typing import Any, Union

from pydantic import ValidationError

from ..protocol.envelope import Envelope
from ..protocol.events import ResponseArrived

logger = logging.getLogger(__name__)

RawEnvelope = Union[Envelope[Any], Mapping[str, Any]]


def to_envelope(item: Any) -> Envelope[Any] | None:
    """Coerce a raw inbound item into an Envelope, or None if it isn't one."""
    if isinstance(item, Envelope):
        return item
    try:
        return Envelope.model_validate(item)
    except ValidationError as e:
        logger.warning(
            f"Skipping malformed inbound envelope ({e.error_count()} error(s)): {item!r:.80}"
        )
        return None


async def adapt_incoming_stream(
    raw_stream: AsyncIterable[RawEnvelope],
) -> AsyncIterator[ResponseArrived]:
    """Yield a ResponseArrived for each envelope in ``raw_stream``."""
    async for item in raw_stream:
        envelope = to_envelope(item)
        if envelope is None:
            continue
        yield ResponseArrived(envelope=envelope)


def adapt_incoming(raw: Iterable[RawEnvelope]) -> Iterator[ResponseArrived]:
    """Synchronous counterpart of adapt_incoming_stream."""
    for item in raw:
        envelope = to_envelope(item)
        if envelope is None:
            continue
        yield ResponseArrived(envelope=envelope)
