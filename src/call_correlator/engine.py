"""Correlation engine.

Owns one channel pair and the engine state behind it, and wraps the pure
transitions in ``dispatch`` with the pieces a running application needs:

- A lock around state mutation (allocate+register, lookup+remove)
- Exclusive ownership of the channel pair
- Transmission of outbound envelopes
- A loop that feeds inbound envelopes through the adapter
- Observability for dropped responses and outstanding calls

Architecture:
    call() ──► build_envelope ──► outbound.send()
                                     ┆ (external channel)
    run()  ◄── adapt_incoming_stream ◄── inbound.receive()
      └──► pop pending ──► continuation(payload) ──► Completed

The lock is held only while state changes, never while sending or while a
continuation runs, so a continuation may issue further calls. The engine
keeps its pending calls in a plain dict behind that lock, so issuing and
matching stay O(1) however many calls are outstanding; ``state`` hands out
an immutable snapshot.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import AsyncIterator, Callable
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from .config import EngineConfig
from .dispatch import build_envelope
from .errors import EngineClosedError, OutboundSendError
from .protocol.envelope import Envelope
from .protocol.events import CallRequested, Completed, Emit, InternalEvent, ResponseArrived
from .registry import Continuation
from .state import EngineState
from .transport.base import ChannelPair
from .transport.inbound_adapter import adapt_incoming_stream

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")

UnmatchedHook = Callable[[Envelope[Any]], None]


class EngineStats(BaseModel):
    """Counters for one engine instance."""

    issued: int = 0
    completed: int = 0
    unmatched: int = 0
    pending: int = 0


class CorrelationEngine(Generic[RequestT, ResponseT]):
    """Matches responses from an inbound channel to calls sent on an outbound one.

    Usage:
        channel = LoopbackChannel(responder=echo)
        async with CorrelationEngine(channel.pair()) as engine:
            runner = asyncio.create_task(engine.run())
            reply = await engine.request("hello")

    A channel pair belongs to exactly one engine. Constructing a second
    engine on the same pair raises ChannelAlreadyBoundError.

    Responses whose id matches no pending call are dropped. They are counted
    in ``stats.unmatched``, logged at ``config.unmatched_log_level`` and
    passed to ``on_unmatched`` if given.
    """

    def __init__(
        self,
        channels: ChannelPair,
        config: EngineConfig | None = None,
        on_unmatched: UnmatchedHook | None = None,
    ) -> None:
        """Create the engine and bind it to ``channels``.

        Args:
            channels: Channel pair to own for the engine's lifetime
            config: Engine configuration (defaults to EngineConfig())
            on_unmatched: Called with every dropped inbound envelope

        Raises:
            ChannelAlreadyBoundError: If another engine owns ``channels``
        """
        self.config = config or EngineConfig()
        self._channels = channels
        self._on_unmatched = on_unmatched
        self._next_id = 0
        self._pending: dict[int, Continuation] = {}
        self._lock = threading.Lock()
        self._completed = 0
        self._unmatched = 0
        self._closed = False

        channels.claim(self)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def channels(self) -> ChannelPair:
        return self._channels

    @property
    def state(self) -> EngineState:
        """Snapshot of the current engine state."""
        with self._lock:
            return EngineState(
                next_id=self._next_id, registry=MappingProxyType(dict(self._pending))
            )

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> EngineStats:
        with self._lock:
            return EngineStats(
                issued=self._next_id,
                completed=self._completed,
                unmatched=self._unmatched,
                pending=len(self._pending),
            )

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def call(
        self,
        payload: RequestT,
        continuation: Callable[[ResponseT], Any],
    ) -> Envelope[RequestT]:
        """Issue a call and send its envelope.

        Returns as soon as the outbound channel accepts the envelope. The
        continuation runs later, when the matching response is handled.

        Raises:
            EngineClosedError: If the engine has been closed
            IdentifierExhaustedError: If no identifiers are left
            OutboundSendError: If the outbound channel rejects the envelope;
                the call is unregistered before this is raised. If the send
                is cancelled instead, the call is unregistered and the
                cancellation propagates as is.
        """
        if self._closed:
            raise EngineClosedError("Cannot issue a call on a closed engine")

        with self._lock:
            envelope, advanced = build_envelope(
                payload, EngineState(next_id=self._next_id), self.config.max_identifier
            )
            self._next_id = advanced.next_id
            self._pending[envelope.id] = continuation
            pending = len(self._pending)

        self._check_pending(pending)

        try:
            await self._channels.outbound.send(envelope)
        except BaseException as e:
            with self._lock:
                self._pending.pop(envelope.id, None)
            if not isinstance(e, Exception):
                # Cancellation and interpreter exits pass through unchanged
                raise
            message = f"Failed to send envelope {envelope.id}: {e}"
            logger.error(message)
            raise OutboundSendError(envelope.id, message) from e

        logger.debug(f"Sent envelope {envelope.id}")
        return envelope

    async def request(self, payload: RequestT) -> ResponseT:
        """Issue a call and wait for its response payload.

        Something must be handling inbound envelopes meanwhile (usually a
        task running ``run()``). There is no timeout: if no response ever
        arrives, this waits forever.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ResponseT] = loop.create_future()

        def _resolve(response: ResponseT) -> None:
            if not future.done():
                future.set_result(response)

        def continuation(response: ResponseT) -> ResponseT:
            # May run on another thread's loop
            loop.call_soon_threadsafe(_resolve, response)
            return response

        await self.call(payload, continuation)
        return await future

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def handle_incoming(self, envelope: Envelope[Any]) -> Completed | None:
        """Route one inbound envelope to its continuation.

        Returns Completed with the continuation's effect (awaited first if
        it is awaitable), or None when no call is waiting on the id.
        Exceptions raised by the continuation propagate; the call is
        already unregistered by then.
        """
        with self._lock:
            continuation = self._pending.pop(envelope.id, None)
            if continuation is not None:
                self._completed += 1

        if continuation is None:
            self._report_unmatched(envelope)
            return None

        logger.debug(f"Matched response {envelope.id}")
        effect = continuation(envelope.payload)
        if inspect.isawaitable(effect):
            effect = await effect
        return Completed(id=envelope.id, effect=effect)

    async def dispatch(self, event: InternalEvent) -> Emit | Completed | None:
        """Apply one internal message through the engine."""
        if isinstance(event, CallRequested):
            envelope = await self.call(event.payload, event.continuation)
            return Emit(envelope=envelope)
        if isinstance(event, ResponseArrived):
            return await self.handle_incoming(event.envelope)
        raise TypeError(f"Unknown event type: {type(event).__name__}")

    async def outcomes(self) -> AsyncIterator[Completed]:
        """Consume the inbound channel and yield each completed call.

        Ends when the inbound channel closes. A continuation that raises
        ends the iteration with that exception; use ``run()`` to keep
        going instead.
        """
        async for event in adapt_incoming_stream(self._channels.inbound.receive()):
            completed = await self.handle_incoming(event.envelope)
            if completed is not None:
                yield completed

    async def run(self, on_completed: Callable[[Completed], Any] | None = None) -> None:
        """Consume the inbound channel until it closes.

        Continuation failures are logged and the loop carries on with the
        next envelope.

        Args:
            on_completed: Called with every Completed outcome
        """
        logger.info("Correlation engine loop started")
        async for event in adapt_incoming_stream(self._channels.inbound.receive()):
            try:
                completed = await self.handle_incoming(event.envelope)
            except Exception:
                logger.exception(f"Continuation for call {event.envelope.id} failed")
                continue

            if completed is None or on_completed is None:
                continue
            try:
                result = on_completed(completed)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Completion handler failed for call {completed.id}")
        logger.info("Correlation engine loop stopped (inbound channel closed)")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Stop accepting calls and release the channel pair.

        Calls still pending are abandoned; their continuations never run.
        """
        if self._closed:
            return
        self._closed = True

        pending = self.pending_count
        if pending:
            logger.warning(f"Closing engine with {pending} pending call(s)")
        self._channels.release(self)

    async def __aenter__(self) -> CorrelationEngine[RequestT, ResponseT]:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _check_pending(self, pending: int) -> None:
        threshold = self.config.pending_warning_threshold
        if threshold and pending % threshold == 0:
            logger.warning(
                f"{pending} calls awaiting a response; unanswered calls are never evicted"
            )

    def _report_unmatched(self, envelope: Envelope[Any]) -> None:
        with self._lock:
            self._unmatched += 1

        logger.log(
            self.config.unmatched_log_level,
            f"Dropping response {envelope.id}: no pending call with that id",
        )

        if self._on_unmatched is None:
            return
        try:
            self._on_unmatched(envelope)
        except Exception:
            logger.exception(f"Unmatched-response hook failed for envelope {envelope.id}")

