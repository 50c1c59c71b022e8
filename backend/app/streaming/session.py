"""Server-Sent Events session around one orchestrator run.

The orchestrator runs in its own task and hands events to the session
through an async sink backed by a bounded queue. The HTTP writer pulls
from the queue, so a slow client suspends the orchestrator instead of
buffering events in memory.

Lifecycle:
    OPEN -> COMPLETED | FAILED | CLIENT_ABORTED -> CLOSED

On COMPLETED and FAILED the finalizer persists the terminal state before
the terminal event is yielded, and exactly one terminal event closes the
stream. On CLIENT_ABORTED nothing more is written to the wire or to the
record.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from backend.app.metrics.core import record_stream_session
from backend.app.metrics.registry import MetricsClient
from backend.app.streaming.events import SSEEvent, is_terminal

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventSink = Callable[[SSEEvent], Awaitable[None]]
Orchestrator = Callable[[EventSink, asyncio.Event], Awaitable[T]]


class DeadlineExceededError(Exception):
    """The orchestrator did not finish within the session deadline."""


class SessionState(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"
    CLIENT_ABORTED = "client_aborted"
    CLOSED = "closed"


class SessionFinalizer(ABC, Generic[T]):
    """Persists the terminal state of a run and builds its terminal event."""

    @abstractmethod
    async def persist_success(self, result: T, duration_ms: int) -> None:
        """Record the completed run."""

    @abstractmethod
    async def persist_failure(self, error: BaseException, duration_ms: int) -> None:
        """Record the failed run."""

    @abstractmethod
    def completion_event(self, result: T, duration_ms: int) -> SSEEvent:
        """Build the terminal event for a completed run."""

    @abstractmethod
    def error_event(self, error: BaseException) -> SSEEvent:
        """Build the terminal event for a failed run."""


@dataclass
class _Outcome:
    result: Any = None
    error: BaseException | None = None


_ABORTED = object()


class SSESession(Generic[T]):
    """One streamed orchestrator run.

    Example:
        session = SSESession(orchestrator.run, finalizer, kind="analysis")
        return build_sse_response(session)
    """

    def __init__(
        self,
        run: Orchestrator[T],
        finalizer: SessionFinalizer[T],
        *,
        deadline_s: float | None = None,
        queue_size: int = 1,
        kind: str = "stream",
        metrics: MetricsClient | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            run: Orchestrator call `async (emit, abort) -> result`
            finalizer: Terminal persistence and event builder
            deadline_s: Optional overall budget; exceeding it fails the run
            queue_size: Events buffered between orchestrator and writer
            kind: Label used in logs and metrics
            metrics: Optional in-process metrics registry
        """
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._run = run
        self._finalizer = finalizer
        self.deadline_s = deadline_s
        self.queue_size = queue_size
        self.kind = kind
        self._metrics = metrics

        self.state = SessionState.OPEN
        self.outcome: SessionState | None = None
        self.events_sent = 0
        self.abort_signal = asyncio.Event()

        self._task: asyncio.Task[None] | None = None
        self._started_at: float | None = None
        self._recorded = False

    @property
    def aborted(self) -> bool:
        return self.abort_signal.is_set()

    def abort(self) -> None:
        """Signal a client disconnect: stop the orchestrator and all writes."""
        if self.outcome is None:
            self.outcome = SessionState.CLIENT_ABORTED
        self.abort_signal.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def events(self) -> AsyncIterator[dict[str, str]]:
        """Yield `data:` frames in emission order, ending with one terminal event.

        The iterator is meant to be consumed once, by the SSE response.
        """
        if self._started_at is not None:
            raise RuntimeError("SSE session can only be consumed once")
        self._started_at = time.monotonic()

        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.queue_size)

        async def sink(event: SSEEvent) -> None:
            if is_terminal(event):
                raise TypeError(
                    f"{type(event).__name__} is terminal; the session sends the terminal event"
                )
            if self.aborted:
                # Late emissions after a disconnect are dropped
                return
            await queue.put(event)

        self._task = asyncio.create_task(
            self._produce(sink, queue), name=f"{self.kind}-orchestrator"
        )

        try:
            while True:
                item = await self._next_item(queue)
                if item is _ABORTED:
                    return
                if isinstance(item, _Outcome):
                    break
                self.events_sent += 1
                yield {"data": item.to_json()}

            terminal = await self._finalize(item)
            if self.aborted:
                return
            self.events_sent += 1
            yield {"data": terminal.to_json()}
        except (asyncio.CancelledError, GeneratorExit):
            self.abort()
            raise
        finally:
            if self._task is not None and not self._task.done():
                self._task.cancel()
            self.state = SessionState.CLOSED
            self._record()

    async def _invoke(self, sink: EventSink) -> T:
        if self.deadline_s is None:
            return await self._run(sink, self.abort_signal)
        try:
            return await asyncio.wait_for(
                self._run(sink, self.abort_signal), timeout=self.deadline_s
            )
        except asyncio.TimeoutError:
            raise DeadlineExceededError(
                f"Run exceeded its {self.deadline_s}s deadline"
            ) from None

    async def _produce(self, sink: EventSink, queue: asyncio.Queue[Any]) -> None:
        try:
            outcome = _Outcome(result=await self._invoke(sink))
        except Exception as exc:
            outcome = _Outcome(error=exc)
        await queue.put(outcome)

    async def _next_item(self, queue: asyncio.Queue[Any]) -> Any:
        """Next queued item, or _ABORTED as soon as the abort signal fires."""
        if self.aborted:
            return _ABORTED
        getter = asyncio.ensure_future(queue.get())
        waiter = asyncio.ensure_future(self.abort_signal.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            getter.cancel()
            waiter.cancel()
        if waiter in done or self.aborted:
            return _ABORTED
        return getter.result()

    def _settle(self, state: SessionState) -> None:
        # First terminal state wins; an abort during finalization keeps CLIENT_ABORTED
        if self.outcome is None:
            self.outcome = state

    async def _finalize(self, outcome: _Outcome) -> SSEEvent:
        """Persist the terminal state, then build the terminal event."""
        duration_ms = self._elapsed_ms()

        if outcome.error is None:
            try:
                await self._finalizer.persist_success(outcome.result, duration_ms)
            except Exception:
                logger.exception(
                    "Failed to persist completed run", extra={"kind": self.kind}
                )
            try:
                event = self._finalizer.completion_event(outcome.result, duration_ms)
            except Exception as exc:
                logger.exception(
                    "Failed to build completion event", extra={"kind": self.kind}
                )
                self._settle(SessionState.FAILED)
                return self._finalizer.error_event(exc)
            self._settle(SessionState.COMPLETED)
            return event

        logger.warning(
            "Stream run failed",
            exc_info=(type(outcome.error), outcome.error, outcome.error.__traceback__),
            extra={"kind": self.kind},
        )
        try:
            await self._finalizer.persist_failure(outcome.error, duration_ms)
        except Exception:
            logger.exception("Failed to persist failed run", extra={"kind": self.kind})
        self._settle(SessionState.FAILED)
        return self._finalizer.error_event(outcome.error)

    def _elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((time.monotonic() - self._started_at) * 1000)

    def _record(self) -> None:
        if self._recorded:
            return
        self._recorded = True
        outcome = self.outcome or SessionState.CLIENT_ABORTED
        record_stream_session(
            self.kind,
            outcome.value,
            self._elapsed_ms(),
            self.events_sent,
            client=self._metrics,
        )
