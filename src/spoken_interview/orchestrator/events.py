"""Stage-change publish/subscribe channel.

Publishing never blocks and never raises: callback failures are logged,
coroutine callbacks are scheduled as tasks, and stream subscribers get an
unbounded queue.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Union

from spoken_interview.orchestrator.schemas import Stage, StageChange

logger = logging.getLogger(__name__)

Subscriber = Callable[[StageChange], Union[None, Awaitable[None]]]


class EventBus:
    """Fan-out of StageChange events to callbacks and async streams."""

    def __init__(self) -> None:
        self._callbacks: list[Subscriber] = []
        self._queues: list[asyncio.Queue[StageChange | None]] = []
        self._tasks: set[asyncio.Future[None]] = set()

    @property
    def subscriber_count(self) -> int:
        """Number of callbacks and streams currently attached."""
        return len(self._callbacks) + len(self._queues)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every event.

        Returns:
            A function that removes the subscription.
        """
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def stream(self, until_finished: bool = True) -> EventStream:
        """
        Open a stream of events published from now on.

        The stream is registered immediately, so events published before
        iteration starts are kept.

        Args:
            until_finished: Stop after yielding a finished event.
        """
        queue: asyncio.Queue[StageChange | None] = asyncio.Queue()
        self._queues.append(queue)
        return EventStream(self, queue, until_finished)

    def publish(self, event: StageChange) -> None:
        """Deliver an event to every subscriber without blocking."""
        for queue in list(self._queues):
            queue.put_nowait(event)

        for callback in list(self._callbacks):
            try:
                result = callback(event)
            except Exception:
                logger.warning(
                    f"Subscriber {callback!r} failed on {event.stage.value} event",
                    exc_info=True,
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def close(self) -> None:
        """End every open stream."""
        for queue in list(self._queues):
            queue.put_nowait(None)

    def detach(self, queue: asyncio.Queue[StageChange | None]) -> None:
        """Remove a stream queue."""
        if queue in self._queues:
            self._queues.remove(queue)

    def _on_task_done(self, task: asyncio.Future[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Async subscriber failed", exc_info=exc)


class EventStream:
    """Async iterator over StageChange events from one EventBus."""

    def __init__(
        self,
        bus: EventBus,
        queue: asyncio.Queue[StageChange | None],
        until_finished: bool,
    ) -> None:
        self._bus = bus
        self._queue = queue
        self._until_finished = until_finished
        self._done = False

    def __aiter__(self) -> AsyncIterator[StageChange]:
        return self

    async def __anext__(self) -> StageChange:
        if self._done:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None:
            self.close()
            raise StopAsyncIteration
        if self._until_finished and event.stage == Stage.FINISHED:
            self.close()
        return event

    async def next(self, timeout_s: float | None = None) -> StageChange:
        """Wait for the next event, optionally bounded by a timeout."""
        return await asyncio.wait_for(self.__anext__(), timeout=timeout_s)

    def close(self) -> None:
        """Detach from the bus."""
        self._done = True
        self._bus.detach(self._queue)
