"""In-process outbox for record events.

Repositories publish a ``RecordEvent`` after their write commits and return
immediately. Consumers (for example the books search index) subscribe per
container and are driven either by ``drain()`` or by a long-running ``run()``
task. Each delivery is retried with exponential backoff; events that still
fail are parked in a dead-letter list. Nothing here can fail the write that
produced the event.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable

import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from twindata.errors import ErrorKind, classify_exception
from twindata.models.events import RecordEvent

EventHandler = Callable[[RecordEvent], Awaitable[None]]

_NON_RETRYABLE = frozenset({ErrorKind.INVALID_INPUT, ErrorKind.NOT_FOUND})


def _is_retryable(error: BaseException) -> bool:
    return classify_exception(error) not in _NON_RETRYABLE


class RecordEventOutbox:
    """Queues record events and delivers them to per-container handlers."""

    def __init__(
        self,
        max_attempts: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 5.0,
        retry_jitter: float = 0.5,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._max_attempts = max_attempts
        self._retry_min_wait = retry_min_wait
        self._retry_max_wait = retry_max_wait
        self._retry_jitter = retry_jitter
        self._logger = logger or structlog.get_logger(__name__)
        self._queue: asyncio.Queue[RecordEvent] = asyncio.Queue()
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._dead_letters: list[RecordEvent] = []

    def subscribe(self, container: str, handler: EventHandler) -> None:
        self._handlers[container].append(handler)

    def publish(self, event: RecordEvent) -> None:
        """Enqueue an event without waiting for delivery."""
        self._queue.put_nowait(event)
        self._logger.debug(
            "record_event_published",
            event_type=event.event_type.value,
            container=event.container,
            twin_id=event.twin_id,
            record_id=event.record_id,
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dead_letters(self) -> list[RecordEvent]:
        return list(self._dead_letters)

    async def drain(self) -> int:
        """Deliver every event queued so far.

        Returns:
            Number of events delivered to all of their handlers.
        """
        delivered = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                if await self._deliver(event):
                    delivered += 1
            finally:
                self._queue.task_done()
        return delivered

    async def join(self) -> None:
        """Wait until every published event has been processed by ``drain`` or ``run``."""
        await self._queue.join()

    async def run(self) -> None:
        """Consume events until cancelled."""
        self._logger.info("record_event_consumer_started")
        while True:
            event = await self._queue.get()
            try:
                await self._deliver(event)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: RecordEvent) -> bool:
        succeeded = True
        for handler in self._handlers.get(event.container, []):
            try:
                await self._call_with_retry(handler, event)
            except Exception as error:
                succeeded = False
                self._dead_letters.append(event)
                self._logger.error(
                    "record_event_dead_lettered",
                    event_id=event.event_id,
                    event_type=event.event_type.value,
                    container=event.container,
                    twin_id=event.twin_id,
                    record_id=event.record_id,
                    error=str(error),
                    error_kind=classify_exception(error).value,
                )
        return succeeded

    async def _call_with_retry(self, handler: EventHandler, event: RecordEvent) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential_jitter(
                initial=self._retry_min_wait,
                max=self._retry_max_wait,
                jitter=self._retry_jitter,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self._logger.warning(
                        "record_event_retry",
                        event_id=event.event_id,
                        container=event.container,
                        attempt=attempt.retry_state.attempt_number,
                    )
                await handler(event)


__all__ = ["EventHandler", "RecordEventOutbox"]
