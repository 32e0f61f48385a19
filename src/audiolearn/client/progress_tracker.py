"""Batched listening-progress reporting.

The player reports its position on every tick. Sending each tick would
hammer the API, so updates are coalesced per chapter and flushed as one
batch a fixed delay after the first unflushed update. Completion
updates skip the batch and go out immediately.

Failed sends are retried with exponential backoff. Once retries are
exhausted the error handler is called and the update is dropped;
there is no persistent offline queue.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_FLUSH_DELAY = 5.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0


@dataclass(frozen=True, eq=False)
class ProgressUpdate:
    """One position report for a chapter."""

    chapter_id: str
    current_time: float
    is_completed: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "chapter_id": self.chapter_id,
            "current_time": self.current_time,
            "is_completed": self.is_completed,
        }


class ProgressTransportError(Exception):
    """A progress send failed and may be retried."""

    pass


class ProgressDeliveryError(Exception):
    """A progress update was dropped after exhausting its retries."""

    def __init__(self, update: ProgressUpdate, attempts: int, cause: BaseException):
        super().__init__(
            f"Failed to save progress for chapter {update.chapter_id} after {attempts} attempts: {cause}"
        )
        self.update = update
        self.attempts = attempts
        self.cause = cause


SendFn = Callable[[list[ProgressUpdate]], Awaitable[None]]
BeaconFn = Callable[[list[ProgressUpdate]], None]
ErrorFn = Callable[[ProgressDeliveryError], None]


class ProgressBatcher:
    """Coalesces per-chapter progress updates into delayed batches.

    Must be used from within a running event loop. All state is only
    touched from that loop, so no locking is needed.

    Args:
        send: Coroutine delivering a list of updates; raises
            ProgressTransportError on retryable failure.
        beacon: Synchronous fire-and-forget sender used on page unload.
        flush_delay: Seconds between the first unflushed update and the flush.
        max_retries: Retries after the first failed attempt.
        retry_base_delay: Delay before the first retry; doubles each time.
        on_error: Called with ProgressDeliveryError for dropped updates.
    """

    def __init__(
        self,
        send: SendFn,
        *,
        beacon: BeaconFn | None = None,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        on_error: ErrorFn | None = None,
    ):
        self._send = send
        self._beacon = beacon
        self.flush_delay = flush_delay
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._error_handlers: list[ErrorFn] = [on_error] if on_error is not None else []

        self._pending: dict[str, ProgressUpdate] = {}
        self._latest: dict[str, ProgressUpdate] = {}
        self._flush_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> dict[str, ProgressUpdate]:
        """Snapshot of updates waiting for the next flush."""
        return dict(self._pending)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def add_error_handler(self, handler: ErrorFn) -> None:
        """Also call `handler` for every dropped update."""
        self._error_handlers.append(handler)

    def update(self, chapter_id: str, current_time: float, is_completed: bool = False) -> None:
        """Record a position report."""
        update = ProgressUpdate(chapter_id, float(current_time), is_completed)
        self._latest[chapter_id] = update

        if is_completed:
            # A stale pending position must not land after the completion.
            self._pending.pop(chapter_id, None)
            if not self._pending:
                self._cancel_timer()
            logger.debug("progress.completion_sent", chapter_id=chapter_id)
            self._spawn([update])
            return

        self._pending[chapter_id] = update
        if self._flush_handle is None:
            loop = asyncio.get_running_loop()
            self._flush_handle = loop.call_later(self.flush_delay, self._on_timer)

    def flush(self) -> asyncio.Task[None] | None:
        """Send all pending updates now as one batch.

        Returns:
            The delivery task, or None if nothing was pending
        """
        self._cancel_timer()
        if not self._pending:
            return None

        updates = list(self._pending.values())
        self._pending.clear()
        logger.debug("progress.flushed", count=len(updates))
        return self._spawn(updates)

    def page_hidden(self) -> asyncio.Task[None] | None:
        """Page went to the background: flush through the normal path."""
        return self.flush()

    def page_unload(self) -> bool:
        """Page is going away: hand pending updates to the beacon.

        Falls back to a normal flush when no beacon is configured.

        Returns:
            True if anything was handed off
        """
        self._cancel_timer()
        if not self._pending:
            return False

        if self._beacon is None:
            self.flush()
            return True

        updates = list(self._pending.values())
        self._pending.clear()
        try:
            self._beacon(updates)
        except Exception as e:
            logger.warning("progress.beacon_failed", error=str(e), count=len(updates))
        else:
            logger.debug("progress.beacon_sent", count=len(updates))
        return True

    async def wait_idle(self) -> None:
        """Wait for every in-flight delivery, including retries."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Flush pending updates and wait for delivery (unmount/navigation)."""
        self.flush()
        await self.wait_idle()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _on_timer(self) -> None:
        self._flush_handle = None
        self.flush()

    def _cancel_timer(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

    def _spawn(self, updates: list[ProgressUpdate]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._deliver(updates))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, update: ProgressUpdate) -> bool:
        return self._latest.get(update.chapter_id) is update

    async def _deliver(self, updates: list[ProgressUpdate]) -> None:
        attempt = 0
        while True:
            try:
                await self._send(updates)
            except ProgressTransportError as e:
                if attempt >= self.max_retries:
                    self._give_up(updates, attempt + 1, e)
                    return

                delay = self.retry_base_delay * (2**attempt)
                attempt += 1
                logger.warning(
                    "progress.send_failed",
                    count=len(updates),
                    retry=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

                # Newer reports for a chapter replace the failed one.
                updates = [u for u in updates if self._is_current(u)]
                if not updates:
                    return
                continue
            except Exception as e:
                # Anything but a transport error is not retried.
                self._give_up(updates, attempt + 1, e)
                return

            for update in updates:
                if self._is_current(update):
                    del self._latest[update.chapter_id]
            return

    def _give_up(self, updates: list[ProgressUpdate], attempts: int, cause: Exception) -> None:
        for update in updates:
            if self._is_current(update):
                del self._latest[update.chapter_id]
            error = ProgressDeliveryError(update, attempts, cause)
            logger.error(
                "progress.dropped",
                chapter_id=update.chapter_id,
                attempts=attempts,
                error=str(cause),
            )
            for handler in self._error_handlers:
                handler(error)
