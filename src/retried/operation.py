"""Attempt/retry state machine driven by event loop timers."""

from __future__ import annotations

import asyncio
import inspect
import logging as py_logging
import math
import time
from collections.abc import Callable, Sequence

from retried.errors import ConfigurationError, RetryTimeoutError
from retried.models import AttemptTimeout, OperationState

logger = py_logging.getLogger(__name__)

Work = Callable[[int], object]


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def _resolve(waiter: asyncio.Future[bool], value: bool) -> None:
    if not waiter.done():
        waiter.set_result(value)


class RetryOperation:
    """Drives repeated invocations of one unit of work.

    ``timeouts`` are the delays (ms) between attempts, consumed in order. With
    ``forever`` set, the last delay is reused once they run out and only the
    most recent error is kept. ``max_retry_time`` (ms) bounds the time since
    ``attempt()``; ``clock`` returns seconds and defaults to ``time.monotonic``.

    The work callback receives the current attempt number and reports its
    outcome later through ``succeed()`` or ``retry(error)``. Awaitables it
    returns are scheduled as tasks on the running event loop.
    """

    def __init__(
        self,
        timeouts: Sequence[float],
        *,
        forever: bool = False,
        max_retry_time: float = math.inf,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if forever and not timeouts:
            raise ConfigurationError(
                "Forever mode needs at least one timeout",
                hint="Build the operation with retried.operation().",
            )
        self._original_timeouts = tuple(timeouts)
        self._cursor = 0
        self._forever = forever
        self.max_retry_time = max_retry_time
        self._clock = clock or time.monotonic

        self.attempts = 1
        self.errors: list[BaseException] = []
        self.state = OperationState.IDLE
        self.operation_start: float | None = None

        self._work: Work | None = None
        self._attempt_timeout: AttemptTimeout | None = None
        self._watchdog: asyncio.TimerHandle | None = None
        self._backoff_timer: asyncio.TimerHandle | None = None
        self._backoff_wait: asyncio.Future[bool] | None = None
        self._tasks: set[asyncio.Future[object]] = set()

    @property
    def original_timeouts(self) -> tuple[float, ...]:
        return self._original_timeouts

    @property
    def remaining_timeouts(self) -> tuple[float, ...]:
        return self._original_timeouts[self._cursor :]

    @property
    def forever(self) -> bool:
        return self._forever

    @property
    def attempt_timeout(self) -> AttemptTimeout | None:
        return self._attempt_timeout

    def reset(self) -> None:
        """Rewind attempts and timeouts so ``attempt()`` can start over.

        ``errors`` is left as is and pending timers keep running; discard the
        error log yourself if the next cycle needs a clean one.
        """
        self.attempts = 1
        self._cursor = 0
        self.state = OperationState.IDLE
        logger.debug("Retry operation reset")

    def stop(self, *, cancel_work: bool = False) -> None:
        """Abort the operation; every later ``retry()`` returns False.

        With ``cancel_work`` the tasks scheduled for awaitable work and
        watchdog callbacks are cancelled too, except the task calling ``stop``.
        """
        self._cancel_watchdog()
        self._cancel_backoff()
        if cancel_work:
            self._cancel_tasks()
        self._cursor = len(self._original_timeouts)
        self._forever = False
        if self.state is not OperationState.STOPPED:
            logger.debug("Retry operation stopped after %d attempt(s)", self.attempts)
        self.state = OperationState.STOPPED

    def attempt(
        self,
        work: Work,
        timeout: float | None = None,
        on_timeout: Callable[[int], object] | None = None,
    ) -> None:
        """Run ``work`` for the first time.

        When both ``timeout`` (ms) and ``on_timeout`` are given, ``on_timeout``
        is called with the attempt number if an attempt is still unresolved
        after ``timeout``. The watchdog needs a running event loop.
        """
        self._work = work
        self.operation_start = self._clock()
        self.state = OperationState.RUNNING
        if timeout and on_timeout is not None:
            self._attempt_timeout = AttemptTimeout(timeout=timeout, callback=on_timeout)
        else:
            self._attempt_timeout = None
        logger.debug("Starting attempt %d", self.attempts)
        self._invoke(work, self.attempts)
        self._schedule_watchdog()

    def succeed(self) -> None:
        self._cancel_watchdog()
        self._cancel_backoff()
        self.state = OperationState.SUCCEEDED
        logger.debug("Retry operation succeeded on attempt %d", self.attempts)

    async def retry(self, error: BaseException) -> bool:
        """Record ``error`` and run the work again after the next delay.

        Returns False without waiting when the time budget is spent, the
        timeouts are used up outside forever mode, or the operation was
        stopped. Returns True once the next attempt has been started. A stopped
        operation stays ``STOPPED``.

        Exceptions raised by synchronous work propagate from here with
        ``attempts`` already incremented and no watchdog armed for that attempt.
        """
        self._cancel_watchdog()

        if self.operation_start is not None:
            elapsed = (self._clock() - self.operation_start) * 1000
            if elapsed >= self.max_retry_time:
                self.errors.append(error)
                self.errors.insert(0, RetryTimeoutError())
                self._mark_exhausted()
                logger.info(
                    "Retry time budget of %sms spent after %d attempt(s)",
                    self.max_retry_time,
                    self.attempts,
                )
                return False

        self.errors.append(error)

        delay = self._next_timeout()
        if delay is None:
            self._mark_exhausted()
            logger.info("Retries exhausted after %d attempt(s)", self.attempts)
            return False

        logger.debug("Attempt %d failed; retrying in %sms", self.attempts, delay)
        if not await self._wait(delay):
            logger.debug("Pending retry cancelled")
            return False

        self.attempts += 1
        self.state = OperationState.RUNNING
        if self._work is not None:
            self._invoke(self._work, self.attempts)
        self._schedule_watchdog()
        return True

    def main_error(self) -> BaseException | None:
        """Return the most frequent error by message, latest one on ties."""
        counts: dict[str, int] = {}
        main_error: BaseException | None = None
        main_error_count = 0
        for error in self.errors:
            key = _error_message(error)
            count = counts.get(key, 0) + 1
            counts[key] = count
            if count >= main_error_count:
                main_error = error
                main_error_count = count
        return main_error

    def _mark_exhausted(self) -> None:
        if self.state is not OperationState.STOPPED:
            self.state = OperationState.EXHAUSTED

    def _next_timeout(self) -> float | None:
        if self._cursor < len(self._original_timeouts):
            delay = self._original_timeouts[self._cursor]
            self._cursor += 1
            return delay
        if self._forever:
            # keep only the latest error so memory stays bounded
            del self.errors[:-1]
            return self._original_timeouts[-1]
        return None

    async def _wait(self, delay: float) -> bool:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[bool] = loop.create_future()
        self._backoff_wait = waiter
        self._backoff_timer = loop.call_later(delay / 1000, _resolve, waiter, True)
        try:
            return await waiter
        finally:
            if self._backoff_timer is not None:
                self._backoff_timer.cancel()
            self._backoff_timer = None
            self._backoff_wait = None

    def _cancel_backoff(self) -> None:
        if self._backoff_timer is not None:
            self._backoff_timer.cancel()
            self._backoff_timer = None
        if self._backoff_wait is not None:
            _resolve(self._backoff_wait, False)

    def _schedule_watchdog(self) -> None:
        self._cancel_watchdog()
        spec = self._attempt_timeout
        if spec is None or self.state is not OperationState.RUNNING:
            return
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(spec.seconds, self._fire_watchdog, spec)

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _fire_watchdog(self, spec: AttemptTimeout) -> None:
        self._watchdog = None
        logger.warning("Attempt %d exceeded %sms", self.attempts, spec.timeout)
        self._invoke(spec.callback, self.attempts)

    def _invoke(self, callback: Callable[[int], object], attempts: int) -> None:
        result = callback(attempts)
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result, loop=asyncio.get_running_loop())
        self._tasks.add(task)
        task.add_done_callback(self._forget_task)

    def _cancel_tasks(self) -> None:
        if not self._tasks:
            return
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

    def _forget_task(self, task: asyncio.Future[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled exception in retried callback", exc_info=exc)
