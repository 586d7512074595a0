"""Retry/backoff helper for recoverable async operations."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from retried.backoff import operation as build_operation
from retried.config import OptionsLike

T = TypeVar("T")

logger = py_logging.getLogger(__name__)


class FatalError(Exception):
    """Non-recoverable failure that should stop immediately."""


async def run_with_retry(
    work: Callable[[int], Awaitable[T]],
    *,
    options: OptionsLike = None,
    clock: Callable[[], float] | None = None,
) -> T:
    """Await ``work(attempt)`` until it succeeds or the retry options give up.

    ``FatalError`` stops retrying at once and is re-raised. Any other exception
    is retried; once retries are exhausted the last one is raised.
    """
    retry_operation = build_operation(options, clock=clock)
    outcome: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    async def attempt(current_attempt: int) -> None:
        try:
            result = await work(current_attempt)
        except FatalError as exc:
            retry_operation.stop()
            if not outcome.done():
                outcome.set_exception(exc)
            return
        except Exception as exc:
            logger.warning("Attempt %d failed: %s", current_attempt, exc)
            if await retry_operation.retry(exc):
                return
            if not outcome.done():
                outcome.set_exception(exc)
            return
        retry_operation.succeed()
        if not outcome.done():
            outcome.set_result(result)

    retry_operation.attempt(attempt)
    try:
        return await outcome
    finally:
        if not outcome.done() or outcome.cancelled():
            retry_operation.stop(cancel_work=True)
