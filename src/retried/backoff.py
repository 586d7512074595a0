"""Timeout sequence generation and the operation factory.

All durations are milliseconds. A single delay is::

    min(round(random * max(min_timeout, 1) * factor ** attempt), max_timeout)

where ``random`` is ``1`` unless ``randomize`` is set, in which case it is drawn
uniformly from ``[1, 2)``. To spread ``n`` retries over a total wait ``T``,
solve ``sum(min_timeout * factor ** k for k in range(n)) == T`` for ``factor``.
"""

from __future__ import annotations

import logging as py_logging
import math
import random
from collections.abc import Callable

from retried.config import (
    BackoffOptions,
    OperationOptions,
    OptionsLike,
    TimeoutsOptions,
    coerce_options,
)
from retried.errors import ConfigurationError
from retried.operation import RetryOperation

logger = py_logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def create_timeout(attempt: int, options: OptionsLike = None) -> int | float:
    """Return the delay before retry number ``attempt`` (zero-based).

    Public so callers can compute a delay for an attempt outside a generated
    sequence, e.g. when re-queueing work that already failed ``attempt`` times.
    """
    resolved = coerce_options(options, BackoffOptions)
    jitter = random.random() + 1 if resolved.randomize else 1
    try:
        raw = jitter * max(resolved.min_timeout, 1) * resolved.factor**attempt
    except OverflowError:
        raw = math.inf
    if math.isinf(raw):
        return _as_duration(resolved.max_timeout)
    return _as_duration(min(_round_half_up(raw), resolved.max_timeout))


def _as_duration(value: float) -> int | float:
    if math.isinf(value):
        return value
    return int(value)


def timeouts(options: OptionsLike = None, *, forever: bool = False) -> tuple[int | float, ...]:
    resolved = coerce_options(options, TimeoutsOptions)
    if resolved.min_timeout > resolved.max_timeout:
        raise ConfigurationError(
            "minTimeout is greater than maxTimeout",
            hint=f"Lower min_timeout ({resolved.min_timeout}) or raise max_timeout "
            f"({resolved.max_timeout}).",
        )
    if math.isinf(resolved.retries):
        raise ConfigurationError(
            "Cannot build a finite timeout sequence for infinite retries",
            hint="Use retried.operation(), which switches to forever mode.",
        )

    retries = int(resolved.retries)
    sequence = [create_timeout(index, resolved) for index in range(retries)]
    if forever and not sequence:
        sequence.append(create_timeout(retries, resolved))
    sequence.sort()
    return tuple(sequence)


def operation(
    options: OptionsLike = None,
    *,
    clock: Callable[[], float] | None = None,
) -> RetryOperation:
    """Build a ``RetryOperation`` with a freshly computed timeout sequence."""
    resolved = coerce_options(options, OperationOptions)
    forever = resolved.forever or math.isinf(resolved.retries)
    if math.isinf(resolved.retries):
        resolved = resolved.model_copy(update={"retries": 0})
    sequence = timeouts(resolved, forever=forever)
    max_retry_time = resolved.max_retry_time or math.inf
    logger.debug(
        "Built retry operation timeouts=%s forever=%s max_retry_time=%s",
        sequence,
        forever,
        max_retry_time,
    )
    return RetryOperation(
        sequence,
        forever=forever,
        max_retry_time=max_retry_time,
        clock=clock,
    )
