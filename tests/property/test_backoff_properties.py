from __future__ import annotations

import math

from hypothesis import given
from hypothesis import strategies as st

from retried.backoff import create_timeout, timeouts

_RETRIES = st.integers(min_value=0, max_value=30)
_FACTORS = st.floats(min_value=0.5, max_value=4, allow_nan=False, allow_infinity=False)
_MIN_TIMEOUTS = st.integers(min_value=0, max_value=10_000)
_CEILINGS = st.one_of(st.just(math.inf), st.integers(min_value=10_000, max_value=10_000_000))


@given(_RETRIES, _FACTORS, _MIN_TIMEOUTS, _CEILINGS, st.booleans(), st.booleans())
def test_timeouts_are_sorted_bounded_and_sized(
    retries: int,
    factor: float,
    min_timeout: int,
    max_timeout: float,
    randomize: bool,
    forever: bool,
) -> None:
    options = {
        "retries": retries,
        "factor": factor,
        "min_timeout": min_timeout,
        "max_timeout": max_timeout,
        "randomize": randomize,
    }

    result = timeouts(options, forever=forever)

    expected_length = 1 if forever and retries == 0 else retries
    assert len(result) == expected_length
    assert list(result) == sorted(result)
    assert all(0 <= item <= max_timeout for item in result)


@given(st.integers(min_value=0, max_value=20), st.integers(min_value=1, max_value=5_000))
def test_create_timeout_without_jitter_is_exact_power(attempt: int, min_timeout: int) -> None:
    assert create_timeout(attempt, {"min_timeout": min_timeout}) == min_timeout * 2**attempt


@given(st.integers(min_value=0, max_value=10), st.integers(min_value=1, max_value=5_000))
def test_randomized_timeout_stays_within_double(attempt: int, min_timeout: int) -> None:
    base = min_timeout * 2**attempt
    value = create_timeout(attempt, {"min_timeout": min_timeout, "randomize": True})

    assert base <= value <= 2 * base
