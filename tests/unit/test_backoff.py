from __future__ import annotations

import random

import pytest

from recruit_chat.client.backoff import ExponentialBackoff


def test_delays_double_until_cap():
    backoff = ExponentialBackoff(base=1.0, cap=30.0)
    assert [backoff.delay(n) for n in range(1, 8)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]


def test_delays_never_decrease_with_jitter():
    backoff = ExponentialBackoff(base=0.5, cap=20.0, jitter=1.0, rng=random.Random(1234))
    delays = [backoff.delay(n) for n in range(1, 40)]
    assert delays == sorted(delays)
    assert all(d <= 20.0 for d in delays)
    assert delays[-1] == 20.0


def test_jittered_delay_stays_below_next_raw_delay():
    backoff = ExponentialBackoff(base=1.0, cap=60.0, jitter=1.0, rng=random.Random(7))
    for attempt in range(1, 6):
        delay = backoff.delay(attempt)
        assert backoff.raw_delay(attempt) <= delay <= backoff.raw_delay(attempt + 1)


def test_huge_attempt_is_capped():
    assert ExponentialBackoff(base=1.0, cap=30.0).delay(10_000) == 30.0


@pytest.mark.parametrize("attempt", [0, -1])
def test_attempt_numbers_start_at_one(attempt):
    with pytest.raises(ValueError):
        ExponentialBackoff().delay(attempt)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base": 0},
        {"base": 5, "cap": 1},
        {"factor": 0.5},
        {"jitter": 1.5},
    ],
)
def test_invalid_configuration_rejected(kwargs):
    with pytest.raises(ValueError):
        ExponentialBackoff(**kwargs)
