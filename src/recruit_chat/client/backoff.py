from __future__ import annotations

import random


class ExponentialBackoff:
    """Geometric retry delays, in seconds, capped at ``cap``.

    Jitter only ever adds to the raw delay and never crosses into the next
    attempt's raw delay, so consecutive delays stay non-decreasing.
    """

    def __init__(
        self,
        base: float = 1.0,
        cap: float = 30.0,
        *,
        factor: float = 2.0,
        jitter: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        if base <= 0 or cap < base:
            raise ValueError("backoff needs 0 < base <= cap")
        if factor < 1:
            raise ValueError("backoff factor must be >= 1")
        if not 0 <= jitter <= 1:
            raise ValueError("jitter must be within [0, 1]")
        self.base = base
        self.cap = cap
        self.factor = factor
        self.jitter = jitter
        self._rng = rng or random.Random()

    def raw_delay(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        # Clamp the exponent so huge attempt counts don't overflow.
        exponent = min(attempt - 1, 64)
        return min(self.cap, self.base * self.factor ** exponent)

    def delay(self, attempt: int) -> float:
        raw = self.raw_delay(attempt)
        if not self.jitter or raw >= self.cap:
            return raw
        ceiling = min(self.cap, self.raw_delay(attempt + 1))
        spread = (ceiling - raw) * self.jitter
        return raw + self._rng.random() * spread
