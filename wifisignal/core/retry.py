"""Bounded exponential backoff for scan retries."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import RetryConfig


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    jitter_frac: float = 0.0

    @classmethod
    def from_config(cls, cfg: RetryConfig) -> RetryPolicy:
        return cls(
            max_attempts=cfg.max_attempts,
            initial_delay=cfg.initial_delay_secs,
            max_delay=cfg.max_delay_secs,
            jitter_frac=cfg.jitter_frac,
        )

    def allows(self, attempt: int) -> bool:
        """True if retry number ``attempt`` (1-based) may be scheduled."""
        return attempt <= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        base = min(self.initial_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        return self._jitter(base)

    def _jitter(self, base: float) -> float:
        if not self.jitter_frac:
            return base
        delta = base * self.jitter_frac
        return max(0.0, base + random.uniform(-delta, delta))
