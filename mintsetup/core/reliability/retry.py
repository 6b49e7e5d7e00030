"""
Retry policy — bounded retries with exponential backoff and jitter.

Only transient failures (network, download, package manager lock) are
retried; everything else is recorded on the first failure.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """How often and how patiently to retry a transient failure.

    ``max_retries`` counts retries, not attempts: the default of 2
    means at most 3 attempts.
    """

    max_retries: int = 2
    base_delay: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.3
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based), jitter included."""
        delay = min(self.base_delay * (2 ** (retry - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)

    def wait(self, retry: int, label: str = "") -> float:
        """Sleep before retry number ``retry`` and return the delay used."""
        delay = self.delay(retry)
        logger.info("Retrying %s in %.1fs (retry %d/%d)", label, delay, retry, self.max_retries)
        self.sleep(delay)
        return delay

    @classmethod
    def none(cls) -> RetryPolicy:
        """A policy that never retries."""
        return cls(max_retries=0)
