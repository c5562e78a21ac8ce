"""Simulated processing step.

Stands in for a real transform: waits a bounded random time, then succeeds
with a configured probability. Randomness and sleeping are injectable so
tests can force outcomes and skip the wait.
"""

from __future__ import annotations

import random
import threading
import time
from dataclasses import dataclass
from typing import Callable

from photoflow.models.photo import Photo


@dataclass(frozen=True)
class ProcessingOutcome:
    success: bool
    message: str
    duration_ms: int


class SimulatedProcessor:
    """Bounded-latency processing with a configurable success probability."""

    def __init__(
        self,
        min_delay_ms: int = 2000,
        max_delay_ms: int = 5000,
        success_rate: float = 0.9,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_delay_ms < 0 or min_delay_ms > max_delay_ms:
            raise ValueError("require 0 <= min_delay_ms <= max_delay_ms")
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self._min_delay_ms = min_delay_ms
        self._max_delay_ms = max_delay_ms
        self._success_rate = success_rate
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._sleep = sleep

    @property
    def max_delay_ms(self) -> int:
        return self._max_delay_ms

    def process(self, photo: Photo) -> ProcessingOutcome:
        with self._rng_lock:
            delay_ms = self._rng.randint(self._min_delay_ms, self._max_delay_ms)
            success = self._rng.random() < self._success_rate
        self._sleep(delay_ms / 1000)
        if success:
            message = f"Processing completed for {photo.original_name} in {delay_ms}ms"
        else:
            message = f"Processing failed for {photo.original_name} after {delay_ms}ms: simulated error"
        return ProcessingOutcome(success=success, message=message, duration_ms=delay_ms)
