"""Type aliases used across the PhotoFlow core."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

LockToken = str
Clock = Callable[[], float]  # monotonic seconds
WallClock = Callable[[], datetime]
