"""Time source used by the dispatch pipeline.

Components take a ``Clock`` (a zero-argument callable returning epoch
milliseconds) so tests can drive time deterministically with a ``Mock``.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Return the current UNIX time in whole milliseconds."""

    return time.time_ns() // 1_000_000
