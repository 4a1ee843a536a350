"""Average-age computation for a building's residents."""

from __future__ import annotations

from typing import Iterable, Optional


def average(ages: Iterable[float]) -> Optional[float]:
    """Return the arithmetic mean of ``ages`` or ``None`` when there are none.

    Pure function, safe to call from any worker thread.
    """
    total = 0.0
    count = 0
    for age in ages:
        total += age
        count += 1

    if not count:
        return None
    return total / count
