"""Derived metrics computed from stored practice counters.

Every function here is pure and returns a default value instead of
raising or producing NaN/infinity when a denominator is zero. Metrics
are computed on read and never persisted as their own columns.
"""

import math
from typing import Iterable, Optional


def accuracy_percentage(correct: int, attempted: int) -> float:
    """Share of correct answers among attempted ones, as a percentage."""
    if attempted > 0:
        return correct / attempted * 100
    return 0


def completion_percentage(done: int, total: int) -> float:
    """Share of completed units (questions, words) as a percentage."""
    if total > 0:
        return done / total * 100
    return 0


def estimated_time_remaining(total_words: int, words_read: int, speed_wpm: Optional[float]) -> int:
    """Minutes left to finish a text at `speed_wpm`, rounded up.

    Returns 0 when the speed is unknown or the text is empty.
    """
    if speed_wpm and total_words > 0:
        return math.ceil((total_words - words_read) / speed_wpm)
    return 0


def learning_rate(learned: int, studied: int) -> float:
    """Ratio (0..1, not a percentage) of learned words to studied words."""
    if studied > 0:
        return learned / studied
    return 0


def reading_speed_wpm(words_read: int, seconds: float) -> Optional[float]:
    """Words per minute, or `None` until both inputs are positive."""
    if words_read > 0 and seconds > 0:
        return round(words_read / (seconds / 60), 2)
    return None


def average(values: Iterable[float]) -> Optional[float]:
    """Arithmetic mean of `values`, `None` when there are none."""
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)
