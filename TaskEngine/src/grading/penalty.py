"""Late submission adjustment

    days_late    = ceil((submitted_at - due_date) / 1 day)
    late_penalty = min(max_penalty, days_late * penalty_per_day)
    final_score  = max(0, base_score * (1 - late_penalty))
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from ..config import DEFAULT_CONFIG

ONE_DAY = timedelta(days=1)


def days_late(submitted_at: datetime, due_date: datetime) -> int:
    """Started days past the due date (0 when on time)"""
    overdue = submitted_at - due_date
    if overdue <= timedelta(0):
        return 0
    return math.ceil(overdue / ONE_DAY)


def calculate_late_penalty(
    submitted_at: datetime,
    due_date: datetime,
    penalty_per_day: Optional[float] = None,
    max_penalty: Optional[float] = None,
) -> float:
    """Fraction of the score lost (0 .. max_penalty)"""
    if penalty_per_day is None:
        penalty_per_day = DEFAULT_CONFIG.grading.late_penalty_per_day
    if max_penalty is None:
        max_penalty = DEFAULT_CONFIG.grading.max_late_penalty

    penalty = days_late(submitted_at, due_date) * max(0.0, penalty_per_day)
    return min(max_penalty, penalty)


def apply_late_penalty(base_score: float, late_penalty: float) -> float:
    """Final score after the late penalty (never below 0)"""
    late_penalty = min(max(late_penalty, 0.0), 1.0)
    return max(0.0, base_score * (1 - late_penalty))
