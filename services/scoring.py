"""Gravity (priority) scoring for enriched feedback."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

CATEGORIES = ('Bug', 'UX', 'Feature', 'Other')
MAX_GRAVITY = 50.0


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def age_in_hours(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole hours elapsed since `created_at`, never less than 1."""
    now = _as_utc(now or datetime.now(timezone.utc))
    elapsed = (now - _as_utc(created_at)).total_seconds() / 3600.0
    return max(1, math.floor(elapsed))


def round_half_up(value: float, places: int = 2) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def compute_gravity_score(sentiment: float, category: str, created_at: datetime, now: Optional[datetime] = None) -> float:
    """
    Recency-decayed priority: |sentiment| * 10 / age_hours, doubled for
    negative bug reports, rounded to 2 places and capped at 50.
    """
    base = abs(sentiment) * 10 / age_in_hours(created_at, now)
    if sentiment < 0 and category == 'Bug':
        base *= 2
    return min(MAX_GRAVITY, round_half_up(base, 2))
