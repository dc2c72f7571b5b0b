"""
Derived rating of a media item: the mean of every user's rating rounded to one
decimal, together with the number of ratings.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .errors import ValidationError

MIN_RATING = 1
MAX_RATING = 5


def clamp_rating(value) -> float:
    """Validate a submitted rating and pull it into the 1-5 range."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("rating must be a number")
    numeric = float(value)
    if numeric != numeric:  # NaN
        raise ValidationError("rating must be a number")
    return max(float(MIN_RATING), min(float(MAX_RATING), numeric))


def round_rating(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def summarize_ratings(values: Iterable[float]) -> tuple[float, int]:
    """Return (rating, rating_count) for the given individual ratings."""
    collected = [float(v) for v in values]
    if not collected:
        return 0.0, 0
    return round_rating(sum(collected) / len(collected)), len(collected)


def estimate_rating(rating: float, rating_count: int, previous: float | None, value: float) -> tuple[float, int]:
    """
    New (rating, rating_count) after one user rates, from the current aggregate only.

    Used for the optimistic update; the server's recomputation over every stored
    rating replaces it on confirmation.
    """
    total = rating * rating_count
    if previous is None or rating_count == 0:
        rating_count += 1
    else:
        total -= previous
    return round_rating((total + value) / rating_count), rating_count
