"""
Like-set helpers. A like-set is the set of user ids that liked a post or a
comment; its size is the like count and no count is ever stored beside it.
"""
from __future__ import annotations

from typing import Iterable


def normalize_like_set(values: Iterable[str] | None) -> frozenset[str]:
    """Turn a JSON array (possibly with duplicates or None) into a like-set."""
    if not values:
        return frozenset()
    return frozenset(str(value) for value in values if value is not None and value != "")


def toggle_like(liked_by: Iterable[str], user_id: str) -> frozenset[str]:
    """Return the like-set with `user_id` removed if present, added otherwise."""
    current = normalize_like_set(liked_by)
    if user_id in current:
        return current - {user_id}
    return current | {user_id}


def has_liked(liked_by: Iterable[str], user_id: str | None) -> bool:
    if not user_id:
        return False
    return user_id in normalize_like_set(liked_by)


def like_count(liked_by: Iterable[str]) -> int:
    return len(normalize_like_set(liked_by))


def serialize_like_set(liked_by: Iterable[str]) -> list[str]:
    # sorted so the JSON array is stable between calls
    return sorted(normalize_like_set(liked_by))
