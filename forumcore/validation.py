"""
Input validation shared by the API routes and the optimistic client.

Each function returns a normalised copy of the accepted fields or raises
ValidationError; nothing is applied anywhere before validation passes.
"""
from __future__ import annotations

from typing import Any, Mapping

from .errors import ValidationError
from .models import LIST_ENTRY_MUTABLE_FIELDS, LIST_STATUSES, MEDIA_STATUSES, MEDIA_TYPES, POST_CATEGORIES, PROFILE_FIELDS
from .ratings import clamp_rating


def require_text(payload: Mapping[str, Any], key: str, label: str | None = None) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label or key} is required")
    return value.strip()


def require_id(value: Any, label: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{label} is required")
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{label} must be a string")
    return str(value).strip()


def optional_id(payload: Mapping[str, Any], key: str = "id") -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return require_id(value, key)


def _optional_int(payload: Mapping[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < 0:
        raise ValidationError(f"{key} cannot be negative")
    return value


def _string_list(payload: Mapping[str, Any], key: str) -> list[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key} must be a list")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def validate_media_input(payload: Mapping[str, Any]) -> dict[str, Any]:
    title = require_text(payload, "title")
    description = require_text(payload, "description")
    media_type = payload.get("type")
    if media_type not in MEDIA_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MEDIA_TYPES)}")
    status = payload.get("status")
    if status not in MEDIA_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(MEDIA_STATUSES)}")

    cast = payload.get("cast") or []
    if not isinstance(cast, list) or not all(isinstance(m, Mapping) and m.get("name") for m in cast):
        raise ValidationError("cast must be a list of objects with a name")

    rating = payload.get("rating", 0)
    rating_count = payload.get("rating_count", 0)
    try:
        rating = float(rating or 0)
        rating_count = int(rating_count or 0)
    except (TypeError, ValueError):
        raise ValidationError("rating and rating_count must be numeric")

    return {
        "id": optional_id(payload),
        "title": title,
        "type": media_type,
        "description": description,
        "status": status,
        "image_url": payload.get("image_url") or "",
        "release_date": payload.get("release_date") or None,
        "rating": rating,
        "rating_count": max(0, rating_count),
        "genre": _string_list(payload, "genre"),
        "episodes": _optional_int(payload, "episodes"),
        "chapters": _optional_int(payload, "chapters"),
        "cast": [dict(member) for member in cast],
    }


def validate_post_input(payload: Mapping[str, Any]) -> dict[str, Any]:
    category = payload.get("category")
    if category not in POST_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(POST_CATEGORIES)}")
    media_ref = payload.get("media_ref") or payload.get("media_id")
    return {
        "id": optional_id(payload),
        "title": require_text(payload, "title"),
        "content": require_text(payload, "content"),
        "category": category,
        "tags": _string_list(payload, "tags"),
        "media_ref": str(media_ref) if media_ref else None,
    }


def validate_comment_input(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": optional_id(payload),
        "content": require_text(payload, "content", "Comment content"),
    }


def validate_list_entry_input(payload: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    """
    Validate a list entry create (partial=False) or update (partial=True).

    Updates only return the fields that were present in the payload.
    """
    result: dict[str, Any] = {}
    if not partial:
        result["id"] = optional_id(payload)
        result["media_id"] = require_id(payload.get("media_id"), "media_id")

    if "status" in payload or not partial:
        status = payload.get("status", "plan_to_watch")
        if status not in LIST_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(LIST_STATUSES)}")
        result["status"] = status
    if "progress" in payload or not partial:
        progress = payload.get("progress", 0)
        if isinstance(progress, bool) or not isinstance(progress, int) or progress < 0:
            raise ValidationError("progress must be a non-negative integer")
        result["progress"] = progress
    if "is_public" in payload or not partial:
        is_public = payload.get("is_public", True)
        if not isinstance(is_public, bool):
            raise ValidationError("is_public must be a boolean")
        result["is_public"] = is_public
    if "notes" in payload or not partial:
        notes = payload.get("notes") or ""
        if not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        result["notes"] = notes
    if "rating" in payload or not partial:
        rating = payload.get("rating")
        result["rating"] = clamp_rating(rating) if rating is not None else None

    unknown = set(payload) - set(LIST_ENTRY_MUTABLE_FIELDS) - {"id", "media_id", "user_id"}
    if partial and unknown:
        raise ValidationError(f"unknown fields: {', '.join(sorted(unknown))}")
    return result


def validate_profile_input(payload: Mapping[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for key in PROFILE_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        updates[key] = value.strip() if isinstance(value, str) and value.strip() else None
    # share_slug is assigned by the server once and is never taken from input
    return updates
