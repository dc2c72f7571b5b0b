from __future__ import annotations

import json
from typing import Any, Mapping

from forumcore.likes import normalize_like_set
from forumcore.models import (
    AuthorSnapshot,
    CastMember,
    Comment,
    ForumPost,
    ListEntry,
    MediaItem,
    Rating,
    UserProfile,
    parse_timestamp,
)


def parse_json(value: Any, fallback: Any) -> Any:
    """Decode a *_json column, returning `fallback` for empty or broken values."""
    if not value:
        return fallback
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return fallback


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _author(row: Mapping[str, Any]) -> AuthorSnapshot | None:
    return AuthorSnapshot.from_dict(parse_json(row["author_json"], None))


def media_from_row(row: Mapping[str, Any]) -> MediaItem:
    """Convert a sqlite3.Row from media_items into a MediaItem."""
    cast = tuple(
        CastMember(
            name=member.get("name") or "",
            character=member.get("character"),
            role=member.get("role"),
            image_url=member.get("image_url"),
        )
        for member in parse_json(row["cast_json"], [])
        if isinstance(member, dict)
    )
    return MediaItem(
        id=row["id"],
        title=row["title"],
        type=row["type"],
        description=row["description"] or "",
        status=row["status"],
        created_at=parse_timestamp(row["created_at"]),
        image_url=row["image_url"] or "",
        release_date=row["release_date"],
        rating=float(row["rating"] or 0.0),
        rating_count=int(row["rating_count"] or 0),
        genre=tuple(parse_json(row["genre_json"], [])),
        episodes=int(row["episodes"]) if row["episodes"] is not None else None,
        chapters=int(row["chapters"]) if row["chapters"] is not None else None,
        cast=cast,
    )


def rating_from_row(row: Mapping[str, Any]) -> Rating:
    return Rating(
        user_id=row["user_id"],
        media_id=row["media_id"],
        value=float(row["rating"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def post_from_row(row: Mapping[str, Any]) -> ForumPost:
    return ForumPost(
        id=row["id"],
        author_id=row["author_id"],
        title=row["title"],
        content=row["content"],
        category=row["category"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        tags=tuple(parse_json(row["tags_json"], [])),
        liked_by=normalize_like_set(parse_json(row["liked_by_json"], [])),
        media_ref=row["media_id"],
        author=_author(row),
    )


def comment_from_row(row: Mapping[str, Any]) -> Comment:
    return Comment(
        id=row["id"],
        post_id=row["post_id"],
        author_id=row["author_id"],
        content=row["content"],
        created_at=parse_timestamp(row["created_at"]),
        parent_id=row["parent_id"],
        liked_by=normalize_like_set(parse_json(row["liked_by_json"], [])),
        author=_author(row),
    )


def list_entry_from_row(row: Mapping[str, Any]) -> ListEntry:
    return ListEntry(
        id=row["id"],
        user_id=row["user_id"],
        media_id=row["media_id"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        status=row["status"],
        progress=int(row["progress"] or 0),
        is_public=bool(row["is_public"]),
        notes=row["notes"] or "",
        rating=float(row["rating"]) if row["rating"] is not None else None,
    )


def profile_from_row(row: Mapping[str, Any]) -> UserProfile:
    return UserProfile(
        user_id=row["user_id"],
        username=row["username"],
        bio=row["bio"],
        avatar_url=row["avatar_url"],
        banner_color=row["banner_color"],
        share_slug=row["share_slug"],
    )
