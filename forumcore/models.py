"""
Entities of the media forum and their JSON shapes.

Entities are frozen dataclasses. Optional related objects (the media item of a
post, the profile of an author) are never embedded: they are referenced by id
and looked up separately.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

from .likes import like_count, normalize_like_set, serialize_like_set

MEDIA_TYPES = ("movie", "series", "anime", "manga")
MEDIA_STATUSES = ("completed", "ongoing", "upcoming")
POST_CATEGORIES = ("movies", "series", "anime", "manga", "general")
LIST_STATUSES = ("plan_to_watch", "watching", "completed", "on_hold", "dropped")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse the timestamp formats that reach us into an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (with or without a trailing Z) and the
    "YYYY-MM-DD HH:MM:SS" form SQLite's CURRENT_TIMESTAMP produces. Naive
    values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class AuthorSnapshot:
    """Display data of the acting user, stored with the posts/comments they write."""

    id: str
    username: str | None = None
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "avatar_url": self.avatar_url}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> AuthorSnapshot | None:
        if not data or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            username=_optional_str(data.get("username")),
            avatar_url=_optional_str(data.get("avatar_url")),
        )


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the user acting on the client."""

    id: str
    username: str | None = None
    email: str | None = None
    avatar_url: str | None = None

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.email and "@" in self.email:
            return self.email.split("@", 1)[0]
        return f"user-{self.id[:6]}"

    def snapshot(self) -> AuthorSnapshot:
        return AuthorSnapshot(id=self.id, username=self.display_name, avatar_url=self.avatar_url)


@dataclass(frozen=True)
class Comment:
    id: str
    post_id: str
    author_id: str
    content: str
    created_at: datetime
    parent_id: str | None = None
    liked_by: frozenset[str] = frozenset()
    author: AuthorSnapshot | None = None

    @property
    def likes_count(self) -> int:
        return like_count(self.liked_by)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author_id": self.author_id,
            "parent_id": self.parent_id,
            "content": self.content,
            "liked_by": serialize_like_set(self.liked_by),
            "likes_count": self.likes_count,
            "created_at": format_timestamp(self.created_at),
            "author": self.author.to_dict() if self.author else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Comment:
        return cls(
            id=str(data["id"]),
            post_id=str(data["post_id"]),
            author_id=str(data.get("author_id") or data.get("user_id")),
            content=data.get("content") or "",
            created_at=parse_timestamp(data["created_at"]),
            parent_id=_optional_str(data.get("parent_id")),
            liked_by=normalize_like_set(data.get("liked_by")),
            author=AuthorSnapshot.from_dict(data.get("author")),
        )


@dataclass(frozen=True)
class ForumPost:
    id: str
    author_id: str
    title: str
    content: str
    category: str
    created_at: datetime
    updated_at: datetime
    tags: tuple[str, ...] = ()
    liked_by: frozenset[str] = frozenset()
    media_ref: str | None = None
    author: AuthorSnapshot | None = None

    @property
    def like_count(self) -> int:
        return like_count(self.liked_by)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "tags": list(self.tags),
            "liked_by": serialize_like_set(self.liked_by),
            "media_ref": self.media_ref,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "author": self.author.to_dict() if self.author else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ForumPost:
        created_at = parse_timestamp(data["created_at"])
        updated = data.get("updated_at")
        return cls(
            id=str(data["id"]),
            author_id=str(data.get("author_id") or data.get("user_id")),
            title=data.get("title") or "",
            content=data.get("content") or "",
            category=data.get("category") or "general",
            created_at=created_at,
            updated_at=parse_timestamp(updated) if updated else created_at,
            tags=tuple(data.get("tags") or ()),
            liked_by=normalize_like_set(data.get("liked_by")),
            media_ref=_optional_str(data.get("media_ref") or data.get("media_id")),
            author=AuthorSnapshot.from_dict(data.get("author")),
        )


@dataclass(frozen=True)
class CastMember:
    name: str
    character: str | None = None
    role: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "character": self.character,
            "role": self.role,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class MediaItem:
    id: str
    title: str
    type: str
    description: str
    status: str
    created_at: datetime
    image_url: str = ""
    release_date: str | None = None
    rating: float = 0.0
    rating_count: int = 0
    genre: tuple[str, ...] = ()
    episodes: int | None = None
    chapters: int | None = None
    cast: tuple[CastMember, ...] = ()

    def summary(self) -> dict[str, Any]:
        """The subset shown next to list entries on public profiles."""
        return {
            "id": self.id,
            "title": self.title,
            "image_url": self.image_url,
            "type": self.type,
            "rating": self.rating,
            "rating_count": self.rating_count,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "description": self.description,
            "image_url": self.image_url,
            "release_date": self.release_date,
            "rating": self.rating,
            "rating_count": self.rating_count,
            "genre": list(self.genre),
            "status": self.status,
            "episodes": self.episodes,
            "chapters": self.chapters,
            "cast": [member.to_dict() for member in self.cast],
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MediaItem:
        cast = tuple(
            CastMember(
                name=member.get("name") or "",
                character=member.get("character"),
                role=member.get("role"),
                image_url=member.get("image_url"),
            )
            for member in (data.get("cast") or [])
            if isinstance(member, Mapping)
        )
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            type=data.get("type") or "movie",
            description=data.get("description") or "",
            status=data.get("status") or "completed",
            created_at=parse_timestamp(data["created_at"]),
            image_url=data.get("image_url") or "",
            release_date=_optional_str(data.get("release_date")),
            rating=float(data.get("rating") or 0.0),
            rating_count=int(data.get("rating_count") or 0),
            genre=tuple(data.get("genre") or ()),
            episodes=data.get("episodes"),
            chapters=data.get("chapters"),
            cast=cast,
        )


@dataclass(frozen=True)
class Rating:
    user_id: str
    media_id: str
    value: float
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "media_id": self.media_id,
            "rating": self.value,
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rating:
        updated = data.get("updated_at")
        return cls(
            user_id=str(data["user_id"]),
            media_id=str(data["media_id"]),
            value=float(data["rating"]),
            updated_at=parse_timestamp(updated) if updated else utc_now(),
        )


@dataclass(frozen=True)
class ListEntry:
    id: str
    user_id: str
    media_id: str
    created_at: datetime
    updated_at: datetime
    status: str = "plan_to_watch"
    progress: int = 0
    is_public: bool = True
    notes: str = ""
    rating: float | None = None

    def with_changes(self, changes: Mapping[str, Any], when: datetime | None = None) -> ListEntry:
        allowed = {key: value for key, value in changes.items() if key in LIST_ENTRY_MUTABLE_FIELDS}
        return replace(self, **allowed, updated_at=when or utc_now())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "media_id": self.media_id,
            "status": self.status,
            "progress": self.progress,
            "is_public": self.is_public,
            "notes": self.notes,
            "rating": self.rating,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ListEntry:
        created_at = parse_timestamp(data["created_at"])
        updated = data.get("updated_at")
        rating = data.get("rating")
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            media_id=str(data["media_id"]),
            created_at=created_at,
            updated_at=parse_timestamp(updated) if updated else created_at,
            status=data.get("status") or "plan_to_watch",
            progress=int(data.get("progress") or 0),
            is_public=bool(data.get("is_public", True)),
            notes=data.get("notes") or "",
            rating=float(rating) if rating is not None else None,
        )


LIST_ENTRY_MUTABLE_FIELDS = ("status", "progress", "is_public", "notes", "rating")
PROFILE_FIELDS = ("username", "bio", "avatar_url", "banner_color")


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    banner_color: str | None = None
    share_slug: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "bio": self.bio,
            "avatar_url": self.avatar_url,
            "banner_color": self.banner_color,
            "share_slug": self.share_slug,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        return cls(
            user_id=str(data["user_id"]),
            username=_optional_str(data.get("username")),
            bio=_optional_str(data.get("bio")),
            avatar_url=_optional_str(data.get("avatar_url")),
            banner_color=_optional_str(data.get("banner_color")),
            share_slug=_optional_str(data.get("share_slug")),
        )
