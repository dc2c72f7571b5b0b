from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Mapping, Tuple
from uuid import uuid4

from forumcore.aggregate import PostView, assemble_post
from forumcore.errors import ConflictError, NotFoundError, ValidationError
from forumcore.likes import serialize_like_set, toggle_like
from forumcore.models import (
    AuthorSnapshot,
    Comment,
    ForumPost,
    ListEntry,
    MediaItem,
    Rating,
    UserProfile,
    format_timestamp,
    utc_now,
)
from forumcore.ratings import clamp_rating, summarize_ratings
from forumcore.slugs import generate_share_slug
from forumcore.validation import (
    require_id,
    validate_comment_input,
    validate_list_entry_input,
    validate_media_input,
    validate_post_input,
    validate_profile_input,
)

from .models import (
    comment_from_row,
    dump_json,
    list_entry_from_row,
    media_from_row,
    parse_json,
    post_from_row,
    profile_from_row,
    rating_from_row,
)


def _now() -> str:
    return format_timestamp(utc_now())


def _author_snapshot(payload: Mapping[str, Any]) -> AuthorSnapshot:
    """Read the acting user from `author` (or legacy `user`) in a request body."""
    raw = payload.get("author") or payload.get("user") or {}
    if not isinstance(raw, Mapping):
        raise ValidationError("author must be an object")
    author_id = require_id(raw.get("id") or payload.get("author_id"), "author id")
    return AuthorSnapshot(
        id=author_id,
        username=raw.get("username") or None,
        avatar_url=raw.get("avatar_url") or None,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def list_media(conn: sqlite3.Connection) -> List[MediaItem]:
    rows = conn.execute("SELECT * FROM media_items ORDER BY created_at DESC, rowid DESC").fetchall()
    return [media_from_row(row) for row in rows]


def get_media(conn: sqlite3.Connection, media_id: str) -> MediaItem:
    row = conn.execute("SELECT * FROM media_items WHERE id = ?", (media_id,)).fetchone()
    if not row:
        raise NotFoundError("Media item not found")
    return media_from_row(row)


def create_media(conn: sqlite3.Connection, payload: Mapping[str, Any]) -> MediaItem:
    data = validate_media_input(payload)
    media_id = data["id"] or str(uuid4())
    if conn.execute("SELECT 1 FROM media_items WHERE id = ?", (media_id,)).fetchone():
        raise ConflictError("Media item already exists")

    conn.execute(
        """
        INSERT INTO media_items (
            id, title, type, description, image_url, release_date, rating,
            rating_count, genre_json, status, episodes, chapters, cast_json, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            media_id,
            data["title"],
            data["type"],
            data["description"],
            data["image_url"],
            data["release_date"],
            data["rating"],
            data["rating_count"],
            dump_json(data["genre"]),
            data["status"],
            data["episodes"],
            data["chapters"],
            dump_json(data["cast"]) if data["cast"] else None,
            _now(),
        ),
    )
    conn.commit()
    return get_media(conn, media_id)


def upsert_rating(conn: sqlite3.Connection, media_id: str, user_id: str, value: Any) -> Tuple[float, int]:
    """
    Insert or update a user's rating and recompute the item's derived rating.

    The rating row, the mirrored list-entry rating and the media item's
    rating/rating_count are written in one transaction.
    """
    user_id = require_id(user_id, "user_id")
    rating_value = clamp_rating(value)
    get_media(conn, media_id)

    now = _now()
    try:
        existing = conn.execute(
            "SELECT id FROM media_ratings WHERE user_id = ? AND media_id = ?",
            (user_id, media_id),
        ).fetchone()
        if existing:
            conn.execute(
                "UPDATE media_ratings SET rating = ?, updated_at = ? WHERE id = ?",
                (rating_value, now, existing["id"]),
            )
        else:
            conn.execute(
                """
                INSERT INTO media_ratings (id, user_id, media_id, rating, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (str(uuid4()), user_id, media_id, rating_value, now, now),
            )

        values = [row["rating"] for row in conn.execute(
            "SELECT rating FROM media_ratings WHERE media_id = ?", (media_id,)
        )]
        rating, rating_count = summarize_ratings(values)
        conn.execute(
            "UPDATE media_items SET rating = ?, rating_count = ? WHERE id = ?",
            (rating, rating_count, media_id),
        )
        conn.execute(
            "UPDATE user_lists SET rating = ?, updated_at = ? WHERE user_id = ? AND media_id = ?",
            (rating_value, now, user_id, media_id),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return rating, rating_count


def list_user_ratings(conn: sqlite3.Connection, user_id: str) -> List[Rating]:
    rows = conn.execute(
        "SELECT * FROM media_ratings WHERE user_id = ? ORDER BY updated_at DESC",
        (user_id,),
    ).fetchall()
    return [rating_from_row(row) for row in rows]


# ---------------------------------------------------------------------------
# Forum
# ---------------------------------------------------------------------------

def _profile_lookup(conn: sqlite3.Connection, author_ids) -> Dict[str, UserProfile]:
    ids = sorted(set(author_ids))
    if not ids:
        return {}
    placeholders = ",".join("?" * len(ids))
    rows = conn.execute(f"SELECT * FROM profiles WHERE user_id IN ({placeholders})", ids).fetchall()
    return {row["user_id"]: profile_from_row(row) for row in rows}


def _assemble(conn: sqlite3.Connection, posts: List[ForumPost]) -> List[PostView]:
    if not posts:
        return []
    post_ids = [post.id for post in posts]
    placeholders = ",".join("?" * len(post_ids))
    rows = conn.execute(
        f"SELECT * FROM comments WHERE post_id IN ({placeholders})",
        post_ids,
    ).fetchall()

    comments_by_post: Dict[str, List[Comment]] = {post_id: [] for post_id in post_ids}
    for row in rows:
        comment = comment_from_row(row)
        comments_by_post[comment.post_id].append(comment)

    profiles = _profile_lookup(conn, [post.author_id for post in posts])
    media_cache: Dict[str, MediaItem | None] = {}

    def resolve_media(media_id: str) -> MediaItem | None:
        if media_id not in media_cache:
            row = conn.execute("SELECT * FROM media_items WHERE id = ?", (media_id,)).fetchone()
            media_cache[media_id] = media_from_row(row) if row else None
        return media_cache[media_id]

    return [
        assemble_post(post, comments_by_post[post.id], profiles.get, resolve_media)
        for post in posts
    ]


def list_posts(conn: sqlite3.Connection) -> List[PostView]:
    rows = conn.execute("SELECT * FROM forum_posts ORDER BY created_at DESC, rowid DESC").fetchall()
    return _assemble(conn, [post_from_row(row) for row in rows])


def get_post(conn: sqlite3.Connection, post_id: str) -> PostView:
    row = conn.execute("SELECT * FROM forum_posts WHERE id = ?", (post_id,)).fetchone()
    if not row:
        raise NotFoundError("Post not found")
    return _assemble(conn, [post_from_row(row)])[0]


def create_post(conn: sqlite3.Connection, payload: Mapping[str, Any]) -> PostView:
    author = _author_snapshot(payload)
    data = validate_post_input(payload)
    post_id = data["id"] or str(uuid4())
    if conn.execute("SELECT 1 FROM forum_posts WHERE id = ?", (post_id,)).fetchone():
        raise ConflictError("Post already exists")
    if data["media_ref"]:
        get_media(conn, data["media_ref"])

    now = _now()
    conn.execute(
        """
        INSERT INTO forum_posts (
            id, author_id, title, content, media_id, category, tags_json,
            liked_by_json, author_json, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            post_id,
            author.id,
            data["title"],
            data["content"],
            data["media_ref"],
            data["category"],
            dump_json(data["tags"]),
            dump_json([]),
            dump_json(author.to_dict()),
            now,
            now,
        ),
    )
    conn.commit()
    return get_post(conn, post_id)


def _ensure_post(conn: sqlite3.Connection, post_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM forum_posts WHERE id = ?", (post_id,)).fetchone()
    if not row:
        raise NotFoundError("Post not found")
    return row


def _ensure_comment(conn: sqlite3.Connection, post_id: str, comment_id: str) -> sqlite3.Row:
    # a comment only counts as found on the post it belongs to
    row = conn.execute(
        "SELECT * FROM comments WHERE id = ? AND post_id = ?",
        (comment_id, post_id),
    ).fetchone()
    if not row:
        raise NotFoundError("Comment not found")
    return row


def add_comment(
    conn: sqlite3.Connection,
    post_id: str,
    payload: Mapping[str, Any],
    parent_id: str | None = None,
) -> Comment:
    """Append a root comment, or a reply when `parent_id` is given."""
    author = _author_snapshot(payload)
    data = validate_comment_input(payload)
    _ensure_post(conn, post_id)
    if parent_id is not None:
        _ensure_comment(conn, post_id, parent_id)

    comment_id = data["id"] or str(uuid4())
    if conn.execute("SELECT 1 FROM comments WHERE id = ?", (comment_id,)).fetchone():
        raise ConflictError("Comment already exists")

    now = _now()
    try:
        conn.execute(
            """
            INSERT INTO comments (id, post_id, parent_id, author_id, content, liked_by_json, author_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (comment_id, post_id, parent_id, author.id, data["content"], dump_json([]), dump_json(author.to_dict()), now),
        )
        conn.execute("UPDATE forum_posts SET updated_at = ? WHERE id = ?", (now, post_id))
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    return comment_from_row(_ensure_comment(conn, post_id, comment_id))


def toggle_post_like(conn: sqlite3.Connection, post_id: str, user_id: Any) -> Dict[str, Any]:
    user_id = require_id(user_id, "user_id")
    row = _ensure_post(conn, post_id)
    current = parse_json(row["liked_by_json"], [])
    updated = toggle_like(current, user_id)
    conn.execute(
        "UPDATE forum_posts SET liked_by_json = ?, updated_at = ? WHERE id = ?",
        (dump_json(serialize_like_set(updated)), _now(), post_id),
    )
    conn.commit()
    return {"liked": user_id in updated, "liked_by": serialize_like_set(updated), "likes_count": len(updated)}


def toggle_comment_like(conn: sqlite3.Connection, post_id: str, comment_id: str, user_id: Any) -> Dict[str, Any]:
    user_id = require_id(user_id, "user_id")
    _ensure_post(conn, post_id)
    row = _ensure_comment(conn, post_id, comment_id)
    updated = toggle_like(parse_json(row["liked_by_json"], []), user_id)
    conn.execute(
        "UPDATE comments SET liked_by_json = ? WHERE id = ?",
        (dump_json(serialize_like_set(updated)), comment_id),
    )
    conn.commit()
    return {"liked": user_id in updated, "liked_by": serialize_like_set(updated), "likes_count": len(updated)}


# ---------------------------------------------------------------------------
# Personal lists
# ---------------------------------------------------------------------------

def list_entries(conn: sqlite3.Connection, user_id: str) -> List[ListEntry]:
    rows = conn.execute(
        "SELECT * FROM user_lists WHERE user_id = ? ORDER BY updated_at DESC",
        (user_id,),
    ).fetchall()
    return [list_entry_from_row(row) for row in rows]


def _get_entry(conn: sqlite3.Connection, user_id: str, media_id: str) -> ListEntry:
    row = conn.execute(
        "SELECT * FROM user_lists WHERE user_id = ? AND media_id = ?",
        (user_id, media_id),
    ).fetchone()
    if not row:
        raise NotFoundError("List entry not found")
    return list_entry_from_row(row)


def add_list_entry(conn: sqlite3.Connection, user_id: str, payload: Mapping[str, Any]) -> ListEntry:
    data = validate_list_entry_input(payload)
    get_media(conn, data["media_id"])

    existing = conn.execute(
        "SELECT id FROM user_lists WHERE user_id = ? AND media_id = ?",
        (user_id, data["media_id"]),
    ).fetchone()
    if existing:
        raise ConflictError("This title is already in the list")

    entry_id = data["id"] or str(uuid4())
    now = _now()
    try:
        conn.execute(
            """
            INSERT INTO user_lists (id, user_id, media_id, status, rating, progress, is_public, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id,
                user_id,
                data["media_id"],
                data["status"],
                data["rating"],
                data["progress"],
                1 if data["is_public"] else 0,
                data["notes"],
                now,
                now,
            ),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise ConflictError("This title is already in the list")
    return _get_entry(conn, user_id, data["media_id"])


def update_list_entry(conn: sqlite3.Connection, user_id: str, media_id: str, payload: Mapping[str, Any]) -> ListEntry:
    existing = _get_entry(conn, user_id, media_id)
    changes = validate_list_entry_input(payload, partial=True)
    if not changes:
        return existing

    updates = []
    params: list[Any] = []
    for field, value in changes.items():
        updates.append(f"{field} = ?")
        params.append((1 if value else 0) if field == "is_public" else value)
    updates.append("updated_at = ?")
    params.extend([_now(), user_id, media_id])

    conn.execute(
        f"UPDATE user_lists SET {', '.join(updates)} WHERE user_id = ? AND media_id = ?",
        tuple(params),
    )
    conn.commit()
    return _get_entry(conn, user_id, media_id)


def remove_list_entry(conn: sqlite3.Connection, user_id: str, media_id: str) -> None:
    _get_entry(conn, user_id, media_id)
    conn.execute("DELETE FROM user_lists WHERE user_id = ? AND media_id = ?", (user_id, media_id))
    conn.commit()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_profile(conn: sqlite3.Connection, user_id: str) -> UserProfile | None:
    row = conn.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
    return profile_from_row(row) if row else None


def upsert_profile(conn: sqlite3.Connection, user_id: str, payload: Mapping[str, Any]) -> UserProfile:
    """
    Merge the given fields into the user's profile.

    The first write assigns the share slug; later writes keep it unchanged.
    """
    updates = validate_profile_input(payload)
    existing = get_profile(conn, user_id)
    merged = {
        **(existing.to_dict() if existing else {"user_id": user_id}),
        **updates,
    }

    share_slug = existing.share_slug if existing else None
    if not share_slug:
        def is_taken(candidate: str) -> bool:
            return conn.execute(
                "SELECT 1 FROM profiles WHERE share_slug = ?", (candidate,)
            ).fetchone() is not None

        share_slug = generate_share_slug(merged.get("username"), user_id, is_taken)

    conn.execute(
        """
        INSERT INTO profiles (user_id, username, bio, avatar_url, banner_color, share_slug, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            username = excluded.username,
            bio = excluded.bio,
            avatar_url = excluded.avatar_url,
            banner_color = excluded.banner_color,
            share_slug = COALESCE(profiles.share_slug, excluded.share_slug),
            updated_at = excluded.updated_at
        """,
        (
            user_id,
            merged.get("username"),
            merged.get("bio"),
            merged.get("avatar_url"),
            merged.get("banner_color"),
            share_slug,
            _now(),
        ),
    )
    conn.commit()
    return get_profile(conn, user_id)


def public_profile(conn: sqlite3.Connection, slug: str) -> Dict[str, Any]:
    row = conn.execute("SELECT * FROM profiles WHERE share_slug = ?", (slug,)).fetchone()
    if not row:
        raise NotFoundError("Profile not found")
    profile = profile_from_row(row)

    entry_rows = conn.execute(
        """
        SELECT ul.*
        FROM user_lists ul
        JOIN media_items mi ON mi.id = ul.media_id
        WHERE ul.user_id = ? AND ul.is_public = 1
        ORDER BY ul.updated_at DESC
        """,
        (profile.user_id,),
    ).fetchall()

    entries = []
    for entry_row in entry_rows:
        entry = list_entry_from_row(entry_row)
        entries.append({"entry": entry.to_dict(), "media": get_media(conn, entry.media_id).summary()})
    return {"profile": profile.to_dict(), "entries": entries}
