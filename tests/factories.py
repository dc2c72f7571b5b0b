from datetime import datetime, timedelta, timezone

from forumcore.models import AuthorSnapshot, Comment, ForumPost, ListEntry, MediaItem

T0 = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def make_comment(comment_id, parent_id=None, minutes=0, post_id="post-1", author_id="u1", liked_by=()):
    return Comment(
        id=comment_id,
        post_id=post_id,
        author_id=author_id,
        content=f"comment {comment_id}",
        created_at=at(minutes),
        parent_id=parent_id,
        liked_by=frozenset(liked_by),
    )


def make_post(post_id="post-1", author_id="u1", minutes=0, liked_by=(), media_ref=None, author=None):
    return ForumPost(
        id=post_id,
        author_id=author_id,
        title=f"title {post_id}",
        content="body",
        category="general",
        created_at=at(minutes),
        updated_at=at(minutes),
        liked_by=frozenset(liked_by),
        media_ref=media_ref,
        author=author,
    )


def make_media(media_id="m1", rating=0.0, rating_count=0):
    return MediaItem(
        id=media_id,
        title=f"Title {media_id}",
        type="movie",
        description="A film.",
        status="completed",
        created_at=T0,
        rating=rating,
        rating_count=rating_count,
    )


def make_entry(media_id="m1", user_id="u1", entry_id=None, **fields):
    return ListEntry(
        id=entry_id or f"entry-{media_id}",
        user_id=user_id,
        media_id=media_id,
        created_at=T0,
        updated_at=T0,
        **fields,
    )


def snapshot(user_id="u1", username="alice"):
    return AuthorSnapshot(id=user_id, username=username)


MEDIA_PAYLOAD = {
    "title": "The Matrix",
    "type": "movie",
    "description": "A programmer discovers the truth about reality.",
    "status": "completed",
    "genre": ["Science Fiction", "Action"],
    "cast": [{"name": "Keanu Reeves", "character": "Neo"}],
}


def make_chain(depth, post_id="post-1"):
    """A single thread where every comment replies to the one before it."""
    return [
        make_comment(f"c{i}", parent_id=f"c{i - 1}" if i else None, minutes=i, post_id=post_id)
        for i in range(depth)
    ]
