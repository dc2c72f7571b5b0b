"""
Forum post aggregate: everything needed to present one post.

Combines the stored post fields, the comment forest, the like and comment
counts and the author's public identity. A missing author profile never fails
the render; it falls back to the snapshot stored with the post and then to a
generated label.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .comment_tree import CommentNode, build_comment_tree, count_comments
from .models import AuthorSnapshot, Comment, ForumPost, MediaItem, UserProfile

logger = logging.getLogger("forumcore.aggregate")

ProfileLookup = Callable[[str], "UserProfile | None"]
MediaLookup = Callable[[str], "MediaItem | None"]


@dataclass(frozen=True)
class AuthorSummary:
    id: str
    username: str
    avatar_url: str | None = None
    is_placeholder: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "is_placeholder": self.is_placeholder,
        }


@dataclass(frozen=True)
class PostView:
    post: ForumPost
    comments: tuple[CommentNode, ...]
    author: AuthorSummary
    like_count: int
    comment_count: int
    media: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.post.to_dict()
        data.update(
            {
                "comments": [node.to_dict() for node in self.comments],
                "author": self.author.to_dict(),
                "like_count": self.like_count,
                "comment_count": self.comment_count,
                "media": self.media,
            }
        )
        return data


def placeholder_author(author_id: str) -> AuthorSummary:
    return AuthorSummary(id=author_id, username=f"user-{str(author_id)[:6]}", is_placeholder=True)


def resolve_author(
    author_id: str,
    resolve_profile: ProfileLookup,
    snapshot: AuthorSnapshot | None = None,
) -> AuthorSummary:
    profile = None
    try:
        profile = resolve_profile(author_id)
    except Exception:
        logger.warning(f"Profile lookup failed for author {author_id}", exc_info=True)
    if profile is not None and profile.username:
        return AuthorSummary(id=author_id, username=profile.username, avatar_url=profile.avatar_url)
    if snapshot is not None and snapshot.username:
        avatar = profile.avatar_url if profile is not None and profile.avatar_url else snapshot.avatar_url
        return AuthorSummary(id=author_id, username=snapshot.username, avatar_url=avatar)
    return placeholder_author(author_id)


def assemble_post(
    post: ForumPost,
    comments: Iterable[Comment] | tuple[CommentNode, ...],
    resolve_profile: ProfileLookup,
    resolve_media: MediaLookup | None = None,
) -> PostView:
    """
    Build the presentation view of `post`.

    `comments` is either the flat comments of the post or an already built
    forest; flat input goes through the tree builder.
    """
    items = tuple(comments)
    if items and isinstance(items[0], CommentNode):
        forest = items
    else:
        forest = build_comment_tree(c for c in items if c.post_id == post.id)

    media = None
    if resolve_media is not None and post.media_ref:
        item = resolve_media(post.media_ref)
        if item is not None:
            media = item.summary()

    return PostView(
        post=post,
        comments=forest,
        author=resolve_author(post.author_id, resolve_profile, post.author),
        like_count=post.like_count,
        comment_count=count_comments(forest),
        media=media,
    )
