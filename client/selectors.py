"""Read-only views derived from an AppState snapshot."""
from __future__ import annotations

from typing import List, Tuple

from forumcore.aggregate import PostView, assemble_post
from forumcore.comment_tree import CommentNode, count_comments, freeze_forest
from forumcore.models import ListEntry, MediaItem

from .state import AppState, comment_key, post_key


def get_user_list(state: AppState, user_id: str) -> List[Tuple[ListEntry, MediaItem]]:
    """The user's entries joined with their media; entries for unknown media are skipped."""
    media_by_id = {item.id: item for item in state.media}
    joined = []
    for entry in state.lists.get(user_id, ()):
        item = media_by_id.get(entry.media_id)
        if item is not None:
            joined.append((entry, item))
    return joined


def get_user_media_entry(state: AppState, user_id: str, media_id: str) -> ListEntry | None:
    return state.find_entry(user_id, media_id)


def get_user_rating(state: AppState, user_id: str, media_id: str) -> float:
    rating = state.ratings.get((user_id, media_id))
    return rating.value if rating is not None else 0


def get_comment_forest(state: AppState, post_id: str) -> Tuple[CommentNode, ...]:
    forum = state.forum
    return freeze_forest(
        forum.children.get(post_key(post_id), ()),
        forum.comments,
        lambda comment_id: forum.children.get(comment_key(comment_id), ()),
    )


def get_comment_count(state: AppState, post_id: str) -> int:
    return count_comments(get_comment_forest(state, post_id))


def get_post_view(state: AppState, post_id: str) -> PostView | None:
    post = state.forum.find_post(post_id)
    if post is None:
        return None
    return assemble_post(post, get_comment_forest(state, post_id), state.profiles.get, state.find_media)


def get_post_views(state: AppState) -> List[PostView]:
    return [
        assemble_post(post, get_comment_forest(state, post.id), state.profiles.get, state.find_media)
        for post in state.forum.posts
    ]

