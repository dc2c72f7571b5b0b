"""Pull canonical server state into the store, replacing local slices."""
from __future__ import annotations

import logging

from forumcore.comment_tree import comments_from_payload
from forumcore.models import ForumPost, ListEntry, MediaItem, Rating, UserProfile

from .api_client import ForumApiClient
from .state import AppState, ForumLoaded, ListLoaded, MediaLoaded, ProfileSet, RatingsLoaded
from .store import Store

logger = logging.getLogger("ForumSync")


def load_catalog(store: Store, api: ForumApiClient) -> AppState:
    items = tuple(MediaItem.from_dict(item) for item in api.list_media())
    logger.info(f"Loaded {len(items)} media items")
    return store.dispatch(MediaLoaded(items))


def load_forum(store: Store, api: ForumApiClient) -> AppState:
    """Replace the forum; nested comments are flattened and rebuilt by the tree builder."""
    posts = []
    comments = []
    for payload in api.list_posts():
        posts.append(ForumPost.from_dict(payload))
        comments.extend(comments_from_payload(payload.get("comments") or ()))
    logger.info(f"Loaded {len(posts)} posts with {len(comments)} comments")
    return store.dispatch(ForumLoaded(tuple(posts), tuple(comments)))


def load_user_data(store: Store, api: ForumApiClient, user_id: str) -> AppState:
    entries = tuple(ListEntry.from_dict(entry) for entry in api.get_list(user_id))
    ratings = tuple(Rating.from_dict(rating) for rating in api.get_ratings(user_id))
    profile = api.get_profile(user_id)

    store.dispatch(ListLoaded(user_id, entries))
    store.dispatch(RatingsLoaded(user_id, ratings))
    return store.dispatch(ProfileSet(user_id, UserProfile.from_dict(profile) if profile else None))


def load_all(store: Store, api: ForumApiClient, user_id: str | None = None) -> AppState:
    load_catalog(store, api)
    state = load_forum(store, api)
    if user_id:
        state = load_user_data(store, api, user_id)
    return state
