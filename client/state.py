"""
Client state: an immutable snapshot and the pure reducer that advances it.

The forum is kept as an arena. `comments` holds every comment by id,
`children` holds the ordered ids under a post (key ("post", post_id)) or under
a comment (key ("comment", comment_id)), and `parents` maps each comment id to
the key of the list that contains it. Replacing or removing one comment is a
lookup in `parents` plus one tuple rebuild; nothing walks the tree.

Every reducer returns a new AppState and leaves the old one untouched. Actions
that target something no longer in state (a post that was rolled back, an
entry removed by a reload) return the state unchanged.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

from forumcore.comment_tree import build_comment_tree
from forumcore.likes import normalize_like_set, toggle_like
from forumcore.models import Comment, ForumPost, ListEntry, MediaItem, Rating, UserProfile

ParentKey = Tuple[str, str]


def post_key(post_id: str) -> ParentKey:
    return ("post", post_id)


def comment_key(comment_id: str) -> ParentKey:
    return ("comment", comment_id)


@dataclass(frozen=True)
class ForumState:
    posts: Tuple[ForumPost, ...] = ()
    comments: Mapping[str, Comment] = field(default_factory=dict)
    children: Mapping[ParentKey, Tuple[str, ...]] = field(default_factory=dict)
    parents: Mapping[str, ParentKey] = field(default_factory=dict)

    def find_post(self, post_id: str) -> ForumPost | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None


@dataclass(frozen=True)
class AppState:
    media: Tuple[MediaItem, ...] = ()
    ratings: Mapping[Tuple[str, str], Rating] = field(default_factory=dict)
    lists: Mapping[str, Tuple[ListEntry, ...]] = field(default_factory=dict)
    profiles: Mapping[str, UserProfile] = field(default_factory=dict)
    forum: ForumState = field(default_factory=ForumState)

    def find_media(self, media_id: str) -> MediaItem | None:
        for item in self.media:
            if item.id == media_id:
                return item
        return None

    def find_entry(self, user_id: str, media_id: str) -> ListEntry | None:
        for entry in self.lists.get(user_id, ()):
            if entry.media_id == media_id:
                return entry
        return None


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MediaLoaded:
    items: Tuple[MediaItem, ...]


@dataclass(frozen=True)
class MediaAdded:
    item: MediaItem


@dataclass(frozen=True)
class MediaReplaced:
    local_id: str
    item: MediaItem


@dataclass(frozen=True)
class MediaRemoved:
    media_id: str


@dataclass(frozen=True)
class RatingApplied:
    """Set (or clear, with value=None) a user's rating and the item's derived numbers."""

    user_id: str
    media_id: str
    value: float | None
    media_rating: float | None = None
    media_rating_count: int | None = None


@dataclass(frozen=True)
class RatingsLoaded:
    user_id: str
    ratings: Tuple[Rating, ...]


@dataclass(frozen=True)
class ListLoaded:
    user_id: str
    entries: Tuple[ListEntry, ...]


@dataclass(frozen=True)
class ListEntryAdded:
    entry: ListEntry
    index: int | None = None


@dataclass(frozen=True)
class ListEntryReplaced:
    """Swap the entry with id `local_id` for `entry`, keeping its position."""

    local_id: str
    entry: ListEntry


@dataclass(frozen=True)
class ListEntryRemoved:
    user_id: str
    media_id: str


@dataclass(frozen=True)
class ProfileSet:
    user_id: str
    profile: UserProfile | None


@dataclass(frozen=True)
class ForumLoaded:
    posts: Tuple[ForumPost, ...]
    comments: Tuple[Comment, ...]


@dataclass(frozen=True)
class PostAdded:
    post: ForumPost


@dataclass(frozen=True)
class PostReplaced:
    local_id: str
    post: ForumPost


@dataclass(frozen=True)
class PostRemoved:
    post_id: str


@dataclass(frozen=True)
class PostLikeToggled:
    post_id: str
    user_id: str


@dataclass(frozen=True)
class PostLikesSet:
    post_id: str
    liked_by: frozenset


@dataclass(frozen=True)
class CommentAdded:
    """Root comments go to the top of their post, replies to the end of their thread."""

    comment: Comment


@dataclass(frozen=True)
class CommentReplaced:
    local_id: str
    comment: Comment


@dataclass(frozen=True)
class CommentRemoved:
    comment_id: str


@dataclass(frozen=True)
class CommentLikeToggled:
    comment_id: str
    user_id: str


@dataclass(frozen=True)
class CommentLikesSet:
    comment_id: str
    liked_by: frozenset


# ---------------------------------------------------------------------------
# Catalog, ratings, lists, profiles
# ---------------------------------------------------------------------------

def _replace_where(items: Iterable[Any], match: Callable[[Any], bool], new: Any) -> tuple | None:
    """Replace the first matching item in place; None when nothing matches."""
    items = tuple(items)
    for index, item in enumerate(items):
        if match(item):
            return items[:index] + (new,) + items[index + 1:]
    return None


def _media_loaded(state: AppState, action: MediaLoaded) -> AppState:
    return replace(state, media=tuple(action.items))


def _media_added(state: AppState, action: MediaAdded) -> AppState:
    if state.find_media(action.item.id) is not None:
        return state
    return replace(state, media=(action.item,) + state.media)


def _media_replaced(state: AppState, action: MediaReplaced) -> AppState:
    media = _replace_where(state.media, lambda m: m.id == action.local_id, action.item)
    if media is None:
        return state
    return replace(state, media=media)


def _media_removed(state: AppState, action: MediaRemoved) -> AppState:
    return replace(state, media=tuple(m for m in state.media if m.id != action.media_id))


def _rating_applied(state: AppState, action: RatingApplied) -> AppState:
    key = (action.user_id, action.media_id)
    ratings = dict(state.ratings)
    if action.value is None:
        ratings.pop(key, None)
    else:
        ratings[key] = Rating(user_id=action.user_id, media_id=action.media_id, value=action.value)

    media = state.media
    item = state.find_media(action.media_id)
    if item is not None and action.media_rating is not None:
        count = item.rating_count if action.media_rating_count is None else action.media_rating_count
        new_item = replace(item, rating=action.media_rating, rating_count=count)
        media = _replace_where(media, lambda m: m.id == action.media_id, new_item)

    # the user's list entry mirrors their rating
    lists = state.lists
    entry = state.find_entry(action.user_id, action.media_id)
    if entry is not None and entry.rating != action.value:
        changed = entry.with_changes({"rating": action.value})
        lists = {**lists, action.user_id: _replace_where(lists[action.user_id], lambda e: e.id == entry.id, changed)}

    return replace(state, ratings=ratings, media=media, lists=lists)


def _ratings_loaded(state: AppState, action: RatingsLoaded) -> AppState:
    ratings = {key: value for key, value in state.ratings.items() if key[0] != action.user_id}
    for rating in action.ratings:
        ratings[(rating.user_id, rating.media_id)] = rating
    return replace(state, ratings=ratings)


def _list_loaded(state: AppState, action: ListLoaded) -> AppState:
    return replace(state, lists={**state.lists, action.user_id: tuple(action.entries)})


def _list_entry_added(state: AppState, action: ListEntryAdded) -> AppState:
    entry = action.entry
    current = state.lists.get(entry.user_id, ())
    if any(e.media_id == entry.media_id for e in current):
        return state
    index = len(current) if action.index is None else max(0, min(action.index, len(current)))
    entries = current[:index] + (entry,) + current[index:]
    return replace(state, lists={**state.lists, entry.user_id: entries})


def _list_entry_replaced(state: AppState, action: ListEntryReplaced) -> AppState:
    user_id = action.entry.user_id
    entries = _replace_where(state.lists.get(user_id, ()), lambda e: e.id == action.local_id, action.entry)
    if entries is None:
        return state
    return replace(state, lists={**state.lists, user_id: entries})


def _list_entry_removed(state: AppState, action: ListEntryRemoved) -> AppState:
    current = state.lists.get(action.user_id, ())
    entries = tuple(e for e in current if e.media_id != action.media_id)
    if len(entries) == len(current):
        return state
    return replace(state, lists={**state.lists, action.user_id: entries})


def _profile_set(state: AppState, action: ProfileSet) -> AppState:
    profiles = dict(state.profiles)
    if action.profile is None:
        profiles.pop(action.user_id, None)
    else:
        profiles[action.user_id] = action.profile
    return replace(state, profiles=profiles)


# ---------------------------------------------------------------------------
# Forum arena
# ---------------------------------------------------------------------------

def build_forum_state(posts: Iterable[ForumPost], comments: Iterable[Comment]) -> ForumState:
    """Arena for canonical data; sibling order comes from the tree builder."""
    posts = tuple(posts)
    by_post: Dict[str, list] = {post.id: [] for post in posts}
    for comment in comments:
        if comment.post_id in by_post:
            by_post[comment.post_id].append(comment)

    arena: Dict[str, Comment] = {}
    children: Dict[ParentKey, Tuple[str, ...]] = {}
    parents: Dict[str, ParentKey] = {}
    for post in posts:
        forest = build_comment_tree(by_post[post.id])
        children[post_key(post.id)] = tuple(node.id for node in forest)
        for node in forest:
            parents[node.id] = post_key(post.id)
        stack = list(forest)
        while stack:
            node = stack.pop()
            arena[node.id] = node.comment
            if node.replies:
                children[comment_key(node.id)] = tuple(reply.id for reply in node.replies)
                for reply in node.replies:
                    parents[reply.id] = comment_key(node.id)
                stack.extend(node.replies)
    return ForumState(posts=posts, comments=arena, children=children, parents=parents)


def _subtree_ids(forum: ForumState, key: ParentKey) -> list[str]:
    ids: list[str] = []
    stack = list(forum.children.get(key, ()))
    while stack:
        comment_id = stack.pop()
        ids.append(comment_id)
        stack.extend(forum.children.get(comment_key(comment_id), ()))
    return ids


def _drop_comments(forum: ForumState, ids: Iterable[str], extra_keys: Iterable[ParentKey] = ()) -> Tuple[dict, dict, dict]:
    comments = dict(forum.comments)
    children = dict(forum.children)
    parents = dict(forum.parents)
    for comment_id in ids:
        comments.pop(comment_id, None)
        parents.pop(comment_id, None)
        children.pop(comment_key(comment_id), None)
    for key in extra_keys:
        children.pop(key, None)
    return comments, children, parents


def _with_forum(state: AppState, **changes: Any) -> AppState:
    return replace(state, forum=replace(state.forum, **changes))


def _forum_loaded(state: AppState, action: ForumLoaded) -> AppState:
    return replace(state, forum=build_forum_state(action.posts, action.comments))


def _post_added(state: AppState, action: PostAdded) -> AppState:
    forum = state.forum
    if forum.find_post(action.post.id) is not None:
        return state
    children = {**forum.children, post_key(action.post.id): ()}
    return _with_forum(state, posts=(action.post,) + forum.posts, children=children)


def _post_replaced(state: AppState, action: PostReplaced) -> AppState:
    forum = state.forum
    posts = _replace_where(forum.posts, lambda p: p.id == action.local_id, action.post)
    if posts is None:
        return state
    new_id = action.post.id
    if new_id == action.local_id:
        return _with_forum(state, posts=posts)

    # server assigned another id: move the thread under the new key
    old_key, new_key = post_key(action.local_id), post_key(new_id)
    comments = dict(forum.comments)
    children = dict(forum.children)
    parents = dict(forum.parents)
    for comment_id in _subtree_ids(forum, old_key):
        comments[comment_id] = replace(comments[comment_id], post_id=new_id)
    roots = children.pop(old_key, ())
    children[new_key] = roots
    for comment_id in roots:
        parents[comment_id] = new_key
    return _with_forum(state, posts=posts, comments=comments, children=children, parents=parents)


def _post_removed(state: AppState, action: PostRemoved) -> AppState:
    forum = state.forum
    if forum.find_post(action.post_id) is None:
        return state
    key = post_key(action.post_id)
    comments, children, parents = _drop_comments(forum, _subtree_ids(forum, key), [key])
    posts = tuple(p for p in forum.posts if p.id != action.post_id)
    return _with_forum(state, posts=posts, comments=comments, children=children, parents=parents)


def _set_post_likes(state: AppState, post_id: str, liked_by: Callable[[ForumPost], frozenset]) -> AppState:
    post = state.forum.find_post(post_id)
    if post is None:
        return state
    updated = replace(post, liked_by=liked_by(post))
    posts = _replace_where(state.forum.posts, lambda p: p.id == post_id, updated)
    return _with_forum(state, posts=posts)


def _post_like_toggled(state: AppState, action: PostLikeToggled) -> AppState:
    return _set_post_likes(state, action.post_id, lambda p: toggle_like(p.liked_by, action.user_id))


def _post_likes_set(state: AppState, action: PostLikesSet) -> AppState:
    return _set_post_likes(state, action.post_id, lambda p: normalize_like_set(action.liked_by))


def _comment_added(state: AppState, action: CommentAdded) -> AppState:
    forum = state.forum
    comment = action.comment
    if comment.id in forum.comments or forum.find_post(comment.post_id) is None:
        return state

    if comment.parent_id:
        parent = forum.comments.get(comment.parent_id)
        if parent is None or parent.post_id != comment.post_id:
            return state
        key = comment_key(comment.parent_id)
        siblings = forum.children.get(key, ()) + (comment.id,)
    else:
        key = post_key(comment.post_id)
        siblings = (comment.id,) + forum.children.get(key, ())

    return _with_forum(
        state,
        comments={**forum.comments, comment.id: comment},
        children={**forum.children, key: siblings},
        parents={**forum.parents, comment.id: key},
    )


def _comment_replaced(state: AppState, action: CommentReplaced) -> AppState:
    forum = state.forum
    key = forum.parents.get(action.local_id)
    if key is None:
        return state

    new = action.comment
    comments = dict(forum.comments)
    children = dict(forum.children)
    parents = dict(forum.parents)
    if new.id == action.local_id:
        comments[new.id] = new
        return _with_forum(state, comments=comments)

    # re-key: same slot among the siblings, replies re-pointed at the new id
    comments.pop(action.local_id, None)
    comments[new.id] = new
    children[key] = tuple(new.id if cid == action.local_id else cid for cid in children.get(key, ()))
    parents.pop(action.local_id, None)
    parents[new.id] = key
    replies = children.pop(comment_key(action.local_id), ())
    if replies:
        children[comment_key(new.id)] = replies
        for reply_id in replies:
            comments[reply_id] = replace(comments[reply_id], parent_id=new.id)
            parents[reply_id] = comment_key(new.id)
    return _with_forum(state, comments=comments, children=children, parents=parents)


def _comment_removed(state: AppState, action: CommentRemoved) -> AppState:
    forum = state.forum
    key = forum.parents.get(action.comment_id)
    if key is None:
        return state
    doomed = [action.comment_id] + _subtree_ids(forum, comment_key(action.comment_id))
    comments, children, parents = _drop_comments(forum, doomed)
    children[key] = tuple(cid for cid in children.get(key, ()) if cid != action.comment_id)
    return _with_forum(state, comments=comments, children=children, parents=parents)


def _set_comment_likes(state: AppState, comment_id: str, liked_by: Callable[[Comment], frozenset]) -> AppState:
    comment = state.forum.comments.get(comment_id)
    if comment is None:
        return state
    updated = replace(comment, liked_by=liked_by(comment))
    return _with_forum(state, comments={**state.forum.comments, comment_id: updated})


def _comment_like_toggled(state: AppState, action: CommentLikeToggled) -> AppState:
    return _set_comment_likes(state, action.comment_id, lambda c: toggle_like(c.liked_by, action.user_id))


def _comment_likes_set(state: AppState, action: CommentLikesSet) -> AppState:
    return _set_comment_likes(state, action.comment_id, lambda c: normalize_like_set(action.liked_by))


_REDUCERS: Dict[type, Callable[[AppState, Any], AppState]] = {
    MediaLoaded: _media_loaded,
    MediaAdded: _media_added,
    MediaReplaced: _media_replaced,
    MediaRemoved: _media_removed,
    RatingApplied: _rating_applied,
    RatingsLoaded: _ratings_loaded,
    ListLoaded: _list_loaded,
    ListEntryAdded: _list_entry_added,
    ListEntryReplaced: _list_entry_replaced,
    ListEntryRemoved: _list_entry_removed,
    ProfileSet: _profile_set,
    ForumLoaded: _forum_loaded,
    PostAdded: _post_added,
    PostReplaced: _post_replaced,
    PostRemoved: _post_removed,
    PostLikeToggled: _post_like_toggled,
    PostLikesSet: _post_likes_set,
    CommentAdded: _comment_added,
    CommentReplaced: _comment_replaced,
    CommentRemoved: _comment_removed,
    CommentLikeToggled: _comment_like_toggled,
    CommentLikesSet: _comment_likes_set,
}


def reduce(state: AppState, action: Any) -> AppState:
    """Apply one action to `state` and return the resulting snapshot."""
    try:
        handler = _REDUCERS[type(action)]
    except KeyError:
        raise TypeError(f"Unknown action: {type(action).__name__}") from None
    return handler(state, action)


def post_comments(forum: ForumState, post_id: str) -> list[Comment]:
    """Every comment of a post in display pre-order."""
    ordered: list[Comment] = []
    stack = list(reversed(forum.children.get(post_key(post_id), ())))
    while stack:
        comment_id = stack.pop()
        ordered.append(forum.comments[comment_id])
        stack.extend(reversed(forum.children.get(comment_key(comment_id), ())))
    return ordered

