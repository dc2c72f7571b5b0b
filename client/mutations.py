"""
Optimistic mutations.

Every user action is applied to the store immediately with a locally
synthesized entity, then sent to the persistence API. The answer either
replaces the optimistic entity with the canonical one (matched by the local
id, keeping its position) or rolls the optimistic change back. Nothing is
retried.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Mapping
from uuid import uuid4

from forumcore.errors import ConflictError, NotFoundError
from forumcore.models import (
    AuthorSnapshot,
    Comment,
    CurrentUser,
    ForumPost,
    ListEntry,
    MediaItem,
    UserProfile,
    utc_now,
)
from forumcore.likes import normalize_like_set
from forumcore.ratings import clamp_rating, estimate_rating
from forumcore.validation import (
    validate_comment_input,
    validate_list_entry_input,
    validate_media_input,
    validate_post_input,
    validate_profile_input,
)

from .api_client import ForumApiClient
from .state import (
    CommentAdded,
    CommentLikeToggled,
    CommentLikesSet,
    CommentRemoved,
    CommentReplaced,
    ListEntryAdded,
    ListEntryRemoved,
    ListEntryReplaced,
    MediaAdded,
    MediaRemoved,
    MediaReplaced,
    PostAdded,
    PostLikesSet,
    PostLikeToggled,
    PostRemoved,
    PostReplaced,
    ProfileSet,
    RatingApplied,
)
from .store import Store

logger = logging.getLogger("MutationLayer")


class MutationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Mutation:
    kind: str
    target_id: str
    id: str = field(default_factory=lambda: str(uuid4()))
    status: MutationStatus = MutationStatus.PENDING
    result: Any = None
    error: BaseException | None = None
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> Any:
        """Block until the request settles; re-raise the error of a rolled back mutation."""
        if not self._done.wait(timeout):
            raise TimeoutError(f"{self.kind} {self.target_id} still pending after {timeout}s")
        if self.error is not None:
            raise self.error
        return self.result


class MutationLayer:
    def __init__(
        self,
        store: Store,
        api: ForumApiClient,
        user: CurrentUser,
        executor: Executor | None = None,
    ):
        self.store = store
        self.api = api
        self.user = user
        self.executor = executor
        self._mutations: Dict[str, Mutation] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, store: Store, api: ForumApiClient, user: CurrentUser, config: dict) -> MutationLayer:
        max_workers = config.get("mutations", {}).get("max_workers", 4)
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mutation") if max_workers else None
        return cls(store, api, user, executor=executor)

    def close(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)

    # ----- bookkeeping -----
    def pending(self) -> List[Mutation]:
        with self._lock:
            return list(self._mutations.values())

    def get(self, mutation_id: str) -> Mutation | None:
        """A mutation still in flight; settled ones are no longer tracked."""
        with self._lock:
            return self._mutations.get(mutation_id)

    def _author(self) -> AuthorSnapshot:
        profile = self.store.state.profiles.get(self.user.id)
        snapshot = self.user.snapshot()
        if profile is None:
            return snapshot
        return AuthorSnapshot(
            id=self.user.id,
            username=profile.username or snapshot.username,
            avatar_url=profile.avatar_url or snapshot.avatar_url,
        )

    def _run(
        self,
        mutation: Mutation,
        request: Callable[[], Any],
        confirm: Callable[[Any], None],
        rollback: Callable[[], None],
    ) -> Mutation:
        with self._lock:
            self._mutations[mutation.id] = mutation

        def task() -> None:
            try:
                result = request()
                confirm(result)
            except Exception as exc:
                logger.warning(f"{mutation.kind} {mutation.target_id} rolled back: {exc}")
                self._roll_back(mutation, rollback, exc)
            else:
                logger.debug(f"{mutation.kind} {mutation.target_id} confirmed")
                mutation.result = result
                self._settle(mutation, MutationStatus.CONFIRMED)

        if self.executor is None:
            task()
            return mutation
        try:
            self.executor.submit(task)
        except Exception as exc:
            logger.error(f"{mutation.kind} {mutation.target_id} could not be scheduled: {exc}")
            self._roll_back(mutation, rollback, exc)
            raise
        return mutation

    def _roll_back(self, mutation: Mutation, rollback: Callable[[], None], exc: Exception) -> None:
        try:
            rollback()
        except Exception:
            logger.exception(f"Rollback of {mutation.kind} {mutation.target_id} failed")
        mutation.error = exc
        self._settle(mutation, MutationStatus.ROLLED_BACK)

    def _settle(self, mutation: Mutation, status: MutationStatus) -> None:
        mutation.status = status
        with self._lock:
            self._mutations.pop(mutation.id, None)
        mutation._done.set()

    # ----- forum -----
    def create_post(
        self,
        title: str,
        content: str,
        category: str,
        tags: list | tuple = (),
        media_ref: str | None = None,
    ) -> Mutation:
        data = validate_post_input(
            {"title": title, "content": content, "category": category, "tags": list(tags), "media_ref": media_ref}
        )
        local_id = str(uuid4())
        author = self._author()
        now = utc_now()
        post = ForumPost(
            id=local_id,
            author_id=author.id,
            title=data["title"],
            content=data["content"],
            category=data["category"],
            created_at=now,
            updated_at=now,
            tags=tuple(data["tags"]),
            media_ref=data["media_ref"],
            author=author,
        )
        self.store.dispatch(PostAdded(post))

        payload = {**data, "id": local_id, "author": author.to_dict()}
        return self._run(
            Mutation("create_post", local_id),
            lambda: self.api.create_post(payload),
            lambda result: self.store.dispatch(PostReplaced(local_id, ForumPost.from_dict(result))),
            lambda: self.store.dispatch(PostRemoved(local_id)),
        )

    def _add_comment(self, post_id: str, content: str, parent_id: str | None) -> Mutation:
        data = validate_comment_input({"content": content})
        forum = self.store.state.forum
        if forum.find_post(post_id) is None:
            raise NotFoundError("Post not found")
        if parent_id is not None:
            parent = forum.comments.get(parent_id)
            if parent is None or parent.post_id != post_id:
                raise NotFoundError("Comment not found")

        local_id = str(uuid4())
        author = self._author()
        comment = Comment(
            id=local_id,
            post_id=post_id,
            author_id=author.id,
            content=data["content"],
            created_at=utc_now(),
            parent_id=parent_id,
            author=author,
        )
        self.store.dispatch(CommentAdded(comment))

        payload = {"id": local_id, "content": data["content"], "author": author.to_dict()}
        if parent_id is None:
            kind, request = "add_comment", partial(self.api.add_comment, post_id, payload)
        else:
            kind, request = "add_reply", partial(self.api.add_reply, post_id, parent_id, payload)
        return self._run(
            Mutation(kind, local_id),
            request,
            lambda result: self.store.dispatch(CommentReplaced(local_id, Comment.from_dict(result))),
            lambda: self.store.dispatch(CommentRemoved(local_id)),
        )

    def add_comment(self, post_id: str, content: str) -> Mutation:
        return self._add_comment(post_id, content, None)

    def add_reply(self, post_id: str, parent_id: str, content: str) -> Mutation:
        return self._add_comment(post_id, content, parent_id)

    def toggle_post_like(self, post_id: str) -> Mutation:
        post = self.store.state.forum.find_post(post_id)
        if post is None:
            raise NotFoundError("Post not found")
        previous = post.liked_by
        user_id = self.user.id
        self.store.dispatch(PostLikeToggled(post_id, user_id))
        return self._run(
            Mutation("toggle_post_like", post_id),
            lambda: self.api.toggle_post_like(post_id, user_id),
            lambda result: self.store.dispatch(PostLikesSet(post_id, normalize_like_set(result["liked_by"]))),
            lambda: self.store.dispatch(PostLikesSet(post_id, previous)),
        )

    def toggle_comment_like(self, post_id: str, comment_id: str) -> Mutation:
        comment = self.store.state.forum.comments.get(comment_id)
        if comment is None or comment.post_id != post_id:
            raise NotFoundError("Comment not found")
        user_id = self.user.id
        self.store.dispatch(CommentLikeToggled(comment_id, user_id))
        return self._run(
            Mutation("toggle_comment_like", comment_id),
            lambda: self.api.toggle_comment_like(post_id, comment_id, user_id),
            lambda result: self.store.dispatch(CommentLikesSet(comment_id, normalize_like_set(result["liked_by"]))),
            lambda: self.store.dispatch(CommentLikesSet(comment_id, comment.liked_by)),
        )

    # ----- personal list -----
    def add_list_entry(self, media_id: str, **fields: Any) -> Mutation:
        data = validate_list_entry_input({**fields, "media_id": media_id})
        state = self.store.state
        if state.find_media(data["media_id"]) is None:
            raise NotFoundError("Media item not found")
        if state.find_entry(self.user.id, data["media_id"]) is not None:
            raise ConflictError("This title is already in the list")

        local_id = str(uuid4())
        now = utc_now()
        entry = ListEntry(
            id=local_id,
            user_id=self.user.id,
            media_id=data["media_id"],
            created_at=now,
            updated_at=now,
            status=data["status"],
            progress=data["progress"],
            is_public=data["is_public"],
            notes=data["notes"],
            rating=data["rating"],
        )
        self.store.dispatch(ListEntryAdded(entry))

        payload = {**data, "id": local_id}
        return self._run(
            Mutation("add_list_entry", local_id),
            lambda: self.api.add_list_entry(self.user.id, payload),
            lambda result: self.store.dispatch(ListEntryReplaced(local_id, ListEntry.from_dict(result))),
            lambda: self.store.dispatch(ListEntryRemoved(self.user.id, entry.media_id)),
        )

    def update_list_entry(self, media_id: str, **changes: Any) -> Mutation:
        data = validate_list_entry_input(changes, partial=True)
        previous = self.store.state.find_entry(self.user.id, media_id)
        if previous is None:
            raise NotFoundError("List entry not found")

        self.store.dispatch(ListEntryReplaced(previous.id, previous.with_changes(data)))
        return self._run(
            Mutation("update_list_entry", previous.id),
            lambda: self.api.update_list_entry(self.user.id, media_id, data),
            lambda result: self.store.dispatch(ListEntryReplaced(previous.id, ListEntry.from_dict(result))),
            lambda: self.store.dispatch(ListEntryReplaced(previous.id, previous)),
        )

    def remove_list_entry(self, media_id: str) -> Mutation:
        entries = self.store.state.lists.get(self.user.id, ())
        index = next((i for i, e in enumerate(entries) if e.media_id == media_id), None)
        if index is None:
            raise NotFoundError("List entry not found")
        previous = entries[index]

        self.store.dispatch(ListEntryRemoved(self.user.id, media_id))
        return self._run(
            Mutation("remove_list_entry", previous.id),
            lambda: self.api.remove_list_entry(self.user.id, media_id),
            lambda result: None,
            lambda: self.store.dispatch(ListEntryAdded(previous, index=index)),
        )

    # ----- profile -----
    def update_profile(self, **fields: Any) -> Mutation:
        updates = validate_profile_input(fields)
        previous = self.store.state.profiles.get(self.user.id)
        base: Mapping[str, Any] = previous.to_dict() if previous else {"user_id": self.user.id}
        optimistic = UserProfile.from_dict({**base, **updates})

        self.store.dispatch(ProfileSet(self.user.id, optimistic))
        return self._run(
            Mutation("update_profile", self.user.id),
            lambda: self.api.update_profile(self.user.id, updates),
            lambda result: self.store.dispatch(ProfileSet(self.user.id, UserProfile.from_dict(result))),
            lambda: self.store.dispatch(ProfileSet(self.user.id, previous)),
        )

    # ----- catalog -----
    def add_media(self, payload: Mapping[str, Any]) -> Mutation:
        data = validate_media_input(payload)
        local_id = data["id"] or str(uuid4())
        item = MediaItem.from_dict({**data, "id": local_id, "created_at": utc_now()})
        self.store.dispatch(MediaAdded(item))

        body = {**data, "id": local_id}
        return self._run(
            Mutation("add_media", local_id),
            lambda: self.api.create_media(body),
            lambda result: self.store.dispatch(MediaReplaced(local_id, MediaItem.from_dict(result))),
            lambda: self.store.dispatch(MediaRemoved(local_id)),
        )

    def rate_media(self, media_id: str, value: Any) -> Mutation:
        rating_value = clamp_rating(value)
        state = self.store.state
        item = state.find_media(media_id)
        if item is None:
            raise NotFoundError("Media item not found")

        user_id = self.user.id
        previous = state.ratings.get((user_id, media_id))
        previous_value = previous.value if previous is not None else None
        previous_entry = state.find_entry(user_id, media_id)
        rating, rating_count = estimate_rating(item.rating, item.rating_count, previous_value, rating_value)
        self.store.dispatch(RatingApplied(user_id, media_id, rating_value, rating, rating_count))

        def confirm(result: Mapping[str, Any]) -> None:
            self.store.dispatch(
                RatingApplied(user_id, media_id, rating_value, float(result["rating"]), int(result["rating_count"]))
            )

        def rollback() -> None:
            self.store.dispatch(RatingApplied(user_id, media_id, previous_value, item.rating, item.rating_count))
            if previous_entry is not None:
                self.store.dispatch(ListEntryReplaced(previous_entry.id, previous_entry))

        return self._run(
            Mutation("rate_media", media_id),
            lambda: self.api.rate_media(media_id, user_id, rating_value),
            confirm,
            rollback,
        )
