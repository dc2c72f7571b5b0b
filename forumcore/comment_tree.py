"""
Build nested reply trees out of flat comment rows.

Comments of a post are stored flat (each row points at its parent); readers
want a forest where every root comment carries its replies recursively. Roots
are shown newest first while replies inside a thread read oldest first.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from .models import Comment


@dataclass(frozen=True)
class CommentNode:
    comment: Comment
    replies: tuple[CommentNode, ...] = ()

    @property
    def id(self) -> str:
        return self.comment.id

    def to_dict(self) -> dict[str, Any]:
        root = {**self.comment.to_dict(), "replies": []}
        stack = [(self, root)]
        while stack:
            node, data = stack.pop()
            for reply in node.replies:
                child = {**reply.comment.to_dict(), "replies": []}
                data["replies"].append(child)
                stack.append((reply, child))
        return root


def build_comment_tree(comments: Iterable[Comment]) -> tuple[CommentNode, ...]:
    """
    Turn the flat comments of one post into an ordered forest.

    A comment goes under its parent when `parent_id` resolves to a comment in
    the same collection; otherwise (no parent, or a parent we do not have) it
    becomes a root. Orphans are kept as roots rather than dropped. A comment
    whose parent chain loops back onto itself is promoted to a root as well.

    The input is never modified and every call returns a fresh tree, so the
    builder can be re-run whenever the flat collection changes.
    """
    items = list(comments)
    by_id: dict[str, Comment] = {}
    for comment in items:
        by_id[comment.id] = comment

    children: dict[str, list[Comment]] = {comment_id: [] for comment_id in by_id}
    roots: list[Comment] = []
    for comment in by_id.values():
        parent_id = comment.parent_id
        if parent_id and parent_id != comment.id and parent_id in by_id:
            children[parent_id].append(comment)
        else:
            roots.append(comment)

    # Cycles are unreachable from any root; cut each one at its oldest member.
    reachable = _walk_ids(roots, children)
    if len(reachable) < len(by_id):
        stranded = [c for c in by_id.values() if c.id not in reachable]
        stranded.sort(key=lambda c: c.created_at)
        for comment in stranded:
            if comment.id in reachable:
                continue
            siblings = children[comment.parent_id]
            children[comment.parent_id] = [c for c in siblings if c.id != comment.id]
            roots.append(comment)
            reachable |= _walk_ids([comment], children)

    ordered_roots = sorted(roots, key=lambda c: c.created_at, reverse=True)
    reply_ids = {
        parent_id: [c.id for c in sorted(kids, key=lambda c: c.created_at)]
        for parent_id, kids in children.items()
        if kids
    }
    return freeze_forest([c.id for c in ordered_roots], by_id, lambda comment_id: reply_ids.get(comment_id, ()))


def _walk_ids(starts: Iterable[Comment], children: dict[str, list[Comment]]) -> set[str]:
    seen: set[str] = set()
    stack = list(starts)
    while stack:
        comment = stack.pop()
        if comment.id in seen:
            continue
        seen.add(comment.id)
        stack.extend(children.get(comment.id, ()))
    return seen


def freeze_forest(
    root_ids: Sequence[str],
    comments: Mapping[str, Comment],
    replies_of: Callable[[str], Sequence[str]],
) -> tuple[CommentNode, ...]:
    """
    Build immutable nodes for already ordered threads.

    Nodes are built children first from an explicit stack, so thread depth is
    not bounded by the interpreter's recursion limit.
    """
    built: dict[str, CommentNode] = {}
    stack = [(comment_id, False) for comment_id in root_ids]
    while stack:
        comment_id, expanded = stack.pop()
        if expanded:
            replies = tuple(built.pop(reply_id) for reply_id in replies_of(comment_id))
            built[comment_id] = CommentNode(comment=comments[comment_id], replies=replies)
        else:
            stack.append((comment_id, True))
            stack.extend((reply_id, False) for reply_id in replies_of(comment_id))
    return tuple(built.pop(comment_id) for comment_id in root_ids)


def flatten_comments(forest: Iterable[CommentNode]) -> list[Comment]:
    """Every comment of the forest in pre-order (a root, then its thread)."""
    flat: list[Comment] = []
    stack = list(reversed(tuple(forest)))
    while stack:
        node = stack.pop()
        flat.append(node.comment)
        stack.extend(reversed(node.replies))
    return flat


def count_comments(forest: Iterable[CommentNode]) -> int:
    """Total number of comments including nested replies at every depth."""
    total = 0
    stack = list(forest)
    while stack:
        node = stack.pop()
        total += 1
        stack.extend(node.replies)
    return total


def comments_from_payload(nodes: Iterable[dict[str, Any]]) -> list[Comment]:
    """
    Flatten a nested JSON forest (as the API returns it) back into comments.

    Each reply gets its `parent_id` from its position when the payload leaves
    it out, so the tree can be re-derived with `build_comment_tree`.
    """
    flat: list[Comment] = []
    stack: list[tuple[dict[str, Any], str | None]] = [(node, None) for node in nodes]
    while stack:
        node, parent_id = stack.pop()
        data = dict(node)
        if parent_id and not data.get("parent_id"):
            data["parent_id"] = parent_id
        comment = Comment.from_dict(data)
        flat.append(comment)
        stack.extend((reply, comment.id) for reply in node.get("replies") or ())
    return flat
