"""
Shared core of the media forum: entities, comment trees, like-sets, ratings,
share slugs and the post aggregate.
"""
from .aggregate import PostView, assemble_post
from .comment_tree import CommentNode, build_comment_tree, count_comments, flatten_comments
from .likes import like_count, toggle_like

__all__ = [
    'CommentNode',
    'PostView',
    'assemble_post',
    'build_comment_tree',
    'count_comments',
    'flatten_comments',
    'like_count',
    'toggle_like',
]
