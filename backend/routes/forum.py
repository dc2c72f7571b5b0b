from flask import Blueprint, jsonify, request

from .. import services
from ..db import get_db

bp = Blueprint("forum", __name__, url_prefix="/api/forum")


def _body():
    return request.get_json(force=True, silent=True) or {}


@bp.get("/posts")
def list_posts():
    views = services.list_posts(get_db())
    return jsonify([view.to_dict() for view in views])


@bp.get("/posts/<post_id>")
def get_post(post_id: str):
    return jsonify(services.get_post(get_db(), post_id).to_dict())


@bp.post("/posts")
def create_post():
    view = services.create_post(get_db(), _body())
    return jsonify(view.to_dict()), 201


@bp.post("/posts/<post_id>/comments")
def add_comment(post_id: str):
    comment = services.add_comment(get_db(), post_id, _body())
    return jsonify(comment.to_dict()), 201


@bp.post("/posts/<post_id>/comments/<comment_id>/replies")
def add_reply(post_id: str, comment_id: str):
    reply = services.add_comment(get_db(), post_id, _body(), parent_id=comment_id)
    return jsonify(reply.to_dict()), 201


@bp.post("/posts/<post_id>/likes")
def toggle_post_like(post_id: str):
    result = services.toggle_post_like(get_db(), post_id, _body().get("user_id"))
    return jsonify(result)


@bp.post("/posts/<post_id>/comments/<comment_id>/likes")
def toggle_comment_like(post_id: str, comment_id: str):
    result = services.toggle_comment_like(get_db(), post_id, comment_id, _body().get("user_id"))
    return jsonify(result)
