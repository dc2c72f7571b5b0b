from flask import Blueprint, jsonify, request

from .. import services
from ..db import get_db

bp = Blueprint("users", __name__, url_prefix="/api")


@bp.get("/users/<user_id>/list")
def get_list(user_id: str):
    entries = services.list_entries(get_db(), user_id)
    return jsonify([entry.to_dict() for entry in entries])


@bp.post("/users/<user_id>/list")
def add_list_entry(user_id: str):
    payload = request.get_json(force=True, silent=True) or {}
    entry = services.add_list_entry(get_db(), user_id, payload)
    return jsonify(entry.to_dict()), 201


@bp.put("/users/<user_id>/list/<media_id>")
def update_list_entry(user_id: str, media_id: str):
    payload = request.get_json(force=True, silent=True) or {}
    entry = services.update_list_entry(get_db(), user_id, media_id, payload)
    return jsonify(entry.to_dict())


@bp.delete("/users/<user_id>/list/<media_id>")
def remove_list_entry(user_id: str, media_id: str):
    services.remove_list_entry(get_db(), user_id, media_id)
    return jsonify({"ok": True})


@bp.get("/users/<user_id>/ratings")
def get_ratings(user_id: str):
    ratings = services.list_user_ratings(get_db(), user_id)
    return jsonify([rating.to_dict() for rating in ratings])


@bp.get("/users/<user_id>/profile")
def get_profile(user_id: str):
    # no profile yet is not an error; the client shows defaults
    profile = services.get_profile(get_db(), user_id)
    return jsonify(profile.to_dict() if profile else None)


@bp.put("/users/<user_id>/profile")
def update_profile(user_id: str):
    payload = request.get_json(force=True, silent=True) or {}
    profile = services.upsert_profile(get_db(), user_id, payload)
    return jsonify(profile.to_dict())


@bp.get("/public-profiles/<slug>")
def public_profile(slug: str):
    return jsonify(services.public_profile(get_db(), slug))
