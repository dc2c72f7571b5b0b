from flask import Blueprint, jsonify, request

from .. import services
from ..db import get_db, query

bp = Blueprint("catalog", __name__, url_prefix="/api")


@bp.get("/health")
def health():
    """Readiness check: runs a trivial query so a broken database shows up as 503."""
    try:
        query("SELECT 1")
    except Exception as exc:
        return jsonify({"status": "unhealthy", "error": str(exc)}), 503
    return jsonify({"status": "healthy"})


@bp.get("/media")
def list_media():
    items = services.list_media(get_db())
    return jsonify([item.to_dict() for item in items])


@bp.post("/media")
def create_media():
    payload = request.get_json(force=True, silent=True) or {}
    item = services.create_media(get_db(), payload)
    return jsonify(item.to_dict()), 201


@bp.post("/media/<media_id>/ratings")
def rate_media(media_id: str):
    payload = request.get_json(force=True, silent=True) or {}
    rating, rating_count = services.upsert_rating(
        get_db(), media_id, payload.get("user_id"), payload.get("rating")
    )
    return jsonify({"rating": rating, "rating_count": rating_count})
