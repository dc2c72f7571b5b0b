from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

from forumcore.errors import ForumError, TransportError, error_for_status

logger = logging.getLogger("ForumApiClient")


class ForumApiClient:
    """Thin requests wrapper around the persistence API; errors map onto forumcore.errors."""

    def __init__(self, base_url: str, timeout: float = 20, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict) -> ForumApiClient:
        api = config.get("api", {})
        return cls(api.get("base_url", "http://127.0.0.1:5000/api"), timeout=api.get("timeout", 20))

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning(f"{method} {url} failed: {exc}")
            raise TransportError(f"Could not reach the API: {exc}") from exc

        if not r.ok:
            try:
                body = r.json()
            except ValueError:
                body = None
            message = body.get("error") if isinstance(body, dict) and body.get("error") else (r.text or r.reason)
            logger.info(f"{method} {url} -> {r.status_code}: {message}")
            raise error_for_status(r.status_code, message, body)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise ForumError(f"Invalid JSON from {method} {path}") from exc

    # ----- catalog -----
    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def list_media(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/media")

    def create_media(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/media", payload)

    def rate_media(self, media_id: str, user_id: str, rating: float) -> Dict[str, Any]:
        return self._request("POST", f"/media/{media_id}/ratings", {"user_id": user_id, "rating": rating})

    # ----- forum -----
    def list_posts(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/forum/posts")

    def get_post(self, post_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/forum/posts/{post_id}")

    def create_post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/forum/posts", payload)

    def add_comment(self, post_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/forum/posts/{post_id}/comments", payload)

    def add_reply(self, post_id: str, comment_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/forum/posts/{post_id}/comments/{comment_id}/replies", payload)

    def toggle_post_like(self, post_id: str, user_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/forum/posts/{post_id}/likes", {"user_id": user_id})

    def toggle_comment_like(self, post_id: str, comment_id: str, user_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/forum/posts/{post_id}/comments/{comment_id}/likes", {"user_id": user_id})

    # ----- users -----
    def get_list(self, user_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/users/{user_id}/list")

    def add_list_entry(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/users/{user_id}/list", payload)

    def update_list_entry(self, user_id: str, media_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/users/{user_id}/list/{media_id}", changes)

    def remove_list_entry(self, user_id: str, media_id: str) -> None:
        self._request("DELETE", f"/users/{user_id}/list/{media_id}")

    def get_ratings(self, user_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/users/{user_id}/ratings")

    def get_profile(self, user_id: str) -> Dict[str, Any] | None:
        return self._request("GET", f"/users/{user_id}/profile")

    def update_profile(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/users/{user_id}/profile", payload)

    def get_public_profile(self, slug: str) -> Dict[str, Any]:
        return self._request("GET", f"/public-profiles/{slug}")
