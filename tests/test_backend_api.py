import sqlite3

from backend.migrate import apply_migrations

from factories import MEDIA_PAYLOAD

AUTHOR = {"id": "u1", "username": "alice"}


def create_media(client, media_id="m1", **overrides):
    resp = client.post("/api/media", json={**MEDIA_PAYLOAD, "id": media_id, **overrides})
    assert resp.status_code == 201, resp.json
    return resp.json


def create_post(client, post_id="post-1", author=AUTHOR, **overrides):
    body = {"id": post_id, "title": "Sci-fi picks", "content": "What should I watch?",
            "category": "movies", "author": author, **overrides}
    resp = client.post("/api/forum/posts", json=body)
    assert resp.status_code == 201, resp.json
    return resp.json


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json == {"status": "healthy"}


def test_unknown_route_is_json_error(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json["ok"] is False


def test_media_create_and_list(client):
    created = create_media(client)
    assert created["id"] == "m1"
    assert created["cast"][0]["character"] == "Neo"

    listed = client.get("/api/media").json
    assert [item["id"] for item in listed] == ["m1"]


def test_media_validation_error(client):
    resp = client.post("/api/media", json={"title": "No type"})
    assert resp.status_code == 400
    assert resp.json["ok"] is False
    assert resp.json["error"]


def test_rating_recomputation(client):
    create_media(client)
    for user_id, value in (("a", 4), ("b", 5), ("c", 3)):
        resp = client.post("/api/media/m1/ratings", json={"user_id": user_id, "rating": value})
    assert resp.json == {"rating": 4.0, "rating_count": 3}

    resp = client.post("/api/media/m1/ratings", json={"user_id": "a", "rating": 2})
    assert resp.json == {"rating": 3.3, "rating_count": 3}

    item = client.get("/api/media").json[0]
    assert item["rating"] == 3.3
    assert item["rating_count"] == 3

    ratings = client.get("/api/users/a/ratings").json
    assert [(r["media_id"], r["rating"]) for r in ratings] == [("m1", 2.0)]


def test_rating_is_clamped_and_mirrored_into_list(client):
    create_media(client)
    client.post("/api/users/u1/list", json={"media_id": "m1"})
    resp = client.post("/api/media/m1/ratings", json={"user_id": "u1", "rating": 9})
    assert resp.json == {"rating": 5.0, "rating_count": 1}
    assert client.get("/api/users/u1/list").json[0]["rating"] == 5.0


def test_rating_unknown_media(client):
    resp = client.post("/api/media/ghost/ratings", json={"user_id": "u1", "rating": 4})
    assert resp.status_code == 404
    assert resp.json == {"ok": False, "error": "Media item not found"}


def test_rating_must_be_a_json_number(client):
    create_media(client)
    resp = client.post("/api/media/m1/ratings", json={"user_id": "u1", "rating": "4"})
    assert resp.status_code == 400
    assert resp.json == {"ok": False, "error": "rating must be a number"}
    assert client.get("/api/users/u1/ratings").json == []


def test_post_keeps_client_id_and_nests_comments(client):
    post = create_post(client)
    assert post["id"] == "post-1"
    assert post["comment_count"] == 0
    assert post["author"]["username"] == "alice"

    resp = client.post("/api/forum/posts/post-1/comments",
                       json={"id": "c1", "content": "Arrival!", "author": {"id": "u2"}})
    assert resp.status_code == 201
    assert resp.json["id"] == "c1"

    resp = client.post("/api/forum/posts/post-1/comments/c1/replies",
                       json={"id": "c1-1", "content": "Seconded", "author": AUTHOR})
    assert resp.status_code == 201
    assert resp.json["parent_id"] == "c1"

    client.post("/api/forum/posts/post-1/comments/c1-1/replies",
                json={"content": "Deep reply", "author": AUTHOR})

    post = client.get("/api/forum/posts/post-1").json
    assert post["comment_count"] == 3
    assert post["comments"][0]["id"] == "c1"
    assert post["comments"][0]["replies"][0]["id"] == "c1-1"
    assert len(post["comments"][0]["replies"][0]["replies"]) == 1


def test_reply_to_comment_of_another_post_is_not_found(client):
    create_post(client, "post-1")
    create_post(client, "post-2")
    client.post("/api/forum/posts/post-1/comments", json={"id": "c1", "content": "x", "author": AUTHOR})

    resp = client.post("/api/forum/posts/post-2/comments/c1/replies",
                       json={"content": "wrong thread", "author": AUTHOR})
    assert resp.status_code == 404


def test_comment_on_missing_post(client):
    resp = client.post("/api/forum/posts/ghost/comments", json={"content": "hi", "author": AUTHOR})
    assert resp.status_code == 404


def test_empty_comment_rejected(client):
    create_post(client)
    resp = client.post("/api/forum/posts/post-1/comments", json={"content": "  ", "author": AUTHOR})
    assert resp.status_code == 400


def test_post_like_toggle(client):
    create_post(client)
    first = client.post("/api/forum/posts/post-1/likes", json={"user_id": "u2"}).json
    assert first == {"liked": True, "liked_by": ["u2"], "likes_count": 1}

    second = client.post("/api/forum/posts/post-1/likes", json={"user_id": "u2"}).json
    assert second == {"liked": False, "liked_by": [], "likes_count": 0}


def test_comment_like_toggle(client):
    create_post(client)
    client.post("/api/forum/posts/post-1/comments", json={"id": "c1", "content": "x", "author": AUTHOR})
    resp = client.post("/api/forum/posts/post-1/comments/c1/likes", json={"user_id": "u3"})
    assert resp.json["likes_count"] == 1

    post = client.get("/api/forum/posts/post-1").json
    assert post["comments"][0]["liked_by"] == ["u3"]


def test_posts_listed_newest_first_with_media(client):
    create_media(client)
    create_post(client, "post-1")
    create_post(client, "post-2", media_ref="m1")

    posts = client.get("/api/forum/posts").json
    assert [p["id"] for p in posts] == ["post-2", "post-1"]
    assert posts[0]["media"]["title"] == "The Matrix"
    assert posts[1]["media"] is None


def test_author_falls_back_to_placeholder(client):
    create_post(client, author={"id": "abcdef99"})
    post = client.get("/api/forum/posts/post-1").json
    assert post["author"]["username"] == "user-abcdef"
    assert post["author"]["is_placeholder"] is True


def test_profile_username_wins_over_snapshot(client):
    create_post(client)
    client.put("/api/users/u1/profile", json={"username": "alice-renamed"})
    post = client.get("/api/forum/posts/post-1").json
    assert post["author"]["username"] == "alice-renamed"


def test_list_crud_and_duplicate(client):
    create_media(client)
    resp = client.post("/api/users/u1/list", json={"id": "e1", "media_id": "m1"})
    assert resp.status_code == 201
    assert resp.json["status"] == "plan_to_watch"
    assert resp.json["is_public"] is True

    dup = client.post("/api/users/u1/list", json={"media_id": "m1"})
    assert dup.status_code == 409
    assert len(client.get("/api/users/u1/list").json) == 1

    updated = client.put("/api/users/u1/list/m1", json={"status": "watching", "progress": 3})
    assert updated.json["status"] == "watching"
    assert updated.json["progress"] == 3
    assert updated.json["id"] == "e1"

    bad = client.put("/api/users/u1/list/m1", json={"status": "binging"})
    assert bad.status_code == 400

    assert client.delete("/api/users/u1/list/m1").json == {"ok": True}
    assert client.get("/api/users/u1/list").json == []
    assert client.delete("/api/users/u1/list/m1").status_code == 404


def test_list_entry_for_unknown_media(client):
    resp = client.post("/api/users/u1/list", json={"media_id": "ghost"})
    assert resp.status_code == 404


def test_share_slug_assigned_once(client):
    assert client.get("/api/users/u1/profile").json is None

    first = client.put("/api/users/u1/profile", json={"username": "Anime Fan", "bio": "hi"}).json
    assert first["share_slug"].startswith("anime-fan-")

    second = client.put("/api/users/u1/profile", json={"username": "Someone Else", "share_slug": "mine"}).json
    assert second["share_slug"] == first["share_slug"]
    assert second["username"] == "Someone Else"
    assert second["bio"] == "hi"


def test_public_profile_lists_only_public_entries(client):
    create_media(client, "m1")
    create_media(client, "m2", title="Interstellar")
    client.post("/api/users/u1/list", json={"media_id": "m1"})
    client.post("/api/users/u1/list", json={"media_id": "m2", "is_public": False})
    slug = client.put("/api/users/u1/profile", json={"username": "alice"}).json["share_slug"]

    data = client.get(f"/api/public-profiles/{slug}").json
    assert data["profile"]["username"] == "alice"
    assert [item["media"]["id"] for item in data["entries"]] == ["m1"]
    assert set(data["entries"][0]["media"]) == {"id", "title", "image_url", "type", "rating", "rating_count"}

    assert client.get("/api/public-profiles/nobody").status_code == 404


def test_migrations_apply_once(tmp_path):
    conn = sqlite3.connect(tmp_path / "m.db")
    try:
        assert apply_migrations(conn) == ["001_initial_schema.sql"]
        assert apply_migrations(conn) == []
    finally:
        conn.close()
