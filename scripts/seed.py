#!/usr/bin/env python3
"""
Seed the starter catalog and forum threads from seed_data.yaml.

Each table is only filled when it is empty, so running the script twice is
harmless. Profiles for the seed users are created through the same code path
as the API, which also gives them share slugs.
"""
import sys
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from backend import services
from backend.db import connect
from backend.migrate import apply_migrations
from backend.models import dump_json
from forumcore.config import load_config, resolve_database_path, setup_logging
from forumcore.models import format_timestamp, parse_timestamp

SEED_FILE = Path(__file__).parent / "seed_data.yaml"
SEED_CREATED_AT = "2023-01-01T00:00:00+00:00"


def load_seed(path: Path = SEED_FILE) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _is_empty(conn, table: str) -> bool:
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] == 0


def seed_media(conn, items: list[dict]) -> int:
    if not _is_empty(conn, "media_items"):
        return 0
    for item in items:
        services.create_media(conn, item)
    conn.execute("UPDATE media_items SET created_at = ?", (SEED_CREATED_AT,))
    conn.commit()
    return len(items)


def _insert_comments(conn, post_id: str, nodes: list[dict], authors: dict, parent_id=None) -> int:
    count = 0
    for node in nodes:
        author_id = node["author_id"]
        conn.execute(
            """
            INSERT INTO comments (id, post_id, parent_id, author_id, content, liked_by_json, author_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                node["id"],
                post_id,
                parent_id,
                author_id,
                node["content"],
                dump_json(sorted(node.get("liked_by") or [])),
                dump_json({"id": author_id, "username": authors.get(author_id), "avatar_url": None}),
                format_timestamp(parse_timestamp(node["created_at"])),
            ),
        )
        count += 1 + _insert_comments(conn, post_id, node.get("replies") or [], authors, node["id"])
    return count


def seed_forum(conn, posts: list[dict], authors: dict) -> tuple[int, int]:
    if not _is_empty(conn, "forum_posts"):
        return 0, 0
    comment_count = 0
    for post in posts:
        created_at = format_timestamp(parse_timestamp(post["created_at"]))
        author_id = post["author_id"]
        conn.execute(
            """
            INSERT INTO forum_posts (
                id, author_id, title, content, media_id, category, tags_json,
                liked_by_json, author_json, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post["id"],
                author_id,
                post["title"],
                post["content"],
                post.get("media_id"),
                post["category"],
                dump_json(post.get("tags") or []),
                dump_json(sorted(post.get("liked_by") or [])),
                dump_json({"id": author_id, "username": authors.get(author_id), "avatar_url": None}),
                created_at,
                created_at,
            ),
        )
        comment_count += _insert_comments(conn, post["id"], post.get("comments") or [], authors)
    conn.commit()
    return len(posts), comment_count


def seed_profiles(conn, users: list[dict]) -> int:
    created = 0
    for user in users:
        if services.get_profile(conn, user["id"]) is None:
            services.upsert_profile(conn, user["id"], {"username": user["username"]})
            created += 1
    return created


def main(argv: list[str]) -> int:
    config = load_config(argv[1] if len(argv) > 1 else None)
    setup_logging(config, "backend.migrate")
    db_path = resolve_database_path(config)
    seed = load_seed()

    print("=" * 60)
    print("Seeding media forum")
    print("=" * 60)
    print(f"\nDatabase: {db_path}\n")

    conn = connect(db_path)
    try:
        apply_migrations(conn)
        authors = {user["id"]: user["username"] for user in seed.get("users", [])}
        media = seed_media(conn, seed.get("media", []))
        posts, comments = seed_forum(conn, seed.get("posts", []), authors)
        profiles = seed_profiles(conn, seed.get("users", []))
    finally:
        conn.close()

    print(f"[OK] {media} media items, {posts} posts, {comments} comments, {profiles} profiles")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
