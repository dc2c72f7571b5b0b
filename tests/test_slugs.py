import re

import pytest

from forumcore.errors import ConflictError
from forumcore.slugs import build_profile_slug, generate_share_slug, slug_base


def test_slug_base_from_username():
    assert slug_base("Anime Fan_2024!", "abc") == "anime-fan-2024"


def test_slug_base_without_usable_username():
    assert slug_base(None, "1234567890") == "user-123456"
    assert slug_base("***", "abcdefgh") == "user-abcdef"


def test_slug_has_random_suffix():
    slug = build_profile_slug("SciFiLover", "2")
    assert re.fullmatch(r"scifilover-[a-z0-9]{4}", slug)


def test_generate_skips_taken_slugs():
    seen = []

    def is_taken(candidate):
        seen.append(candidate)
        return len(seen) < 3

    slug = generate_share_slug("bob", "u1", is_taken)
    assert len(seen) == 3
    assert slug == seen[-1]


def test_generate_gives_up():
    with pytest.raises(ConflictError):
        generate_share_slug("bob", "u1", lambda candidate: True, max_attempts=5)
