"""Share slugs: the stable public identifier of a user's profile page."""
from __future__ import annotations

import re
import secrets
import string
from typing import Callable

from .errors import ConflictError

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 4

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slug_base(username: str | None, user_id: str) -> str:
    base = _NON_ALNUM.sub("-", (username or "").lower()).strip("-")
    if not base:
        base = f"user-{str(user_id)[:6]}"
    return base


def build_profile_slug(username: str | None, user_id: str) -> str:
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{slug_base(username, user_id)}-{suffix}"


def generate_share_slug(
    username: str | None,
    user_id: str,
    is_taken: Callable[[str], bool],
    max_attempts: int = 25,
) -> str:
    """Draw slugs until `is_taken` reports a free one."""
    for _ in range(max_attempts):
        candidate = build_profile_slug(username, user_id)
        if not is_taken(candidate):
            return candidate
    raise ConflictError(f"could not find a free share slug after {max_attempts} attempts")
