"""
authx.services.links

Activation/reset link helpers.
"""

from __future__ import annotations

from collections.abc import Sequence

from authx.directory.client import DirectoryClient
from authx.directory.scim import User, eq, resources
from authx.errors import InputError, NotFound


def allowed_base_url(candidate: str | None, allowed: Sequence[str], *, what: str) -> str:
    """Return `candidate` if allow-listed (first allowed URL when omitted)."""
    if not allowed:
        raise InputError(f"no {what} URL is configured")
    if candidate is None:
        return allowed[0]
    if candidate not in allowed:
        raise InputError(f"invalid {what} URL")
    return candidate


def build_link(base_url: str, token: str) -> str:
    return f"{base_url}{token}"


async def find_by_user_name(directory: DirectoryClient, user_name: str) -> User:
    listing = await directory.list_users(eq("userName", user_name))
    users = resources(listing)
    if not users:
        raise NotFound("no such user found")
    return users[0]
