"""
authx.directory.scim

SCIM request shapes used by this service.

Responsibilities:
- Build `attr eq "value"` filters joined by `and`.
- Describe replace-only PATCH operations.
- Small accessors over SCIM user documents.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
PATCH_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
SCIM_CONTENT_TYPE = "application/scim+json"

# SCIM user resource as returned by the directory.
User = dict[str, Any]


@dataclass(frozen=True, slots=True)
class PatchOperation:
    path: str
    value: Any
    op: str = "replace"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "path": self.path, "value": self.value}


def replace(path: str, value: Any) -> PatchOperation:
    return PatchOperation(path=path, value=value)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def eq(attribute: str, value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"{attribute} eq {_quote(str(value))}"


def all_of(clauses: Iterable[str]) -> str:
    return " and ".join(clauses)


def resources(listing: dict[str, Any]) -> list[User]:
    # Some directories omit `Resources` entirely on an empty result.
    return list(listing.get("Resources") or [])


def version(user: User) -> str | None:
    return (user.get("meta") or {}).get("version")
