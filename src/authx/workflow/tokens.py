"""
authx.workflow.tokens

Workflow token entries and their entitlement encoding.

Responsibilities:
- Define token kinds and the `WorkflowTokenEntry` value.
- Mint unguessable tokens (16 random bytes, hex encoded).
- Convert between entries and SCIM entitlement dicts.
"""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from authx.errors import InternalError

TOKEN_BYTES = 16


class WorkflowTokenKind(str, enum.Enum):
    # Values are the entitlement `type` stored in the directory.
    activation = "activation"
    password_reset = "resetPassword"


@dataclass(frozen=True, slots=True)
class WorkflowTokenEntry:
    kind: WorkflowTokenKind
    token: str
    consumed: bool = False
    created_at: int | None = None

    def matches(self, kind: WorkflowTokenKind, token: str) -> bool:
        return self.kind is kind and secrets.compare_digest(self.token.encode(), token.encode())

    def consume(self) -> WorkflowTokenEntry:
        return replace(self, consumed=True)

    def expired(self, *, now: float, ttl_seconds: int | None) -> bool:
        # Entries without a creation time never expire.
        if ttl_seconds is None or self.created_at is None:
            return False
        return now >= self.created_at + ttl_seconds

    def to_entitlement(self) -> dict[str, Any]:
        entitlement: dict[str, Any] = {
            "type": self.kind.value,
            "display": self.token,
            "value": "true" if self.consumed else "false",
        }
        if self.created_at is not None:
            entitlement["created"] = self.created_at
        return entitlement

    @classmethod
    def from_entitlement(cls, entitlement: dict[str, Any]) -> WorkflowTokenEntry | None:
        """Parse an entitlement; returns None for entitlements that are not workflow tokens."""
        try:
            kind = WorkflowTokenKind(entitlement.get("type"))
        except ValueError:
            return None
        token = entitlement.get("display")
        if not isinstance(token, str):
            return None
        created = entitlement.get("created")
        return cls(
            kind=kind,
            token=token,
            consumed=_truthy(entitlement.get("value")),
            created_at=_epoch(created) if created is not None else None,
        )


def new_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def _epoch(value: Any) -> int:
    # Written as epoch seconds; some directories hand it back as a string or ISO timestamp.
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            pass
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            pass
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp())
    raise InternalError("unreadable workflow token entry", detail=f"created={value!r}")


def _truthy(value: Any) -> bool:
    # Directories hand back either booleans or the strings "true"/"false".
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"
