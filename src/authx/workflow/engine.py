"""
authx.workflow.engine

Workflow token lifecycle: generate -> resolve -> consume.

Responsibilities:
- Mint tokens and attach them to users.
- Resolve a presented token to the single user holding it.
- Consume a token together with the caller's effect (activation, password change).
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence

from authx.directory.scim import PatchOperation, User
from authx.errors import InvalidToken
from authx.observability.logging import get_logger
from authx.workflow.repository import WorkflowTokenRepository, pending_entry
from authx.workflow.tokens import WorkflowTokenEntry, WorkflowTokenKind, new_token

log = get_logger(__name__)

_TOKEN_RE = re.compile(r"^[0-9a-f]{32}$")


class WorkflowTokenEngine:
    """
    Stateless apart from its collaborators; safe to share across requests.

    With `ttl_seconds` set, new entries record their creation time and older ones
    stop resolving once the TTL elapses. `None` keeps tokens valid until consumed.
    """

    def __init__(
        self,
        *,
        repository: WorkflowTokenRepository,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repository
        self._ttl = ttl_seconds
        self._clock = clock

    def mint(self, kind: WorkflowTokenKind) -> WorkflowTokenEntry:
        created_at = int(self._clock()) if self._ttl is not None else None
        return WorkflowTokenEntry(kind=kind, token=new_token(), created_at=created_at)

    async def generate(self, user_id: str, kind: WorkflowTokenKind) -> str:
        entry = self.mint(kind)
        await self._repo.append(user_id, entry)
        log.info("workflow_token.generated", user_id=user_id, kind=kind.value)
        return entry.token

    async def resolve(self, kind: WorkflowTokenKind, token: str) -> User:
        self._check_format(kind, token)
        users = [
            u
            for u in await self._repo.find_pending(kind, token)
            if self._usable(pending_entry(u, kind, token))
        ]
        if not users:
            raise InvalidToken(f"invalid {kind.value} token")
        if len(users) > 1:
            # At most one holder per token; keep going with a deterministic pick.
            log.warning(
                "workflow_token.policy_violation",
                kind=kind.value,
                matches=len(users),
                user_ids=[u.get("id") for u in users],
            )
        return users[0]

    async def consume(
        self,
        kind: WorkflowTokenKind,
        token: str,
        effect: Sequence[PatchOperation] = (),
    ) -> User:
        user = await self.resolve(kind, token)
        updated = await self._repo.consume(
            str(user["id"]), kind, token, effect, usable=self._usable
        )
        log.info("workflow_token.consumed", user_id=user["id"], kind=kind.value)
        return updated

    def _usable(self, entry: WorkflowTokenEntry | None) -> bool:
        return entry is not None and not entry.expired(now=self._clock(), ttl_seconds=self._ttl)

    @staticmethod
    def _check_format(kind: WorkflowTokenKind, token: str) -> None:
        # Rejects garbage before it reaches the directory filter.
        if not isinstance(token, str) or not _TOKEN_RE.match(token):
            raise InvalidToken(f"invalid {kind.value} token", detail="malformed token")
