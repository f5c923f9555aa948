"""Tracking of multisig approvals for upgrade proposals."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

import aiosqlite

logger = logging.getLogger(__name__)


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class MultisigCoordinator:
    """Coordinates multisig approvals and tracks voting."""

    def __init__(self, db_pool: aiosqlite.Connection) -> None:
        self._db = db_pool

    async def request_signatures(self, proposal_id: uuid.UUID, members: Iterable[str]) -> None:
        """Ask the multisig members to sign off on a proposal."""
        members = list(members)
        logger.info(
            "Requesting signatures for proposal %s from %d members", proposal_id, len(members)
        )

    async def record_approval(self, proposal_id: uuid.UUID, approver: str) -> None:
        """Store an approval and bump the proposal's approval count."""
        await self._db.execute(
            "INSERT INTO approval_history (id, proposal_id, approver) VALUES (?, ?, ?)",
            (str(uuid.uuid4()), str(proposal_id), approver),
        )
        await self._db.execute(
            "UPDATE upgrade_proposals SET approval_count = approval_count + 1, updated_at = ? "
            "WHERE id = ?",
            (_now_text(), str(proposal_id)),
        )
        await self._db.commit()
        logger.info("Recorded approval from %s for proposal %s", approver, proposal_id)

    async def check_threshold(self, proposal_id: uuid.UUID, required_threshold: int) -> bool:
        """Whether the proposal has at least ``required_threshold`` approvals."""
        async with self._db.execute(
            "SELECT approval_count FROM upgrade_proposals WHERE id = ?", (str(proposal_id),)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise LookupError(f"no proposal {proposal_id}")
        return row[0] >= required_threshold