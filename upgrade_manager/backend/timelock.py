"""Timelock periods on upgrade proposals."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

import aiosqlite

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 60.0


def _timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


class TimelockManager:
    """Manages timelock periods and reports when they run out."""

    def __init__(self, db_pool: aiosqlite.Connection, poll_interval: float = _POLL_INTERVAL) -> None:
        self._db = db_pool
        self._poll_interval = poll_interval

    async def start_monitoring(self) -> None:
        """Check for expired timelocks forever, once per poll interval."""
        logger.info("Starting timelock monitor")
        while True:
            await self.check_expired_timelocks()
            await asyncio.sleep(self._poll_interval)

    async def check_expired_timelocks(self) -> list[uuid.UUID]:
        """Report every active timelock that has run out; return their proposal ids."""
        now = _timestamp(datetime.now(timezone.utc))
        async with self._db.execute(
            "SELECT id, proposer, description FROM upgrade_proposals "
            "WHERE status = 'TimelockActive' AND timelock_until IS NOT NULL "
            "AND timelock_until <= ?",
            (now,),
        ) as cursor:
            rows = await cursor.fetchall()

        expired = []
        for row in rows:
            proposal_id = uuid.UUID(row[0])
            logger.info("Timelock expired for proposal %s: %s", proposal_id, row[2])
            await self._notify_timelock_expired(proposal_id)
            expired.append(proposal_id)
        return expired

    async def set_timelock(self, proposal_id: uuid.UUID, duration_hours: int) -> datetime:
        """Start a timelock of ``duration_hours`` on the proposal; return its expiry."""
        expiry = datetime.now(timezone.utc) + timedelta(hours=duration_hours)
        await self._db.execute(
            "UPDATE upgrade_proposals SET timelock_until = ?, status = 'TimelockActive', "
            "updated_at = ? WHERE id = ?",
            (_timestamp(expiry), _timestamp(datetime.now(timezone.utc)), str(proposal_id)),
        )
        await self._db.commit()
        logger.info("Set timelock for proposal %s until %s", proposal_id, expiry)
        return expiry

    async def _notify_timelock_expired(self, proposal_id: uuid.UUID) -> None:
        logger.info("Timelock expired notification sent for %s", proposal_id)