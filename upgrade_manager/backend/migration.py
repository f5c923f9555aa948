"""Background migration of accounts to a new layout version."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

import aiosqlite

from upgrade_manager.chain.state import Pubkey

logger = logging.getLogger(__name__)

Migrator = Callable[[Pubkey], Awaitable[None]]

_OLD_VERSION = 1
_NEW_VERSION = 2
_RATE_LIMIT = 0.1


def _now_text() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


async def _migrate_single_account(account: Pubkey) -> None:
    logger.debug("Migrating account %s", account)


class MigrationManager:
    """Runs account migration jobs in the background and tracks their progress."""

    def __init__(
        self,
        db_pool: aiosqlite.Connection,
        migrator: Migrator | None = None,
        rate_limit: float = _RATE_LIMIT,
    ) -> None:
        self._db = db_pool
        self._migrate = migrator or _migrate_single_account
        self._rate_limit = rate_limit
        self._tasks: set[asyncio.Task[None]] = set()

    async def start_migration(
        self, proposal_id: uuid.UUID, account_addresses: Iterable[str]
    ) -> uuid.UUID:
        """Record a job for the accounts and start migrating them; return the job id."""
        accounts = list(account_addresses)
        job_id = uuid.uuid4()
        await self._db.execute(
            "INSERT INTO migration_jobs (id, proposal_id, total_accounts, migrated_accounts) "
            "VALUES (?, ?, ?, 0)",
            (str(job_id), str(proposal_id), len(accounts)),
        )
        await self._db.commit()
        logger.info("Started migration job %s for %d accounts", job_id, len(accounts))

        task = asyncio.create_task(self._run_guarded(job_id, accounts))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    async def join(self) -> None:
        """Wait until every started job has finished or failed."""
        while self._tasks:
            pending = list(self._tasks)
            await asyncio.gather(*pending)
            self._tasks.difference_update(pending)

    async def get_progress(self, job_id: uuid.UUID) -> tuple[int, int]:
        """The job's total and migrated account counts."""
        async with self._db.execute(
            "SELECT total_accounts, migrated_accounts FROM migration_jobs WHERE id = ?",
            (str(job_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise LookupError(f"no migration job {job_id}")
        return row[0], row[1]

    async def _run_guarded(self, job_id: uuid.UUID, accounts: list[str]) -> None:
        try:
            await self._run_migration(job_id, accounts)
        except Exception as exc:
            logger.error("Migration job %s failed: %s", job_id, exc)

    async def _run_migration(self, job_id: uuid.UUID, accounts: list[str]) -> None:
        for done, address in enumerate(accounts, start=1):
            account = Pubkey.from_base58(address)
            try:
                await self._migrate(account)
            except Exception as exc:
                await self._record(job_id, address, "failed", str(exc))
            else:
                await self._record(job_id, address, "success", None)

            await self._db.execute(
                "UPDATE migration_jobs SET migrated_accounts = ?, updated_at = ? WHERE id = ?",
                (done, _now_text(), str(job_id)),
            )
            await self._db.commit()
            await asyncio.sleep(self._rate_limit)

        await self._db.execute(
            "UPDATE migration_jobs SET finished_at = ? WHERE id = ?",
            (_now_text(), str(job_id)),
        )
        await self._db.commit()
        logger.info("Migration job %s completed", job_id)

    async def _record(
        self, job_id: uuid.UUID, address: str, status: str, error: str | None
    ) -> None:
        await self._db.execute(
            "INSERT INTO account_migrations (id, migration_job_id, account_address, "
            "old_version, new_version, status, error_message) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (str(uuid.uuid4()), str(job_id), address, _OLD_VERSION, _NEW_VERSION, status, error),
        )