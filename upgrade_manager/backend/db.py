"""Database connection and schema."""

from __future__ import annotations

import aiosqlite

_MEMORY = ":memory:"
_SCHEME = "sqlite"

_NOW = "(strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS upgrade_proposals (
    id TEXT PRIMARY KEY,
    proposer TEXT NOT NULL,
    program TEXT NOT NULL,
    new_buffer TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Proposed',
    approval_count INTEGER NOT NULL DEFAULT 0,
    proposed_at TEXT NOT NULL DEFAULT {_NOW},
    timelock_until TEXT,
    executed_at TEXT,
    updated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS approval_history (
    id TEXT PRIMARY KEY,
    proposal_id TEXT NOT NULL,
    approver TEXT NOT NULL,
    approved_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS migration_jobs (
    id TEXT PRIMARY KEY,
    proposal_id TEXT NOT NULL,
    total_accounts INTEGER NOT NULL,
    migrated_accounts INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL DEFAULT {_NOW},
    updated_at TEXT NOT NULL DEFAULT {_NOW},
    finished_at TEXT
);

CREATE TABLE IF NOT EXISTS account_migrations (
    id TEXT PRIMARY KEY,
    migration_job_id TEXT NOT NULL,
    account_address TEXT NOT NULL,
    old_version INTEGER NOT NULL,
    new_version INTEGER NOT NULL,
    status TEXT NOT NULL,
    error_message TEXT,
    migrated_at TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS rollback_events (
    id TEXT PRIMARY KEY,
    proposal_id TEXT NOT NULL,
    reason TEXT NOT NULL,
    executed_by TEXT NOT NULL,
    executed_at TEXT NOT NULL DEFAULT {_NOW}
);
"""


def _sqlite_path(database_url: str) -> str:
    if "://" not in database_url and not database_url.startswith(f"{_SCHEME}:"):
        return database_url or _MEMORY
    scheme, _, rest = database_url.partition(":")
    if scheme != _SCHEME:
        raise ValueError(f"unsupported database URL scheme {scheme!r}")
    if rest.startswith("//"):
        rest = rest[2:]
    rest, _, _ = rest.partition("?")
    return rest or _MEMORY


async def init_pool(database_url: str) -> aiosqlite.Connection:
    """Open the database named by ``database_url`` (a SQLite URL or file path)."""
    connection = await aiosqlite.connect(_sqlite_path(database_url))
    connection.row_factory = aiosqlite.Row
    return connection


async def run_migrations(pool: aiosqlite.Connection) -> None:
    """Create every table the backend uses, if it does not exist yet."""
    await pool.executescript(_SCHEMA)
    await pool.commit()