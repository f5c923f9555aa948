"""HTTP handlers of the upgrade manager."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from upgrade_manager.backend.models import (
    ApproveRequest,
    ExecuteRequest,
    MigrationProgress,
    Proposal,
    ProposeRequest,
    StartMigrationRequest,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "upgrade-manager-backend"
SERVICE_VERSION = "0.1.0"

_APPROVAL_THRESHOLD = 3
_TIMELOCK_HOURS = 48
_DEFAULT_PROPOSER = "system"
_DEFAULT_PROGRAM = "program_id"
_APPROVER = "approver_pubkey"

_PROPOSAL_COLUMNS = (
    "id, proposer, program, new_buffer, description, status, "
    "approval_count, proposed_at, timelock_until, executed_at"
)


def _services(request: Request) -> Any:
    return request.app.state.services


def _parse_time(text: str | None) -> datetime | None:
    if text is None:
        return None
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _proposal_from_row(row: Any) -> Proposal:
    return Proposal(
        id=uuid.UUID(row[0]),
        proposer=row[1],
        program=row[2],
        new_buffer=row[3],
        description=row[4],
        status=row[5],
        approval_count=row[6],
        proposed_at=_parse_time(row[7]),
        timelock_until=_parse_time(row[8]),
        executed_at=_parse_time(row[9]),
    )


def _path_id(request: Request) -> uuid.UUID:
    try:
        return uuid.UUID(request.path_params["id"])
    except ValueError:
        raise HTTPException(status_code=400) from None


async def _body(request: Request, model: Any) -> Any:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400) from None
    try:
        return model.from_dict(data)
    except ValueError:
        raise HTTPException(status_code=422) from None


async def _set_status(request: Request, sql: str, params: tuple) -> None:
    db = _services(request).db_pool
    try:
        await db.execute(sql, params)
        await db.commit()
    except Exception:
        raise HTTPException(status_code=500) from None


async def health(request: Request) -> JSONResponse:
    """Liveness report."""
    return JSONResponse(
        {"status": "healthy", "service": SERVICE_NAME, "version": SERVICE_VERSION}
    )


async def list_proposals(request: Request) -> JSONResponse:
    """Every upgrade proposal, newest first."""
    db = _services(request).db_pool
    try:
        async with db.execute(
            f"SELECT {_PROPOSAL_COLUMNS} FROM upgrade_proposals ORDER BY proposed_at DESC"
        ) as cursor:
            rows = await cursor.fetchall()
        proposals = [_proposal_from_row(row) for row in rows]
    except Exception as exc:
        logger.error("Failed to fetch proposals: %s", exc)
        raise HTTPException(status_code=500) from None
    return JSONResponse({"proposals": [proposal.to_dict() for proposal in proposals]})


async def get_proposal(request: Request) -> JSONResponse:
    """One proposal by id."""
    proposal_id = _path_id(request)
    db = _services(request).db_pool
    try:
        async with db.execute(
            f"SELECT {_PROPOSAL_COLUMNS} FROM upgrade_proposals WHERE id = ?",
            (str(proposal_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise LookupError(proposal_id)
        proposal = _proposal_from_row(row)
    except Exception:
        raise HTTPException(status_code=404) from None
    return JSONResponse(proposal.to_dict())


async def propose_upgrade(request: Request) -> JSONResponse:
    """Create a new upgrade proposal."""
    body: ProposeRequest = await _body(request, ProposeRequest)
    proposal_id = uuid.uuid4()
    db = _services(request).db_pool
    try:
        await db.execute(
            "INSERT INTO upgrade_proposals "
            "(id, proposer, program, new_buffer, description, status, approval_count) "
            "VALUES (?, ?, ?, ?, ?, 'Proposed', 0)",
            (
                str(proposal_id),
                _DEFAULT_PROPOSER,
                _DEFAULT_PROGRAM,
                body.new_program_buffer,
                body.description,
            ),
        )
        await db.commit()
    except Exception as exc:
        logger.error("Failed to store proposal: %s", exc)
        raise HTTPException(status_code=500) from None
    return JSONResponse({"proposal_id": str(proposal_id), "status": "created"})


async def approve_upgrade(request: Request) -> JSONResponse:
    """Record an approval and start the timelock once the threshold is met."""
    proposal_id = _path_id(request)
    await _body(request, ApproveRequest)
    services = _services(request)
    try:
        await services.multisig_coordinator.record_approval(proposal_id, _APPROVER)
        threshold_met = await services.multisig_coordinator.check_threshold(
            proposal_id, _APPROVAL_THRESHOLD
        )
        if threshold_met:
            await services.timelock_manager.set_timelock(proposal_id, _TIMELOCK_HOURS)
    except Exception:
        raise HTTPException(status_code=500) from None
    return JSONResponse(
        {"proposal_id": str(proposal_id), "status": "approved", "threshold_met": threshold_met}
    )


async def execute_upgrade(request: Request) -> JSONResponse:
    """Mark a proposal as executed."""
    proposal_id = _path_id(request)
    await _body(request, ExecuteRequest)
    now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
    await _set_status(
        request,
        "UPDATE upgrade_proposals SET status = 'Executed', executed_at = ? WHERE id = ?",
        (now, str(proposal_id)),
    )
    return JSONResponse({"proposal_id": str(proposal_id), "status": "executed"})


async def cancel_upgrade(request: Request) -> JSONResponse:
    """Mark a proposal as cancelled."""
    proposal_id = _path_id(request)
    await _set_status(
        request,
        "UPDATE upgrade_proposals SET status = 'Cancelled' WHERE id = ?",
        (str(proposal_id),),
    )
    return JSONResponse({"proposal_id": str(proposal_id), "status": "cancelled"})


async def start_migration(request: Request) -> JSONResponse:
    """Start migrating the given accounts for a proposal."""
    body: StartMigrationRequest = await _body(request, StartMigrationRequest)
    try:
        proposal_id = uuid.UUID(body.proposal_id)
    except ValueError:
        raise HTTPException(status_code=400) from None
    try:
        job_id = await _services(request).migration_manager.start_migration(
            proposal_id, body.account_addresses
        )
    except Exception as exc:
        logger.error("Failed to start migration: %s", exc)
        raise HTTPException(status_code=500) from None
    return JSONResponse({"job_id": str(job_id), "status": "started"})


async def get_progress(request: Request) -> JSONResponse:
    """Progress of a migration job."""
    job_id = _path_id(request)
    try:
        total, completed = await _services(request).migration_manager.get_progress(job_id)
    except Exception:
        raise HTTPException(status_code=404) from None
    percentage = completed / total * 100.0 if total > 0 else 0.0
    status = "completed" if completed >= total else "in_progress"
    progress = MigrationProgress(
        job_id=job_id,
        total=total,
        completed=completed,
        percentage=percentage,
        status=status,
    )
    return JSONResponse(progress.to_dict())