"""Records and request bodies handled by the backend."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping


def _format_timestamp(moment: datetime | None) -> str | None:
    """RFC 3339 in UTC with a ``Z`` suffix and only as many fraction digits as needed."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    if moment.microsecond == 0:
        spec = "seconds"
    elif moment.microsecond % 1000 == 0:
        spec = "milliseconds"
    else:
        spec = "microseconds"
    return moment.isoformat(timespec=spec).replace("+00:00", "Z")


def _mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError("request body must be a JSON object")
    return data


def _string_field(data: Mapping[str, Any], name: str) -> str:
    if name not in data:
        raise ValueError(f"missing field {name!r}")
    value = data[name]
    if not isinstance(value, str):
        raise ValueError(f"field {name!r} must be a string")
    return value


@dataclass
class Proposal:
    id: uuid.UUID
    proposer: str
    program: str
    new_buffer: str
    description: str
    status: str
    approval_count: int
    proposed_at: datetime
    timelock_until: datetime | None = None
    executed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "id": str(self.id),
            "proposer": self.proposer,
            "program": self.program,
            "new_buffer": self.new_buffer,
            "description": self.description,
            "status": self.status,
            "approval_count": self.approval_count,
            "proposed_at": _format_timestamp(self.proposed_at),
            "timelock_until": _format_timestamp(self.timelock_until),
            "executed_at": _format_timestamp(self.executed_at),
        }


@dataclass
class Approval:
    id: uuid.UUID
    proposal_id: uuid.UUID
    approver: str
    approved_at: datetime


@dataclass(frozen=True)
class ProposeRequest:
    new_program_buffer: str
    description: str

    @classmethod
    def from_dict(cls, data: Any) -> ProposeRequest:
        data = _mapping(data)
        return cls(
            new_program_buffer=_string_field(data, "new_program_buffer"),
            description=_string_field(data, "description"),
        )


@dataclass(frozen=True)
class ApproveRequest:
    approver_keypair_path: str

    @classmethod
    def from_dict(cls, data: Any) -> ApproveRequest:
        data = _mapping(data)
        return cls(approver_keypair_path=_string_field(data, "approver_keypair_path"))


@dataclass(frozen=True)
class ExecuteRequest:
    executor_keypair_path: str

    @classmethod
    def from_dict(cls, data: Any) -> ExecuteRequest:
        data = _mapping(data)
        return cls(executor_keypair_path=_string_field(data, "executor_keypair_path"))


@dataclass
class MigrationJob:
    id: uuid.UUID
    proposal_id: uuid.UUID
    total_accounts: int
    migrated_accounts: int
    started_at: datetime
    finished_at: datetime | None = None


@dataclass(frozen=True)
class StartMigrationRequest:
    proposal_id: str
    account_addresses: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Any) -> StartMigrationRequest:
        data = _mapping(data)
        if "account_addresses" not in data:
            raise ValueError("missing field 'account_addresses'")
        addresses = data["account_addresses"]
        if not isinstance(addresses, list) or not all(isinstance(a, str) for a in addresses):
            raise ValueError("field 'account_addresses' must be a list of strings")
        return cls(
            proposal_id=_string_field(data, "proposal_id"),
            account_addresses=tuple(addresses),
        )


@dataclass(frozen=True)
class MigrationProgress:
    job_id: uuid.UUID
    total: int
    completed: int
    percentage: float
    status: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "job_id": str(self.job_id),
            "total": self.total,
            "completed": self.completed,
            "percentage": self.percentage,
            "status": self.status,
        }