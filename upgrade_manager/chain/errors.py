"""Error codes raised by the upgrade program."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Every failure the upgrade program can report, with its message."""

    UNAUTHORIZED_SIGNER = "Unauthorized signer - not a multisig member"
    INSUFFICIENT_APPROVALS = "Insufficient approvals - threshold not met"
    TIMELOCK_NOT_EXPIRED = "Timelock not expired - must wait 48 hours"
    INVALID_PROPOSAL_STATE = "Invalid proposal state"
    PROPOSAL_ALREADY_EXECUTED = "Proposal already executed"
    PROPOSAL_ALREADY_CANCELLED = "Proposal already cancelled"
    INVALID_PROGRAM_BUFFER = "Invalid program buffer"
    MATH_OVERFLOW = "Math overflow"
    DESCRIPTION_TOO_LONG = "Description too long"
    INVALID_THRESHOLD = "Invalid multisig threshold"
    TOO_MANY_MEMBERS = "Too many members"
    DUPLICATE_APPROVAL = "Duplicate approval"
    ACCOUNT_ALREADY_MIGRATED = "Account already migrated"
    INVALID_ACCOUNT_VERSION = "Invalid account version"
    MIGRATION_FAILED = "Migration failed"
    CANNOT_CANCEL_AFTER_EXECUTION = "Cannot cancel after execution"
    TIMELOCK_ALREADY_ACTIVATED = "Timelock already activated"
    SYSTEM_ALREADY_PAUSED = "System is already paused"
    SYSTEM_NOT_PAUSED = "System is not paused"
    NOT_A_MEMBER = "Not a multisig member"

    def message(self) -> str:
        """Human-readable description of the error."""
        return self.value


class ProgramError(Exception):
    """Raised when an instruction of the upgrade program fails."""

    def __init__(self, code: ErrorCode) -> None:
        super().__init__(code.message())
        self.code = code