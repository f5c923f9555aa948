"""Checks shared by the upgrade program's instructions."""

from __future__ import annotations

from typing import Iterable

from upgrade_manager.chain.errors import ErrorCode, ProgramError
from upgrade_manager.chain.state import Pubkey

_I64_MAX = 2**63 - 1
_I64_MIN = -(2**63)


def validate_multisig_member(members: Iterable[Pubkey], signer: Pubkey) -> None:
    """Raise unless the signer belongs to the multisig."""
    if signer not in members:
        raise ProgramError(ErrorCode.UNAUTHORIZED_SIGNER)


def validate_timelock_expired(activated_at: int, period: int, now: int) -> None:
    """Raise unless the timelock started at ``activated_at`` has run out by ``now``."""
    expiry = activated_at + period
    if not _I64_MIN <= expiry <= _I64_MAX:
        raise ProgramError(ErrorCode.MATH_OVERFLOW)
    if now < expiry:
        raise ProgramError(ErrorCode.TIMELOCK_NOT_EXPIRED)


def validate_threshold(approval_count: int, threshold: int) -> bool:
    """Whether enough approvals have been collected."""
    return approval_count >= threshold


def validate_description_length(description: str, max_len: int) -> None:
    """Raise if the description's UTF-8 encoding is longer than ``max_len`` bytes."""
    if len(description.encode("utf-8")) > max_len:
        raise ProgramError(ErrorCode.DESCRIPTION_TOO_LONG)