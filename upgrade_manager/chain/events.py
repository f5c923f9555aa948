"""Events emitted by the upgrade program's instructions."""

from __future__ import annotations

from dataclasses import dataclass

from upgrade_manager.chain.state import Pubkey


@dataclass(frozen=True)
class ProposalCreatedEvent:
    proposal_id: Pubkey
    proposer: Pubkey
    new_program_buffer: Pubkey
    description: str
    timelock_end: int
    timestamp: int


@dataclass(frozen=True)
class ApprovalEvent:
    proposal_id: Pubkey
    approver: Pubkey
    approval_count: int
    threshold: int
    timelock_activated: bool
    timestamp: int


@dataclass(frozen=True)
class UpgradeExecutedEvent:
    proposal_id: Pubkey
    program_id: Pubkey
    executor: Pubkey
    timestamp: int


@dataclass(frozen=True)
class UpgradeCancelledEvent:
    proposal_id: Pubkey
    canceller: Pubkey
    reason: str
    timestamp: int


@dataclass(frozen=True)
class AccountMigratedEvent:
    account: Pubkey
    old_version: int
    new_version: int
    timestamp: int


@dataclass(frozen=True)
class TimelockActivatedEvent:
    proposal_id: Pubkey
    activated_at: int
    expires_at: int