"""The upgrade program: multisig-governed, timelocked program upgrades."""

from __future__ import annotations

import time
from typing import Callable

from upgrade_manager.chain.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_MULTISIG_MEMBERS,
    SEED_MIGRATION,
    SEED_MULTISIG,
    SEED_PROPOSAL,
    TIMELOCK_PERIOD,
)
from upgrade_manager.chain.errors import ErrorCode, ProgramError
from upgrade_manager.chain.events import (
    AccountMigratedEvent,
    ApprovalEvent,
    ProposalCreatedEvent,
    TimelockActivatedEvent,
    UpgradeCancelledEvent,
    UpgradeExecutedEvent,
)
from upgrade_manager.chain.state import (
    AccountVersion,
    MultisigConfig,
    Pubkey,
    UpgradeProposal,
    UpgradeStatus,
)
from upgrade_manager.chain.validation import (
    validate_description_length,
    validate_multisig_member,
    validate_threshold,
    validate_timelock_expired,
)

PROGRAM_ID = Pubkey.from_base58("EWkUZhSovRmxtyGYB7hgnb3LSfb9Z5XdrZtPJEeDiG1H")

_HASH_LENGTH = 32
_OLD_VERSION = 1
_NEW_VERSION = 2
_CANCEL_REASON = "Cancelled by multisig"


def _system_clock() -> int:
    return int(time.time())


class UpgradeProgram:
    """In-memory ledger state of the upgrade program and its instructions.

    Accounts are kept in dictionaries keyed by their addresses; emitted events
    and log messages are appended to ``events`` and ``logs``.
    """

    def __init__(
        self,
        program_id: Pubkey = PROGRAM_ID,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.program_id = program_id
        self._clock = clock or _system_clock
        self.multisig_address, _ = Pubkey.find_program_address([SEED_MULTISIG], program_id)
        self.multisig: MultisigConfig | None = None
        self.proposals: dict[Pubkey, UpgradeProposal] = {}
        self.account_versions: dict[Pubkey, AccountVersion] = {}
        self.upgraded_programs: dict[Pubkey, Pubkey] = {}
        self.events: list[object] = []
        self.logs: list[str] = []

    def _now(self) -> int:
        return int(self._clock())

    def _require_multisig(self) -> MultisigConfig:
        if self.multisig is None:
            raise LookupError("multisig account is not initialized")
        return self.multisig

    def _require_proposal(self, proposal_id: Pubkey) -> UpgradeProposal:
        try:
            return self.proposals[proposal_id]
        except KeyError:
            raise LookupError(f"no proposal account at {proposal_id}") from None

    def initialize_multisig(
        self, authority: Pubkey, members: list[Pubkey], threshold: int
    ) -> MultisigConfig:
        """Create the multisig that governs upgrades."""
        if self.multisig is not None:
            raise ValueError(f"account {self.multisig_address} already in use")
        members = list(members)
        if len(members) > MAX_MULTISIG_MEMBERS:
            raise ProgramError(ErrorCode.TOO_MANY_MEMBERS)
        if not 0 < threshold <= len(members):
            raise ProgramError(ErrorCode.INVALID_THRESHOLD)
        _, bump = Pubkey.find_program_address([SEED_MULTISIG], self.program_id)
        self.multisig = MultisigConfig(
            authority=authority,
            members=members,
            threshold=threshold,
            is_paused=False,
            bump=bump,
        )
        return self.multisig

    def propose_upgrade(
        self, proposer: Pubkey, new_program_buffer: Pubkey, description: str
    ) -> Pubkey:
        """Open a proposal to upgrade to ``new_program_buffer``; return its address."""
        address, bump = Pubkey.find_program_address(
            [SEED_PROPOSAL, bytes(new_program_buffer)], self.program_id
        )
        if address in self.proposals:
            raise ValueError(f"account {address} already in use")
        multisig = self._require_multisig()

        validate_description_length(description, MAX_DESCRIPTION_LENGTH)
        validate_multisig_member(multisig.members, proposer)

        now = self._now()
        proposal = UpgradeProposal(
            id=address,
            proposer=proposer,
            new_program_buffer=new_program_buffer,
            target_program=self.program_id,
            description=description,
            status=UpgradeStatus.PROPOSED,
            approvals=[],
            approval_count=0,
            created_at=now,
            timelock_activated_at=None,
            timelock_period=TIMELOCK_PERIOD,
            executed_at=None,
            bump=bump,
        )
        self.proposals[address] = proposal
        self.events.append(
            ProposalCreatedEvent(
                proposal_id=address,
                proposer=proposer,
                new_program_buffer=new_program_buffer,
                description=description,
                timelock_end=now + TIMELOCK_PERIOD,
                timestamp=now,
            )
        )
        return address

    def approve_upgrade(self, approver: Pubkey, proposal_id: Pubkey) -> UpgradeProposal:
        """Record a member's approval; start the timelock once the threshold is met."""
        proposal = self._require_proposal(proposal_id)
        if proposal.status not in (UpgradeStatus.PROPOSED, UpgradeStatus.APPROVED):
            raise ProgramError(ErrorCode.INVALID_PROPOSAL_STATE)
        multisig = self._require_multisig()

        validate_multisig_member(multisig.members, approver)
        if approver in proposal.approvals:
            raise ProgramError(ErrorCode.DUPLICATE_APPROVAL)

        proposal.approvals.append(approver)
        proposal.approval_count += 1

        now = self._now()
        threshold_met = validate_threshold(proposal.approval_count, multisig.threshold)
        timelock_activated = False

        if threshold_met and proposal.timelock_activated_at is None:
            proposal.status = UpgradeStatus.TIMELOCK_ACTIVE
            proposal.timelock_activated_at = now
            timelock_activated = True
            self.events.append(
                TimelockActivatedEvent(
                    proposal_id=proposal.id,
                    activated_at=now,
                    expires_at=now + proposal.timelock_period,
                )
            )
        elif threshold_met:
            proposal.status = UpgradeStatus.APPROVED

        self.events.append(
            ApprovalEvent(
                proposal_id=proposal.id,
                approver=approver,
                approval_count=proposal.approval_count,
                threshold=multisig.threshold,
                timelock_activated=timelock_activated,
                timestamp=now,
            )
        )
        return proposal

    def execute_upgrade(
        self,
        executor: Pubkey,
        proposal_id: Pubkey,
        program_to_upgrade: Pubkey,
        buffer: Pubkey,
    ) -> UpgradeProposal:
        """Upgrade ``program_to_upgrade`` from ``buffer`` once the timelock has run out."""
        proposal = self._require_proposal(proposal_id)
        if proposal.status is not UpgradeStatus.TIMELOCK_ACTIVE:
            raise ProgramError(ErrorCode.INVALID_PROPOSAL_STATE)
        multisig = self._require_multisig()

        if proposal.timelock_activated_at is None:
            raise ProgramError(ErrorCode.INVALID_PROPOSAL_STATE)
        now = self._now()
        validate_timelock_expired(proposal.timelock_activated_at, proposal.timelock_period, now)

        if not validate_threshold(proposal.approval_count, multisig.threshold):
            raise ProgramError(ErrorCode.INSUFFICIENT_APPROVALS)
        if buffer != proposal.new_program_buffer:
            raise ProgramError(ErrorCode.INVALID_PROGRAM_BUFFER)

        self.upgraded_programs[program_to_upgrade] = buffer

        proposal.status = UpgradeStatus.EXECUTED
        proposal.executed_at = now
        self.events.append(
            UpgradeExecutedEvent(
                proposal_id=proposal.id,
                program_id=program_to_upgrade,
                executor=executor,
                timestamp=now,
            )
        )
        return proposal

    def cancel_upgrade(self, canceller: Pubkey, proposal_id: Pubkey) -> UpgradeProposal:
        """Cancel a proposal that has not been executed."""
        proposal = self._require_proposal(proposal_id)
        if proposal.status is UpgradeStatus.EXECUTED:
            raise ProgramError(ErrorCode.CANNOT_CANCEL_AFTER_EXECUTION)
        if proposal.status is UpgradeStatus.CANCELLED:
            raise ProgramError(ErrorCode.PROPOSAL_ALREADY_CANCELLED)
        multisig = self._require_multisig()

        validate_multisig_member(multisig.members, canceller)

        now = self._now()
        proposal.status = UpgradeStatus.CANCELLED
        self.events.append(
            UpgradeCancelledEvent(
                proposal_id=proposal.id,
                canceller=canceller,
                reason=_CANCEL_REASON,
                timestamp=now,
            )
        )
        return proposal

    def migrate_account(
        self, migrator: Pubkey, old_account: Pubkey, data: bytes
    ) -> AccountVersion:
        """Record that ``old_account``, holding ``data``, moved to the new version."""
        address, _ = Pubkey.find_program_address(
            [SEED_MIGRATION, bytes(old_account)], self.program_id
        )
        if address in self.account_versions:
            raise ValueError(f"account {address} already in use")

        now = self._now()
        prefix = bytes(data[:_HASH_LENGTH])
        data_hash = prefix + bytes(_HASH_LENGTH - len(prefix))

        version = AccountVersion(
            account=old_account,
            version=_NEW_VERSION,
            migrated=True,
            migrated_at=now,
            old_data_hash=data_hash,
            new_data_hash=data_hash,
        )
        self.account_versions[address] = version
        self.events.append(
            AccountMigratedEvent(
                account=old_account,
                old_version=_OLD_VERSION,
                new_version=_NEW_VERSION,
                timestamp=now,
            )
        )
        return version

    def pause_system(self, pauser: Pubkey) -> MultisigConfig:
        """Pause the system; only a member may do so, and only when running."""
        multisig = self._require_multisig()
        if pauser not in multisig.members:
            raise ProgramError(ErrorCode.NOT_A_MEMBER)
        if multisig.is_paused:
            raise ProgramError(ErrorCode.SYSTEM_ALREADY_PAUSED)
        multisig.is_paused = True
        self.logs.append(f"System paused by: {pauser}")
        return multisig

    def resume_system(self, resumer: Pubkey) -> MultisigConfig:
        """Resume a paused system; only a member may do so."""
        multisig = self._require_multisig()
        if resumer not in multisig.members:
            raise ProgramError(ErrorCode.NOT_A_MEMBER)
        if not multisig.is_paused:
            raise ProgramError(ErrorCode.SYSTEM_NOT_PAUSED)
        multisig.is_paused = False
        self.logs.append(f"System resumed by: {resumer}")
        return multisig