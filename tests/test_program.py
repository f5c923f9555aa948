import pytest

from upgrade_manager.chain.constants import TIMELOCK_PERIOD
from upgrade_manager.chain.errors import ErrorCode, ProgramError
from upgrade_manager.chain.events import (
    AccountMigratedEvent,
    ApprovalEvent,
    ProposalCreatedEvent,
    TimelockActivatedEvent,
    UpgradeCancelledEvent,
    UpgradeExecutedEvent,
)
from upgrade_manager.chain.program import PROGRAM_ID, UpgradeProgram
from upgrade_manager.chain.state import Pubkey, UpgradeStatus

START = 1_700_000_000


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def members():
    return [Pubkey.new_unique() for _ in range(5)]


@pytest.fixture
def program(clock, members):
    prog = UpgradeProgram(clock=clock)
    prog.initialize_multisig(members[0], members, 3)
    return prog


def _approve(program, proposal_id, approvers):
    for approver in approvers:
        program.approve_upgrade(approver, proposal_id)


def expect_code(code):
    return pytest.raises(ProgramError, match=code.message())


def test_full_upgrade_flow(program, clock, members):
    new_buffer = Pubkey.new_unique()
    target = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], new_buffer, "Upgrade to v2")

    program.approve_upgrade(members[0], proposal_id)
    program.approve_upgrade(members[1], proposal_id)
    assert program.proposals[proposal_id].status is UpgradeStatus.PROPOSED
    proposal = program.approve_upgrade(members[2], proposal_id)
    assert proposal.status is UpgradeStatus.TIMELOCK_ACTIVE
    assert proposal.timelock_activated_at == START

    with expect_code(ErrorCode.TIMELOCK_NOT_EXPIRED):
        program.execute_upgrade(members[3], proposal_id, target, new_buffer)

    clock.now = START + 48 * 3600
    executed = program.execute_upgrade(members[3], proposal_id, target, new_buffer)
    assert executed.status is UpgradeStatus.EXECUTED
    assert executed.executed_at == START + 48 * 3600
    assert program.upgraded_programs[target] == new_buffer
    assert program.events[-1] == UpgradeExecutedEvent(
        proposal_id=proposal_id,
        program_id=target,
        executor=members[3],
        timestamp=START + 48 * 3600,
    )


def test_timelock_enforcement(program, clock, members):
    buffer = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], buffer, "timelocked")
    _approve(program, proposal_id, members[:3])

    clock.now = START + TIMELOCK_PERIOD - 1
    with expect_code(ErrorCode.TIMELOCK_NOT_EXPIRED):
        program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), buffer)
    assert program.proposals[proposal_id].status is UpgradeStatus.TIMELOCK_ACTIVE

    clock.now = START + TIMELOCK_PERIOD
    result = program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), buffer)
    assert result.status is UpgradeStatus.EXECUTED


def test_multisig_threshold(program, members):
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "threshold")
    _approve(program, proposal_id, members[:2])
    proposal = program.proposals[proposal_id]
    assert proposal.approval_count == 2
    assert proposal.timelock_activated_at is None
    assert not any(isinstance(event, TimelockActivatedEvent) for event in program.events)

    program.approve_upgrade(members[2], proposal_id)
    activated = [e for e in program.events if isinstance(e, TimelockActivatedEvent)]
    assert activated == [
        TimelockActivatedEvent(
            proposal_id=proposal_id,
            activated_at=START,
            expires_at=START + TIMELOCK_PERIOD,
        )
    ]


def test_execute_before_threshold_is_invalid_state(program, clock, members):
    buffer = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], buffer, "early")
    program.approve_upgrade(members[0], proposal_id)
    clock.now = START + TIMELOCK_PERIOD * 2
    with pytest.raises(ProgramError) as info:
        program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), buffer)
    assert info.value.code is ErrorCode.INVALID_PROPOSAL_STATE
    assert program.proposals[proposal_id].status is UpgradeStatus.PROPOSED
    assert program.upgraded_programs == {}


def test_upgrade_cancellation(program, members):
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "cancel me")
    _approve(program, proposal_id, members[:3])
    proposal = program.cancel_upgrade(members[4], proposal_id)
    assert proposal.status is UpgradeStatus.CANCELLED
    assert program.events[-1] == UpgradeCancelledEvent(
        proposal_id=proposal_id,
        canceller=members[4],
        reason="Cancelled by multisig",
        timestamp=START,
    )
    with expect_code(ErrorCode.PROPOSAL_ALREADY_CANCELLED):
        program.cancel_upgrade(members[4], proposal_id)


def test_cannot_cancel_after_execution(program, clock, members):
    buffer = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], buffer, "done")
    _approve(program, proposal_id, members[:3])
    clock.now = START + TIMELOCK_PERIOD
    program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), buffer)
    with pytest.raises(ProgramError) as info:
        program.cancel_upgrade(members[1], proposal_id)
    assert info.value.code is ErrorCode.CANNOT_CANCEL_AFTER_EXECUTION
    assert program.proposals[proposal_id].status is UpgradeStatus.EXECUTED


def test_duplicate_approval(program, members):
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "dup")
    program.approve_upgrade(members[1], proposal_id)
    with expect_code(ErrorCode.DUPLICATE_APPROVAL):
        program.approve_upgrade(members[1], proposal_id)
    assert program.proposals[proposal_id].approval_count == 1


def test_unauthorized_approval_and_cancel(program, members):
    outsider = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "auth")
    with expect_code(ErrorCode.UNAUTHORIZED_SIGNER):
        program.approve_upgrade(outsider, proposal_id)
    with expect_code(ErrorCode.UNAUTHORIZED_SIGNER):
        program.cancel_upgrade(outsider, proposal_id)
    assert program.proposals[proposal_id].status is UpgradeStatus.PROPOSED


def test_unauthorized_execution_with_wrong_buffer(program, clock, members):
    buffer = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[0], buffer, "buffer")
    _approve(program, proposal_id, members[:3])
    clock.now = START + TIMELOCK_PERIOD
    with expect_code(ErrorCode.INVALID_PROGRAM_BUFFER):
        program.execute_upgrade(members[0], proposal_id, Pubkey.new_unique(), Pubkey.new_unique())
    assert program.upgraded_programs == {}


def test_non_member_cannot_propose(program):
    with expect_code(ErrorCode.UNAUTHORIZED_SIGNER):
        program.propose_upgrade(Pubkey.new_unique(), Pubkey.new_unique(), "x")
    assert program.proposals == {}


def test_description_too_long(program, members):
    with expect_code(ErrorCode.DESCRIPTION_TOO_LONG):
        program.propose_upgrade(members[0], Pubkey.new_unique(), "a" * 501)
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "a" * 500)
    assert program.proposals[proposal_id].description == "a" * 500


def test_proposal_fields_and_event(program, members):
    buffer = Pubkey.new_unique()
    proposal_id = program.propose_upgrade(members[1], buffer, "fields")
    expected_id, bump = Pubkey.find_program_address([b"proposal", bytes(buffer)], PROGRAM_ID)
    assert proposal_id == expected_id
    proposal = program.proposals[proposal_id]
    assert proposal.bump == bump
    assert proposal.target_program == PROGRAM_ID
    assert proposal.timelock_period == TIMELOCK_PERIOD
    assert proposal.created_at == START
    assert program.events[-1] == ProposalCreatedEvent(
        proposal_id=proposal_id,
        proposer=members[1],
        new_program_buffer=buffer,
        description="fields",
        timelock_end=START + TIMELOCK_PERIOD,
        timestamp=START,
    )


def test_same_buffer_cannot_be_proposed_twice(program, members):
    buffer = Pubkey.new_unique()
    program.propose_upgrade(members[0], buffer, "first")
    with pytest.raises(ValueError, match="already in use"):
        program.propose_upgrade(members[1], buffer, "second")


def test_approval_event_contents(program, members):
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "events")
    program.approve_upgrade(members[2], proposal_id)
    assert program.events[-1] == ApprovalEvent(
        proposal_id=proposal_id,
        approver=members[2],
        approval_count=1,
        threshold=3,
        timelock_activated=False,
        timestamp=START,
    )


def test_approval_after_timelock_is_invalid_state(program, members):
    proposal_id = program.propose_upgrade(members[0], Pubkey.new_unique(), "late")
    _approve(program, proposal_id, members[:3])
    with pytest.raises(ProgramError) as info:
        program.approve_upgrade(members[3], proposal_id)
    assert info.value.code is ErrorCode.INVALID_PROPOSAL_STATE
    proposal = program.proposals[proposal_id]
    assert proposal.approval_count == 3
    assert proposal.status is UpgradeStatus.TIMELOCK_ACTIVE


def test_unknown_proposal(program, members):
    with pytest.raises(LookupError):
        program.approve_upgrade(members[0], Pubkey.new_unique())


def test_initialize_multisig_limits(clock):
    authority = Pubkey.new_unique()
    eleven = [Pubkey.new_unique() for _ in range(11)]
    prog = UpgradeProgram(clock=clock)
    with expect_code(ErrorCode.TOO_MANY_MEMBERS):
        prog.initialize_multisig(authority, eleven, 3)
    with expect_code(ErrorCode.INVALID_THRESHOLD):
        prog.initialize_multisig(authority, eleven[:3], 0)
    with expect_code(ErrorCode.INVALID_THRESHOLD):
        prog.initialize_multisig(authority, eleven[:3], 4)
    config = prog.initialize_multisig(authority, eleven[:10], 10)
    assert config.threshold == 10
    assert config.authority == authority
    assert config.is_paused is False
    with pytest.raises(ValueError, match="already in use"):
        prog.initialize_multisig(authority, eleven[:3], 2)


def test_multisig_required_for_proposal(clock):
    prog = UpgradeProgram(clock=clock)
    with pytest.raises(LookupError):
        prog.propose_upgrade(Pubkey.new_unique(), Pubkey.new_unique(), "no multisig")


def test_migrate_account_pads_hash(program, members):
    account = Pubkey.new_unique()
    version = program.migrate_account(members[0], account, b"\x01\x02\x03")
    assert version.version == 2
    assert version.migrated is True
    assert version.migrated_at == START
    assert version.old_data_hash == b"\x01\x02\x03" + bytes(29)
    assert version.new_data_hash == version.old_data_hash
    assert program.events[-1] == AccountMigratedEvent(
        account=account, old_version=1, new_version=2, timestamp=START
    )


def test_migrate_account_truncates_and_rejects_repeat(program, members):
    account = Pubkey.new_unique()
    data = bytes(range(40))
    version = program.migrate_account(members[0], account, data)
    assert version.old_data_hash == bytes(range(32))
    with pytest.raises(ValueError, match="already in use"):
        program.migrate_account(members[0], account, data)


def test_pause_and_resume(program, members):
    config = program.pause_system(members[1])
    assert config.is_paused is True
    assert program.logs[-1] == f"System paused by: {members[1]}"
    with expect_code(ErrorCode.SYSTEM_ALREADY_PAUSED):
        program.pause_system(members[2])
    config = program.resume_system(members[2])
    assert config.is_paused is False
    assert program.logs[-1] == f"System resumed by: {members[2]}"
    with expect_code(ErrorCode.SYSTEM_NOT_PAUSED):
        program.resume_system(members[2])


def test_pause_requires_member(program):
    with expect_code(ErrorCode.NOT_A_MEMBER):
        program.pause_system(Pubkey.new_unique())
    assert program.multisig.is_paused is False