"""Account state kept by the upgrade program, and public keys."""

from __future__ import annotations

import hashlib
import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterable

from upgrade_manager.chain.constants import TIMELOCK_PERIOD

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ALPHABET_INDEX = {char: index for index, char in enumerate(_ALPHABET)}

_KEY_LENGTH = 32
_MAX_SEEDS = 16
_MAX_SEED_LENGTH = 32
_PDA_MARKER = b"ProgramDerivedAddress"

_FIELD_PRIME = 2**255 - 19
_CURVE_D = (-121665 * pow(121666, -1, _FIELD_PRIME)) % _FIELD_PRIME

_unique_counter = itertools.count(1)


def _b58encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, rem = divmod(number, 58)
        digits.append(_ALPHABET[rem])
    leading = len(data) - len(data.lstrip(b"\0"))
    return "1" * leading + "".join(reversed(digits))


def _b58decode(text: str) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * 58 + _ALPHABET_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading = len(text) - len(text.lstrip("1"))
    return b"\0" * leading + body


def _is_on_curve(data: bytes) -> bool:
    """Whether 32 bytes decompress to a point on the ed25519 curve."""
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _FIELD_PRIME
    yy = y * y % _FIELD_PRIME
    u = (yy - 1) % _FIELD_PRIME
    v = (_CURVE_D * yy + 1) % _FIELD_PRIME
    x_squared = u * pow(v, _FIELD_PRIME - 2, _FIELD_PRIME) % _FIELD_PRIME
    if x_squared == 0:
        return True
    return pow(x_squared, (_FIELD_PRIME - 1) // 2, _FIELD_PRIME) == 1


@dataclass(frozen=True)
class Pubkey:
    """A 32-byte account address, shown in base58."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != _KEY_LENGTH:
            raise ValueError(f"public key must be {_KEY_LENGTH} bytes, got {len(self.raw)}")
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_base58(cls, text: str) -> Pubkey:
        """Parse a base58 address."""
        return cls(_b58decode(text))

    @classmethod
    def new_unique(cls) -> Pubkey:
        """A key that differs from every other key made this way in the process."""
        number = next(_unique_counter)
        return cls(number.to_bytes(8, "big") + bytes(_KEY_LENGTH - 8))

    @classmethod
    def _create_program_address(cls, seeds: list[bytes], program_id: Pubkey) -> Pubkey | None:
        if len(seeds) > _MAX_SEEDS:
            raise ValueError(f"at most {_MAX_SEEDS} seeds are allowed")
        digest = hashlib.sha256()
        for seed in seeds:
            if len(seed) > _MAX_SEED_LENGTH:
                raise ValueError(f"seed longer than {_MAX_SEED_LENGTH} bytes")
            digest.update(seed)
        digest.update(bytes(program_id))
        digest.update(_PDA_MARKER)
        address = digest.digest()
        if _is_on_curve(address):
            return None
        return cls(address)

    @classmethod
    def find_program_address(cls, seeds: Iterable[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
        """Derive a program address and its bump from seeds."""
        seed_list = [bytes(seed) for seed in seeds]
        for bump in range(255, -1, -1):
            address = cls._create_program_address([*seed_list, bytes([bump])], program_id)
            if address is not None:
                return address, bump
        raise ValueError("no viable bump seed found")

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return _b58encode(self.raw)

    def __repr__(self) -> str:
        return f"Pubkey({self})"


class UpgradeStatus(Enum):
    PROPOSED = "Proposed"
    APPROVED = "Approved"
    TIMELOCK_ACTIVE = "TimelockActive"
    EXECUTED = "Executed"
    CANCELLED = "Cancelled"


@dataclass
class MultisigConfig:
    """The multisig that governs upgrades."""

    LEN: ClassVar[int] = 8 + 32 + 4 + (32 * 10) + 1 + 1 + 1

    authority: Pubkey
    members: list[Pubkey] = field(default_factory=list)
    threshold: int = 0
    is_paused: bool = False
    bump: int = 0


@dataclass
class UpgradeProposal:
    """A proposed program upgrade and its approvals."""

    LEN: ClassVar[int] = (
        8 + 32 + 32 + 32 + 32 + 4 + 500 + 1 + 4 + (32 * 10) + 1 + 8 + 9 + 8 + 9 + 1
    )

    id: Pubkey
    proposer: Pubkey
    new_program_buffer: Pubkey
    target_program: Pubkey
    description: str
    status: UpgradeStatus = UpgradeStatus.PROPOSED
    approvals: list[Pubkey] = field(default_factory=list)
    approval_count: int = 0
    created_at: int = 0
    timelock_activated_at: int | None = None
    timelock_period: int = TIMELOCK_PERIOD
    executed_at: int | None = None
    bump: int = 0


@dataclass
class AccountVersion:
    """Migration record for one account."""

    LEN: ClassVar[int] = 8 + 32 + 1 + 1 + 9 + 32 + 32

    account: Pubkey
    version: int = 1
    migrated: bool = False
    migrated_at: int | None = None
    old_data_hash: bytes = bytes(32)
    new_data_hash: bytes = bytes(32)


@dataclass
class MigrationTracker:
    """Progress of a migration run for a proposal."""

    LEN: ClassVar[int] = 8 + 32 + 8 + 8 + 8 + 9 + 1

    proposal_id: Pubkey
    total_accounts: int = 0
    migrated_accounts: int = 0
    started_at: int = 0
    completed_at: int | None = None
    bump: int = 0