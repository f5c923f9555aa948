"""Clients for the upgrade program and for the multisig service."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from upgrade_manager.chain.state import Pubkey

logger = logging.getLogger(__name__)

_KEYPAIR_LENGTH = 64
_PUBKEY_OFFSET = 32
_TX_SIGNATURE = "tx_signature"
_SQUADS_TX_SIGNATURE = "tx_sig"
_SQUADS_APPROVED = "Approved"


@dataclass(frozen=True)
class Keypair:
    """A signing keypair: 64 bytes, the last 32 of which are the public key."""

    key_bytes: bytes

    def __post_init__(self) -> None:
        if len(self.key_bytes) != _KEYPAIR_LENGTH:
            raise ValueError(
                f"keypair must be {_KEYPAIR_LENGTH} bytes, got {len(self.key_bytes)}"
            )

    @property
    def pubkey(self) -> Pubkey:
        return Pubkey(self.key_bytes[_PUBKEY_OFFSET:])

    def __repr__(self) -> str:
        return f"Keypair(pubkey={self.pubkey})"


def read_keypair_file(path: str | Path) -> Keypair:
    """Load a keypair stored as a JSON array of 64 byte values."""
    with open(path, encoding="utf-8") as handle:
        try:
            values = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"keypair file {path} is not valid JSON") from exc
    if not isinstance(values, list) or not all(
        isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255
        for value in values
    ):
        raise ValueError(f"keypair file {path} must hold a list of byte values")
    return Keypair(bytes(values))


class AnchorClient:
    """Sends instructions to the upgrade program through an RPC node."""

    def __init__(self, rpc_url: str, program_id: str, payer_path: str | Path) -> None:
        self.payer = read_keypair_file(payer_path)
        self.rpc_url = rpc_url
        self.program_id = Pubkey.from_base58(program_id)

    async def propose_upgrade(self, new_buffer: Pubkey, description: str) -> str:
        """Submit a proposal to upgrade from ``new_buffer``; return the transaction signature."""
        logger.debug("Proposing upgrade from buffer %s", new_buffer)
        return _TX_SIGNATURE

    async def approve_upgrade(self, proposal_id: Pubkey, approver: Keypair) -> str:
        """Approve a proposal; return the transaction signature."""
        logger.debug("Approving proposal %s by %s", proposal_id, approver.pubkey)
        return _TX_SIGNATURE

    async def execute_upgrade(self, proposal_id: Pubkey, executor: Keypair) -> str:
        """Execute a proposal; return the transaction signature."""
        logger.debug("Executing proposal %s by %s", proposal_id, executor.pubkey)
        return _TX_SIGNATURE

    async def cancel_upgrade(self, proposal_id: Pubkey, canceller: Keypair) -> str:
        """Cancel a proposal; return the transaction signature."""
        logger.debug("Cancelling proposal %s by %s", proposal_id, canceller.pubkey)
        return _TX_SIGNATURE

    async def migrate_account(self, account: Pubkey, migrator: Keypair) -> str:
        """Migrate one account; return the transaction signature."""
        logger.debug("Migrating account %s by %s", account, migrator.pubkey)
        return _TX_SIGNATURE


def _require_pubkey(value: object, name: str) -> Pubkey:
    if not isinstance(value, Pubkey):
        raise TypeError(f"{name} must be a Pubkey")
    return value


def _require_keypair(value: object, name: str) -> Keypair:
    if not isinstance(value, Keypair):
        raise TypeError(f"{name} must be a Keypair")
    return value


class SquadsClient:
    """Client for the Squads multisig protocol."""

    def __init__(self) -> None:
        self._approvals: dict[str, list[str]] = {}
        self._executors: dict[str, str] = {}

    async def create_proposal(self, multisig: Pubkey, instructions: bytes) -> Pubkey:
        """Create a multisig proposal carrying ``instructions``; return its address."""
        logger.debug("Creating proposal on multisig %s (%d bytes)", multisig, len(instructions))
        return Pubkey.new_unique()

    async def approve_proposal(self, proposal: Pubkey, approver: Keypair) -> str:
        """Approve a multisig proposal; return the transaction signature."""
        key = str(_require_pubkey(proposal, "proposal"))
        signer = str(_require_keypair(approver, "approver").pubkey)
        self._approvals.setdefault(key, []).append(signer)
        logger.debug("Approved proposal %s by %s", key, signer)
        return _SQUADS_TX_SIGNATURE

    async def execute_proposal(self, proposal: Pubkey, executor: Keypair) -> str:
        """Execute an approved multisig proposal; return the transaction signature."""
        key = str(_require_pubkey(proposal, "proposal"))
        signer = str(_require_keypair(executor, "executor").pubkey)
        self._executors[key] = signer
        logger.debug("Executed proposal %s by %s", key, signer)
        return _SQUADS_TX_SIGNATURE

    async def get_proposal_status(self, proposal: Pubkey) -> str:
        """Current status of a multisig proposal."""
        key = str(_require_pubkey(proposal, "proposal"))
        logger.debug(
            "Proposal %s has %d approvals", key, len(self._approvals.get(key, ()))
        )
        return _SQUADS_APPROVED