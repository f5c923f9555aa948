"""Fixed values shared by the on-chain upgrade program."""

SEED_MULTISIG: bytes = b"multisig"
SEED_PROPOSAL: bytes = b"proposal"
SEED_MIGRATION: bytes = b"migration"

# 48 hours, in seconds.
TIMELOCK_PERIOD: int = 172800

MAX_DESCRIPTION_LENGTH: int = 500
MAX_MULTISIG_MEMBERS: int = 10
MAX_APPROVALS: int = 10