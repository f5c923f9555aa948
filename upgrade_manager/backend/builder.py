"""Building program binaries and preparing them for deployment."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Sequence

from upgrade_manager.chain.state import Pubkey

logger = logging.getLogger(__name__)

_BUILD_COMMAND = ("anchor", "build")
_ARTIFACT = Path("target/deploy/program.so")


class BuildError(RuntimeError):
    """Raised when the build command fails."""


class ProgramBuilder:
    """Builds program binaries and prepares buffers for them."""

    def __init__(self, command: Sequence[str] = _BUILD_COMMAND) -> None:
        self._command = tuple(command)
        self._verified: set[bytes] = set()

    async def build_program(self, program_path: str | Path) -> bytes:
        """Run the build in ``program_path`` and return the built binary."""
        program_path = Path(program_path)
        logger.info("Building program at %s", program_path)

        process = await asyncio.create_subprocess_exec(
            *self._command,
            cwd=program_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise BuildError(f"Build failed: {stderr.decode('utf-8', errors='replace')}")

        program_data = (program_path / _ARTIFACT).read_bytes()
        logger.info("Built program, %d bytes", len(program_data))
        return program_data

    async def create_buffer(self, program_data: bytes) -> Pubkey:
        """Create a buffer account for the program data; return its address."""
        logger.info("Creating buffer for %d bytes", len(program_data))
        return Pubkey.new_unique()

    def compute_hash(self, program_data: bytes) -> bytes:
        """SHA-256 digest of the program data."""
        return hashlib.sha256(program_data).digest()

    async def verify_program(self, program_data: bytes) -> bool:
        """Whether the program passes the security checks; remembers its digest."""
        if not isinstance(program_data, (bytes, bytearray, memoryview)):
            raise TypeError("program data must be bytes")
        logger.info("Verifying program security")
        digest = self.compute_hash(bytes(program_data))
        self._verified.add(digest)
        logger.debug("Verified program %s", digest.hex())
        return True