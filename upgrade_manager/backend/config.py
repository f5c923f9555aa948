"""Service configuration read from the environment."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping

DEFAULT_RPC_URL = "http://localhost:8899"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = "3000"

_PORT_PATTERN = re.compile(r"\+?[0-9]+")
_MAX_PORT = 65535


class ConfigError(Exception):
    """Raised when the environment does not describe a usable configuration."""


def _required(env: Mapping[str, str], name: str) -> str:
    try:
        return env[name]
    except KeyError:
        raise ConfigError(f"environment variable {name} is not set") from None


def _parse_port(text: str) -> int:
    if not _PORT_PATTERN.fullmatch(text):
        raise ConfigError(f"invalid port {text!r}")
    port = int(text)
    if port > _MAX_PORT:
        raise ConfigError(f"port {text} is out of range")
    return port


@dataclass(frozen=True)
class Config:
    """Where the backend finds its database, chain node and signer, and where it listens."""

    database_url: str
    rpc_url: str
    program_id: str
    payer_keypair_path: str
    host: str
    port: int

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Config:
        """Build the configuration from ``env``, or from the process environment."""
        env = os.environ if env is None else env
        return cls(
            database_url=_required(env, "DATABASE_URL"),
            rpc_url=env.get("RPC_URL", DEFAULT_RPC_URL),
            program_id=_required(env, "PROGRAM_ID"),
            payer_keypair_path=_required(env, "PAYER_KEYPAIR_PATH"),
            host=env.get("HOST", DEFAULT_HOST),
            port=_parse_port(env.get("PORT", DEFAULT_PORT)),
        )