"""Environment-driven settings for the server, relayer and CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 5000
    contract_address: str = DEFAULT_CONTRACT
    max_tally: int = 1 << 20
    oracle_key: Optional[str] = None
    auth_duration_days: int = 7
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("SECRET_BALLOT_HOST", "127.0.0.1"),
            port=_env_int("SECRET_BALLOT_PORT", 5000),
            contract_address=os.getenv("SECRET_BALLOT_CONTRACT", DEFAULT_CONTRACT).lower(),
            max_tally=_env_int("SECRET_BALLOT_MAX_TALLY", 1 << 20),
            oracle_key=os.getenv("SECRET_BALLOT_ORACLE_KEY") or None,
            auth_duration_days=_env_int("SECRET_BALLOT_AUTH_DAYS", 7),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        )


def client_base_url() -> str:
    return os.getenv("SECRET_BALLOT_URL", "http://127.0.0.1:5000").rstrip("/")
