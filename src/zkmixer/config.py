"""Runtime configuration loaded from ZKMIXER_* environment variables or .env."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from zkmixer.utils.encoding import normalize_address


class MixerSettings(BaseSettings):
    """Settings for a mixer instance and its service surface."""

    model_config = SettingsConfigDict(env_prefix="ZKMIXER_", env_file=".env", extra="ignore")

    # Protocol
    tree_depth: int = Field(default=20, ge=1, le=32, description="Merkle tree depth")
    deposit_amount: int = Field(default=10**17, gt=0, description="Fixed denomination (wei)")
    root_history_size: Optional[int] = Field(
        default=None, ge=1, description="Root window size; unset keeps every root"
    )
    owner_address: str = Field(
        default="0x0000000000000000000000000000000000000001",
        description="Address allowed to pause, unpause and drain",
    )

    # Proof verification
    verifier_backend: Literal["transparent", "snarkjs"] = "transparent"
    verification_key_path: Optional[Path] = None
    snarkjs_bin: str = "snarkjs"
    snark_timeout_secs: int = Field(default=20, gt=0)

    # Persistence
    database_url: Optional[str] = None

    # Admin API authentication
    secret_key: str = "change-me-in-production"
    access_token_expire_hours: int = Field(default=24, gt=0)

    log_level: str = "INFO"

    @field_validator("owner_address")
    @classmethod
    def normalize_owner(cls, value: str) -> str:
        return normalize_address(value)


@lru_cache
def get_settings() -> MixerSettings:
    """Process-wide settings, read once."""
    return MixerSettings()
