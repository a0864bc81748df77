"""Central configuration loaded from environment variables and YAML policy files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from totpguard.otp import MAX_WINDOW

POLICY_KEYS = frozenset({"scratch_count", "window", "reusable", "issuer"})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOTPGUARD_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Enrollment defaults
    scratch_count: int = Field(default=8, ge=0)
    window: int = Field(default=1, ge=0, le=MAX_WINDOW)
    reusable: bool = False
    issuer: str = "totpguard"

    # Encryption (base64-encoded 32-byte key)
    master_key: str = ""

    # Relative STATE_FILE arguments resolve against this directory
    state_dir: Path = Field(default_factory=lambda: Path.cwd() / "state")


def load_policy_file(path: Path | str) -> dict[str, Any]:
    """Load an enrollment policy YAML file.

    Only the keys in POLICY_KEYS are allowed; an empty file is an empty policy.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Policy file not found: {path}")
    with open(path) as f:
        policy = yaml.safe_load(f) or {}
    if not isinstance(policy, dict):
        raise ValueError(f"Policy file must contain a mapping: {path}")
    unknown = set(policy) - POLICY_KEYS
    if unknown:
        raise ValueError(f"Unknown policy keys in {path}: {', '.join(sorted(unknown))}")
    return policy


def apply_policy(base: Settings, policy: dict[str, Any]) -> Settings:
    """Return a copy of ``base`` with policy values validated and applied."""
    return Settings.model_validate({**base.model_dump(), **policy})


settings = Settings()
