"""hydrator.core.config

Three config surfaces only:
1) `config/default.yaml` (or any YAML file handed to `from_yaml`)
2) Environment variables (`HYDRATOR_*`)
3) Runtime setters on the orchestrator, which mutate the bound instance

`to_json`/`from_json` are the plain structural form used when the config itself
has to be persisted.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings

from hydrator.core.exceptions import ConfigurationError


class HydrationConfig(BaseSettings):
    """Settings for one orchestrator (and the store it opens)."""

    # Storage location ("document directory provider")
    data_dir: Path = Path("data")
    store_filename: str = "hydrator.db"

    # Transforms
    use_compression: bool = False
    enable_encryption: bool = False
    encryption_key: str | None = None

    # Versioning / staleness
    current_version: int = 1
    state_expiration: timedelta | None = None

    # Persistence triggers
    auto_save_interval: timedelta | None = timedelta(minutes=5)
    debounce_delay: timedelta = timedelta(milliseconds=300)
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds; retry i sleeps base * 2**i

    log_level: str = "INFO"

    model_config = {"env_prefix": "HYDRATOR_", "validate_assignment": True}

    @field_validator("current_version")
    @classmethod
    def version_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("current_version must be >= 1")
        return v

    @field_validator("max_retries")
    @classmethod
    def retries_cannot_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v

    @field_validator("retry_base_delay")
    @classmethod
    def delay_cannot_be_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("retry_base_delay must be >= 0")
        return v

    @property
    def store_path(self) -> Path:
        return Path(self.data_dir) / self.store_filename

    def reset(self) -> None:
        """Restore every field to its declared default (environment is not re-read)."""

        for name, field in type(self).model_fields.items():
            setattr(self, name, field.get_default(call_default_factory=True))

    def to_json(self) -> dict[str, Any]:
        expiration = self.state_expiration
        return {
            "useCompression": self.use_compression,
            "currentVersion": self.current_version,
            "enableEncryption": self.enable_encryption,
            "encryptionKey": self.encryption_key,
            "stateExpirationDuration": None if expiration is None else int(expiration.total_seconds()),
        }

    def from_json(self, data: dict[str, Any]) -> None:
        """Apply the structural form. Missing fields fall back to defaults."""

        seconds = data.get("stateExpirationDuration")
        self.use_compression = bool(data.get("useCompression", False))
        self.current_version = int(data.get("currentVersion") or 1)
        self.enable_encryption = bool(data.get("enableEncryption", False))
        self.encryption_key = data.get("encryptionKey")
        self.state_expiration = None if seconds is None else timedelta(seconds=int(seconds))

    @classmethod
    def from_yaml(cls, path: Path) -> HydrationConfig:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        raw = yaml.safe_load(path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")
        return cls(**raw)

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> HydrationConfig:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")
