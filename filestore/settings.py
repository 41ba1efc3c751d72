from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from filestore.exceptions import ConfigurationError

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class StorageSettings(BaseModel):
    backend: Literal["s3", "local"] = "s3"
    bucket: str = ""
    key_prefix: str | None = None
    region: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    access_key_id_env: str | None = "FILESTORE_S3_ACCESS_KEY_ID"
    secret_access_key_env: str | None = "FILESTORE_S3_SECRET_ACCESS_KEY"
    endpoint_url: str | None = None
    use_path_style: bool = False
    connect_timeout_seconds: float = Field(10.0, gt=0.0)
    read_timeout_seconds: float = Field(60.0, gt=0.0)
    # total requests per call, first one included; 1 means no retries
    max_attempts: int = Field(1, ge=1, le=10)
    local_root: Path = Path("data") / "files"

    @field_validator(
        "key_prefix",
        "region",
        "access_key_id",
        "secret_access_key",
        "endpoint_url",
        mode="before",
    )
    @classmethod
    def _normalize_optional(cls, value: Any) -> Any:  # noqa: D401
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value

    @property
    def aws_access_key_id(self) -> str | None:
        if self.access_key_id:
            return self.access_key_id
        if self.access_key_id_env:
            return _blank_to_none(os.getenv(self.access_key_id_env))
        return None

    @property
    def aws_secret_access_key(self) -> str | None:
        if self.secret_access_key:
            return self.secret_access_key
        if self.secret_access_key_env:
            return _blank_to_none(os.getenv(self.secret_access_key_env))
        return None

    def require_bucket(self) -> str:
        if not self.bucket.strip():
            raise ConfigurationError("S3 bucket is not configured", {"setting": "storage.bucket"})
        return self.bucket.strip()


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    log_file: Path | None = None


class StatsSettings(BaseModel):
    backend: Literal["null"] = "null"


class Settings(BaseModel):
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    stats: StatsSettings = Field(default_factory=StatsSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                FILESTORE_CONFIG environment variable or defaults to config/default.yaml.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            FileNotFoundError: If configuration file does not exist.
            ConfigurationError: If configuration is invalid.
        """
        config_path = path or Path(os.getenv("FILESTORE_CONFIG", "config/default.yaml"))
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}", {"path": str(config_path)}) from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "StorageSettings",
    "LoggingSettings",
    "StatsSettings",
    "get_settings",
]
