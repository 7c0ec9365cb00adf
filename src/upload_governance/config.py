"""
Configuration for Upload Governance.

Settings are resolved in three layers, later layers winning:

1. Built-in defaults (2 uploads per hour, 5 per day, 1 day retention)
2. An optional YAML file (``UG_CONFIG`` or an explicit path)
3. ``UG_*`` environment variables

Environment Variables:
    UG_CONFIG: Path to a YAML settings file
    UG_HOURLY_LIMIT: Admissions allowed per rolling hour (default: 2)
    UG_DAILY_LIMIT: Admissions allowed per rolling 24 hours (default: 5)
    UG_RETENTION_TTL_DAYS: Artifact time-to-live in days (default: 1)
    UG_CLEANUP_INTERVAL_HOURS: Scheduled cleanup cadence (default: 24)
    UG_PAGE_SIZE: Page size for expired-record queries (default: 100)
    UG_DATA_DIR: Base directory for local state (default: var)
    UG_LOG_LEVEL: Logging level name (default: INFO)

Example:
    export UG_HOURLY_LIMIT=10
    upload-governance check-quota alice
"""

import logging
import os
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from upload_governance.artifacts.retention import MAX_TTL_DAYS
from upload_governance.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# env var -> (settings field, parser)
_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "UG_HOURLY_LIMIT": ("hourly_limit", int),
    "UG_DAILY_LIMIT": ("daily_limit", int),
    "UG_RETENTION_TTL_DAYS": ("retention_ttl_days", float),
    "UG_CLEANUP_INTERVAL_HOURS": ("cleanup_interval_hours", float),
    "UG_PAGE_SIZE": ("page_size", int),
    "UG_DATA_DIR": ("data_dir", Path),
    "UG_LOG_LEVEL": ("log_level", str),
}


class GovernanceSettings(BaseModel):
    """Resolved settings for quota, retention and local storage."""

    hourly_limit: int = Field(default=2, ge=1, description="Admissions per rolling hour")
    daily_limit: int = Field(default=5, ge=1, description="Admissions per rolling 24 hours")
    retention_ttl_days: float = Field(
        default=1.0,
        gt=0,
        le=MAX_TTL_DAYS,
        allow_inf_nan=False,
        description="Age in days after which artifacts are reclaimed",
    )
    cleanup_interval_hours: float = Field(
        default=24.0, gt=0, description="Cadence of the scheduled cleanup pass"
    )
    page_size: int = Field(default=100, ge=1, le=10000, description="Expired-query page size")
    data_dir: Path = Field(default=Path("var"), description="Base directory for local state")
    quota_dir: Path | None = Field(default=None, description="Device-local quota history")
    blob_dir: Path | None = Field(default=None, description="Blob store root")
    metadata_db: Path | None = Field(default=None, description="SQLite metadata index")
    log_level: str = Field(default="INFO", description="Logging level name")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def retention_ttl(self) -> timedelta:
        return timedelta(days=self.retention_ttl_days)

    @property
    def cleanup_interval(self) -> timedelta:
        return timedelta(hours=self.cleanup_interval_hours)

    @property
    def resolved_quota_dir(self) -> Path:
        return self.quota_dir or self.data_dir / "quota"

    @property
    def resolved_blob_dir(self) -> Path:
        return self.blob_dir or self.data_dir / "blobs"

    @property
    def resolved_metadata_db(self) -> Path:
        return self.metadata_db or self.data_dir / "metadata.db"


def _load_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML settings file into a mapping."""
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file: {e}", source=str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", source=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping", source=str(path))
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect parseable UG_* overrides, skipping invalid values with a warning."""
    overrides: dict[str, Any] = {}
    for env_name, (field_name, parser) in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            overrides[field_name] = parser(raw)
        except ValueError:
            logger.warning(f"Invalid {env_name}: {raw}, using default")
    return overrides


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> GovernanceSettings:
    """
    Resolve settings from defaults, YAML file and environment.

    Args:
        config_path: Optional YAML file (falls back to UG_CONFIG)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated GovernanceSettings

    Raises:
        ConfigurationError: If the YAML file is unreadable or invalid
    """
    env = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    path = config_path or (Path(env["UG_CONFIG"]) if env.get("UG_CONFIG") else None)
    if path is not None:
        values.update(_load_yaml(path))

    try:
        base = GovernanceSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}", source=str(path)) from e

    settings = base
    for field_name, value in _env_overrides(env).items():
        try:
            settings = GovernanceSettings(**{**settings.model_dump(), field_name: value})
        except ValidationError:
            logger.warning(f"Invalid value for {field_name}: {value}, using {getattr(settings, field_name)}")

    return settings


def configure_logging(level: str = "INFO") -> None:
    """Install the process-wide logging format."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
