# src/phaseconf/core/config.py
"""
Configuration schema and loading for phaseconf.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from phaseconf.contracts.errors import SettingsError

DEFAULT_APP_NAME = "AI.C9d.Web"
DEFAULT_ENVIRONMENT = "development"


class TokenSettings(BaseModel):
    """Where and how the service credential is looked up."""

    model_config = {"frozen": True}

    variable_name: str = Field(
        default="PHASE_SERVICE_TOKEN",
        min_length=1,
        description="Environment variable / .env key holding the service credential",
    )
    workspace_indicators: tuple[str, ...] = Field(
        default=(
            ".git",
            "pnpm-workspace.yaml",
            "pnpm-lock.yaml",
            "turbo.json",
            "lerna.json",
            "rush.json",
            "uv.lock",
        ),
        description="Files whose presence marks a directory as the workspace root",
    )


class ClientSettings(BaseModel):
    """Remote secrets provider client settings."""

    model_config = {"frozen": True}

    host: str = Field(default="https://api.phase.dev", description="Provider API base URL")
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Deadline wrapped around every remote call",
    )


class CacheSettings(BaseModel):
    """ResultCache bounds."""

    model_config = {"frozen": True}

    ttl_seconds: float = Field(default=300.0, gt=0, description="Entry lifetime")
    max_entries: int = Field(default=100, gt=0, description="Maximum cached (app, environment, origin) keys")
    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Period of the background expired-entry sweep",
    )


class MonitorSettings(BaseModel):
    """Monitor retention and secure-logging options."""

    model_config = {"frozen": True}

    max_records: int = Field(default=1000, gt=0, description="Performance record ring buffer size")
    max_log_entries: int = Field(default=1000, gt=0, description="Log entry ring buffer size")
    log_level: Literal["debug", "info", "warn", "error"] = Field(
        default="info",
        description="Minimum level stored and emitted",
    )
    redact_sensitive_data: bool = Field(default=True, description="Apply redaction before storage")
    show_token_sources: bool = Field(
        default=True,
        description="Include token origin/path context in emitted log events",
    )
    max_log_entry_size: int = Field(default=10_000, ge=64, description="Messages longer than this are truncated")
    error_rate_cache_seconds: float = Field(
        default=300.0,
        ge=0,
        description="How long a computed error-rate report is reused per window label",
    )


class RetrySettings(BaseModel):
    """Backoff for transient (retryable) remote failures."""

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, gt=0, description="Total attempts, including the first")
    initial_delay_seconds: float = Field(default=1.0, gt=0)
    max_delay_seconds: float = Field(default=10.0, gt=0)
    exponential_base: float = Field(default=2.0, gt=1.0)


class LoggingSettings(BaseModel):
    model_config = {"frozen": True}

    json_output: bool = Field(default=False)
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class PhaseConfSettings(BaseModel):
    """Top-level phaseconf settings."""

    model_config = {"frozen": True}

    app_name: str = Field(
        default=DEFAULT_APP_NAME,
        description="Application name used when the caller supplies none",
    )
    environment_variables: tuple[str, ...] = Field(
        default=("APP_ENV", "NODE_ENV"),
        description="Variables consulted (in order) for the default environment name",
    )
    default_environment: str = Field(default=DEFAULT_ENVIRONMENT, min_length=1)
    token: TokenSettings = Field(default_factory=TokenSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("app_name")
    @classmethod
    def _strip_app_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("app_name must not be blank")
        return v

    def default_environment_name(self, environ: Mapping[str, str] | None = None) -> str:
        """First non-blank value of environment_variables, else the default."""
        env = os.environ if environ is None else environ
        for name in self.environment_variables:
            value = env.get(name, "").strip()
            if value:
                return value
        return self.default_environment


def discover_app_name(root: Path, default: str = DEFAULT_APP_NAME) -> str:
    """Read ``[tool.phaseconf] app_name`` from ``root/pyproject.toml``.

    Falls back to ``default`` when the file, table or key is missing or the
    file cannot be parsed.
    """
    pyproject = root / "pyproject.toml"
    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return default

    tool = data.get("tool", {})
    section = tool.get("phaseconf", {}) if isinstance(tool, dict) else {}
    app_name = section.get("app_name") if isinstance(section, dict) else None
    if isinstance(app_name, str) and app_name.strip():
        return app_name.strip()
    return default


def _lower_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> PhaseConfSettings:
    """Load settings from an optional YAML/TOML file plus environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (PHASECONF_*) - highest priority
    2. Config file (if given)
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: PHASECONF_CACHE__TTL_SECONDS=60 for nested keys.

    Raises:
        SettingsError: If the file is missing or validation fails
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise SettingsError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="PHASECONF",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,  # .env files hold credentials, not phaseconf settings
        merge_enabled=True,
    )

    # Dynaconf keeps env-var casing for nested keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    try:
        return PhaseConfSettings(**raw_config)
    except ValidationError as e:
        raise SettingsError(f"Invalid phaseconf settings: {e}") from e
