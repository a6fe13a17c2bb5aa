"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local env overrides (gitignored)
  4. Environment variables        — ``CDE_ADVISOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Application configuration is deliberately separate from per-project
decision-support settings: the former tunes the process (database, worker
pool, logging), the latter is data stored with each project and resolved by
``cde_advisor.engine.settings``.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/cde_advisor.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class EngineConfig(BaseModel):
    """Per-entity fan-out settings for the decision support engine.

    ``timeout_seconds=None`` waits without a deadline; TOML has no null, so
    only programmatic callers can disable it.
    """

    model_config = ConfigDict(frozen=True)

    max_workers: int = 8
    timeout_seconds: Optional[float] = 30.0

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}.")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/cde_advisor.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    The CLI builds one with ``load_config()`` and hands its sections to the
    connection factory, the engine, and the logging setup.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    engine: EngineConfig = EngineConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            raw = _deep_merge(raw, tomllib.load(f))

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply CDE_ADVISOR_* env vars to the raw config dict.

    Supported overrides:
      CDE_ADVISOR_DB_PATH      → raw["database"]["db_path"]
      CDE_ADVISOR_LOG_LEVEL    → raw["logging"]["level"]
      CDE_ADVISOR_MAX_WORKERS  → raw["engine"]["max_workers"]
      CDE_ADVISOR_DEBUG        → raw["debug"]
    """
    if db_path := os.environ.get("CDE_ADVISOR_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("CDE_ADVISOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if max_workers := os.environ.get("CDE_ADVISOR_MAX_WORKERS"):
        raw.setdefault("engine", {})["max_workers"] = max_workers

    if debug := os.environ.get("CDE_ADVISOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        engine=EngineConfig(**raw.get("engine", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
