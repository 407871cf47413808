"""
Continuum Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (CONTINUUM_*)
3. Project config (./continuum.toml)
4. User config (~/.continuum/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    CONTINUUM_RELAY_URL → relay.url
    CONTINUUM_RELAY_API_KEY → relay.api_key
    CONTINUUM_AGENT_BASE_URL → agent.base_url
    CONTINUUM_AGENT_API_KEY → agent.api_key
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from continuum.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RelayConfig(BaseModel):
    """Primary relay (archiving bridge) configuration."""

    url: str = ""
    api_key: str = ""
    timeout: float = 120.0

    @property
    def configured(self) -> bool:
        return bool(self.url.strip())


class AgentConfig(BaseModel):
    """Direct agent channel configuration."""

    base_url: str = ""
    api_key: str = ""
    timeout: float = 120.0

    @property
    def configured(self) -> bool:
        return bool(self.base_url.strip())


class SimulationConfig(BaseModel):
    """Simulated responder configuration."""

    enabled: bool = True
    delay: float = 1.5  # seconds


class SchedulerConfig(BaseModel):
    """Scheduler loop configuration."""

    enabled: bool = True
    # Upper bound on sleep between ticks. Kept well inside the one-minute
    # specific-time grain so a matching minute is never skipped.
    tick_interval: float = Field(default=1.0, gt=0, le=30)
    min_sleep: float = Field(default=0.05, gt=0)
    debounce_seconds: int = Field(default=60, ge=60)


class StorageConfig(BaseModel):
    """Local record store configuration."""

    db_path: str = "~/.continuum/continuum.db"
    journal_limit: int = Field(default=500, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    dir: str = "~/.continuum/logs"
    console_level: str = "WARNING"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ContinuumConfig(BaseModel):
    """Root configuration for Continuum."""

    relay: RelayConfig = Field(default_factory=RelayConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> ContinuumConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        # Layer 1: User config (~/.continuum/config.toml)
        user_config_path = user_path or Path.home() / ".continuum" / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        # Layer 2: Project config (./continuum.toml)
        project_config_path = project_path or Path.cwd() / "continuum.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        # Layer 3: Environment variables
        _deep_merge(merged, _load_from_env())

        # Layer 4: Explicit overrides
        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return ContinuumConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_db_path(self) -> Path:
        """Resolved path of the local SQLite record store."""
        return Path(self.storage.db_path).expanduser()

    def get_log_dir(self) -> Path:
        return Path(self.logging.dir).expanduser()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from CONTINUUM_* environment variables."""
    result: dict[str, Any] = {}

    env_mapping = {
        "CONTINUUM_RELAY_URL": ("relay", "url"),
        "CONTINUUM_RELAY_API_KEY": ("relay", "api_key"),
        "CONTINUUM_RELAY_TIMEOUT": ("relay", "timeout"),
        "CONTINUUM_AGENT_BASE_URL": ("agent", "base_url"),
        "CONTINUUM_AGENT_API_KEY": ("agent", "api_key"),
        "CONTINUUM_AGENT_TIMEOUT": ("agent", "timeout"),
        "CONTINUUM_SIMULATION_ENABLED": ("simulation", "enabled"),
        "CONTINUUM_SCHEDULER_TICK_INTERVAL": ("scheduler", "tick_interval"),
        "CONTINUUM_STORAGE_DB_PATH": ("storage", "db_path"),
        "CONTINUUM_STORAGE_JOURNAL_LIMIT": ("storage", "journal_limit"),
        "CONTINUUM_LOG_DIR": ("logging", "dir"),
    }

    # Never coerced: a numeric-looking key or path is still a string
    raw_keys = {"url", "base_url", "api_key", "db_path", "dir"}

    for env_var, (section, key) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            result.setdefault(section, {})[key] = value if key in raw_keys else _convert_value(value)

    return result


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand(value: str) -> str:
    for var_name in _ENV_PATTERN.findall(value):
        value = value.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
    return value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _expand(value)
        elif isinstance(value, list):
            data[key] = [_expand(v) if isinstance(v, str) else v for v in value]
