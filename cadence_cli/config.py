"""
Cadence Configuration Management.

Handles loading and validating configuration from various sources:
- Default values
- Configuration file (TOML)
- Environment variables
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional, List

from cadence_cli.errors import ConfigurationError


DEFAULT_CONFIG_DIR = Path.home() / ".config" / "cadence"
DEFAULT_CONFIG_FILE = "config.toml"

# Seconds a finished job stays listed before it is removed
DEFAULT_OBSERVATION_WINDOW = 300.0

# Levels understood by both logging and uvicorn
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class ServerConfig:
    """Configuration for the HTTP listener."""

    host: str = "0.0.0.0"
    port: int = 5000


@dataclass
class SchedulerConfig:
    """Configuration for the job scheduler."""

    observation_window: float = DEFAULT_OBSERVATION_WINDOW

    # Keep failed jobs listed (status "failed") for the observation window
    # instead of removing them on the spot
    retain_failed_jobs: bool = False

    misfire_grace_time: int = 30  # seconds


@dataclass
class RemoteConfig:
    """Configuration for the remote service endpoints."""

    resolver_url: str = ""
    token_url: str = ""
    write_url: str = ""
    timeout: float = 30.0

    # Credential entries that must be present in a submitted blob
    required_credential_keys: list[str] = field(default_factory=list)

    # Credential entry holding the account id shown for guard sessions
    user_id_key: str = "c_user"


@dataclass
class LoggingConfig:
    """Configuration for logging while serving.

    Console verbosity follows the CLI flags; ``level`` sets the server log
    level and, with ``format``, applies to ``file`` when one is given.
    """

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class CadenceConfig:
    """Main configuration container for Cadence."""

    config_dir: Path = DEFAULT_CONFIG_DIR

    server: ServerConfig = field(default_factory=ServerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "CADENCE_"
) -> CadenceConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/cadence/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = CadenceConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _load_from_env(config, env_prefix)

    return config


def _load_from_file(path: Path, config: CadenceConfig) -> CadenceConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(
            f"Failed to load config from {path}", details={"reason": str(e)}
        ) from e

    for section in ("server", "scheduler", "remote", "logging"):
        if section not in data:
            continue
        target = getattr(config, section)
        for key, value in data[section].items():
            if hasattr(target, key):
                setattr(target, key, value)

    if isinstance(config.logging.file, str):
        config.logging.file = Path(config.logging.file)

    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])

    return config


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _load_from_env(config: CadenceConfig, prefix: str) -> CadenceConfig:
    """Load configuration from environment variables."""

    # Plain PORT is honoured for hosting platforms; the prefixed form wins
    if env_val := os.environ.get("PORT"):
        config.server.port = int(env_val)
    if env_val := os.environ.get(f"{prefix}PORT"):
        config.server.port = int(env_val)
    if env_val := os.environ.get(f"{prefix}HOST"):
        config.server.host = env_val

    # Scheduler settings
    if env_val := os.environ.get(f"{prefix}OBSERVATION_WINDOW"):
        config.scheduler.observation_window = float(env_val)
    if env_val := os.environ.get(f"{prefix}RETAIN_FAILED_JOBS"):
        config.scheduler.retain_failed_jobs = _parse_bool(env_val)

    # Remote endpoints
    if env_val := os.environ.get(f"{prefix}RESOLVER_URL"):
        config.remote.resolver_url = env_val
    if env_val := os.environ.get(f"{prefix}TOKEN_URL"):
        config.remote.token_url = env_val
    if env_val := os.environ.get(f"{prefix}WRITE_URL"):
        config.remote.write_url = env_val
    if env_val := os.environ.get(f"{prefix}REMOTE_TIMEOUT"):
        config.remote.timeout = float(env_val)
    if env_val := os.environ.get(f"{prefix}REQUIRED_CREDENTIAL_KEYS"):
        config.remote.required_credential_keys = [
            k.strip() for k in env_val.split(",") if k.strip()
        ]

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()
    if env_val := os.environ.get(f"{prefix}LOG_FILE"):
        config.logging.file = Path(env_val)

    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)

    return config


def _validate_url(url: str) -> bool:
    """Validate a URL format."""
    url_pattern = r"^https?://[^\s/$.?#].[^\s]*$"
    return bool(re.match(url_pattern, url))


def validate_config(config: Optional[CadenceConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []

    if not 0 < config.server.port < 65536:
        errors.append(ValidationError(
            field="server.port",
            message=f"Port out of range: {config.server.port}",
            severity="error"
        ))

    if config.scheduler.observation_window < 0:
        errors.append(ValidationError(
            field="scheduler.observation_window",
            message="Observation window must not be negative.",
            severity="error"
        ))

    for name in ("resolver_url", "token_url", "write_url"):
        value = getattr(config.remote, name)
        if not value:
            errors.append(ValidationError(
                field=f"remote.{name}",
                message="Endpoint not set. Job submission will fail.",
                severity="error"
            ))
        elif not _validate_url(value):
            errors.append(ValidationError(
                field=f"remote.{name}",
                message=f"Invalid URL format: {value}",
                severity="error"
            ))

    if config.remote.timeout <= 0:
        errors.append(ValidationError(
            field="remote.timeout",
            message="Timeout must be positive.",
            severity="error"
        ))

    if config.logging.level.upper() not in LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error"
        ))

    return errors


def config_to_dict(config: CadenceConfig) -> dict[str, Any]:
    """Convert configuration to a JSON-friendly dictionary."""
    data = asdict(config)
    data["config_dir"] = str(config.config_dir)
    if config.logging.file is not None:
        data["logging"]["file"] = str(config.logging.file)
    return data


# Global configuration instance (lazy-loaded)
_global_config: Optional[CadenceConfig] = None


def get_config() -> CadenceConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: CadenceConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None
