"""
bootstrap/config.py - Engine configuration

Provides configuration loading from files, environment variables, and defaults.
ExecutionOptions is frozen: a session swaps it wholesale (e.g. to the "fast"
or "slow" profile) and never mutates it mid-execution.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional
from pathlib import Path
import os
import json
import logging

from ..errors import ConfigurationError

logger = logging.getLogger("dynparams.bootstrap.config")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class ExecutionOptions:
    """Limits applied to every data source execution in a session."""

    timeout_seconds: float = 30
    max_results: int = 1000
    progress_threshold_ms: int = 500

    # UI hint and debug switch
    show_progress_indicator: bool = True
    enable_performance_logging: bool = False

    @classmethod
    def default(cls) -> "ExecutionOptions":
        return cls()

    @classmethod
    def fast(cls) -> "ExecutionOptions":
        """Shorter budget for data sources known to be quick."""
        return cls(timeout_seconds=10, max_results=500, progress_threshold_ms=250)

    @classmethod
    def slow(cls) -> "ExecutionOptions":
        """Longer budget for data sources that query remote systems."""
        return cls(timeout_seconds=60, max_results=2000, progress_threshold_ms=1000)

    @classmethod
    def for_profile(cls, profile: str) -> "ExecutionOptions":
        profiles = {
            "default": cls.default,
            "fast": cls.fast,
            "slow": cls.slow,
        }
        try:
            return profiles[profile.lower()]()
        except KeyError:
            raise ConfigurationError(
                f"Unknown execution profile '{profile}'. "
                f"Expected one of: {', '.join(profiles)}"
            ) from None

    @classmethod
    def from_env(cls) -> "ExecutionOptions":
        base = cls.for_profile(os.getenv("DYNPARAMS_PROFILE", "default"))
        return cls(
            timeout_seconds=float(os.getenv("DYNPARAMS_TIMEOUT_SECONDS", str(base.timeout_seconds))),
            max_results=int(os.getenv("DYNPARAMS_MAX_RESULTS", str(base.max_results))),
            progress_threshold_ms=int(
                os.getenv("DYNPARAMS_PROGRESS_THRESHOLD_MS", str(base.progress_threshold_ms))
            ),
            show_progress_indicator=_env_bool("DYNPARAMS_SHOW_PROGRESS", "true"),
            enable_performance_logging=_env_bool("DYNPARAMS_PERF_LOGGING", "false"),
        )

    def validate(self) -> "ExecutionOptions":
        """Raise ConfigurationError if any limit is out of range."""
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be greater than 0")
        if self.max_results <= 0:
            raise ConfigurationError("max_results must be greater than 0")
        if self.progress_threshold_ms < 0:
            raise ConfigurationError("progress_threshold_ms cannot be negative")
        return self

    def with_overrides(self, **changes: Any) -> "ExecutionOptions":
        """Return a new, validated options object with some fields replaced."""
        return replace(self, **changes).validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeout_seconds": self.timeout_seconds,
            "max_results": self.max_results,
            "progress_threshold_ms": self.progress_threshold_ms,
            "show_progress_indicator": self.show_progress_indicator,
            "enable_performance_logging": self.enable_performance_logging,
        }


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("DYNPARAMS_LOG_LEVEL", "INFO"),
            format=os.getenv("DYNPARAMS_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("DYNPARAMS_LOG_FILE"),
            json_logs=_env_bool("DYNPARAMS_JSON_LOGS", "false"),
        )


@dataclass
class EngineConfig:
    """Root configuration for an engine host."""

    environment: str = "development"
    debug: bool = False
    profile: str = "default"

    options: ExecutionOptions = field(default_factory=ExecutionOptions)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Additional settings
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("DYNPARAMS_ENVIRONMENT", "development"),
            debug=_env_bool("DYNPARAMS_DEBUG", "false"),
            profile=os.getenv("DYNPARAMS_PROFILE", "default"),
            options=ExecutionOptions.from_env().validate(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "EngineConfig":
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create config from dictionary."""
        config = cls.from_env()

        # Override with file values
        if "environment" in data:
            config.environment = data["environment"]
        if "debug" in data:
            config.debug = data["debug"]
        if "profile" in data:
            config.profile = data["profile"]
            config.options = ExecutionOptions.for_profile(config.profile)

        if "options" in data:
            known = {
                key: value for key, value in data["options"].items()
                if hasattr(config.options, key)
            }
            config.options = config.options.with_overrides(**known)

        if "logging" in data:
            for key, value in data["logging"].items():
                if hasattr(config.logging, key):
                    setattr(config.logging, key, value)

        if "settings" in data:
            config.settings.update(data["settings"])

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config to dictionary."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "profile": self.profile,
            "options": self.options.to_dict(),
            "logging": {
                "level": self.logging.level,
                "log_file": self.logging.log_file,
                "json_logs": self.logging.json_logs,
            },
            "settings": dict(self.settings),
        }


# Global config instance
_config: Optional[EngineConfig] = None


def load_config(filepath: str = None) -> EngineConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        EngineConfig instance
    """
    global _config

    if filepath:
        _config = EngineConfig.from_file(filepath)
    else:
        # Try default locations
        default_paths = [
            "./dynparams.json",
            "./config/dynparams.json",
            os.path.expanduser("~/.dynparams/config.json"),
        ]

        for path in default_paths:
            if Path(path).exists():
                logger.info(f"Loading config from: {path}")
                _config = EngineConfig.from_file(path)
                return _config

        # Fall back to environment
        _config = EngineConfig.from_env()

    logger.info(f"Configuration loaded: environment={_config.environment}, profile={_config.profile}")
    return _config


def get_config() -> EngineConfig:
    """Get current configuration, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
