"""
bootstrap/ - Bootstrap Layer

Configuration (execution limits, logging) and logging setup for engine hosts.
"""

from .config import (
    ExecutionOptions,
    LoggingConfig,
    EngineConfig,
    load_config,
    get_config,
    reset_config,
)

from .log_setup import (
    JSONFormatter,
    setup_logging,
    setup_logging_from_config,
)


__all__ = [
    # Config
    "ExecutionOptions",
    "LoggingConfig",
    "EngineConfig",
    "load_config",
    "get_config",
    "reset_config",
    # Logging
    "JSONFormatter",
    "setup_logging",
    "setup_logging_from_config",
]
