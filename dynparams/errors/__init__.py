"""
errors/ - Error Taxonomy

Exception hierarchy shared by the registry, resolver, executor and cascade
controller.
"""

from .taxonomy import (
    ErrorCategory,
    DynParamsError,
    ConfigurationError,
    CyclicDependencyError,
    SelfDependencyError,
    DataSourceError,
    SourceNotFoundError,
    SchemaError,
    ExecutionError,
    ExecutionTimeoutError,
    UnknownDependencyWarning,
)

__all__ = [
    "ErrorCategory",
    "DynParamsError",
    # Registration
    "ConfigurationError",
    "CyclicDependencyError",
    "SelfDependencyError",
    # Execution
    "DataSourceError",
    "SourceNotFoundError",
    "SchemaError",
    "ExecutionError",
    "ExecutionTimeoutError",
    # Advisory
    "UnknownDependencyWarning",
]
