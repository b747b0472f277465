"""
errors/taxonomy.py - Error classification for the data source engine

Registration-time errors (ConfigurationError and subclasses) are raised to the
caller. Execution-time errors (DataSourceError and subclasses) are localized to
one parameter and converted into an "Error: ..." choice list by the cascade
controller.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCategory(Enum):
    """Error categories."""
    CONFIGURATION = "configuration"
    SOURCE = "source"
    SCHEMA = "schema"
    EXECUTION = "execution"
    TIMEOUT = "timeout"


class DynParamsError(Exception):
    """Base exception for the dynamic parameter engine."""

    category: ErrorCategory = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.parameter = parameter

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "category": self.category.value,
            "parameter": self.parameter,
            "message": self.message,
        }


# =============================================================================
# REGISTRATION TIME
# =============================================================================

class ConfigurationError(DynParamsError):
    """Invalid parameter declarations. Fatal to the registration batch."""

    category = ErrorCategory.CONFIGURATION


class CyclicDependencyError(ConfigurationError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle: List[str] = list(cycle)
        # The last entry is the parameter that closed the cycle
        closing = self.cycle[-1] if self.cycle else None
        super().__init__(
            f"Circular dependency detected involving parameter '{closing}': "
            f"{' -> '.join(self.cycle)}",
            parameter=closing,
        )


class SelfDependencyError(ConfigurationError):
    """Raised when a parameter lists itself in its own dependencies."""

    def __init__(self, parameter: str):
        super().__init__(
            f"Parameter '{parameter}' cannot depend on itself",
            parameter=parameter,
        )


# =============================================================================
# EXECUTION TIME
# =============================================================================

class DataSourceError(DynParamsError):
    """Base for failures of a single data source execution."""

    category = ErrorCategory.EXECUTION


class SourceNotFoundError(DataSourceError):
    """Tabular source file could not be located."""

    category = ErrorCategory.SOURCE

    def __init__(self, parameter: str, candidates: Sequence[str], message: Optional[str] = None):
        self.candidates: List[str] = list(candidates)
        if message is None:
            message = (
                f"CSV file not found for parameter '{parameter}'. "
                f"Paths checked: {', '.join(self.candidates)}"
            )
        super().__init__(message, parameter=parameter)


class SchemaError(DataSourceError):
    """Tabular source does not have the expected shape."""

    category = ErrorCategory.SCHEMA

    def __init__(
        self,
        parameter: str,
        message: str,
        column: Optional[str] = None,
        available_columns: Optional[Sequence[str]] = None,
    ):
        super().__init__(message, parameter=parameter)
        self.column = column
        self.available_columns: List[str] = list(available_columns or [])


class ExecutionError(DataSourceError):
    """A computation raised while producing choices."""

    category = ErrorCategory.EXECUTION

    def __init__(
        self,
        parameter: str,
        message: str,
        detail: str = "",
        dependency_values: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, parameter=parameter)
        self.detail = detail
        self.dependency_values = dict(dependency_values or {})


class ExecutionTimeoutError(DataSourceError):
    """A computation did not finish within its time budget."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, parameter: str, elapsed_seconds: float, timeout_seconds: float):
        message = (
            f"Data source for '{parameter}' timed out after {elapsed_seconds:.2f}s "
            f"(budget {timeout_seconds}s). Consider optimizing the script or "
            f"increasing the timeout."
        )
        super().__init__(message, parameter=parameter)
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds


# =============================================================================
# ADVISORY
# =============================================================================

class UnknownDependencyWarning(UserWarning):
    """A parameter depends on a name that was never registered."""

    def __init__(self, parameter: str, dependency: str):
        super().__init__(
            f"Parameter '{parameter}' depends on unregistered parameter '{dependency}'"
        )
        self.parameter = parameter
        self.dependency = dependency
