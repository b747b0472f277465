"""
results/ - Result Processor

Flattening, empty filtering, truncation and diagnostics for data source output.
"""

from .processor import (
    ERROR_PREFIX,
    ExecutionResult,
    ResultProcessor,
    flatten_one_level,
    to_display_string,
)

__all__ = [
    "ERROR_PREFIX",
    "ExecutionResult",
    "ResultProcessor",
    "flatten_one_level",
    "to_display_string",
]
