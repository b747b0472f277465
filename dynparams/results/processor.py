"""
results/processor.py - Result normalization

Turns the raw value a data source produced into the ordered list of display
strings a choice control shows, with advisory warnings for empty values,
truncation and slow executions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..bootstrap.config import ExecutionOptions

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one data source execution. Treated as a value."""
    parameter: str
    choices: Tuple[str, ...] = ()
    elapsed_ms: int = 0
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None
    error_type: Optional[str] = None

    # Statistics
    original_count: int = 0
    filtered_empty_count: int = 0
    truncated: bool = False
    slow: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def is_empty(self) -> bool:
        return self.success and not self.choices

    @classmethod
    def error_result(
        cls,
        parameter: str,
        message: str,
        elapsed_ms: int = 0,
        error_type: Optional[str] = None,
        warnings: Sequence[str] = (),
    ) -> "ExecutionResult":
        """Single "Error: ..." entry so the UI never keeps a stale list."""
        return cls(
            parameter=parameter,
            choices=(f"{ERROR_PREFIX}{message}",),
            elapsed_ms=elapsed_ms,
            warnings=tuple(warnings),
            error=message,
            error_type=error_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "choices": list(self.choices),
            "elapsed_ms": self.elapsed_ms,
            "warnings": list(self.warnings),
            "error": self.error,
            "error_type": self.error_type,
            "original_count": self.original_count,
            "filtered_empty_count": self.filtered_empty_count,
            "truncated": self.truncated,
            "slow": self.slow,
        }


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray, Mapping))


def flatten_one_level(raw: Any) -> List[Any]:
    """
    Top-level items of a raw result, with nested sequences spliced in.

    Only one level is flattened; deeper sequences become display strings.
    A scalar raw result is a single item.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, bytearray)) or not isinstance(raw, Iterable):
        return [raw]

    items: List[Any] = []
    for item in raw:
        if _is_sequence(item):
            items.extend(item)
        else:
            items.append(item)
    return items


def to_display_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


class ResultProcessor:
    """Normalizes and bounds raw data source output."""

    def __init__(self, options: "ExecutionOptions"):
        self.options = options

    def process(
        self,
        parameter: str,
        raw: Any,
        elapsed_ms: int,
        extra_warnings: Sequence[str] = (),
    ) -> ExecutionResult:
        """
        Build the final ExecutionResult.

        Args:
            parameter: Parameter the result belongs to
            raw: Whatever the data source returned
            elapsed_ms: Wall time of the execution
            extra_warnings: Warnings already raised by the executor

        Returns:
            ExecutionResult with at most options.max_results choices
        """
        options = self.options
        warnings: List[str] = list(extra_warnings)

        items = flatten_one_level(raw)
        choices: List[str] = []
        empty_count = 0
        for item in items:
            text = to_display_string(item)
            if text is None or not text.strip():
                empty_count += 1
                continue
            choices.append(text)

        if empty_count:
            message = f"Filtered {empty_count} empty values from data source for '{parameter}'"
            logger.warning(message)
            warnings.append(message)

        if not choices:
            message = f"Data source for '{parameter}' returned no results"
            logger.warning(message)
            warnings.append(message)

        original_count = len(choices)
        truncated = original_count > options.max_results
        if truncated:
            choices = choices[:options.max_results]
            message = (
                f"Data source for '{parameter}' returned {original_count} results, "
                f"truncated from {original_count} to {options.max_results}"
            )
            logger.warning(message)
            warnings.append(message)

        slow = elapsed_ms > options.progress_threshold_ms
        if slow:
            message = (
                f"Data source for '{parameter}' took {elapsed_ms}ms "
                f"(progress threshold {options.progress_threshold_ms}ms)"
            )
            warnings.append(message)

        if slow or options.enable_performance_logging:
            logger.info(
                f"Executed data source for '{parameter}': {len(choices)} items in {elapsed_ms}ms"
            )

        return ExecutionResult(
            parameter=parameter,
            choices=tuple(choices),
            elapsed_ms=elapsed_ms,
            warnings=tuple(warnings),
            original_count=original_count,
            filtered_empty_count=empty_count,
            truncated=truncated,
            slow=slow,
        )
