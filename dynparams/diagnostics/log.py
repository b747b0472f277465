"""
Diagnostics Log

Structured, in-memory diagnostics stream for one session: registration
errors, unknown dependencies, execution failures, result warnings and
performance warnings. Every entry is also written to the module logger; this
log only keeps the session's entries queryable for the host. Nothing is
persisted.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set
import json
import logging
import uuid

from ..parameters.spec import normalize_name

logger = logging.getLogger(__name__)


# =============================================================================
# DIAGNOSTIC KINDS
# =============================================================================

class DiagnosticKind(Enum):
    """Type of diagnostic entry."""
    REGISTRATION_ERROR = "registration_error"     # Cycle, self-dependency, bad record
    UNKNOWN_DEPENDENCY = "unknown_dependency"     # Depends on an unregistered name
    EXECUTION_FAILURE = "execution_failure"       # Data source raised or timed out
    RESULT_WARNING = "result_warning"             # Empty values, truncation, no results
    PERFORMANCE_WARNING = "performance_warning"   # Slower than the progress threshold
    CASCADE = "cascade"                           # Cascade started/completed


_LEVELS = {
    DiagnosticKind.REGISTRATION_ERROR: logging.ERROR,
    DiagnosticKind.UNKNOWN_DEPENDENCY: logging.WARNING,
    DiagnosticKind.EXECUTION_FAILURE: logging.ERROR,
    DiagnosticKind.RESULT_WARNING: logging.WARNING,
    DiagnosticKind.PERFORMANCE_WARNING: logging.WARNING,
    DiagnosticKind.CASCADE: logging.INFO,
}


# =============================================================================
# DIAGNOSTIC ENTRY
# =============================================================================

@dataclass
class DiagnosticEntry:
    """A single entry in the diagnostics log."""
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: datetime = field(default_factory=datetime.utcnow)

    kind: DiagnosticKind = DiagnosticKind.EXECUTION_FAILURE
    message: str = ""

    # Subject
    parameter: Optional[str] = None
    cascade_id: Optional[str] = None

    # Context
    error_type: Optional[str] = None
    dependency_values: Dict[str, Any] = field(default_factory=dict)
    elapsed_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize entry to dict."""
        return {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "message": self.message,
            "parameter": self.parameter,
            "cascade_id": self.cascade_id,
            "error_type": self.error_type,
            "dependency_values": {
                k: _serialize_value(v) for k, v in self.dependency_values.items()
            },
            "elapsed_ms": self.elapsed_ms,
            "metadata": self.metadata,
        }


def _serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, dict)):
        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)
    return str(value)


# =============================================================================
# DIAGNOSTIC LOG
# =============================================================================

class DiagnosticLog:
    """Session-scoped diagnostics, bounded in size."""

    DEFAULT_MAX_ENTRIES = 5000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: List[DiagnosticEntry] = []
        self._max_entries = max_entries
        self._listeners: List[Callable[[DiagnosticEntry], None]] = []

    def log(self, entry: DiagnosticEntry) -> str:
        """
        Add an entry and mirror it to the logger.

        Returns:
            Entry ID
        """
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]

        logger.log(
            _LEVELS.get(entry.kind, logging.INFO),
            entry.message,
            extra={"parameter": entry.parameter},
        )

        for listener in self._listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Diagnostics listener error: {e}")

        return entry.entry_id

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        parameter: Optional[str] = None,
        **kwargs,
    ) -> str:
        """Convenience method to build and log an entry."""
        return self.log(DiagnosticEntry(kind=kind, message=message, parameter=parameter, **kwargs))

    def on_entry(self, callback: Callable[[DiagnosticEntry], None]) -> None:
        """Register a listener called for every new entry."""
        self._listeners.append(callback)

    # Queries

    def query(
        self,
        parameter: Optional[str] = None,
        kinds: Optional[Set[DiagnosticKind]] = None,
        cascade_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[DiagnosticEntry]:
        """Entries matching every given filter, newest first."""
        key = normalize_name(parameter) if parameter else None
        results = []
        for entry in reversed(self._entries):
            if key and (entry.parameter is None or normalize_name(entry.parameter) != key):
                continue
            if kinds and entry.kind not in kinds:
                continue
            if cascade_id and entry.cascade_id != cascade_id:
                continue
            if since and entry.timestamp < since:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    def get_by_parameter(self, parameter: str, limit: int = 100) -> List[DiagnosticEntry]:
        return self.query(parameter=parameter, limit=limit)

    def get_by_kind(self, kind: DiagnosticKind, limit: int = 100) -> List[DiagnosticEntry]:
        return self.query(kinds={kind}, limit=limit)

    def get_recent(self, count: int = 10) -> List[DiagnosticEntry]:
        return list(reversed(self._entries[-count:])) if count > 0 else []

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def get_statistics(self) -> Dict[str, Any]:
        by_kind: Dict[str, int] = {}
        for entry in self._entries:
            by_kind[entry.kind.value] = by_kind.get(entry.kind.value, 0) + 1
        return {
            "total_entries": len(self._entries),
            "by_kind": by_kind,
        }

    def to_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2)
