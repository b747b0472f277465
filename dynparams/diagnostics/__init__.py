"""
diagnostics/ - Session diagnostics stream
"""

from .log import (
    DiagnosticKind,
    DiagnosticEntry,
    DiagnosticLog,
)

__all__ = [
    "DiagnosticKind",
    "DiagnosticEntry",
    "DiagnosticLog",
]
