"""
sources/ - Data Source Executor

Provides:
- DataSourceExecutor: deadline-bounded execution of computed and tabular sources
- ScriptHost / PythonScriptHost: execution context for scripts and row filters
- read_column / resolve_table_path: CSV resolution and projection
"""

from .hosts import (
    CANCEL_BINDING,
    ScriptHost,
    PythonScriptHost,
)
from .tabular import (
    TableReadResult,
    candidate_paths,
    resolve_table_path,
    read_column,
)
from .executor import (
    RawResult,
    DataSourceExecutor,
    restrict_values,
)

__all__ = [
    # Hosts
    "CANCEL_BINDING",
    "ScriptHost",
    "PythonScriptHost",
    # Tabular
    "TableReadResult",
    "candidate_paths",
    "resolve_table_path",
    "read_column",
    # Executor
    "RawResult",
    "DataSourceExecutor",
    "restrict_values",
]
