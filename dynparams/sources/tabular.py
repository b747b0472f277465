"""
sources/tabular.py - CSV data sources

Path resolution, optional per-row filtering and column projection for
tabular data sources. Errors carry enough context (paths tried, columns
found) to diagnose a broken declaration without opening the file.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, TYPE_CHECKING
import csv
import io
import logging

from ..errors import ExecutionError, SchemaError, SourceNotFoundError

if TYPE_CHECKING:
    from ..parameters.spec import TabularSource
    from .hosts import ScriptHost

logger = logging.getLogger(__name__)


@dataclass
class TableReadResult:
    """Projected column values plus advisory warnings."""
    values: List[Optional[str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    path: Optional[Path] = None
    rows_read: int = 0


def candidate_paths(
    specified: str,
    script_directory: Optional[Path] = None,
    working_directory: Optional[Path] = None,
) -> List[Path]:
    """Absolute locations to try, in order."""
    path = Path(specified).expanduser()
    if path.is_absolute():
        return [path]

    candidates = []
    if script_directory is not None:
        candidates.append((Path(script_directory) / path).resolve())
    cwd = Path(working_directory) if working_directory is not None else Path.cwd()
    cwd_candidate = (cwd / path).resolve()
    if cwd_candidate not in candidates:
        candidates.append(cwd_candidate)
    return candidates


def resolve_table_path(
    parameter: str,
    specified: str,
    script_directory: Optional[Path] = None,
    working_directory: Optional[Path] = None,
) -> Path:
    """
    Locate the CSV file for a parameter.

    Raises:
        SourceNotFoundError: listing every candidate that was tried
    """
    candidates = candidate_paths(specified, script_directory, working_directory)
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    cwd = Path(working_directory) if working_directory is not None else Path.cwd()
    lines = [f"CSV file not found for parameter '{parameter}'.", "", "Paths checked:"]
    lines.append(f"  Specified path: {specified}")
    for candidate in candidates:
        lines.append(f"  Resolved path: {candidate}")
    if script_directory is not None:
        lines.append(f"  Script directory: {script_directory}")
    lines.append(f"  Current directory: {cwd}")
    lines.extend([
        "",
        "Suggestions:",
        "  - Verify the file exists at the specified location",
        "  - Use an absolute path for the CSV file",
        "  - Ensure the path is relative to the script directory",
    ])
    raise SourceNotFoundError(parameter, [str(c) for c in candidates], "\n".join(lines))


def read_column(
    parameter: str,
    source: "TabularSource",
    host: "ScriptHost",
    script_directory: Optional[Path] = None,
    working_directory: Optional[Path] = None,
) -> TableReadResult:
    """Resolve, filter and project one tabular data source."""
    path = resolve_table_path(parameter, source.path, script_directory, working_directory)
    result = TableReadResult(path=path)
    filter_text = source.describe_filter()

    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SchemaError(
            parameter,
            f"CSV import failed for parameter '{parameter}'.\n\nFile: {path}\n\nError details:\n  {e}",
            column=source.column,
        ) from e

    if not content.strip():
        raise SchemaError(
            parameter,
            f"CSV import failed for parameter '{parameter}'.\n\nFile: {path}\n"
            f"Column: {source.column}\n\nError details:\n  The CSV file is empty.",
            column=source.column,
        )

    try:
        reader = csv.DictReader(io.StringIO(content))
        columns = [c for c in (reader.fieldnames or []) if c is not None]

        if source.column not in columns:
            raise SchemaError(
                parameter,
                f"CSV import failed for parameter '{parameter}'.\n\nFile: {path}\n"
                f"Column: {source.column}\n\nError details:\n"
                f"  The column '{source.column}' was not found in the CSV file.\n"
                f"  Available columns: {', '.join(columns)}\n"
                f"  Note: Column names are case-sensitive",
                column=source.column,
                available_columns=columns,
            )

        # Row 1 is the header
        for row_number, row in enumerate(reader, start=2):
            result.rows_read += 1
            if source.row_filter is not None and not _row_matches(
                parameter, source, host, row, row_number, path
            ):
                continue
            result.values.append(row.get(source.column))
    except csv.Error as e:
        raise SchemaError(
            parameter,
            f"CSV import failed for parameter '{parameter}'.\n\nFile: {path}\n\nError details:\n  {e}",
            column=source.column,
        ) from e

    if not result.values:
        message = f"CSV import for parameter '{parameter}' returned no values"
        if filter_text:
            message += f" after applying filter: {filter_text}"
        logger.warning(message)
        result.warnings.append(message)

    return result


def _row_matches(
    parameter: str,
    source: "TabularSource",
    host: "ScriptHost",
    row: Any,
    row_number: int,
    path: Path,
) -> bool:
    try:
        return host.evaluate_filter(source.row_filter, row)
    except Exception as e:
        raise ExecutionError(
            parameter,
            f"CSV filter failed for parameter '{parameter}' on row {row_number}.\n\n"
            f"File: {path}\nFilter: {source.describe_filter()}\n\n"
            f"Error details:\n  {type(e).__name__}: {e}",
            detail=str(e),
        ) from e
