"""
sources/executor.py - Data Source Executor

Runs one parameter's data source against a snapshot of dependency values and
returns its raw, not-yet-normalized output, or raises a DataSourceError.

Every execution runs on its own daemon worker thread. The calling thread
waits on a future for at most options.timeout_seconds; when the deadline
passes the worker's cancel event is set and the worker is abandoned, since an
arbitrary script cannot always be stopped safely.
"""

from __future__ import annotations
from collections.abc import Iterator
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
import logging
import threading
import time
import traceback

from ..bootstrap.config import ExecutionOptions
from ..errors import (
    ConfigurationError,
    DataSourceError,
    ExecutionError,
    ExecutionTimeoutError,
)
from ..parameters.spec import ComputedSource, ParameterSpec, SourceKind, TabularSource, normalize_name
from .hosts import PythonScriptHost, ScriptHost
from .tabular import read_column

logger = logging.getLogger(__name__)


@dataclass
class RawResult:
    """Unprocessed output of one execution."""
    parameter: str
    values: Any = None
    elapsed_ms: int = 0
    warnings: List[str] = field(default_factory=list)
    bindings: Dict[str, Any] = field(default_factory=dict)
    missing_dependencies: List[str] = field(default_factory=list)


def restrict_values(
    spec: ParameterSpec,
    values: Optional[Mapping[str, Any]],
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Copy of the dependency values a data source may see.

    Keys use the spelling declared in depends_on. Dependencies absent from
    `values` are returned separately rather than bound as None.
    """
    by_key: Dict[str, Any] = {}
    for name, value in (values or {}).items():
        by_key[normalize_name(name)] = value

    bindings: Dict[str, Any] = {}
    missing: List[str] = []
    for dep in spec.depends_on:
        key = normalize_name(dep)
        if key in by_key:
            value = by_key[key]
            # Shallow copy of mutable values keeps the worker off shared state
            if isinstance(value, list):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            bindings[dep] = value
        else:
            missing.append(dep)
    return bindings, missing


def format_dependency_values(spec: ParameterSpec, bindings: Mapping[str, Any]) -> List[str]:
    lines = []
    for dep in spec.depends_on:
        if dep in bindings:
            lines.append(f"  -{dep}: {bindings[dep]!r}")
        else:
            lines.append(f"  -{dep}: (not provided)")
    return lines


class DataSourceExecutor:
    """
    Executes computed and tabular data sources under a deadline.

    The host supplies the execution context for scripts and row filters.
    Options are read once per execution and replaced wholesale, never
    mutated.
    """

    def __init__(
        self,
        host: Optional[ScriptHost] = None,
        options: Optional[ExecutionOptions] = None,
        working_directory: Optional[Path] = None,
    ):
        self.host = host or PythonScriptHost()
        self._options = (options or ExecutionOptions.default()).validate()
        self.working_directory = Path(working_directory) if working_directory else None

        # Workers abandoned after a timeout, kept for inspection
        self._abandoned: List[threading.Thread] = []

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    @options.setter
    def options(self, options: ExecutionOptions) -> None:
        self._options = options.validate()

    @property
    def abandoned_workers(self) -> List[threading.Thread]:
        """Workers still alive after their deadline passed."""
        self._abandoned = [t for t in self._abandoned if t.is_alive()]
        return list(self._abandoned)

    def execute(
        self,
        spec: ParameterSpec,
        values: Optional[Mapping[str, Any]] = None,
    ) -> RawResult:
        """
        Run the data source of `spec`.

        Args:
            spec: A computed or tabular parameter
            values: Current value snapshot; only spec.depends_on is read

        Returns:
            RawResult with the unprocessed output

        Raises:
            DataSourceError: SourceNotFoundError, SchemaError, ExecutionError
                or ExecutionTimeoutError
        """
        options = self._options
        bindings, missing = restrict_values(spec, values)
        for dep in missing:
            logger.warning(
                f"Dependency '{dep}' of '{spec.name}' not found in parameter values; "
                f"omitting binding"
            )
        for dep, value in bindings.items():
            logger.debug(f"Passing dependency '{dep}' = '{value}' to '{spec.name}'")

        kind = spec.source_kind
        if kind is SourceKind.COMPUTED:
            work = self._computed_work(spec, spec.source, bindings)
        elif kind is SourceKind.TABULAR:
            work = self._tabular_work(spec, spec.source)
        else:
            raise ConfigurationError(
                f"Parameter '{spec.name}' has no data source to execute",
                parameter=spec.name,
            )

        start = time.monotonic()
        values_out, warnings = self._run_with_deadline(
            spec.name, work, options.timeout_seconds
        )
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if options.enable_performance_logging:
            logger.debug(f"Raw execution of '{spec.name}' finished in {elapsed_ms}ms")

        return RawResult(
            parameter=spec.name,
            values=values_out,
            elapsed_ms=elapsed_ms,
            warnings=list(warnings),
            bindings=bindings,
            missing_dependencies=missing,
        )

    # -------------------------------------------------------------------------
    # Source kinds
    # -------------------------------------------------------------------------

    def _computed_work(
        self,
        spec: ParameterSpec,
        source: ComputedSource,
        bindings: Dict[str, Any],
    ) -> Callable[[threading.Event], Tuple[Any, List[str]]]:
        host = self.host

        def work(cancel_event: threading.Event) -> Tuple[Any, List[str]]:
            try:
                result = host.run(source.script, bindings, cancel_event)
                # Generators must be drained on the worker, not the caller
                if isinstance(result, Iterator):
                    result = list(result)
                return result, []
            except DataSourceError:
                raise
            except Exception as e:
                raise self._execution_error(spec, source, bindings, e) from e

        return work

    def _tabular_work(
        self,
        spec: ParameterSpec,
        source: TabularSource,
    ) -> Callable[[threading.Event], Tuple[Any, List[str]]]:
        host = self.host
        working_directory = self.working_directory

        def work(cancel_event: threading.Event) -> Tuple[Any, List[str]]:
            table = read_column(
                spec.name,
                source,
                host,
                script_directory=spec.script_directory,
                working_directory=working_directory,
            )
            return table.values, table.warnings

        return work

    def _execution_error(
        self,
        spec: ParameterSpec,
        source: ComputedSource,
        bindings: Mapping[str, Any],
        error: Exception,
    ) -> ExecutionError:
        diagnostic = f"{type(error).__name__}: {error}"
        lines = [f"Script execution failed for parameter '{spec.name}'.", ""]
        lines.append("Script content:")
        lines.append("  " + source.describe().replace("\n", "\n  "))
        lines.append("")
        if spec.depends_on:
            lines.append("Parameters passed:")
            lines.extend(format_dependency_values(spec, bindings))
            lines.append("")
        lines.append("Error details:")
        lines.append(f"  {diagnostic}")
        lines.append("")
        lines.append("Suggestions:")
        lines.append("  - Run the script outside the form with the same parameter values")
        lines.append("  - Verify the script's input names match its declared dependencies")
        lines.append("  - Check that required modules are available")

        logger.error(f"Script execution error for '{spec.name}': {diagnostic}")
        return ExecutionError(
            spec.name,
            "\n".join(lines),
            detail="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            dependency_values=bindings,
        )

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _run_with_deadline(
        self,
        parameter: str,
        work: Callable[[threading.Event], Any],
        timeout_seconds: float,
    ) -> Any:
        future: Future = Future()
        cancel_event = threading.Event()

        def worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = work(cancel_event)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        thread = threading.Thread(
            target=worker,
            name=f"dynparams-source-{parameter}",
            daemon=True,
        )
        start = time.monotonic()
        thread.start()

        try:
            return future.result(timeout=timeout_seconds)
        except FutureTimeoutError:
            # Finished between the deadline and this check
            if future.done():
                return future.result(timeout=0)
            elapsed = time.monotonic() - start
            cancel_event.set()
            self._abandoned.append(thread)
            logger.error(
                f"Data source for '{parameter}' exceeded {timeout_seconds}s; "
                f"abandoning worker {thread.name}"
            )
            raise ExecutionTimeoutError(parameter, elapsed, timeout_seconds) from None
