"""
Cascade Controller

Orchestrates data source execution for one form session:

- Initial population: every data-source-backed parameter runs once, in
  execution order, and seeds the value snapshot so later parameters in the
  same pass see it.
- Change propagation: when a parameter's value changes, only its transitive
  data-source dependents re-run, strictly one at a time, each reading the
  snapshot as it stands when its turn comes.
- Failure policy: a failed data source publishes a single "Error: ..." choice
  and the cascade continues. Only registration-time ConfigurationErrors reach
  the caller.

The controller is driven from a single controlling thread. A change that
arrives while a cascade is outstanding (from a listener, or another thread)
is coalesced per parameter and replayed, with its most recent value, once the
outstanding cascade completes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging
import threading
import time
import uuid

from ..bootstrap.config import ExecutionOptions
from ..dependencies.graph import DependencyGraph, ExecutionOrder
from ..diagnostics.log import DiagnosticKind, DiagnosticLog
from ..errors import ConfigurationError, DataSourceError
from ..parameters.registry import ParameterRegistry
from ..parameters.spec import ParameterSpec, normalize_name
from ..results.processor import ExecutionResult, ResultProcessor
from ..sources.executor import DataSourceExecutor
from ..sources.hosts import ScriptHost
from .snapshot import ValueSnapshot

logger = logging.getLogger(__name__)

_UNSET = object()


# =============================================================================
# PARAMETER STATE
# =============================================================================

class ParameterState(Enum):
    """Lifecycle of a data-source-backed parameter."""
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


_TRANSITIONS = {
    ParameterState.UNRESOLVED: {ParameterState.RESOLVING},
    ParameterState.RESOLVING: {ParameterState.RESOLVED, ParameterState.FAILED},
    ParameterState.RESOLVED: {ParameterState.RESOLVING},
    ParameterState.FAILED: {ParameterState.RESOLVING},
}


# =============================================================================
# PUBLISHED UPDATES
# =============================================================================

@dataclass(frozen=True)
class ChoiceListUpdate:
    """New choices for one control, emitted after every execution."""
    parameter: str
    choices: Tuple[str, ...]
    warnings: Tuple[str, ...] = ()
    state: ParameterState = ParameterState.RESOLVED
    is_error: bool = False
    elapsed_ms: int = 0
    cascade_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "choices": list(self.choices),
            "warnings": list(self.warnings),
            "state": self.state.value,
            "is_error": self.is_error,
            "elapsed_ms": self.elapsed_ms,
            "cascade_id": self.cascade_id,
        }


@dataclass
class CascadeResult:
    """Result of one initial population, cascade or refresh."""
    cascade_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Executed parameters in order, and their results
    executed: List[str] = field(default_factory=list)
    results: Dict[str, ExecutionResult] = field(default_factory=dict)

    # Summary
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    total_time_ms: int = 0

    # Metadata
    triggered_by: str = "change"
    trigger_parameter: Optional[str] = None

    # Changes that arrived while this cascade ran, replayed afterwards
    coalesced: int = 0
    follow_ups: List["CascadeResult"] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    @property
    def total_count(self) -> int:
        return len(self.executed)

    def get_summary(self) -> Dict[str, Any]:
        return {
            "cascade_id": self.cascade_id,
            "success": self.success,
            "total": self.total_count,
            "succeeded": self.success_count,
            "failed": self.failed_count,
            "skipped": self.skipped_count,
            "total_time_ms": self.total_time_ms,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cascade_id": self.cascade_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "executed": list(self.executed),
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "total_time_ms": self.total_time_ms,
            "triggered_by": self.triggered_by,
            "trigger_parameter": self.trigger_parameter,
            "coalesced": self.coalesced,
            "follow_ups": [f.to_dict() for f in self.follow_ups],
        }


# =============================================================================
# CASCADE CONTROLLER
# =============================================================================

UpdateCallback = Callable[[ChoiceListUpdate], None]
ProgressCallback = Callable[[str, str], None]


class CascadeController:
    """
    Drives data source execution for one session.

    Owns the value snapshot and the last result per parameter; both are torn
    down with the controller.
    """

    def __init__(
        self,
        registry: ParameterRegistry,
        executor: Optional[DataSourceExecutor] = None,
        options: Optional[ExecutionOptions] = None,
        host: Optional[ScriptHost] = None,
        processor: Optional[ResultProcessor] = None,
        snapshot: Optional[ValueSnapshot] = None,
        diagnostics: Optional[DiagnosticLog] = None,
    ):
        if options is None:
            options = executor.options if executor is not None else ExecutionOptions.default()
        options.validate()

        self._registry = registry
        self._graph = DependencyGraph(registry)
        self._executor = executor or DataSourceExecutor(host=host, options=options)
        self._executor.options = options
        self._processor = processor or ResultProcessor(options)
        self._processor.options = options
        self._options = options

        self._snapshot = snapshot if snapshot is not None else ValueSnapshot()
        self._diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()

        # Per-parameter state, keyed by normalized name
        self._states: Dict[str, ParameterState] = {}
        self._results: Dict[str, ExecutionResult] = {}
        self._execution_counts: Dict[str, int] = {}

        # Cascade bookkeeping
        self._lock = threading.Lock()
        self._is_running = False
        # key -> (name, value, include_root); include_root marks a queued refresh
        self._pending: Dict[str, Tuple[str, Any, bool]] = {}
        self._reported_version: Optional[int] = None

        self._update_callbacks: List[UpdateCallback] = []
        self._progress_callbacks: List[ProgressCallback] = []

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def registry(self) -> ParameterRegistry:
        return self._registry

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    @property
    def snapshot(self) -> ValueSnapshot:
        return self._snapshot

    @property
    def diagnostics(self) -> DiagnosticLog:
        return self._diagnostics

    @property
    def options(self) -> ExecutionOptions:
        return self._options

    @property
    def execution_order(self) -> ExecutionOrder:
        return self.resolve()

    def is_running(self) -> bool:
        return self._is_running

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, specs: Iterable[ParameterSpec]) -> ExecutionOrder:
        """
        Register a batch of specs, all or nothing.

        The batch is resolved against the current registry before anything is
        changed, so an invalid batch leaves the controller untouched.

        Raises:
            ConfigurationError: the batch forms a cycle or is otherwise invalid
        """
        batch = list(specs)
        candidate = ParameterRegistry(list(self._registry))
        candidate.register_all(batch)
        try:
            DependencyGraph(candidate).resolve()
        except ConfigurationError as e:
            self._diagnostics.record(
                DiagnosticKind.REGISTRATION_ERROR, str(e), parameter=e.parameter
            )
            raise

        self._registry.register_all(batch)
        return self.resolve()

    def resolve(self) -> ExecutionOrder:
        """
        Resolve the execution order for the current registry.

        Raises:
            ConfigurationError: cyclic dependencies
        """
        try:
            order = self._graph.resolve()
        except ConfigurationError as e:
            if self._reported_version != self._registry.version:
                self._reported_version = self._registry.version
                self._diagnostics.record(
                    DiagnosticKind.REGISTRATION_ERROR, str(e), parameter=e.parameter
                )
            raise

        if self._reported_version != order.registry_version:
            self._reported_version = order.registry_version
            for parameter, dependency in order.unknown_dependencies:
                self._diagnostics.record(
                    DiagnosticKind.UNKNOWN_DEPENDENCY,
                    f"Parameter '{parameter}' depends on unregistered parameter '{dependency}'",
                    parameter=parameter,
                    metadata={"dependency": dependency},
                )

        for name in order:
            self._states.setdefault(normalize_name(name), ParameterState.UNRESOLVED)
        return order

    # -------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------

    def set_options(self, options: ExecutionOptions) -> None:
        """Swap the execution options wholesale. Not allowed mid-cascade."""
        options.validate()
        with self._lock:
            if self._is_running:
                raise RuntimeError("Cannot change execution options while a cascade is in progress")
            self._options = options
            self._executor.options = options
            self._processor.options = options
        logger.info(f"Execution options replaced: {options.to_dict()}")

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_update(self, callback: UpdateCallback) -> None:
        """Register a callback for choice-list updates."""
        self._update_callbacks.append(callback)

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a callback told when a known-slow data source starts."""
        self._progress_callbacks.append(callback)

    def _publish(self, update: ChoiceListUpdate) -> None:
        for callback in self._update_callbacks:
            try:
                callback(update)
            except Exception as e:
                logger.error(f"Choice update callback error for '{update.parameter}': {e}")

    def _notify_progress(self, parameter: str, message: str) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(parameter, message)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def initialize(self) -> CascadeResult:
        """
        Run every data source once, in execution order.

        Raises:
            ConfigurationError: the registry cannot be resolved
        """
        order = self.resolve()
        return self._guarded(
            lambda: self._run(list(order), triggered_by="initialize", trigger=None)
        )

    def set_value(self, name: str, value: Any) -> Optional[CascadeResult]:
        """Record a user edit and cascade to dependents."""
        return self.notify_changed(name, value)

    def notify_changed(self, name: str, value: Any = _UNSET) -> Optional[CascadeResult]:
        """
        Re-run the data sources that transitively depend on `name`.

        If `value` is given it is written to the snapshot first; otherwise the
        caller is expected to have written it already.

        Returns:
            CascadeResult, or None if the change was coalesced into a cascade
            already in progress
        """
        if self._defer(name, value):
            return None

        try:
            if value is not _UNSET:
                self._snapshot[name] = value
            result = self._cascade_from(name, include_root=False, triggered_by="change")
            self._drain_pending(result)
            return result
        finally:
            self._release()

    def refresh(self, name: str) -> Optional[CascadeResult]:
        """Re-run one parameter's data source, then cascade to its dependents."""
        spec = self._registry.get(name)
        if spec is None or not spec.is_data_source:
            logger.warning(f"Parameter '{name}' is not registered as dynamic")
            return None

        if self._defer(name, _UNSET, include_root=True):
            return None

        try:
            result = self._cascade_from(name, include_root=True, triggered_by="refresh")
            self._drain_pending(result)
            return result
        finally:
            self._release()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def state(self, name: str) -> Optional[ParameterState]:
        return self._states.get(normalize_name(name))

    def choices(self, name: str) -> List[str]:
        result = self._results.get(normalize_name(name))
        return list(result.choices) if result else []

    def last_result(self, name: str) -> Optional[ExecutionResult]:
        return self._results.get(normalize_name(name))

    def execution_count(self, name: str) -> int:
        return self._execution_counts.get(normalize_name(name), 0)

    def is_slow(self, name: str) -> bool:
        result = self._results.get(normalize_name(name))
        return bool(result and result.slow)

    def get_dependent_parameters(self, name: str) -> List[str]:
        return self._graph.get_recalculation_order([name])

    # -------------------------------------------------------------------------
    # Cascade machinery
    # -------------------------------------------------------------------------

    def _guarded(self, run: Callable[[], CascadeResult]) -> CascadeResult:
        with self._lock:
            if self._is_running:
                raise RuntimeError("Cascade already in progress")
            self._is_running = True
        try:
            result = run()
            self._drain_pending(result)
            return result
        finally:
            self._release()

    def _defer(self, name: str, value: Any, include_root: bool = False) -> bool:
        """
        Queue the change if a cascade is outstanding; otherwise claim the controller.

        Requests for the same parameter merge: the latest real value wins, and
        a queued refresh stays a refresh.
        """
        with self._lock:
            if self._is_running:
                key = normalize_name(name)
                queued = self._pending.get(key)
                if queued is not None:
                    _, queued_value, queued_root = queued
                    if value is _UNSET:
                        value = queued_value
                    include_root = include_root or queued_root
                self._pending[key] = (name, value, include_root)
                logger.info(
                    f"{'Refresh of' if include_root else 'Change to'} '{name}' arrived "
                    f"during a cascade; {'merged with queued request' if queued else 'queued'}"
                )
                return True
            self._is_running = True
            return False

    def _release(self) -> None:
        with self._lock:
            self._is_running = False

    def _drain_pending(self, result: CascadeResult) -> None:
        """Replay coalesced changes, most recent value per parameter."""
        while True:
            with self._lock:
                if not self._pending:
                    return
                key = next(iter(self._pending))
                name, value, include_root = self._pending.pop(key)
            result.coalesced += 1
            if value is not _UNSET:
                self._snapshot[name] = value
            follow_up = self._cascade_from(
                name, include_root=include_root, triggered_by="coalesced"
            )
            result.follow_ups.append(follow_up)

    def _cascade_from(self, name: str, include_root: bool, triggered_by: str) -> CascadeResult:
        self.resolve()
        to_run = self._graph.get_recalculation_order([name])
        if include_root:
            to_run = [self._registry.canonical_name(name)] + to_run

        if not to_run:
            logger.debug(f"No dependent parameters found for '{name}'")

        return self._run(to_run, triggered_by=triggered_by, trigger=name)

    def _run(self, names: List[str], triggered_by: str, trigger: Optional[str]) -> CascadeResult:
        result = CascadeResult(
            cascade_id=str(uuid.uuid4())[:8],
            started_at=datetime.utcnow(),
            triggered_by=triggered_by,
            trigger_parameter=trigger,
        )
        if not names:
            result.completed_at = datetime.utcnow()
            return result

        logger.info(
            f"Starting cascade {result.cascade_id} ({triggered_by}"
            f"{f' of {trigger}' if trigger else ''}): [{', '.join(names)}]"
        )
        start = time.monotonic()

        # Strictly sequential: each parameter sees values its ancestors just produced
        for name in names:
            self._execute_parameter(name, result)

        result.completed_at = datetime.utcnow()
        result.total_time_ms = int((time.monotonic() - start) * 1000)

        self._diagnostics.record(
            DiagnosticKind.CASCADE,
            f"Cascade {result.cascade_id} complete: {result.success_count} succeeded, "
            f"{result.failed_count} failed, {result.skipped_count} skipped "
            f"in {result.total_time_ms}ms",
            parameter=trigger,
            cascade_id=result.cascade_id,
        )
        return result

    def _transition(self, name: str, new_state: ParameterState) -> None:
        key = normalize_name(name)
        current = self._states.get(key, ParameterState.UNRESOLVED)
        if new_state not in _TRANSITIONS[current]:
            raise RuntimeError(
                f"Invalid state transition for '{name}': {current.value} -> {new_state.value}"
            )
        self._states[key] = new_state

    def _execute_parameter(self, name: str, cascade: CascadeResult) -> None:
        spec = self._registry.get(name)
        key = normalize_name(name)

        if spec is None or not spec.is_data_source:
            cascade.skipped_count += 1
            return
        if self._states.get(key) is ParameterState.RESOLVING:
            logger.warning(f"'{spec.name}' is already being refreshed; skipping")
            cascade.skipped_count += 1
            return

        if self._options.show_progress_indicator and self.is_slow(spec.name):
            self._notify_progress(spec.name, f"Loading {spec.name}...")

        self._transition(spec.name, ParameterState.RESOLVING)
        self._execution_counts[key] = self._execution_counts.get(key, 0) + 1

        start = time.monotonic()
        try:
            raw = self._executor.execute(spec, self._snapshot)
            result = self._processor.process(spec.name, raw.values, raw.elapsed_ms, raw.warnings)
        except Exception as e:
            result = self._failure(spec, e, int((time.monotonic() - start) * 1000), cascade)

        if result.success:
            self._transition(spec.name, ParameterState.RESOLVED)
            cascade.success_count += 1
            self._seed_value(spec, result)
            self._record_warnings(result, cascade)
        else:
            self._transition(spec.name, ParameterState.FAILED)
            cascade.failed_count += 1

        self._results[key] = result
        cascade.executed.append(spec.name)
        cascade.results[spec.name] = result

        self._publish(ChoiceListUpdate(
            parameter=spec.name,
            choices=result.choices,
            warnings=result.warnings,
            state=self._states[key],
            is_error=not result.success,
            elapsed_ms=result.elapsed_ms,
            cascade_id=cascade.cascade_id,
        ))

    def _failure(
        self,
        spec: ParameterSpec,
        error: Exception,
        elapsed_ms: int,
        cascade: CascadeResult,
    ) -> ExecutionResult:
        if isinstance(error, DataSourceError):
            message = error.message
        else:
            message = f"{type(error).__name__}: {error}"

        dependency_values, _ = self._snapshot.restricted_to(spec.depends_on)
        logger.error(
            f"Failed to execute data source for '{spec.name}' after {elapsed_ms}ms "
            f"with {dependency_values}: {message}"
        )
        self._diagnostics.record(
            DiagnosticKind.EXECUTION_FAILURE,
            message,
            parameter=spec.name,
            cascade_id=cascade.cascade_id,
            error_type=type(error).__name__,
            dependency_values=dependency_values,
            elapsed_ms=elapsed_ms,
        )
        return ExecutionResult.error_result(
            spec.name, message, elapsed_ms=elapsed_ms, error_type=type(error).__name__
        )

    def _record_warnings(self, result: ExecutionResult, cascade: CascadeResult) -> None:
        for warning in result.warnings:
            kind = DiagnosticKind.RESULT_WARNING
            if result.slow and "progress threshold" in warning:
                kind = DiagnosticKind.PERFORMANCE_WARNING
            self._diagnostics.record(
                kind,
                warning,
                parameter=result.parameter,
                cascade_id=cascade.cascade_id,
                elapsed_ms=result.elapsed_ms,
            )

    def _seed_value(self, spec: ParameterSpec, result: ExecutionResult) -> None:
        """
        Pick the value dependents will see.

        The current value is kept if it is still offered, then the declared
        default, then the first choice. A multi-value parameter stays a list.
        With no choices the snapshot is left alone.
        """
        choices = result.choices
        if not choices:
            return

        if spec.name in self._snapshot and _is_offered(self._snapshot[spec.name], choices):
            return
        if spec.default is not None and _is_offered(spec.default, choices):
            self._snapshot[spec.name] = spec.default
            return
        if isinstance(spec.default, (list, tuple)):
            self._snapshot[spec.name] = [choices[0]]
        else:
            self._snapshot[spec.name] = choices[0]


def _is_offered(value: Any, choices: Tuple[str, ...]) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0 and all(str(v) in choices for v in value)
    return str(value) in choices
