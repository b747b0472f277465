"""
parameters/spec.py - Parameter declarations

A ParameterSpec names one form field, the fields its data source reads, and
the data source itself. Data sources are a closed tagged union: SourceKind
says which payload (ComputedSource or TabularSource) is attached.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..errors import ConfigurationError, SelfDependencyError

# Opaque script text for the host, or a Python callable taking dependency
# values as keyword arguments.
Script = Union[str, Callable[..., Any]]

# Opaque predicate text evaluated per row, or a callable row -> bool.
RowFilter = Union[str, Callable[[Mapping[str, str]], Any]]


def normalize_name(name: str) -> str:
    """Key used for case-insensitive parameter identity."""
    return name.casefold()


class SourceKind(Enum):
    """What produces a parameter's choices."""
    NONE = "none"            # Static parameter, defaulted by the caller
    COMPUTED = "computed"    # Script run by the host
    TABULAR = "tabular"      # Column of a CSV file


@dataclass(frozen=True)
class ComputedSource:
    """Script-backed data source."""
    script: Script

    def describe(self) -> str:
        if callable(self.script):
            return getattr(self.script, "__qualname__", repr(self.script))
        return str(self.script)


@dataclass(frozen=True)
class TabularSource:
    """CSV-backed data source."""
    path: str
    column: str
    row_filter: Optional[RowFilter] = None

    def describe_filter(self) -> Optional[str]:
        if self.row_filter is None:
            return None
        if callable(self.row_filter):
            return getattr(self.row_filter, "__qualname__", repr(self.row_filter))
        return str(self.row_filter)


DataSource = Union[ComputedSource, TabularSource]


@dataclass(frozen=True)
class ParameterSpec:
    """
    Declaration of one form parameter.

    Immutable for the lifetime of a session. Construction validates that the
    payload matches source_kind and that the parameter does not depend on
    itself.
    """
    name: str
    depends_on: Tuple[str, ...] = ()
    source_kind: SourceKind = SourceKind.NONE
    source: Optional[DataSource] = None

    # Value the caller declared; preferred seed when it is among the choices
    default: Any = None

    # Directory of the declaring script, for relative CSV paths
    script_directory: Optional[Path] = None

    # UI hints carried through for the rendering layer
    run_async: bool = False
    show_refresh: bool = False

    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ConfigurationError("Parameter name cannot be empty")

        depends_on = tuple(d for d in (self.depends_on or ()) if d and d.strip())
        object.__setattr__(self, "depends_on", depends_on)
        if self.script_directory is not None and not isinstance(self.script_directory, Path):
            object.__setattr__(self, "script_directory", Path(self.script_directory))

        key = normalize_name(self.name)
        if any(normalize_name(d) == key for d in depends_on):
            raise SelfDependencyError(self.name)

        self._validate_source()

    def _validate_source(self) -> None:
        kind = self.source_kind
        source = self.source

        if kind is SourceKind.NONE:
            if source is not None:
                raise ConfigurationError(
                    f"Parameter '{self.name}' has no source kind but carries a data source",
                    parameter=self.name,
                )
        elif kind is SourceKind.COMPUTED:
            if not isinstance(source, ComputedSource):
                raise ConfigurationError(
                    f"Parameter '{self.name}' is computed but has no script. "
                    f"Specify either a script or CSV configuration (path and column).",
                    parameter=self.name,
                )
            if isinstance(source.script, str) and not source.script.strip():
                raise ConfigurationError(
                    f"Parameter '{self.name}' has an empty script",
                    parameter=self.name,
                )
        elif kind is SourceKind.TABULAR:
            if not isinstance(source, TabularSource):
                raise ConfigurationError(
                    f"Parameter '{self.name}' is tabular but has no CSV configuration",
                    parameter=self.name,
                )
            if not source.path or not source.column:
                raise ConfigurationError(
                    f"Parameter '{self.name}' needs both a CSV path and a CSV column",
                    parameter=self.name,
                )

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def static(cls, name: str, default: Any = None, **kwargs) -> "ParameterSpec":
        """A parameter without a data source."""
        return cls(name=name, default=default, **kwargs)

    @classmethod
    def computed(
        cls,
        name: str,
        script: Script,
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> "ParameterSpec":
        return cls(
            name=name,
            depends_on=tuple(depends_on),
            source_kind=SourceKind.COMPUTED,
            source=ComputedSource(script),
            **kwargs,
        )

    @classmethod
    def tabular(
        cls,
        name: str,
        path: str,
        column: str,
        row_filter: Optional[RowFilter] = None,
        depends_on: Iterable[str] = (),
        **kwargs,
    ) -> "ParameterSpec":
        return cls(
            name=name,
            depends_on=tuple(depends_on),
            source_kind=SourceKind.TABULAR,
            source=TabularSource(path=str(path), column=column, row_filter=row_filter),
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    @property
    def is_data_source(self) -> bool:
        return self.source_kind is not SourceKind.NONE

    @property
    def has_dependencies(self) -> bool:
        return len(self.depends_on) > 0

    def depends_on_name(self, name: str) -> bool:
        key = normalize_name(name)
        return any(normalize_name(d) == key for d in self.depends_on)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "depends_on": list(self.depends_on),
            "source_kind": self.source_kind.value,
            "default": self.default,
            "run_async": self.run_async,
            "show_refresh": self.show_refresh,
        }
        if isinstance(self.source, ComputedSource):
            data["script"] = self.source.describe()
        elif isinstance(self.source, TabularSource):
            data["csv_path"] = self.source.path
            data["csv_column"] = self.source.column
            data["csv_filter"] = self.source.describe_filter()
        return data
