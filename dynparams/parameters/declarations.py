"""
parameters/declarations.py - Spec feed records

Validated records delivered by the script-reflection collaborator, one per
parameter. Records accept either snake_case keys or the collaborator's
PascalCase keys ("Name", "DependsOn", "CsvPath", ...).
"""

from __future__ import annotations

import inspect
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError
from .spec import ParameterSpec, SourceKind, normalize_name


class DeclaredSourceKind(str, Enum):
    """Source kind as written in a feed record."""

    NONE = "none"
    COMPUTED = "computed"
    TABULAR = "tabular"


class ParameterDeclaration(BaseModel):
    """One parameter record from the declaration feed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., alias="Name", min_length=1, description="Parameter name")
    depends_on: List[str] = Field(
        default_factory=list, alias="DependsOn", description="Names this data source reads"
    )
    source_kind: Optional[DeclaredSourceKind] = Field(
        None, alias="SourceKind", description="Inferred from the descriptor when omitted"
    )

    # Source descriptor
    script: Optional[str] = Field(None, alias="ScriptBlock", description="Opaque script text")
    csv_path: Optional[str] = Field(None, alias="CsvPath", description="Table location")
    csv_column: Optional[str] = Field(None, alias="CsvColumn", description="Target column")
    csv_filter: Optional[str] = Field(None, alias="CsvFilter", description="Opaque row predicate")

    default: Any = Field(None, alias="DefaultValue")
    script_directory: Optional[str] = Field(None, alias="ScriptDirectory")
    run_async: bool = Field(False, alias="Async")
    show_refresh: bool = Field(False, alias="ShowRefreshButton")

    @field_validator("depends_on", mode="before")
    @classmethod
    def _split_depends_on(cls, value: Any) -> Any:
        # A single comma-separated string is accepted as shorthand
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _check_descriptor(self) -> "ParameterDeclaration":
        has_script = bool(self.script and self.script.strip())
        has_csv = bool(self.csv_path) and bool(self.csv_column)

        if has_script and has_csv:
            raise ValueError(
                "data source cannot have both a script and CSV configuration. Choose one."
            )
        if bool(self.csv_path) != bool(self.csv_column):
            raise ValueError("tabular source requires csv_path and csv_column")
        if self.csv_filter and not has_csv:
            raise ValueError(
                "csv_filter can only be used with CSV data sources (requires csv_path and csv_column)."
            )

        if self.source_kind is None:
            if has_script:
                self.source_kind = DeclaredSourceKind.COMPUTED
            elif has_csv:
                self.source_kind = DeclaredSourceKind.TABULAR
            else:
                self.source_kind = DeclaredSourceKind.NONE
        elif self.source_kind is DeclaredSourceKind.COMPUTED and not has_script:
            raise ValueError("computed source requires a script")
        elif self.source_kind is DeclaredSourceKind.TABULAR and not has_csv:
            raise ValueError("tabular source requires csv_path and csv_column")

        return self

    def to_spec(self) -> ParameterSpec:
        common: Dict[str, Any] = dict(
            default=self.default,
            script_directory=Path(self.script_directory) if self.script_directory else None,
            run_async=self.run_async,
            show_refresh=self.show_refresh,
        )

        if self.source_kind is DeclaredSourceKind.COMPUTED:
            return ParameterSpec.computed(
                self.name, self.script, depends_on=self.depends_on, **common
            )
        if self.source_kind is DeclaredSourceKind.TABULAR:
            return ParameterSpec.tabular(
                self.name,
                self.csv_path,
                self.csv_column,
                row_filter=self.csv_filter or None,
                depends_on=self.depends_on,
                **common,
            )
        return ParameterSpec(
            name=self.name,
            depends_on=tuple(self.depends_on),
            source_kind=SourceKind.NONE,
            **common,
        )


def load_declarations(records: Iterable[Mapping[str, Any]]) -> List[ParameterSpec]:
    """
    Validate feed records and turn them into specs.

    Raises:
        ConfigurationError: naming the first record that fails validation
    """
    specs = []
    for index, record in enumerate(records):
        try:
            declaration = ParameterDeclaration.model_validate(dict(record))
        except ValidationError as e:
            label = record.get("name") or record.get("Name") or f"#{index}"
            raise ConfigurationError(
                f"Invalid declaration for parameter '{label}': {e}",
                parameter=label if isinstance(label, str) else None,
            ) from e
        specs.append(declaration.to_spec())
    return specs


def infer_dependencies(func: Callable[..., Any], known_names: Sequence[str]) -> List[str]:
    """
    Match a callable's formal parameter names against known parameter names.

    Optional pre-processing for callers that prefer not to write DependsOn by
    hand. Matching is by name only (case-insensitive), so the result should be
    reviewed rather than trusted blindly.
    """
    by_key = {normalize_name(n): n for n in known_names}
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return []

    matched = []
    for param in signature.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        name = by_key.get(normalize_name(param.name))
        if name is not None and name not in matched:
            matched.append(name)
    return matched
