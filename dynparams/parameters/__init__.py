"""
parameters/ - ParameterSpec Registry

Provides:
- ParameterSpec: declaration of one form parameter and its data source
- ParameterRegistry: case-insensitive lookup in registration order
- ParameterDeclaration: validated declaration feed records
"""

from .spec import (
    SourceKind,
    ComputedSource,
    TabularSource,
    ParameterSpec,
    normalize_name,
)
from .registry import ParameterRegistry
from .declarations import (
    DeclaredSourceKind,
    ParameterDeclaration,
    load_declarations,
    infer_dependencies,
)

__all__ = [
    # Spec
    "SourceKind",
    "ComputedSource",
    "TabularSource",
    "ParameterSpec",
    "normalize_name",
    # Registry
    "ParameterRegistry",
    # Declarations
    "DeclaredSourceKind",
    "ParameterDeclaration",
    "load_declarations",
    "infer_dependencies",
]
