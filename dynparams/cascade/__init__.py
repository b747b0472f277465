"""
cascade/ - Cascade Controller

Initial population, change propagation and refresh for one form session.
"""

from .snapshot import ValueSnapshot
from .controller import (
    ParameterState,
    ChoiceListUpdate,
    CascadeResult,
    CascadeController,
)

__all__ = [
    "ValueSnapshot",
    "ParameterState",
    "ChoiceListUpdate",
    "CascadeResult",
    "CascadeController",
]
