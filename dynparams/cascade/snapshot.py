"""
cascade/snapshot.py - Current best-known parameter values

Owned by one CascadeController and mutated only from its controlling thread.
Workers never see this object, only a copied view restricted to their own
dependencies.
"""

from __future__ import annotations
from collections.abc import MutableMapping
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..parameters.spec import normalize_name


class ValueSnapshot(MutableMapping):
    """Case-insensitive mapping of parameter name to value."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        # key -> (display name, value)
        self._data: Dict[str, Tuple[str, Any]] = {}
        if values:
            self.update(values)

    def __getitem__(self, name: str) -> Any:
        return self._data[normalize_name(name)][1]

    def __setitem__(self, name: str, value: Any) -> None:
        key = normalize_name(name)
        existing = self._data.get(key)
        display = existing[0] if existing else name
        self._data[key] = (display, value)

    def __delitem__(self, name: str) -> None:
        del self._data[normalize_name(name)]

    def __iter__(self) -> Iterator[str]:
        return iter([display for display, _ in self._data.values()])

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._data

    def __repr__(self) -> str:
        return f"ValueSnapshot({self.to_dict()!r})"

    def restricted_to(self, names: Iterable[str]) -> Tuple[Dict[str, Any], List[str]]:
        """
        Copied view containing only `names`.

        Returns:
            (values keyed by the requested spelling, names not present)
        """
        view: Dict[str, Any] = {}
        missing: List[str] = []
        for name in names:
            key = normalize_name(name)
            if key in self._data:
                value = self._data[key][1]
                view[name] = list(value) if isinstance(value, list) else value
            else:
                missing.append(name)
        return view, missing

    def copy(self) -> "ValueSnapshot":
        clone = ValueSnapshot()
        clone._data = dict(self._data)
        return clone

    def to_dict(self) -> Dict[str, Any]:
        return {display: value for display, value in self._data.values()}
