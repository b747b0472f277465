"""
parameters/registry.py - ParameterSpec registry

Pure data holder: per-name lookup, case-insensitive, in registration order.
"""

from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Optional
import logging

from .spec import ParameterSpec, normalize_name

logger = logging.getLogger(__name__)


class ParameterRegistry:
    """Registered parameter specs for one form."""

    def __init__(self, specs: Optional[Iterable[ParameterSpec]] = None):
        # Dict insertion order is the registration order
        self._specs: Dict[str, ParameterSpec] = {}
        self._version = 0

        if specs:
            self.register_all(specs)

    @property
    def version(self) -> int:
        """Bumped on every change so cached execution orders can be discarded."""
        return self._version

    def register(self, spec: ParameterSpec) -> ParameterSpec:
        """Register a spec. Re-registering a name replaces it in place."""
        key = spec.key
        replaced = key in self._specs
        self._specs[key] = spec
        self._version += 1

        logger.info(
            f"{'Re-registered' if replaced else 'Registered'} parameter: {spec.name}, "
            f"source: {spec.source_kind.value}, "
            f"dependencies: [{', '.join(spec.depends_on)}]"
        )
        return spec

    def register_all(self, specs: Iterable[ParameterSpec]) -> None:
        for spec in specs:
            self.register(spec)

    def unregister(self, name: str) -> bool:
        key = normalize_name(name)
        if key not in self._specs:
            return False
        del self._specs[key]
        self._version += 1
        return True

    def get(self, name: str) -> Optional[ParameterSpec]:
        return self._specs.get(normalize_name(name))

    def __getitem__(self, name: str) -> ParameterSpec:
        spec = self.get(name)
        if spec is None:
            raise KeyError(name)
        return spec

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[ParameterSpec]:
        return iter(list(self._specs.values()))

    def names(self) -> List[str]:
        """Declared names, in registration order."""
        return [spec.name for spec in self._specs.values()]

    def data_source_names(self) -> List[str]:
        return [spec.name for spec in self._specs.values() if spec.is_data_source]

    def is_data_source(self, name: str) -> bool:
        spec = self.get(name)
        return spec is not None and spec.is_data_source

    def get_dependent_parameters(self, name: str) -> List[str]:
        """Parameters that list `name` directly in their dependencies."""
        return [
            spec.name for spec in self._specs.values()
            if spec.depends_on_name(name)
        ]

    def has_dependencies(self, name: str) -> bool:
        spec = self.get(name)
        return spec is not None and spec.has_dependencies

    def canonical_name(self, name: str) -> str:
        """Declared spelling of a name, or the name itself if unknown."""
        spec = self.get(name)
        return spec.name if spec else name

    def clear(self) -> None:
        self._specs.clear()
        self._version += 1
