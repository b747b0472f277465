"""
Dependency Graph Resolver

Builds the directed graph of parameter dependencies from a ParameterRegistry
and produces a deterministic execution order (dependencies before
dependents), or raises CyclicDependencyError.

Only data-source-backed parameters take part in ordering. Dependencies on
static parameters are allowed and ignored, since those never re-execute.
Dependencies on names that were never registered are reported as warnings.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple, TYPE_CHECKING
import logging
import warnings

from ..errors import CyclicDependencyError, UnknownDependencyWarning
from ..parameters.spec import normalize_name

if TYPE_CHECKING:
    from ..parameters.registry import ParameterRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# EXECUTION ORDER
# =============================================================================

@dataclass(frozen=True)
class ExecutionOrder:
    """Topologically valid sequence of data-source-backed parameters."""
    names: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    unknown_dependencies: Tuple[Tuple[str, str], ...] = ()
    registry_version: int = 0

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.index(name) >= 0

    def index(self, name: str) -> int:
        """Position of a parameter, or -1 if it is not ordered."""
        key = normalize_name(name)
        for i, candidate in enumerate(self.names):
            if normalize_name(candidate) == key:
                return i
        return -1

    def sort(self, names: Iterable[str]) -> List[str]:
        """Order a subset of names by their position; unknown names are dropped."""
        positions = {normalize_name(n): i for i, n in enumerate(self.names)}
        selected = {normalize_name(n) for n in names if normalize_name(n) in positions}
        return [n for n in self.names if normalize_name(n) in selected]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "names": list(self.names),
            "warnings": list(self.warnings),
            "registry_version": self.registry_version,
        }


# =============================================================================
# DEPENDENCY NODE
# =============================================================================

class VisitState(Enum):
    """Three-color DFS marking."""
    WHITE = "unvisited"
    GRAY = "in_progress"
    BLACK = "done"


@dataclass
class DependencyNode:
    """A data-source-backed parameter in the graph."""
    name: str

    # Canonical names of data-source-backed neighbours, in declared order
    depends_on: List[str] = field(default_factory=list)
    depended_by: List[str] = field(default_factory=list)

    computation_order: int = -1

    def __hash__(self):
        return hash(normalize_name(self.name))


# =============================================================================
# DEPENDENCY GRAPH
# =============================================================================

class DependencyGraph:
    """
    Resolver over a ParameterRegistry.

    The order is computed once per registry version and cached; a registry
    change triggers recomputation on the next resolve().
    """

    def __init__(self, registry: "ParameterRegistry"):
        self._registry = registry
        self._nodes: Dict[str, DependencyNode] = {}
        self._order: Optional[ExecutionOrder] = None
        self._build_timestamp: Optional[datetime] = None

    @property
    def is_built(self) -> bool:
        return self._order is not None and self._order.registry_version == self._registry.version

    def resolve(self) -> ExecutionOrder:
        """
        Compute the execution order.

        Raises:
            CyclicDependencyError: if data-source dependencies form a cycle
        """
        if self.is_built:
            return self._order

        nodes, unknown = self._build_nodes()
        names = self._topological_sort(nodes)

        for i, name in enumerate(names):
            nodes[normalize_name(name)].computation_order = i

        messages = []
        for parameter, dependency in unknown:
            warning = UnknownDependencyWarning(parameter, dependency)
            messages.append(str(warning))
            logger.warning(str(warning))
            warnings.warn(warning, stacklevel=2)

        self._nodes = nodes
        self._order = ExecutionOrder(
            names=tuple(names),
            warnings=tuple(messages),
            unknown_dependencies=tuple(unknown),
            registry_version=self._registry.version,
        )
        self._build_timestamp = datetime.utcnow()

        logger.info(f"Dynamic parameter execution order: [{', '.join(names)}]")
        return self._order

    def _build_nodes(self) -> Tuple[Dict[str, DependencyNode], List[Tuple[str, str]]]:
        nodes: Dict[str, DependencyNode] = {}
        unknown: List[Tuple[str, str]] = []

        for spec in self._registry:
            if spec.is_data_source:
                nodes[spec.key] = DependencyNode(name=spec.name)

        for spec in self._registry:
            for dep in spec.depends_on:
                target = self._registry.get(dep)
                if target is None:
                    unknown.append((spec.name, dep))
                    continue
                if not spec.is_data_source or not target.is_data_source:
                    continue
                node = nodes[spec.key]
                if target.name not in node.depends_on:
                    node.depends_on.append(target.name)
                    nodes[target.key].depended_by.append(spec.name)

        return nodes, unknown

    def _topological_sort(self, nodes: Dict[str, DependencyNode]) -> List[str]:
        state = {key: VisitState.WHITE for key in nodes}
        order: List[str] = []

        def visit(key: str, path: List[str]) -> None:
            node = nodes[key]
            state[key] = VisitState.GRAY
            path.append(node.name)

            for dep in node.depends_on:
                dep_key = normalize_name(dep)
                if state[dep_key] is VisitState.GRAY:
                    start = next(
                        i for i, n in enumerate(path) if normalize_name(n) == dep_key
                    )
                    raise CyclicDependencyError(path[start:] + [dep])
                if state[dep_key] is VisitState.WHITE:
                    visit(dep_key, path)

            path.pop()
            state[key] = VisitState.BLACK
            order.append(node.name)

        # Roots in registration order keeps unconstrained pairs stable
        for key in nodes:
            if state[key] is VisitState.WHITE:
                visit(key, [])

        return order

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_execution_order(self) -> ExecutionOrder:
        return self.resolve()

    def get_direct_dependencies(self, param: str) -> List[str]:
        self.resolve()
        node = self._nodes.get(normalize_name(param))
        return list(node.depends_on) if node else []

    def get_direct_dependents(self, param: str) -> List[str]:
        """Data-source-backed parameters that read `param` directly."""
        self.resolve()
        return [
            spec.name for spec in self._registry
            if spec.is_data_source and spec.depends_on_name(param)
        ]

    def get_all_downstream(self, param: str) -> Set[str]:
        """
        Transitive closure of data-source-backed dependents.

        `param` may be any parameter, static or not. The result never
        contains `param` itself.
        """
        root = normalize_name(param)
        result: Dict[str, str] = {}
        to_process = [param]

        while to_process:
            current = to_process.pop()
            for dependent in self.get_direct_dependents(current):
                key = normalize_name(dependent)
                if key != root and key not in result:
                    result[key] = dependent
                    to_process.append(dependent)

        return set(result.values())

    def get_recalculation_order(self, changed_params: Iterable[str]) -> List[str]:
        """Downstream parameters of the changed ones, in execution order."""
        changed = list(changed_params)
        changed_keys = {normalize_name(p) for p in changed}
        to_recalculate: Set[str] = set()
        for param in changed:
            to_recalculate.update(self.get_all_downstream(param))

        to_recalculate = {p for p in to_recalculate if normalize_name(p) not in changed_keys}
        return self.resolve().sort(to_recalculate)

    def get_node(self, param: str) -> Optional[DependencyNode]:
        self.resolve()
        return self._nodes.get(normalize_name(param))

    def to_dict(self) -> Dict[str, Any]:
        order = self.resolve()
        return {
            "nodes": {
                n.name: {
                    "depends_on": list(n.depends_on),
                    "depended_by": list(n.depended_by),
                    "computation_order": n.computation_order,
                }
                for n in self._nodes.values()
            },
            "order": order.to_dict(),
            "build_timestamp": self._build_timestamp.isoformat() if self._build_timestamp else None,
        }
