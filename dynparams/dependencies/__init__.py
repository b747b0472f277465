"""
Dependency Graph Resolver

Provides:
- DependencyGraph: DAG of data-source dependencies over a registry
- ExecutionOrder: deterministic, topologically valid order
- DependencyNode: per-parameter adjacency
"""

from .graph import (
    DependencyGraph,
    DependencyNode,
    ExecutionOrder,
    VisitState,
)

__all__ = [
    "DependencyGraph",
    "DependencyNode",
    "ExecutionOrder",
    "VisitState",
]
