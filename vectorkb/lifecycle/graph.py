"""Dependency graph over resource nodes.

Creation order is a topological sort (Kahn's algorithm) with ties broken by
node insertion order. Deletion order is the cached creation order reversed,
so the two can never drift apart.
"""

from __future__ import annotations

import heapq
import logging
from typing import Optional, Union

from ..models.resource import ResourceNode
from .errors import CycleError, GraphError

logger = logging.getLogger(__name__)

NodeRef = Union[ResourceNode, str]


class DependencyGraph:
    """Directed acyclic graph of "must exist before" edges.

    Attributes:
        graph: Mapping of node name -> names of nodes that must exist before it
    """

    def __init__(self) -> None:
        self._nodes: dict[str, ResourceNode] = {}
        self.graph: dict[str, set[str]] = {}
        self._creation_order: Optional[tuple[ResourceNode, ...]] = None
        self._deletion_order: Optional[tuple[ResourceNode, ...]] = None

    def add_node(self, node: ResourceNode) -> ResourceNode:
        """Add a node.

        Raises:
            GraphError: If a node with the same name already exists
        """
        if node.name in self._nodes:
            raise GraphError(f"Duplicate node name: {node.name}")
        self._nodes[node.name] = node
        self.graph[node.name] = set()
        self._invalidate()
        return node

    def add_edge(self, before: NodeRef, after: NodeRef) -> None:
        """Declare that `before` must be fully created before `after` begins.

        Raises:
            GraphError: If either node is unknown or the edge is a self-loop
            CycleError: If the edge would close a cycle; the graph is left unchanged
        """
        before_name = self._name_of(before)
        after_name = self._name_of(after)
        if before_name == after_name:
            raise GraphError(f"Node cannot depend on itself: {before_name}")
        if before_name in self.graph[after_name]:
            return

        self.graph[after_name].add(before_name)
        self._invalidate()
        try:
            self._linearize()
        except CycleError:
            self.graph[after_name].discard(before_name)
            self._invalidate()
            raise

    def node(self, name: str) -> ResourceNode:
        try:
            return self._nodes[name]
        except KeyError:
            raise GraphError(f"Unknown node: {name}") from None

    @property
    def nodes(self) -> list[ResourceNode]:
        """Nodes in insertion order."""
        return list(self._nodes.values())

    def dependencies_of(self, node: NodeRef) -> list[str]:
        """Names of the nodes that must exist before `node`, in insertion order."""
        name = self._name_of(node)
        return [n for n in self._nodes if n in self.graph[name]]

    def has_cycle(self) -> bool:
        try:
            self._linearize()
        except CycleError:
            return True
        return False

    def creation_order(self) -> list[ResourceNode]:
        """Nodes in dependency order.

        Raises:
            CycleError: If the edges contain a cycle
        """
        self._linearize()
        assert self._creation_order is not None
        return list(self._creation_order)

    def deletion_order(self) -> list[ResourceNode]:
        """Creation order reversed.

        Raises:
            CycleError: If the edges contain a cycle
        """
        self._linearize()
        assert self._deletion_order is not None
        return list(self._deletion_order)

    def creation_tiers(self) -> dict[int, list[str]]:
        """Group nodes into tiers; tier 1 has no dependencies.

        A node's tier is one more than the highest tier among its dependencies.

        Raises:
            CycleError: If the edges contain a cycle
        """
        tiers: dict[int, list[str]] = {}
        tier_of: dict[str, int] = {}
        for node in self.creation_order():
            tier = 1 + max((tier_of[dep] for dep in self.graph[node.name]), default=0)
            tier_of[node.name] = tier
            tiers.setdefault(tier, []).append(node.name)
        return tiers

    def _linearize(self) -> None:
        if self._creation_order is not None:
            return

        position = {name: index for index, name in enumerate(self._nodes)}
        in_degree = {name: len(deps) for name, deps in self.graph.items()}
        dependents: dict[str, list[str]] = {name: [] for name in self._nodes}
        for name, deps in self.graph.items():
            for dep in deps:
                dependents[dep].append(name)

        ready = [(position[name], name) for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: list[ResourceNode] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(self._nodes[name])
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (position[dependent], dependent))

        if len(order) != len(self._nodes):
            remaining = [name for name in self._nodes if in_degree[name] > 0]
            raise CycleError(remaining)

        self._creation_order = tuple(order)
        self._deletion_order = tuple(reversed(order))
        logger.debug(f"Creation order: {[node.name for node in order]}")

    def _invalidate(self) -> None:
        self._creation_order = None
        self._deletion_order = None

    def _name_of(self, node: NodeRef) -> str:
        name = node if isinstance(node, str) else node.name
        if name not in self._nodes:
            raise GraphError(f"Unknown node: {name}")
        if not isinstance(node, str) and self._nodes[name] is not node:
            raise GraphError(f"Node '{name}' is not the instance held by this graph")
        return name

    def __len__(self) -> int:
        return len(self._nodes)
