"""Tests for DependencyGraph ordering and validation."""

from __future__ import annotations

import pytest

from vectorkb.lifecycle.errors import CycleError, GraphError
from vectorkb.lifecycle.graph import DependencyGraph
from vectorkb.models.resource import ResourceKind, ResourceNode, VectorBucketSpec


def bucket_node(name: str) -> ResourceNode:
    return ResourceNode(name, ResourceKind.VECTOR_BUCKET, VectorBucketSpec(name, "us-east-1", "123456789012"))


def names(nodes: list[ResourceNode]) -> list[str]:
    return [node.name for node in nodes]


class TestDependencyGraphOrdering:
    """Test suite for creation and deletion order."""

    def test_creation_order_respects_edges(self) -> None:
        """Test that every node comes after the nodes it depends on."""
        graph = DependencyGraph()
        for name in ["c", "b", "a"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")

        assert names(graph.creation_order()) == ["a", "b", "c"]

    def test_deletion_order_is_exact_reverse(self) -> None:
        """Test deletion order is the creation order reversed."""
        graph = DependencyGraph()
        for name in ["bucket", "index", "kb", "ds", "other"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("bucket", "index")
        graph.add_edge("index", "kb")
        graph.add_edge("kb", "ds")

        creation = graph.creation_order()
        deletion = graph.deletion_order()

        assert deletion == list(reversed(creation))
        assert [n for n in deletion if n.name != "other"][0].name == "ds"

    def test_ties_broken_by_insertion_order(self) -> None:
        """Test independent nodes keep their insertion order."""
        graph = DependencyGraph()
        for name in ["z", "y", "x"]:
            graph.add_node(bucket_node(name))

        assert names(graph.creation_order()) == ["z", "y", "x"]
        assert names(graph.deletion_order()) == ["x", "y", "z"]

    def test_diamond_ordering(self) -> None:
        """Test a diamond keeps the join node after both branches."""
        graph = DependencyGraph()
        for name in ["root", "left", "right", "join"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("root", "left")
        graph.add_edge("root", "right")
        graph.add_edge("left", "join")
        graph.add_edge("right", "join")

        assert names(graph.creation_order()) == ["root", "left", "right", "join"]

    def test_order_is_deterministic(self) -> None:
        """Test repeated calls return the same order."""
        graph = DependencyGraph()
        for name in ["a", "b", "c"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("c", "a")

        assert names(graph.creation_order()) == names(graph.creation_order())
        assert names(graph.creation_order()) == ["b", "c", "a"]

    def test_returned_orders_are_copies(self) -> None:
        """Test mutating a returned list does not change the graph's order."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))

        order = graph.creation_order()
        order.reverse()

        assert names(graph.creation_order()) == ["a", "b"]

    def test_adding_edge_recomputes_order(self) -> None:
        """Test the cached order is invalidated by a new edge."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))
        assert names(graph.creation_order()) == ["a", "b"]

        graph.add_edge("b", "a")

        assert names(graph.creation_order()) == ["b", "a"]
        assert names(graph.deletion_order()) == ["a", "b"]

    def test_creation_tiers(self) -> None:
        """Test tier grouping of nodes."""
        graph = DependencyGraph()
        for name in ["bucket", "index", "kb", "ds", "other"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("bucket", "index")
        graph.add_edge("index", "kb")
        graph.add_edge("kb", "ds")

        tiers = graph.creation_tiers()

        assert tiers == {1: ["bucket", "other"], 2: ["index"], 3: ["kb"], 4: ["ds"]}

    def test_empty_graph(self) -> None:
        """Test an empty graph has empty orders."""
        graph = DependencyGraph()

        assert graph.creation_order() == []
        assert graph.deletion_order() == []
        assert len(graph) == 0


class TestDependencyGraphValidation:
    """Test suite for graph structure errors."""

    def test_cycle_raises(self) -> None:
        """Test an edge closing a cycle is rejected with the nodes involved."""
        graph = DependencyGraph()
        for name in ["a", "b", "c"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")

        with pytest.raises(CycleError) as exc_info:
            graph.add_edge("c", "a")

        assert set(exc_info.value.nodes) == {"a", "b", "c"}
        assert "Circular dependency" in str(exc_info.value)

    def test_rejected_edge_leaves_graph_unchanged(self) -> None:
        """Test the graph stays usable after a cycle-closing edge is rejected."""
        graph = DependencyGraph()
        for name in ["a", "b", "c"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")

        with pytest.raises(CycleError):
            graph.add_edge("c", "a")

        assert graph.dependencies_of("a") == []
        assert names(graph.creation_order()) == ["a", "b", "c"]
        assert graph.has_cycle() is False

    def test_cycle_in_edge_map_detected_at_ordering(self) -> None:
        """Test edges written straight into the edge map are still checked before ordering."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))
        graph.graph["b"].add("a")
        graph.graph["a"].add("b")

        assert graph.has_cycle() is True
        with pytest.raises(CycleError):
            graph.creation_order()

    def test_cycle_error_is_value_error(self) -> None:
        """Test CycleError can be caught as ValueError."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))
        graph.add_edge("a", "b")

        with pytest.raises(ValueError):
            graph.add_edge("b", "a")
        assert graph.has_cycle() is False

    def test_cycle_excludes_nodes_outside_it(self) -> None:
        """Test nodes that are not part of or behind the cycle are not reported."""
        graph = DependencyGraph()
        for name in ["free", "a", "b"]:
            graph.add_node(bucket_node(name))
        graph.add_edge("a", "b")

        with pytest.raises(CycleError) as exc_info:
            graph.add_edge("b", "a")

        assert "free" not in exc_info.value.nodes

    def test_acyclic_graph_has_no_cycle(self) -> None:
        """Test has_cycle on a valid graph."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))
        graph.add_edge("a", "b")

        assert graph.has_cycle() is False

    def test_duplicate_node_name(self) -> None:
        """Test adding two nodes with the same name fails."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))

        with pytest.raises(GraphError, match="Duplicate"):
            graph.add_node(bucket_node("a"))

    def test_self_edge(self) -> None:
        """Test a node cannot depend on itself."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))

        with pytest.raises(GraphError, match="itself"):
            graph.add_edge("a", "a")

    def test_unknown_node_in_edge(self) -> None:
        """Test edges must reference nodes in the graph."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))

        with pytest.raises(GraphError, match="Unknown node"):
            graph.add_edge("a", "missing")

    def test_foreign_node_instance(self) -> None:
        """Test a node object not held by the graph is rejected even with a known name."""
        graph = DependencyGraph()
        graph.add_node(bucket_node("a"))
        graph.add_node(bucket_node("b"))

        with pytest.raises(GraphError, match="not the instance"):
            graph.add_edge(bucket_node("a"), "b")

    def test_edges_accept_node_objects(self) -> None:
        """Test edges can be declared with the node objects themselves."""
        graph = DependencyGraph()
        a = graph.add_node(bucket_node("a"))
        b = graph.add_node(bucket_node("b"))

        graph.add_edge(b, a)

        assert graph.dependencies_of(a) == ["b"]
        assert graph.dependencies_of("b") == []

    def test_node_lookup(self) -> None:
        """Test retrieving nodes by name."""
        graph = DependencyGraph()
        a = graph.add_node(bucket_node("a"))

        assert graph.node("a") is a
        with pytest.raises(GraphError):
            graph.node("missing")
