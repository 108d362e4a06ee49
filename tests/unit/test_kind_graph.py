"""Tests for the KindGraph class."""

import pytest

from referencer.core.kinds import KIND_DEPENDENCIES, EntityKind
from referencer.dependency.graph import KindGraph, resolution_order
from referencer.utils.exceptions import CyclicDependencyError


class TestKindGraph:
    """Test suite for KindGraph."""

    @pytest.fixture
    def graph(self):
        """Create a KindGraph over the default dependency table."""
        return KindGraph()

    def test_every_kind_is_a_node(self, graph):
        assert set(graph.nodes) == set(EntityKind)

    def test_dependents_mirror_dependencies(self, graph):
        assert EntityKind.ITEM in graph.nodes[EntityKind.HOST].dependents
        assert EntityKind.HOST_PROTOTYPE in graph.nodes[EntityKind.ITEM].dependents
        assert graph.nodes[EntityKind.GROUP].dependencies == set()

    def test_full_order_respects_dependencies(self, graph):
        order = graph.topological_sort()

        assert len(order) == len(EntityKind)
        for kind, prerequisites in KIND_DEPENDENCIES.items():
            for prerequisite in prerequisites:
                assert order.index(prerequisite) < order.index(kind)

    def test_host_prototype_chain(self):
        """host -> discovery rule (item) -> host prototype."""
        assert resolution_order(EntityKind.HOST_PROTOTYPE) == [
            EntityKind.TEMPLATE,
            EntityKind.HOST,
            EntityKind.ITEM,
            EntityKind.HOST_PROTOTYPE,
        ]

    def test_independent_kind_has_no_prerequisites(self):
        assert resolution_order(EntityKind.IMAGE) == [EntityKind.IMAGE]

    def test_ties_follow_declaration_order(self):
        assert resolution_order(EntityKind.MAP, EntityKind.GROUP) == [
            EntityKind.GROUP,
            EntityKind.MAP,
        ]

    def test_closure(self, graph):
        assert graph.closure([EntityKind.TEMPLATE_DASHBOARD]) == {
            EntityKind.TEMPLATE_DASHBOARD,
            EntityKind.TEMPLATE,
        }

    def test_cycle_detection(self):
        graph = KindGraph(
            {EntityKind.GROUP: (EntityKind.HOST,), EntityKind.HOST: (EntityKind.GROUP,)}
        )

        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.topological_sort()

        assert exc_info.value.cycles == [["group", "host"]]

    def test_to_dot(self, graph):
        dot = graph.to_dot()

        assert dot.startswith("digraph KindGraph {")
        assert '"item" -> "host_prototype";' in dot
        assert '"template" -> "template_dashboard";' in dot
        assert dot.rstrip().endswith("}")
