# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for graph validation diagnostics."""

import logging

from conftest import CHAIN, TWO_CYCLE, doc

from relation_explorer.models import DiagnosticSeverity, DiagnosticType, ReferenceDirection


class TestValidateGraph:
    """Tests for the aggregated report."""

    def test_healthy_chain(self, chain_graph):
        report = chain_graph.validate_graph()

        assert report.is_healthy
        assert report.total_nodes == 4
        assert report.total_edges == 3
        assert report.summary == {"errors": 0, "warnings": 0, "info": 1}

    def test_stats_issue_message(self, chain_graph):
        report = chain_graph.validate_graph()
        stats = report.issues_of_type(DiagnosticType.GRAPH_STATS)[0]

        assert stats.severity == DiagnosticSeverity.INFO
        assert stats.message == "Graph contains 4 nodes, 3 edges, 1 roots, 1 leaves"
        assert stats.context["max_depth"] == 3

    def test_cycle_is_an_error_reported_once(self, cycle_graph):
        report = cycle_graph.validate_graph()
        cycles = report.issues_of_type(DiagnosticType.CYCLE)

        assert not report.is_healthy
        assert len(cycles) == 1
        assert cycles[0].severity == DiagnosticSeverity.ERROR
        assert cycles[0].context == {"length": 2}

    def test_unresolved_link(self, graph_factory):
        graph = graph_factory({"A": ["Missing"], "B": ["A"]})
        report = graph.validate_graph()
        unresolved = report.issues_of_type(DiagnosticType.UNRESOLVED_LINK)

        assert len(unresolved) == 1
        assert unresolved[0].message == 'Document "A" references non-existent parent(s): Missing'
        assert unresolved[0].context == {"unresolved_parents": ["Missing"]}
        assert not report.is_healthy

    def test_orphan_is_a_warning(self, graph_factory):
        graph = graph_factory({**CHAIN, "Lonely": None})
        report = graph.validate_graph()
        orphans = report.issues_of_type(DiagnosticType.ORPHANED_NODE)

        assert [i.documents[0].path for i in orphans] == ["Lonely.md"]
        assert orphans[0].severity == DiagnosticSeverity.WARNING
        assert report.is_healthy

    def test_unhealthy_graph_logs_warning(self, cycle_graph, caplog):
        with caplog.at_level(logging.WARNING):
            cycle_graph.validate_graph()
        assert "is unhealthy" in caplog.text

    def test_alias(self, chain_graph):
        assert chain_graph.validator.get_diagnostics().is_healthy


class TestChecks:
    """Tests for the individual checks."""

    def test_get_all_cycles_distinct(self, graph_factory):
        graph = graph_factory({**TWO_CYCLE, "X": ["Y"], "Y": ["X"], "S": ["S"]})
        cycles = graph.validator.get_all_cycles()

        assert sorted(c.length for c in cycles) == [1, 2, 2]

    def test_unresolved_matching_is_fuzzy(self, graph_factory):
        # "Note" counts as resolved because the resolved parent name contains it
        graph = graph_factory({"A": ["Note 2", "Note"], "Note 2": []})
        assert graph.validator.find_unresolved_links() == []

    def test_broken_reference_detected(self, chain_graph):
        chain_graph.get_node("B.md").children.clear()

        broken = chain_graph.validator.find_broken_references()

        assert [(p.path, c.path, d) for p, c, d in broken] == [
            ("B.md", "A.md", ReferenceDirection.CHILD_TO_PARENT)
        ]

    def test_broken_reference_in_report(self, chain_graph):
        chain_graph.get_node("A.md").parents.clear()

        report = chain_graph.validator.validate_graph()
        broken = report.issues_of_type(DiagnosticType.BROKEN_REFERENCE)

        assert len(broken) == 1
        assert broken[0].message == 'Broken parent->child reference: "B" <-> "A"'
        assert broken[0].context == {"direction": ReferenceDirection.PARENT_TO_CHILD}

    def test_graph_stats(self, diamond_graph):
        stats = diamond_graph.validator.get_graph_stats()

        assert stats["nodes"] == 4
        assert stats["edges"] == 4
        assert stats["roots"] == 1
        assert stats["leaves"] == 1
        assert stats["max_breadth"] == 2
        assert stats["avg_parents"] == 1.0
        assert stats["avg_children"] == 1.0

    def test_orphans_listed(self, graph_factory):
        graph = graph_factory({"A": [], "B": None})
        assert [d.path for d in graph.validator.find_orphaned_documents()] == ["A.md", "B.md"]
        assert doc("A") in graph.validator.find_orphaned_documents()
