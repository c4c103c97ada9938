# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for the Query API.

Tests the QueryAPI class which provides programmatic access to the
relationship graphs of every configured field:
- ancestor/descendant generations with truncation
- siblings, cousins and full lineage
- cycle and health queries
- document lookup, export and cache statistics
"""

import json

import pytest
from conftest import CHAIN, COUSINS, TWO_CYCLE, doc, make_source

from relation_explorer.config import ConfigurationError
from relation_explorer.metadata_cache import MetadataCache
from relation_explorer.models import DocumentRef
from relation_explorer.query_api import QueryAPI, UnknownFieldError
from relation_explorer.relation_graph import RelationGraph


@pytest.fixture
def api():
    """QueryAPI over a chain graph with a shared cache."""
    source = make_source(CHAIN)
    cache = MetadataCache(source)
    graph = RelationGraph(source, "parent", cache=cache)
    graph.build()
    return QueryAPI(graphs={"parent": graph}, default_field="parent", cache=cache)


@pytest.fixture
def multi_field_api():
    """QueryAPI with two fields over the same documents."""
    source = make_source(CHAIN)
    source.set_metadata("A.md", {"parent": ["[[B]]"], "project": "[[D]]"})
    cache = MetadataCache(source)
    graphs = {}
    for field_name in ("parent", "project"):
        graphs[field_name] = RelationGraph(source, field_name, cache=cache)
        graphs[field_name].build()
    return QueryAPI(graphs=graphs, default_field="parent", cache=cache)


def build_api(spec):
    source = make_source(spec)
    graph = RelationGraph(source, "parent")
    graph.build()
    return QueryAPI(graphs={"parent": graph}, default_field="parent")


class TestConstruction:
    """Tests for QueryAPI wiring."""

    def test_default_field_must_have_graph(self):
        with pytest.raises(ConfigurationError):
            QueryAPI(graphs={}, default_field="parent")

    def test_fields_and_engines(self, multi_field_api):
        assert multi_field_api.default_field == "parent"
        assert multi_field_api.fields == ["parent", "project"]
        assert multi_field_api.get_engine("project").graph.field_name == "project"

    def test_unknown_field(self, api):
        with pytest.raises(UnknownFieldError):
            api.get_graph("nope")
        with pytest.raises(UnknownFieldError):
            api.get_ancestors(doc("A"), field="nope")


class TestFindDocument:
    """Tests for identifier lookup."""

    def test_by_path(self, api):
        assert api.find_document("B.md") == doc("B")

    def test_by_path_without_suffix(self, api):
        assert api.find_document("B") == doc("B")

    def test_by_name_case_insensitive(self):
        source = make_source({})
        source.add_document("notes/Weekly Review.md", {"parent": []})
        graph = RelationGraph(source, "parent")
        graph.build()
        api = QueryAPI(graphs={"parent": graph}, default_field="parent")

        found = api.find_document("weekly review")
        assert found == DocumentRef(path="notes/Weekly Review.md")

    def test_missing(self, api):
        assert api.find_document("Nope") is None


class TestGenerations:
    """Tests for ancestor and descendant queries."""

    def test_get_ancestors(self, api):
        result = api.get_ancestors(doc("A"), max_depth=3)

        assert result.generations == [[doc("B")], [doc("C")], [doc("D")]]
        assert result.total_count == 3
        assert result.depth == 3
        assert result.was_truncated is False

    def test_truncated(self, api):
        result = api.get_ancestors(doc("A"), max_depth=2)

        assert result.depth == 2
        assert result.was_truncated is True

    def test_default_depth(self, api):
        assert api.get_ancestors(doc("A")).total_count == 3

    def test_get_descendants(self, api):
        result = api.get_descendants(doc("D"), max_depth=1)

        assert result.generations == [[doc("C")]]
        assert result.was_truncated is True

    def test_zero_depth(self, api):
        result = api.get_descendants(doc("D"), max_depth=0)
        assert result.generations == []
        assert result.total_count == 0

    def test_flattened(self, api):
        assert api.get_all_ancestors(doc("A")) == [doc("B"), doc("C"), doc("D")]
        assert api.get_all_descendants(doc("C")) == [doc("B"), doc("A")]

    def test_direct_neighbours(self, api):
        assert api.get_parents(doc("B")) == [doc("C")]
        assert api.get_children(doc("B")) == [doc("A")]

    def test_field_selection(self, multi_field_api):
        assert multi_field_api.get_parents(doc("A"), field="project") == [doc("D")]
        assert multi_field_api.get_parents(doc("A")) == [doc("B")]

    def test_result_is_json_serializable(self, api):
        data = api.get_ancestors(doc("A")).to_dict()
        assert json.loads(json.dumps(data))["generations"] == [["B.md"], ["C.md"], ["D.md"]]


class TestRelatives:
    """Tests for siblings, cousins and lineage."""

    def test_siblings(self):
        api = build_api(COUSINS)
        result = api.get_siblings(doc("A"))

        assert result.siblings == [doc("B2")]
        assert result.total_count == 1
        assert result.includes_self is False

    def test_siblings_include_self(self):
        api = build_api(COUSINS)
        assert api.get_siblings(doc("A"), include_self=True).total_count == 2

    def test_cousins(self):
        api = build_api(COUSINS)
        result = api.get_cousins(doc("A"), degree=1)

        assert result.cousins == [doc("B")]
        assert result.degree == 1

    def test_full_lineage(self, api):
        result = api.get_full_lineage(doc("B"))

        assert result.stats == {
            "total_ancestors": 2,
            "total_descendants": 1,
            "total_siblings": 0,
            "ancestor_depth": 2,
            "descendant_depth": 1,
        }
        json.dumps(result.to_dict())


class TestGraphHealth:
    """Tests for cycle, validation and statistics queries."""

    def test_cycle_queries(self):
        api = build_api(TWO_CYCLE)

        assert api.has_cycles()
        assert api.detect_cycle(doc("A")).length == 2
        assert len(api.get_all_cycles()) == 1

    def test_validate_graph(self, api):
        assert api.validate_graph().is_healthy

    def test_statistics_and_roots(self, api):
        assert api.get_graph_statistics().max_depth == 3
        assert api.find_root_documents() == [doc("D")]

    def test_export_graph(self, api):
        export = api.export_graph()
        assert export["metadata"]["total_documents"] == 4
        json.dumps(export)

    def test_cache_statistics(self, api):
        stats = api.get_cache_statistics()
        assert stats["size"] == 4
        assert set(stats) == {"size", "hits", "misses", "hit_rate"}

    def test_cache_statistics_without_cache(self):
        assert build_api(CHAIN).get_cache_statistics() == {}
