# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for core data models."""

import json

from relation_explorer.models import (
    ChangeEvent,
    ChangeKind,
    CycleInfo,
    DiagnosticInfo,
    DiagnosticIssue,
    DiagnosticSeverity,
    DiagnosticType,
    DocumentRef,
    FieldKind,
    FieldValue,
    GraphStatistics,
    TreeNode,
)


class TestDocumentRef:
    """Tests for DocumentRef identity."""

    def test_name_defaults_to_basename_without_extension(self):
        document = DocumentRef(path="Projects/Roadmap.md")
        assert document.name == "Roadmap"

    def test_explicit_name_is_kept(self):
        document = DocumentRef(path="a.md", name="Alpha")
        assert document.name == "Alpha"

    def test_equality_and_hash_use_path_only(self):
        first = DocumentRef(path="a.md", name="Alpha")
        second = DocumentRef(path="a.md", name="Other")

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_different_paths_are_different_documents(self):
        assert DocumentRef(path="a.md") != DocumentRef(path="b.md")

    def test_str_and_to_dict(self):
        document = DocumentRef(path="notes/a.md")
        assert str(document) == "notes/a.md"
        assert document.to_dict() == {"path": "notes/a.md", "name": "a"}


class TestFieldValue:
    """Tests for normalized field values."""

    def test_absent(self):
        value = FieldValue.absent()
        assert value.kind == FieldKind.ABSENT
        assert not value.is_present
        assert value.is_empty

    def test_declared_but_empty_is_present(self):
        value = FieldValue(kind=FieldKind.LIST)
        assert value.is_present
        assert value.is_empty

    def test_single_reference(self):
        value = FieldValue(kind=FieldKind.SINGLE, references=("[[A]]",))
        assert value.is_present
        assert not value.is_empty


class TestCycleInfo:
    """Tests for cycle descriptions."""

    def test_description_closes_the_cycle(self):
        cycle = CycleInfo(
            cycle_path=[DocumentRef(path="A.md"), DocumentRef(path="B.md")],
            length=2,
        )
        assert cycle.description == "Cycle detected: A → B → A (2 documents)"

    def test_self_loop_description_is_singular(self):
        cycle = CycleInfo(cycle_path=[DocumentRef(path="A.md")], length=1)
        assert cycle.description == "Cycle detected: A → A (1 document)"

    def test_contains(self):
        a = DocumentRef(path="A.md")
        cycle = CycleInfo(cycle_path=[a], length=1)
        assert cycle.contains(a)
        assert not cycle.contains(DocumentRef(path="B.md"))

    def test_to_dict_uses_paths(self):
        cycle = CycleInfo(
            cycle_path=[DocumentRef(path="A.md"), DocumentRef(path="B.md")],
            length=2,
        )
        data = cycle.to_dict()
        assert data["cycle_path"] == ["A.md", "B.md"]
        assert data["length"] == 2


class TestTreeNode:
    """Tests for tree snapshots."""

    def test_to_dict_is_recursive_and_json_compatible(self):
        leaf = TreeNode(document=DocumentRef(path="B.md"), depth=1, is_cycle=True)
        root = TreeNode(document=DocumentRef(path="A.md"), children=(leaf,))

        data = root.to_dict()

        assert data["document"] == {"path": "A.md", "name": "A"}
        assert data["children"][0]["is_cycle"] is True
        assert data["children"][0]["depth"] == 1
        json.dumps(data)

    def test_defaults(self):
        node = TreeNode(document=DocumentRef(path="A.md"))
        assert node.children == ()
        assert node.depth == 0
        assert node.is_cycle is False
        assert node.metadata == {}


class TestDiagnostics:
    """Tests for diagnostic records."""

    def test_issues_of_type(self):
        issues = [
            DiagnosticIssue(DiagnosticSeverity.ERROR, DiagnosticType.CYCLE, "cycle"),
            DiagnosticIssue(DiagnosticSeverity.WARNING, DiagnosticType.ORPHANED_NODE, "orphan"),
        ]
        info = DiagnosticInfo(
            timestamp=0.0,
            total_nodes=2,
            total_edges=0,
            issues=issues,
            summary={"errors": 1, "warnings": 1, "info": 0},
            is_healthy=False,
        )

        assert [i.message for i in info.issues_of_type(DiagnosticType.CYCLE)] == ["cycle"]
        assert info.issues_of_type(DiagnosticType.BROKEN_REFERENCE) == []

    def test_to_dict(self):
        issue = DiagnosticIssue(
            DiagnosticSeverity.WARNING,
            DiagnosticType.ORPHANED_NODE,
            "orphan",
            documents=[DocumentRef(path="X.md")],
        )
        info = DiagnosticInfo(
            timestamp=1.0,
            total_nodes=1,
            total_edges=0,
            issues=[issue],
            summary={"errors": 0, "warnings": 1, "info": 0},
            is_healthy=True,
        )

        data = info.to_dict()
        assert data["issues"][0]["documents"] == ["X.md"]
        assert data["is_healthy"] is True
        json.dumps(data)

    def test_graph_statistics_defaults(self):
        assert GraphStatistics().to_dict()["total_nodes"] == 0


class TestChangeEvent:
    """Tests for change notifications."""

    def test_to_dict_omits_unset_fields(self):
        event = ChangeEvent(kind=ChangeKind.UPSERTED, path="a.md")
        assert event.to_dict() == {"kind": "upserted", "path": "a.md"}

    def test_rename_to_dict(self):
        event = ChangeEvent(kind=ChangeKind.RENAMED, path="b.md", old_path="a.md", timestamp=5.0)
        assert event.to_dict() == {
            "kind": "renamed",
            "path": "b.md",
            "old_path": "a.md",
            "timestamp": 5.0,
        }
