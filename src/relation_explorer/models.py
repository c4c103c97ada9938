# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the relationship graph engine.

This module defines the data structures shared across the engine:
- DocumentRef: Immutable identity of a document in the collection
- FieldValue / FieldKind: Normalized value of a relationship field
- NodeInfo: Adjacency entry (parents and children) for one document
- CycleInfo: A cycle of parent edges through a document
- TreeNode: Immutable, annotated tree snapshot for presentation layers
- DiagnosticSeverity / DiagnosticType / DiagnosticIssue / DiagnosticInfo:
  Graph-health report produced by the validator
- GraphStatistics: Structural metrics computed by the graph analyzer
- Query result records (ancestors, descendants, siblings, cousins, lineage)
- MetadataCacheStatistics: Hit/miss counters of the metadata cache

All result models expose ``to_dict()`` returning JSON-compatible primitives.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DocumentRef:
    """Reference to a document in the collection.

    Compared and hashed by ``path`` only; ``name`` is the display name.
    The engine never mutates a DocumentRef, a rename produces a new one.
    """

    path: str
    name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            # Display name defaults to the basename without extension
            object.__setattr__(self, "name", os.path.splitext(os.path.basename(self.path))[0])

    def __str__(self) -> str:
        return self.path

    def to_dict(self) -> Dict[str, str]:
        """Serialize to JSON-compatible dict."""
        return {"path": self.path, "name": self.name}


class FieldKind:
    """Shapes a relationship field value can take once read.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    ABSENT = "absent"  # field not declared at all
    SINGLE = "single"  # parent: "[[Note]]"
    LIST = "list"  # parent: ["[[A]]", "[[B]]"] or parent: (empty)


@dataclass(frozen=True)
class FieldValue:
    """Relationship field value, normalized at the field-reader boundary.

    ``references`` is always a list of raw reference strings, so the graph
    only ever consumes one shape. ``kind`` preserves whether the field was
    declared at all: a declared-but-empty field is LIST with no references.
    """

    kind: str
    references: Tuple[str, ...] = ()

    @property
    def is_present(self) -> bool:
        """True when the document declares the field, even if empty."""
        return self.kind != FieldKind.ABSENT

    @property
    def is_empty(self) -> bool:
        return not self.references

    @classmethod
    def absent(cls) -> "FieldValue":
        return cls(kind=FieldKind.ABSENT)


@dataclass
class NodeInfo:
    """Adjacency entry for a single document.

    ``parents`` keeps the declared order (duplicates possible);
    ``children`` is derived by inverting every node's parents.
    """

    document: DocumentRef
    parents: List[DocumentRef] = field(default_factory=list)
    children: List[DocumentRef] = field(default_factory=list)


@dataclass
class CycleInfo:
    """A cycle of parent edges.

    ``cycle_path`` starts at the queried document and follows parent edges;
    the edge from the last element back to the first closes the cycle.
    """

    cycle_path: List[DocumentRef]
    length: int
    description: str = ""

    def __post_init__(self) -> None:
        if not self.description:
            names = [doc.name for doc in self.cycle_path]
            if names:
                names.append(names[0])
            plural = "" if self.length == 1 else "s"
            self.description = (
                f"Cycle detected: {' → '.join(names)} ({self.length} document{plural})"
            )

    def contains(self, document: DocumentRef) -> bool:
        return document in self.cycle_path

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "cycle_path": [doc.path for doc in self.cycle_path],
            "length": self.length,
            "description": self.description,
        }


@dataclass(frozen=True)
class TreeNode:
    """Node of a materialized relationship tree.

    Trees are snapshots: children are a tuple and every build creates new
    nodes, so a previously returned tree is never changed by a rebuild.
    """

    document: DocumentRef
    children: Tuple["TreeNode", ...] = ()
    depth: int = 0
    is_cycle: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the subtree to JSON-compatible dict."""
        return {
            "document": self.document.to_dict(),
            "depth": self.depth,
            "is_cycle": self.is_cycle,
            "metadata": dict(self.metadata),
            "children": [child.to_dict() for child in self.children],
        }


class DiagnosticSeverity:
    """Severity levels for diagnostic issues."""

    ERROR = "error"  # cycles, unresolved links, broken references
    WARNING = "warning"  # orphaned documents
    INFO = "info"  # graph statistics


class DiagnosticType:
    """Kinds of diagnostic issues reported by the validator."""

    CYCLE = "cycle"
    UNRESOLVED_LINK = "unresolved_link"
    ORPHANED_NODE = "orphaned_node"
    BROKEN_REFERENCE = "broken_reference"
    GRAPH_STATS = "graph_stats"


class ReferenceDirection:
    """Which side of a parent/child pair is missing its back-reference."""

    PARENT_TO_CHILD = "parent->child"  # parent lists child, child lacks parent
    CHILD_TO_PARENT = "child->parent"  # child lists parent, parent lacks child


@dataclass
class DiagnosticIssue:
    """A single finding of graph validation."""

    severity: str  # DiagnosticSeverity value
    type: str  # DiagnosticType value
    message: str
    documents: List[DocumentRef] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "severity": self.severity,
            "type": self.type,
            "message": self.message,
            "documents": [doc.path for doc in self.documents],
            "context": self.context,
        }


@dataclass
class DiagnosticInfo:
    """Complete validation report for one graph."""

    timestamp: float
    total_nodes: int
    total_edges: int
    issues: List[DiagnosticIssue]
    summary: Dict[str, int]
    is_healthy: bool

    def issues_of_type(self, issue_type: str) -> List[DiagnosticIssue]:
        return [issue for issue in self.issues if issue.type == issue_type]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "timestamp": self.timestamp,
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "issues": [issue.to_dict() for issue in self.issues],
            "summary": dict(self.summary),
            "is_healthy": self.is_healthy,
        }


@dataclass
class GraphStatistics:
    """Structural metrics of a relationship graph."""

    total_nodes: int = 0
    total_edges: int = 0
    root_count: int = 0
    leaf_count: int = 0
    max_depth: int = 0  # longest downward chain from any root
    max_breadth: int = 0  # most children of any document
    cycle_count: int = 0
    average_children: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "root_count": self.root_count,
            "leaf_count": self.leaf_count,
            "max_depth": self.max_depth,
            "max_breadth": self.max_breadth,
            "cycle_count": self.cycle_count,
            "average_children": self.average_children,
        }


def _generations_to_paths(generations: List[List[DocumentRef]]) -> List[List[str]]:
    return [[doc.path for doc in generation] for generation in generations]


@dataclass
class AncestorQueryResult:
    """Ancestors of a document organized by generation."""

    document: DocumentRef
    generations: List[List[DocumentRef]]
    total_count: int
    depth: int
    was_truncated: bool

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "document": self.document.path,
            "generations": _generations_to_paths(self.generations),
            "total_count": self.total_count,
            "depth": self.depth,
            "was_truncated": self.was_truncated,
        }


@dataclass
class DescendantQueryResult:
    """Descendants of a document organized by generation."""

    document: DocumentRef
    generations: List[List[DocumentRef]]
    total_count: int
    depth: int
    was_truncated: bool

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "document": self.document.path,
            "generations": _generations_to_paths(self.generations),
            "total_count": self.total_count,
            "depth": self.depth,
            "was_truncated": self.was_truncated,
        }


@dataclass
class SiblingQueryResult:
    document: DocumentRef
    siblings: List[DocumentRef]
    total_count: int
    includes_self: bool

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "document": self.document.path,
            "siblings": [doc.path for doc in self.siblings],
            "total_count": self.total_count,
            "includes_self": self.includes_self,
        }


@dataclass
class CousinQueryResult:
    document: DocumentRef
    cousins: List[DocumentRef]
    total_count: int
    degree: int

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "document": self.document.path,
            "cousins": [doc.path for doc in self.cousins],
            "total_count": self.total_count,
            "degree": self.degree,
        }


@dataclass
class FullLineageResult:
    """Ancestors, descendants and siblings of a document in one record."""

    document: DocumentRef
    ancestors: List[List[DocumentRef]]
    descendants: List[List[DocumentRef]]
    siblings: List[DocumentRef]
    stats: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "document": self.document.path,
            "ancestors": _generations_to_paths(self.ancestors),
            "descendants": _generations_to_paths(self.descendants),
            "siblings": [doc.path for doc in self.siblings],
            "stats": dict(self.stats),
        }


@dataclass
class MetadataCacheStatistics:
    """Performance counters of the metadata cache."""

    size: int
    hits: int
    misses: int
    hit_rate: float  # 0.0-1.0, rounded to 2 decimals

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
        }


@dataclass
class ChangeEvent:
    """A change notification for one document.

    ``kind`` is a ChangeKind value; ``old_path`` is set for renames only.
    """

    kind: str
    path: str
    old_path: Optional[str] = None
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {"kind": self.kind, "path": self.path}
        if self.old_path is not None:
            result["old_path"] = self.old_path
        if self.timestamp:
            result["timestamp"] = self.timestamp
        return result


class ChangeKind:
    """Kinds of change notifications delivered to the engine."""

    UPSERTED = "upserted"
    REMOVED = "removed"
    RENAMED = "renamed"
