# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Whole-graph health diagnostics.

Checks performed by validate_graph():
- Cycles (error): every distinct cycle, each reported once
- Unresolved links (error): declared references with no matching resolved parent
- Orphaned documents (warning): no parents and no children
- Broken bidirectional references (error): parent/child asymmetry, with direction
- Statistics (info): counts, depth, breadth and average fan-out

Unresolved-link matching is a heuristic: a raw reference counts as resolved
when a resolved parent's path contains it, its display name equals it, or the
reference contains the display name. It can over- and under-report (for
example "Note" is considered resolved by a parent named "Note 2").
"""

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Set, Tuple

from relation_explorer.cycle_detector import CycleDetector
from relation_explorer.graph_analyzer import compute_max_breadth, compute_max_depth
from relation_explorer.models import (
    CycleInfo,
    DiagnosticInfo,
    DiagnosticIssue,
    DiagnosticSeverity,
    DiagnosticType,
    DocumentRef,
    ReferenceDirection,
)

if TYPE_CHECKING:
    from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)


class GraphValidator:
    """Validates graph health and produces DiagnosticInfo reports.

    Holds only references to the graph and its cycle detector; must be
    discarded after the graph changes.
    """

    def __init__(self, graph: "RelationGraph", cycle_detector: CycleDetector) -> None:
        """Initialize validator.

        Args:
            graph: Graph to validate.
            cycle_detector: Detector for the same graph state.
        """
        self._graph = graph
        self._cycle_detector = cycle_detector

    def validate_graph(self) -> DiagnosticInfo:
        """Run every check and aggregate the findings.

        Returns:
            DiagnosticInfo; ``is_healthy`` is True iff there are no errors.
        """
        timestamp = time.time()
        issues: List[DiagnosticIssue] = []

        for cycle in self.get_all_cycles():
            issues.append(
                DiagnosticIssue(
                    severity=DiagnosticSeverity.ERROR,
                    type=DiagnosticType.CYCLE,
                    message=cycle.description,
                    documents=list(cycle.cycle_path),
                    context={"length": cycle.length},
                )
            )

        for document, unresolved in self.find_unresolved_links():
            issues.append(
                DiagnosticIssue(
                    severity=DiagnosticSeverity.ERROR,
                    type=DiagnosticType.UNRESOLVED_LINK,
                    message=(
                        f'Document "{document.name}" references non-existent '
                        f"parent(s): {', '.join(unresolved)}"
                    ),
                    documents=[document],
                    context={"unresolved_parents": unresolved},
                )
            )

        for document in self.find_orphaned_documents():
            issues.append(
                DiagnosticIssue(
                    severity=DiagnosticSeverity.WARNING,
                    type=DiagnosticType.ORPHANED_NODE,
                    message=f'Document "{document.name}" has no parents and no children',
                    documents=[document],
                )
            )

        for parent, child, direction in self.find_broken_references():
            issues.append(
                DiagnosticIssue(
                    severity=DiagnosticSeverity.ERROR,
                    type=DiagnosticType.BROKEN_REFERENCE,
                    message=f'Broken {direction} reference: "{parent.name}" <-> "{child.name}"',
                    documents=[parent, child],
                    context={"direction": direction},
                )
            )

        stats = self.get_graph_stats()
        issues.append(
            DiagnosticIssue(
                severity=DiagnosticSeverity.INFO,
                type=DiagnosticType.GRAPH_STATS,
                message=(
                    f"Graph contains {stats['nodes']} nodes, {stats['edges']} edges, "
                    f"{stats['roots']} roots, {stats['leaves']} leaves"
                ),
                context=stats,
            )
        )

        summary = {
            "errors": sum(1 for i in issues if i.severity == DiagnosticSeverity.ERROR),
            "warnings": sum(1 for i in issues if i.severity == DiagnosticSeverity.WARNING),
            "info": sum(1 for i in issues if i.severity == DiagnosticSeverity.INFO),
        }
        is_healthy = summary["errors"] == 0

        if not is_healthy:
            logger.warning(
                f"Relationship graph '{self._graph.field_name}' is unhealthy: "
                f"{summary['errors']} error(s), {summary['warnings']} warning(s)"
            )
        else:
            logger.debug(f"Relationship graph '{self._graph.field_name}' is healthy")

        return DiagnosticInfo(
            timestamp=timestamp,
            total_nodes=stats["nodes"],
            total_edges=stats["edges"],
            issues=issues,
            summary=summary,
            is_healthy=is_healthy,
        )

    def get_diagnostics(self) -> DiagnosticInfo:
        """Alias for validate_graph()."""
        return self.validate_graph()

    def get_all_cycles(self) -> List[CycleInfo]:
        """Find every distinct cycle in the graph.

        Documents already seen in a reported cycle are skipped, so a cycle
        is reported once even though each member would find it.

        Returns:
            List of CycleInfo in document order.
        """
        cycles: List[CycleInfo] = []
        seen: Set[str] = set()

        for document in self._graph.get_all_documents():
            if document.path in seen:
                continue

            cycle = self._cycle_detector.detect_cycle(document)
            if cycle is not None:
                cycles.append(cycle)
                seen.update(doc.path for doc in cycle.cycle_path)

        return cycles

    def find_unresolved_links(self) -> List[Tuple[DocumentRef, List[str]]]:
        """Find declared parent references that did not resolve.

        Returns:
            List of (document, unresolved reference strings) pairs.
        """
        unresolved: List[Tuple[DocumentRef, List[str]]] = []

        for document in self._graph.get_all_documents():
            declared = self._graph.extract_raw_references(document)
            if not declared:
                continue

            resolved = self._graph.get_parents(document)
            missing = [ref for ref in declared if not self._matches_any(ref, resolved)]
            if missing:
                unresolved.append((document, missing))

        return unresolved

    @staticmethod
    def _matches_any(reference: str, resolved: List[DocumentRef]) -> bool:
        return any(
            reference in parent.path or parent.name == reference or parent.name in reference
            for parent in resolved
        )

    def find_orphaned_documents(self) -> List[DocumentRef]:
        """Find documents with neither parents nor children."""
        return [
            document
            for document in self._graph.get_all_documents()
            if not self._graph.get_parents(document) and not self._graph.get_children(document)
        ]

    def find_broken_references(self) -> List[Tuple[DocumentRef, DocumentRef, str]]:
        """Find parent/child pairs that violate adjacency symmetry.

        Returns:
            List of (parent, child, direction) triples. ``child->parent``
            means the child lists the parent but the parent lacks the child;
            ``parent->child`` means the reverse.
        """
        broken: List[Tuple[DocumentRef, DocumentRef, str]] = []

        for document in self._graph.get_all_documents():
            for parent in self._graph.get_parents(document):
                siblings = self._graph.get_children(parent)
                if not any(child.path == document.path for child in siblings):
                    broken.append((parent, document, ReferenceDirection.CHILD_TO_PARENT))

            for child in self._graph.get_children(document):
                co_parents = self._graph.get_parents(child)
                if not any(parent.path == document.path for parent in co_parents):
                    broken.append((document, child, ReferenceDirection.PARENT_TO_CHILD))

        return broken

    def get_graph_stats(self) -> Dict[str, Any]:
        """Compute summary statistics of the graph.

        Returns:
            Dict with nodes, edges, roots, leaves, max_depth, max_breadth,
            avg_parents and avg_children. Roots/leaves here are purely
            structural (no parents / no children).
        """
        documents = self._graph.get_all_documents()
        total_parents = 0
        total_children = 0
        roots = 0
        leaves = 0

        for document in documents:
            parents = self._graph.get_parents(document)
            children = self._graph.get_children(document)
            total_parents += len(parents)
            total_children += len(children)
            if not parents:
                roots += 1
            if not children:
                leaves += 1

        node_count = len(documents)
        return {
            "nodes": node_count,
            "edges": total_parents,
            "roots": roots,
            "leaves": leaves,
            "max_depth": compute_max_depth(self._graph),
            "max_breadth": compute_max_breadth(self._graph),
            "avg_parents": total_parents / node_count if node_count else 0.0,
            "avg_children": total_children / node_count if node_count else 0.0,
        }
