# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural analysis helpers for relationship graphs.

Root and leaf classification:
- Root: no parents AND (at least one child OR declares the relationship
  field, even empty). A document that never declares the field and has no
  children is not part of any hierarchy.
- Leaf: no children AND at least one parent. Isolated documents are neither.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from relation_explorer.models import DocumentRef, GraphStatistics

if TYPE_CHECKING:
    from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)


def _by_name(documents: List[DocumentRef]) -> List[DocumentRef]:
    return sorted(documents, key=lambda doc: (doc.name.lower(), doc.path))


def find_root_documents(graph: "RelationGraph") -> List[DocumentRef]:
    """Find the top-level documents of every hierarchy in the graph.

    Args:
        graph: Graph to analyze.

    Returns:
        Root documents sorted by display name.
    """
    roots = [
        document
        for document in graph.get_all_documents()
        if not graph.get_parents(document)
        and (graph.get_children(document) or graph.has_field(document))
    ]
    return _by_name(roots)


def find_leaf_documents(graph: "RelationGraph") -> List[DocumentRef]:
    """Find documents with parents but no children, sorted by display name."""
    leaves = [
        document
        for document in graph.get_all_documents()
        if not graph.get_children(document) and graph.get_parents(document)
    ]
    return _by_name(leaves)


def compute_max_breadth(graph: "RelationGraph") -> int:
    """Largest number of children of any document."""
    return max((len(graph.get_children(doc)) for doc in graph.get_all_documents()), default=0)


def compute_max_depth(
    graph: "RelationGraph", roots: Optional[List[DocumentRef]] = None
) -> int:
    """Length of the longest downward chain of child edges from a root.

    Depth is counted in edges: a root without children has depth 0. An edge
    back into the chain being explored counts as a step to a leaf, so cyclic
    graphs terminate. Depths are memoized per document, which makes the walk
    linear in graph size; on cyclic graphs the result is a lower bound of
    the longest simple chain.

    Args:
        graph: Graph to analyze.
        roots: Starting documents (defaults to find_root_documents).

    Returns:
        Maximum depth, 0 for an empty graph or one without roots.
    """
    if roots is None:
        roots = find_root_documents(graph)

    memo: Dict[str, int] = {}
    best = 0
    for root in roots:
        best = max(best, _depth_from(graph, root, memo))
    return best


def _depth_from(graph: "RelationGraph", start: DocumentRef, memo: Dict[str, int]) -> int:
    if start.path in memo:
        return memo[start.path]

    on_path = {start.path}
    partial: Dict[str, int] = {start.path: 0}
    stack: List[Tuple[DocumentRef, Iterator[DocumentRef]]] = [
        (start, iter(graph.get_children(start)))
    ]

    while stack:
        node, children = stack[-1]
        descended = False

        for child in children:
            if child.path in on_path:
                partial[node.path] = max(partial[node.path], 1)
            elif child.path in memo:
                partial[node.path] = max(partial[node.path], memo[child.path] + 1)
            else:
                on_path.add(child.path)
                partial[child.path] = 0
                stack.append((child, iter(graph.get_children(child))))
                descended = True
                break

        if descended:
            continue

        stack.pop()
        on_path.discard(node.path)
        memo[node.path] = partial.pop(node.path)
        if stack:
            parent = stack[-1][0]
            partial[parent.path] = max(partial[parent.path], memo[node.path] + 1)

    return memo[start.path]


def compute_graph_statistics(graph: "RelationGraph") -> GraphStatistics:
    """Compute structural metrics of a graph.

    Args:
        graph: Graph to analyze.

    Returns:
        GraphStatistics with counts, depth, breadth, cycles and fan-out.
    """
    documents = graph.get_all_documents()
    total_nodes = len(documents)
    total_children = sum(len(graph.get_children(doc)) for doc in documents)

    roots = find_root_documents(graph)
    leaves = find_leaf_documents(graph)

    stats = GraphStatistics(
        total_nodes=total_nodes,
        total_edges=graph.edge_count,
        root_count=len(roots),
        leaf_count=len(leaves),
        max_depth=compute_max_depth(graph, roots),
        max_breadth=compute_max_breadth(graph),
        cycle_count=len(graph.get_all_cycles()),
        average_children=total_children / total_nodes if total_nodes else 0.0,
    )

    logger.debug(
        f"Graph statistics for '{graph.field_name}': {stats.total_nodes} nodes, "
        f"{stats.root_count} roots, max depth {stats.max_depth}"
    )
    return stats
