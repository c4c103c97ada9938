# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tree materialization of relationship queries.

Builders turn the generations computed by RelationshipEngine into nested
TreeNode snapshots for presentation layers:
- build_ancestor_tree / build_descendant_tree: nested generations
- build_full_lineage_tree: focus document with its descendants
- build_sibling_tree / build_cousins_tree: flat lists of depth-0 nodes

Nesting: a node's children are the members of the next generation adjacent
to it (its parents in an ancestor tree, its children in a descendant tree),
so a document reachable through two branches appears under both.

Cycle marking: a node is marked ``is_cycle`` when either
(a) its document already appears on the current root-to-node path; the
    node is kept but not expanded, which guarantees termination, or
(b) the cycle detector reports the document in some cycle; expansion
    continues, since any real repetition is caught by (a) further down.

Filtering and depth limits are applied while building, so a filtered-out
candidate never consumes depth or appears with its subtree.

Helper functions (traverse_tree, filter_tree, map_tree, ...) never mutate
their input; filter_tree and map_tree return new trees.
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Deque,
    Dict,
    FrozenSet,
    List,
    Optional,
)

from relation_explorer.models import DocumentRef, TreeNode
from relation_explorer.relationship_engine import RelationshipEngine

if TYPE_CHECKING:
    from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)

CYCLE_ICON = "cycle"
CYCLE_CLASS = "is-cycle"


@dataclass
class TreeBuildOptions:
    """Options for the tree builders.

    Attributes:
        max_depth: Deepest level to build (defaults to the graph's max_depth).
        detect_cycles: Mark cycle nodes. Path repetition always stops
            expansion, even when marking is disabled.
        include_metadata: Populate ``TreeNode.metadata``.
        filter: Inclusion predicate applied to every candidate child.
        metadata_provider: Callback ``(document, depth) -> dict`` merged into
            each node's metadata.
    """

    max_depth: Optional[int] = None
    detect_cycles: bool = True
    include_metadata: bool = True
    filter: Optional[Callable[[DocumentRef], bool]] = None
    metadata_provider: Optional[Callable[[DocumentRef, int], Dict[str, Any]]] = None


# =============================================================================
# Node construction
# =============================================================================


def _create_node(
    document: DocumentRef,
    depth: int,
    is_cycle: bool,
    options: TreeBuildOptions,
    graph: "RelationGraph",
    children: List[TreeNode],
) -> TreeNode:
    metadata: Dict[str, Any] = {}

    if options.include_metadata:
        if options.metadata_provider is not None:
            metadata.update(options.metadata_provider(document, depth))
        if is_cycle:
            _add_cycle_metadata(metadata, document, graph)

    return TreeNode(
        document=document,
        children=tuple(children),
        depth=depth,
        is_cycle=is_cycle,
        metadata=metadata,
    )


def _add_cycle_metadata(
    metadata: Dict[str, Any], document: DocumentRef, graph: "RelationGraph"
) -> None:
    metadata["icon"] = CYCLE_ICON
    metadata["class_name"] = " ".join(
        part for part in (metadata.get("class_name", ""), CYCLE_CLASS) if part
    )

    cycle = graph.detect_cycle(document)
    if cycle is None:
        metadata["tooltip"] = "This document is part of a cycle"
        return

    names = [doc.name for doc in cycle.cycle_path]
    plural = "" if cycle.length == 1 else "s"
    metadata["cycle_info"] = {"path": names, "length": cycle.length}
    metadata["tooltip"] = (
        f"Cycle detected: {' → '.join(names)}\nLength: {cycle.length} document{plural}"
    )


def _is_in_cycle(document: DocumentRef, graph: "RelationGraph", options: TreeBuildOptions) -> bool:
    return options.detect_cycles and graph.detect_cycle(document) is not None


def _build_from_generations(
    document: DocumentRef,
    depth: int,
    generations: List[List[DocumentRef]],
    adjacent: Callable[[DocumentRef], List[DocumentRef]],
    graph: "RelationGraph",
    options: TreeBuildOptions,
    max_depth: int,
    path: FrozenSet[str],
) -> TreeNode:
    # Termination guard: engine generations never repeat a document
    is_path_cycle = document.path in path
    is_cycle = options.detect_cycles and (
        is_path_cycle or graph.detect_cycle(document) is not None
    )

    children: List[TreeNode] = []
    if depth < max_depth and not is_path_cycle and generations:
        neighbour_paths = {neighbour.path for neighbour in adjacent(document)}
        child_path = path | {document.path}

        for candidate in generations[0]:
            if candidate.path not in neighbour_paths:
                continue
            if options.filter is not None and not options.filter(candidate):
                continue
            children.append(
                _build_from_generations(
                    candidate,
                    depth + 1,
                    generations[1:],
                    adjacent,
                    graph,
                    options,
                    max_depth,
                    child_path,
                )
            )

    return _create_node(document, depth, is_cycle, options, graph, children)


def _resolve_options(
    options: Optional[TreeBuildOptions], graph: "RelationGraph"
) -> TreeBuildOptions:
    resolved = options if options is not None else TreeBuildOptions()
    if resolved.max_depth is None:
        resolved = replace(resolved, max_depth=graph.max_depth)
    return resolved


# =============================================================================
# Builders
# =============================================================================


def build_ancestor_tree(
    document: DocumentRef,
    engine: RelationshipEngine,
    graph: "RelationGraph",
    options: Optional[TreeBuildOptions] = None,
) -> TreeNode:
    """Build the ancestor tree of a document.

    Args:
        document: Root of the tree (depth 0).
        engine: Engine computing ancestor generations.
        graph: Graph used for adjacency and cycle detection.
        options: Build options (defaults apply if None).

    Returns:
        Root TreeNode. Children of a node are its parents.

    Example:
        A -> B -> C -> D
        build_ancestor_tree(A) == A(B(C(D)))
    """
    options = _resolve_options(options, graph)
    max_depth = options.max_depth or 0
    ancestors = engine.get_ancestors(document, max_depth)
    tree = _build_from_generations(
        document, 0, ancestors, graph.get_parents, graph, options, max_depth, frozenset()
    )
    logger.debug(f"Built ancestor tree for {document.path} ({len(ancestors)} generation(s))")
    return tree


def build_descendant_tree(
    document: DocumentRef,
    engine: RelationshipEngine,
    graph: "RelationGraph",
    options: Optional[TreeBuildOptions] = None,
) -> TreeNode:
    """Build the descendant tree of a document.

    Symmetric to build_ancestor_tree(): children of a node are its children.
    """
    options = _resolve_options(options, graph)
    max_depth = options.max_depth or 0
    descendants = engine.get_descendants(document, max_depth)
    tree = _build_from_generations(
        document, 0, descendants, graph.get_children, graph, options, max_depth, frozenset()
    )
    logger.debug(
        f"Built descendant tree for {document.path} ({len(descendants)} generation(s))"
    )
    return tree


def build_full_lineage_tree(
    document: DocumentRef,
    engine: RelationshipEngine,
    graph: "RelationGraph",
    options: Optional[TreeBuildOptions] = None,
) -> TreeNode:
    """Build the lineage tree centred on a document.

    The focus node carries descendants as children; when metadata is
    enabled it also records ``ancestor_count`` so callers can render the
    ancestor side separately (see build_ancestor_tree).
    """
    options = _resolve_options(options, graph)
    max_depth = options.max_depth or 0
    tree = build_descendant_tree(document, engine, graph, options)

    if not options.include_metadata:
        return tree

    ancestors = engine.get_ancestors(document, max_depth)
    metadata = dict(tree.metadata)
    metadata["ancestor_count"] = sum(len(generation) for generation in ancestors)
    return replace(tree, metadata=metadata)


def _flat_nodes(
    documents: List[DocumentRef], graph: "RelationGraph", options: TreeBuildOptions
) -> List[TreeNode]:
    return [
        _create_node(doc, 0, _is_in_cycle(doc, graph, options), options, graph, [])
        for doc in documents
        if options.filter is None or options.filter(doc)
    ]


def build_sibling_tree(
    document: DocumentRef,
    engine: RelationshipEngine,
    graph: "RelationGraph",
    options: Optional[TreeBuildOptions] = None,
) -> List[TreeNode]:
    """Build one depth-0 node per sibling (self excluded)."""
    options = _resolve_options(options, graph)
    return _flat_nodes(engine.get_siblings(document, include_self=False), graph, options)


def build_cousins_tree(
    document: DocumentRef,
    engine: RelationshipEngine,
    graph: "RelationGraph",
    options: Optional[TreeBuildOptions] = None,
    degree: int = 1,
) -> List[TreeNode]:
    """Build one depth-0 node per cousin of the given degree."""
    options = _resolve_options(options, graph)
    return _flat_nodes(engine.get_cousins(document, degree), graph, options)


# =============================================================================
# Tree helpers
# =============================================================================


def traverse_tree(node: TreeNode, visitor: Callable[[TreeNode], None]) -> None:
    """Visit every node depth-first (pre-order)."""
    stack = [node]
    while stack:
        current = stack.pop()
        visitor(current)
        stack.extend(reversed(current.children))


def traverse_tree_bfs(node: TreeNode, visitor: Callable[[TreeNode], None]) -> None:
    """Visit every node breadth-first."""
    queue: Deque[TreeNode] = deque([node])
    while queue:
        current = queue.popleft()
        visitor(current)
        queue.extend(current.children)


def find_node_by_path(node: TreeNode, path: str) -> Optional[TreeNode]:
    """Find the first node (depth-first) whose document has the given path."""
    for candidate in flatten_tree(node):
        if candidate.document.path == path:
            return candidate
    return None


def calculate_tree_depth(node: TreeNode) -> int:
    """Deepest ``depth`` value of any node in the tree."""
    if not node.children:
        return node.depth
    return max(calculate_tree_depth(child) for child in node.children)


def count_nodes(node: TreeNode) -> int:
    return 1 + sum(count_nodes(child) for child in node.children)


def flatten_tree(node: TreeNode) -> List[TreeNode]:
    """List every node in depth-first pre-order."""
    nodes: List[TreeNode] = []
    traverse_tree(node, nodes.append)
    return nodes


def filter_tree(node: TreeNode, predicate: Callable[[TreeNode], bool]) -> Optional[TreeNode]:
    """Copy the tree keeping only nodes that match the predicate.

    A node that does not match is dropped together with its subtree.

    Returns:
        New tree, or None if the root does not match.
    """
    if not predicate(node):
        return None

    children = []
    for child in node.children:
        kept = filter_tree(child, predicate)
        if kept is not None:
            children.append(kept)
    return replace(node, children=tuple(children))


def map_tree(node: TreeNode, mapper: Callable[[TreeNode], TreeNode]) -> TreeNode:
    """Copy the tree, transforming each node with ``mapper``.

    The mapper's returned children are replaced by the mapped original
    children, so mappers only need to change the node itself.
    """
    mapped = mapper(node)
    return replace(mapped, children=tuple(map_tree(child, mapper) for child in node.children))
