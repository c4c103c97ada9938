# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relationship graph of declared parent links.

This module owns the adjacency map of one relationship field:
- parents: documents a node declares in its relationship field (resolved)
- children: derived by inverting every node's parents

Lifecycle:
- build(): full scan of the document collection
- update_node(): upsert of a single new or changed document
- remove_node(): deleted document
- rename_node(): identifier change that keeps every edge

The CycleDetector and GraphValidator hold no state beyond a reference to the
graph. Every mutation sets a dirty flag; the ``cycle_detector`` and
``validator`` accessors rebuild them on next use when the flag is set.

Thread Safety:
- NOT thread-safe: Designed for single-threaded use. Callers serialize
  change notifications before calling into the graph.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from relation_explorer.cycle_detector import CycleDetector
from relation_explorer.graph_validator import GraphValidator
from relation_explorer.metadata_cache import MetadataCache
from relation_explorer.models import CycleInfo, DiagnosticInfo, DocumentRef, NodeInfo
from relation_explorer.sources import DocumentSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


class RelationGraph:
    """Graph of parent/child relationships for one relationship field.

    Maintains one NodeInfo per document, keyed by document path, with
    bidirectional adjacency:
    - parents: declared order, duplicates kept as declared
    - children: derived, one entry per child

    Invariant: A in get_parents(B) <=> B in get_children(A).

    Usage:
        graph = RelationGraph(source, "parent", cache=cache)
        graph.build()
        graph.get_parents(document)
        graph.update_node(document)  # after the document changed
    """

    def __init__(
        self,
        source: DocumentSource,
        field_name: str,
        cache: Optional[MetadataCache] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        """Initialize an empty graph.

        Args:
            source: DocumentSource used to enumerate documents and resolve links.
            field_name: Relationship field that encodes parent links.
            cache: Shared MetadataCache. A private one is created if None.
            max_depth: Default traversal depth for queries on this graph.
        """
        if not field_name:
            raise ValueError("Relationship field name cannot be empty")

        self._source = source
        self._field_name = field_name
        self._cache = cache if cache is not None else MetadataCache(source)
        self._max_depth = max_depth

        self._nodes: Dict[str, NodeInfo] = {}

        # Dependent components, rebuilt lazily after mutations
        self._cycle_detector: Optional[CycleDetector] = None
        self._validator: Optional[GraphValidator] = None
        self._dirty = True
        self._built = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def field_name(self) -> str:
        """Relationship field this graph is built from."""
        return self._field_name

    @property
    def max_depth(self) -> int:
        """Default maximum traversal depth."""
        return self._max_depth

    @property
    def source(self) -> DocumentSource:
        return self._source

    @property
    def cache(self) -> MetadataCache:
        return self._cache

    @property
    def is_dirty(self) -> bool:
        """True when the graph changed since dependent components were built."""
        return self._dirty

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def cycle_detector(self) -> CycleDetector:
        """Cycle detector for the current graph state (rebuilt if stale)."""
        if self._dirty or self._cycle_detector is None:
            self._rebuild_dependents()
        assert self._cycle_detector is not None
        return self._cycle_detector

    @property
    def validator(self) -> GraphValidator:
        """Graph validator for the current graph state (rebuilt if stale)."""
        if self._dirty or self._validator is None:
            self._rebuild_dependents()
        assert self._validator is not None
        return self._validator

    def _rebuild_dependents(self) -> None:
        self._cycle_detector = CycleDetector(self)
        self._validator = GraphValidator(self, self._cycle_detector)
        self._dirty = False
        logger.debug(f"Rebuilt cycle detector and validator for field '{self._field_name}'")

    def _mark_dirty(self) -> None:
        self._dirty = True

    # =========================================================================
    # Construction
    # =========================================================================

    def build(self) -> None:
        """Build the graph from a full scan of the document collection.

        Pass 1 resolves every document's declared parents; pass 2 inverts
        parents into children. Safe to call repeatedly: an unchanged
        collection yields an identical adjacency map.
        """
        documents = self._source.get_documents()
        self._nodes.clear()

        for document in documents:
            parents = self._extract_parents(document)
            self._nodes[document.path] = NodeInfo(document=document, parents=parents)

        for node in self._nodes.values():
            for parent in node.parents:
                parent_node = self._nodes.get(parent.path)
                if parent_node is not None and node.document not in parent_node.children:
                    parent_node.children.append(node.document)

        self._built = True
        self._mark_dirty()
        logger.info(
            f"Built relationship graph for field '{self._field_name}': "
            f"{self.node_count} documents, {self.edge_count} parent links"
        )

    def _extract_parents(self, document: DocumentRef) -> List[DocumentRef]:
        """Resolve the declared parents of a document.

        Unresolvable references are dropped; they surface only as
        unresolved-link diagnostics.
        """
        value = self._cache.get_field_value(document, self._field_name)
        parents: List[DocumentRef] = []

        for reference in value.references:
            target = self._source.resolve_link(reference, document)
            if target is None:
                logger.debug(f"Dropping unresolved parent '{reference}' of {document.path}")
                continue
            # Prefer the graph's own instance so display names stay consistent
            existing = self._nodes.get(target.path)
            parents.append(existing.document if existing is not None else target)

        return parents

    def extract_raw_references(self, document: DocumentRef) -> List[str]:
        """Get the declared parent references of a document, unresolved.

        Returns:
            Reference strings with link brackets removed. Empty list if the
            field is absent or empty.
        """
        return self._cache.get_raw_references(document, self._field_name)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_parents(self, document: DocumentRef) -> List[DocumentRef]:
        """Get resolved parents of a document (empty list if unknown)."""
        node = self._nodes.get(document.path)
        return list(node.parents) if node is not None else []

    def get_children(self, document: DocumentRef) -> List[DocumentRef]:
        """Get children of a document (empty list if unknown)."""
        node = self._nodes.get(document.path)
        return list(node.children) if node is not None else []

    def has_field(self, document: DocumentRef) -> bool:
        """Check whether a document declares the relationship field.

        True even when the field is empty, which marks a document as part of
        the hierarchy while currently having no parent.
        """
        return self._cache.has_field(document, self._field_name)

    def get_all_documents(self) -> List[DocumentRef]:
        """Get every document in the graph, in build/insertion order."""
        return [node.document for node in self._nodes.values()]

    def get_document(self, path: str) -> Optional[DocumentRef]:
        """Look up a tracked document by path."""
        node = self._nodes.get(path)
        return node.document if node is not None else None

    def get_node(self, path: str) -> Optional[NodeInfo]:
        return self._nodes.get(path)

    def contains(self, document: DocumentRef) -> bool:
        return document.path in self._nodes

    def __contains__(self, document: object) -> bool:
        return isinstance(document, DocumentRef) and document.path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Number of parent links (each declared, resolved parent is one edge)."""
        return sum(len(node.parents) for node in self._nodes.values())

    # =========================================================================
    # Incremental updates
    # =========================================================================

    def update_node(self, document: DocumentRef) -> None:
        """Re-derive the parents of a single new or changed document.

        Diffs the new parent set against the old one: the document is
        removed from the children of parents it no longer declares and added
        to the children of new parents. Other nodes' parents are never
        touched.

        Args:
            document: The new or changed document.
        """
        new_parents = self._extract_parents(document)
        node = self._nodes.get(document.path)
        old_parent_paths: Set[str] = set()

        if node is None:
            node = NodeInfo(document=document, parents=new_parents)
            self._nodes[document.path] = node

            # Nodes that already reference this document become its children
            for other in self._nodes.values():
                if other is not node and document in other.parents:
                    node.children.append(other.document)

            logger.debug(f"Added node {document.path} with {len(new_parents)} parent(s)")
        else:
            old_parent_paths = {parent.path for parent in node.parents}
            node.document = document
            node.parents = new_parents
            logger.debug(f"Updated node {document.path} with {len(new_parents)} parent(s)")

        new_parent_paths = {parent.path for parent in new_parents}

        # Stale former parents lose this child
        for parent_path in old_parent_paths - new_parent_paths:
            parent_node = self._nodes.get(parent_path)
            if parent_node is not None:
                parent_node.children = [
                    child for child in parent_node.children if child.path != document.path
                ]

        # New parents gain this child (no duplicates)
        for parent_path in new_parent_paths:
            parent_node = self._nodes.get(parent_path)
            if parent_node is not None and document not in parent_node.children:
                parent_node.children.append(document)

        self._mark_dirty()

    def remove_node(self, document: DocumentRef) -> None:
        """Remove a deleted document and every edge touching it.

        Args:
            document: The removed document. Unknown documents are ignored.
        """
        node = self._nodes.pop(document.path, None)
        if node is None:
            return

        for parent in node.parents:
            parent_node = self._nodes.get(parent.path)
            if parent_node is not None:
                parent_node.children = [
                    child for child in parent_node.children if child.path != document.path
                ]

        for child in node.children:
            child_node = self._nodes.get(child.path)
            if child_node is not None:
                child_node.parents = [
                    parent for parent in child_node.parents if parent.path != document.path
                ]

        self._mark_dirty()
        logger.debug(f"Removed node {document.path}")

    def rename_node(self, document: DocumentRef, old_path: str) -> None:
        """Move a node to a new identifier, keeping every edge.

        Args:
            document: The document under its new path.
            old_path: Previous path. Unknown paths are ignored.
        """
        if old_path not in self._nodes:
            return

        replaced = self._nodes.get(document.path)
        if replaced is not None and document.path != old_path:
            # Drop the replaced node with its edges so no neighbour points at a stale node
            logger.warning(f"Rename target {document.path} already tracked, replacing it")
            self.remove_node(replaced.document)

        node = self._nodes.pop(old_path)

        def rewrite(refs: List[DocumentRef]) -> List[DocumentRef]:
            return [document if ref.path == old_path else ref for ref in refs]

        # Self-references first, then neighbours in both directions
        node.document = document
        node.parents = rewrite(node.parents)
        node.children = rewrite(node.children)
        self._nodes[document.path] = node

        for child in node.children:
            child_node = self._nodes.get(child.path)
            if child_node is not None:
                child_node.parents = rewrite(child_node.parents)

        for parent in node.parents:
            parent_node = self._nodes.get(parent.path)
            if parent_node is not None:
                parent_node.children = rewrite(parent_node.children)

        self._mark_dirty()
        logger.debug(f"Renamed node {old_path} -> {document.path}")

    def clear(self) -> None:
        """Drop every node. Used before a rebuild and in tests."""
        self._nodes.clear()
        self._built = False
        self._mark_dirty()

    # =========================================================================
    # Cycle detection and validation (delegating to dependent components)
    # =========================================================================

    def detect_cycle(self, document: DocumentRef) -> Optional[CycleInfo]:
        """Get the cycle through a document, or None."""
        return self.cycle_detector.detect_cycle(document)

    def has_cycles(self) -> bool:
        """Check whether any document participates in a cycle."""
        return self.cycle_detector.has_cycles()

    def get_all_cycles(self) -> List[CycleInfo]:
        """Get every distinct cycle in the graph."""
        return self.validator.get_all_cycles()

    def validate_graph(self) -> DiagnosticInfo:
        """Validate the graph and return a diagnostic report."""
        return self.validator.validate_graph()

    # =========================================================================
    # Export
    # =========================================================================

    def export_to_dict(self) -> Dict[str, Any]:
        """Export the graph to a JSON-compatible dict.

        Returns:
            Dictionary containing:
            - metadata: timestamp, field name, counts
            - documents: path, name, parent and child paths per document
            - graph_metadata: cycles and most connected documents
        """
        cycles = self.get_all_cycles()
        in_cycle = {doc.path for cycle in cycles for doc in cycle.cycle_path}

        metadata = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "field_name": self._field_name,
            "total_documents": self.node_count,
            "total_edges": self.edge_count,
        }

        documents = []
        for node in self._nodes.values():
            documents.append(
                {
                    "path": node.document.path,
                    "name": node.document.name,
                    "parents": [parent.path for parent in node.parents],
                    "children": [child.path for child in node.children],
                    "in_cycle": node.document.path in in_cycle,
                }
            )

        graph_metadata = {
            "cycles": [cycle.to_dict() for cycle in cycles],
            "most_connected_documents": self._get_most_connected_documents(limit=10),
        }

        return {
            "metadata": metadata,
            "documents": documents,
            "graph_metadata": graph_metadata,
        }

    def _get_most_connected_documents(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get documents with the most children.

        Args:
            limit: Maximum number of documents to return.

        Returns:
            List of dicts with 'document' and 'child_count' keys, sorted by count.
        """
        counts = [
            (node.document.path, len(node.children))
            for node in self._nodes.values()
            if node.children
        ]
        counts.sort(key=lambda x: x[1], reverse=True)
        return [{"document": path, "child_count": count} for path, count in counts[:limit]]
