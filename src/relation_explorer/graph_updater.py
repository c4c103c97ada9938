# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Incremental graph updates from change notifications.

Maps the three change notifications onto graph mutations:
- upserted: invalidate cached metadata, then RelationGraph.update_node()
- removed: invalidate cached metadata, then RelationGraph.remove_node()
- renamed: invalidate both paths, then RelationGraph.rename_node()

Every relationship graph (one per configured field) receives every
notification; they share one MetadataCache, so each note is re-read once.

Design:
- Serial, single-threaded application; no debouncing or batching
- Failures never propagate: the error is logged, counted, and the method
  returns False. A full build() restores a consistent graph.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from relation_explorer.document_watcher import DocumentWatcher
from relation_explorer.metadata_cache import MetadataCache
from relation_explorer.models import ChangeEvent, ChangeKind, DocumentRef
from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)

# Single notification budget before a slow-update warning is logged
SLOW_UPDATE_THRESHOLD_MS = 200.0


class GraphUpdater:
    """Applies change notifications to every relationship graph.

    Thread Safety:
    - NOT thread-safe: Designed for single-threaded use. Notifications from
      a DocumentWatcher are queued there and applied here serially.

    Usage:
        updater = GraphUpdater(graphs, cache, watcher)
        updater.on_upsert(document)
        stats = updater.process_pending_changes()
    """

    def __init__(
        self,
        graphs: Dict[str, RelationGraph],
        cache: MetadataCache,
        watcher: Optional[DocumentWatcher] = None,
    ):
        """Initialize graph updater.

        Args:
            graphs: Relationship graphs keyed by field name.
            cache: MetadataCache shared by the graphs.
            watcher: DocumentWatcher whose queue process_pending_changes() drains.
        """
        self.graphs = graphs
        self.cache = cache
        self.watcher = watcher

    def on_upsert(self, document: DocumentRef) -> bool:
        """Update graphs for a created or modified document.

        A document new to a graph may be the target of references that
        could not be resolved before it existed; those declaring documents
        are re-linked.

        Args:
            document: The new or changed document.

        Returns:
            True if update succeeded, False if update failed.
        """
        start_time = time.time()

        try:
            logger.debug(f"Updating graphs for upserted document: {document.path}")
            self.cache.invalidate(document)

            for graph in self.graphs.values():
                is_new = not graph.contains(document)
                graph.update_node(document)
                if is_new:
                    self._relink_unresolved(graph, document)

            self._check_elapsed(document.path, "upsert", start_time)
            return True

        except Exception as e:
            logger.error(f"Graph update failed for upserted document {document.path}: {e}")
            return False

    def _relink_unresolved(self, graph: RelationGraph, document: DocumentRef) -> None:
        """Re-derive parents of documents whose unresolved references now hit ``document``."""
        for declaring, references in graph.validator.find_unresolved_links():
            if declaring.path == document.path:
                continue

            for reference in references:
                target = graph.source.resolve_link(reference, declaring)
                if target is not None and target.path == document.path:
                    graph.update_node(declaring)
                    logger.debug(f"Re-linked {declaring.path} to new parent {document.path}")
                    break

    def on_remove(self, document: DocumentRef) -> bool:
        """Update graphs for a deleted document.

        Children of the deleted document lose it as a parent; their declared
        reference remains and surfaces as an unresolved-link diagnostic.

        Args:
            document: The deleted document.

        Returns:
            True if update succeeded, False if update failed.
        """
        start_time = time.time()

        try:
            logger.debug(f"Updating graphs for removed document: {document.path}")

            for field_name, graph in self.graphs.items():
                orphaned = graph.get_children(document)
                if orphaned:
                    self._warn_orphaned_children(field_name, document, orphaned)
                graph.remove_node(document)

            self.cache.invalidate(document)
            self._check_elapsed(document.path, "remove", start_time)
            return True

        except Exception as e:
            logger.error(f"Graph update failed for removed document {document.path}: {e}")
            return False

    def _warn_orphaned_children(
        self, field_name: str, parent: DocumentRef, children: List[DocumentRef]
    ) -> None:
        names = ", ".join(child.path for child in children)
        logger.warning(
            f"Parent document deleted: {parent.path} was declared as '{field_name}' by "
            f"{names}, which now reference a missing document"
        )

    def on_rename(self, document: DocumentRef, old_path: str) -> bool:
        """Update graphs for a renamed document.

        Edges are kept as they are; neighbours' references are rewritten to
        the new identifier.

        Args:
            document: The document under its new path.
            old_path: Previous path.

        Returns:
            True if update succeeded, False if update failed.
        """
        start_time = time.time()

        try:
            logger.debug(f"Updating graphs for renamed document: {old_path} -> {document.path}")
            self.cache.invalidate_path(old_path)
            self.cache.invalidate(document)

            for graph in self.graphs.values():
                if graph.get_document(old_path) is None:
                    # Never tracked under the old path: treat as a new document
                    graph.update_node(document)
                else:
                    graph.rename_node(document, old_path)

            self._check_elapsed(document.path, "rename", start_time)
            return True

        except Exception as e:
            logger.error(
                f"Graph update failed for renamed document {old_path} -> {document.path}: {e}"
            )
            return False

    def apply(self, event: ChangeEvent) -> bool:
        """Apply one change event.

        Args:
            event: ChangeEvent with a ChangeKind value.

        Returns:
            True if update succeeded, False if it failed or the kind is unknown.
        """
        document = DocumentRef(path=event.path)

        if event.kind == ChangeKind.UPSERTED:
            return self.on_upsert(document)
        if event.kind == ChangeKind.REMOVED:
            return self.on_remove(document)
        if event.kind == ChangeKind.RENAMED:
            if not event.old_path:
                logger.warning(f"Rename event for {event.path} has no old path, treating as upsert")
                return self.on_upsert(document)
            return self.on_rename(document, event.old_path)

        logger.warning(f"Unknown change event kind '{event.kind}' for {event.path}")
        return False

    def process_pending_changes(self) -> Dict[str, Any]:
        """Apply every event queued by the DocumentWatcher, in order.

        Returns:
            Dictionary with processing statistics:
            - total: Events processed
            - upserted: Successful upserts
            - removed: Successful removals
            - renamed: Successful renames
            - failed: Events that failed to apply
            - elapsed_ms: Total processing time in milliseconds
        """
        start_time = time.time()

        stats: Dict[str, Any] = {
            "total": 0,
            "upserted": 0,
            "removed": 0,
            "renamed": 0,
            "failed": 0,
            "elapsed_ms": 0.0,
        }

        events = self.watcher.drain_events() if self.watcher is not None else []

        for event in events:
            stats["total"] += 1
            if not self.apply(event):
                stats["failed"] += 1
            elif event.kind == ChangeKind.RENAMED and event.old_path:
                stats["renamed"] += 1
            elif event.kind == ChangeKind.REMOVED:
                stats["removed"] += 1
            else:
                stats["upserted"] += 1

        stats["elapsed_ms"] = (time.time() - start_time) * 1000

        if stats["total"]:
            logger.info(
                f"Processed {stats['total']} document changes in {stats['elapsed_ms']:.1f}ms: "
                f"{stats['upserted']} upserted, {stats['removed']} removed, "
                f"{stats['renamed']} renamed, {stats['failed']} failed"
            )

        return stats

    def _check_elapsed(self, path: str, operation: str, start_time: float) -> None:
        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Graph {operation} for {path} completed in {elapsed_ms:.1f}ms")
        if elapsed_ms > SLOW_UPDATE_THRESHOLD_MS:
            logger.warning(
                f"Slow graph {operation}: {path} took {elapsed_ms:.1f}ms "
                f"(threshold: {SLOW_UPDATE_THRESHOLD_MS:.0f}ms)"
            )
