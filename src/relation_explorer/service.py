# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""RelationExplorerService - component wiring and lifecycle.

Owns one MetadataCache shared by one RelationGraph (and RelationshipEngine)
per configured relationship field, the GraphUpdater that applies change
notifications to all of them, and, for Markdown vaults, the DocumentWatcher
that queues those notifications.

Lifecycle:
1. build_all_graphs(): full scan of the document source
2. start_watching(): begin queueing file system changes (vaults only)
3. sync(): apply queued changes serially
4. shutdown(): stop watching and drop in-memory state
"""

import logging
import time
from typing import Any, Dict, Optional

from relation_explorer.config import Config
from relation_explorer.document_watcher import DocumentWatcher
from relation_explorer.graph_updater import GraphUpdater
from relation_explorer.metadata_cache import MetadataCache
from relation_explorer.models import DiagnosticInfo, DiagnosticSeverity, DocumentRef, TreeNode
from relation_explorer.query_api import QueryAPI
from relation_explorer.relation_graph import RelationGraph
from relation_explorer.relationship_engine import RelationshipEngine
from relation_explorer.sources import DocumentSource
from relation_explorer.tree_model import (
    TreeBuildOptions,
    build_ancestor_tree,
    build_descendant_tree,
)
from relation_explorer.vault import MarkdownVault

logger = logging.getLogger(__name__)

TREE_DIRECTIONS = ("ancestors", "descendants")


class RelationExplorerService:
    """Coordinates relationship graphs over one document source.

    Usage:
        with RelationExplorerService(Config(), MarkdownVault("/vault")) as service:
            service.build_all_graphs()
            result = service.query_api.get_ancestors(document)
    """

    def __init__(
        self,
        config: Config,
        source: DocumentSource,
        cache: Optional[MetadataCache] = None,
        watcher: Optional[DocumentWatcher] = None,
    ):
        """Initialize the service with its dependencies.

        Args:
            config: Configuration object
            source: Document collection (InMemorySource, MarkdownVault, ...)
            cache: Shared metadata cache (default: creates new cache)
            watcher: DocumentWatcher (default: one is created for a MarkdownVault,
                none for other sources)
        """
        self.config = config
        self.source = source
        self.cache = cache if cache is not None else MetadataCache(source)

        self.graphs: Dict[str, RelationGraph] = {}
        self.engines: Dict[str, RelationshipEngine] = {}
        for field_name in config.relationship_fields:
            graph = RelationGraph(
                source,
                field_name,
                cache=self.cache,
                max_depth=config.max_traversal_depth,
            )
            self.graphs[field_name] = graph
            self.engines[field_name] = RelationshipEngine(graph)

        if watcher is None and isinstance(source, MarkdownVault):
            watcher = DocumentWatcher(str(source.root), ignore_patterns=config.ignore_patterns)
        self.watcher = watcher

        self.graph_updater = GraphUpdater(self.graphs, self.cache, self.watcher)
        self.query_api = QueryAPI.from_service(self)

        logger.info(
            f"RelationExplorerService initialized with fields {list(self.graphs)} "
            f"(default '{config.default_relationship_field}')"
        )

    # =========================================================================
    # Building and syncing
    # =========================================================================

    def build_all_graphs(self) -> Dict[str, int]:
        """Rebuild every relationship graph from a full scan.

        Returns:
            Node count per field.
        """
        start_time = time.time()
        self.cache.clear()

        counts: Dict[str, int] = {}
        for field_name, graph in self.graphs.items():
            graph.build()
            counts[field_name] = graph.node_count

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(f"Built {len(self.graphs)} relationship graph(s) in {elapsed_ms:.1f}ms")

        if self.config.diagnostic_mode:
            self.run_diagnostics()

        return counts

    def start_watching(self) -> bool:
        """Start queueing file system changes.

        Returns:
            True if a watcher is running, False if the source cannot be watched.
        """
        if self.watcher is None:
            logger.warning("Document source does not support watching, changes must be applied")
            return False

        if not self.watcher.is_running():
            self.watcher.start()
        return True

    def stop_watching(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()

    def sync(self) -> Dict[str, Any]:
        """Apply every queued change notification.

        Returns:
            Processing statistics from GraphUpdater.process_pending_changes().
        """
        if (
            self.watcher is not None
            and self.watcher.pending_count()
            and isinstance(self.source, MarkdownVault)
        ):
            # Name index must see created and renamed notes before links resolve
            self.source.refresh()

        return self.graph_updater.process_pending_changes()

    # =========================================================================
    # Diagnostics and trees
    # =========================================================================

    def run_diagnostics(self) -> Dict[str, DiagnosticInfo]:
        """Validate every graph and log the findings.

        Errors and warnings are logged at warning level; in diagnostic mode
        informational findings are logged too.

        Returns:
            DiagnosticInfo per field.
        """
        reports: Dict[str, DiagnosticInfo] = {}

        for field_name, graph in self.graphs.items():
            report = graph.validate_graph()
            reports[field_name] = report

            for issue in report.issues:
                if issue.severity == DiagnosticSeverity.INFO:
                    if self.config.diagnostic_mode:
                        logger.info(f"[{field_name}] {issue.message}")
                else:
                    logger.warning(f"[{field_name}] {issue.severity}: {issue.message}")

        return reports

    def tree_options(self, max_depth: Optional[int] = None) -> TreeBuildOptions:
        """Tree build options derived from configuration."""
        return TreeBuildOptions(
            max_depth=max_depth if max_depth is not None else self.config.max_traversal_depth,
            detect_cycles=self.config.detect_cycles,
        )

    def build_tree(
        self,
        document: DocumentRef,
        direction: str = "ancestors",
        field: Optional[str] = None,
        max_depth: Optional[int] = None,
    ) -> TreeNode:
        """Materialize the ancestor or descendant tree of a document.

        Raises:
            ValueError: If ``direction`` is not "ancestors" or "descendants".
            UnknownFieldError: If the field has no graph.
        """
        if direction not in TREE_DIRECTIONS:
            raise ValueError(f"Unknown tree direction '{direction}', expected {TREE_DIRECTIONS}")

        graph = self.query_api.get_graph(field)
        engine = self.query_api.get_engine(field)
        options = self.tree_options(max_depth)

        if direction == "ancestors":
            return build_ancestor_tree(document, engine, graph, options)
        return build_descendant_tree(document, engine, graph, options)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def shutdown(self) -> None:
        """Stop watching and release in-memory state."""
        logger.info("RelationExplorerService shutting down...")
        self.stop_watching()
        self.cache.clear()
        for graph in self.graphs.values():
            graph.clear()
        logger.info("RelationExplorerService shutdown complete")

    def __enter__(self) -> "RelationExplorerService":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.shutdown()
