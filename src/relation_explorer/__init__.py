# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relation Explorer: parent/child relationship graphs over document metadata."""

from .config import Config, ConfigurationError
from .cycle_detector import CycleDetector
from .document_watcher import DocumentWatcher
from .graph_analyzer import compute_graph_statistics, find_leaf_documents, find_root_documents
from .graph_updater import GraphUpdater
from .graph_validator import GraphValidator
from .metadata_cache import MetadataCache
from .models import (
    ChangeEvent,
    ChangeKind,
    CycleInfo,
    DiagnosticInfo,
    DiagnosticIssue,
    DocumentRef,
    GraphStatistics,
    TreeNode,
)
from .query_api import QueryAPI, UnknownFieldError
from .relation_graph import RelationGraph
from .relationship_engine import RelationshipEngine
from .service import RelationExplorerService
from .sources import DocumentSource, InMemorySource
from .tree_model import (
    TreeBuildOptions,
    build_ancestor_tree,
    build_cousins_tree,
    build_descendant_tree,
    build_full_lineage_tree,
    build_sibling_tree,
)
from .vault import MarkdownVault

__version__ = "0.1.0"

__all__ = [
    "DocumentSource",
    "InMemorySource",
    "MarkdownVault",
    "MetadataCache",
    "RelationGraph",
    "CycleDetector",
    "GraphValidator",
    "RelationshipEngine",
    "GraphUpdater",
    "DocumentWatcher",
    "RelationExplorerService",
    "QueryAPI",
    "UnknownFieldError",
    "Config",
    "ConfigurationError",
    "DocumentRef",
    "CycleInfo",
    "TreeNode",
    "DiagnosticInfo",
    "DiagnosticIssue",
    "GraphStatistics",
    "ChangeEvent",
    "ChangeKind",
    "TreeBuildOptions",
    "build_ancestor_tree",
    "build_descendant_tree",
    "build_full_lineage_tree",
    "build_sibling_tree",
    "build_cousins_tree",
    "compute_graph_statistics",
    "find_root_documents",
    "find_leaf_documents",
]
