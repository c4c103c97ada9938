# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Query API for programmatic access to relationship graphs.

One RelationGraph and RelationshipEngine exist per configured relationship
field. Every query takes an optional ``field``; when omitted, the default
field is used.

API Methods:
- get_ancestors / get_descendants: Generation lists with counts and truncation
- get_parents / get_children: Direct neighbours
- get_all_ancestors / get_all_descendants: Flattened generations
- get_siblings / get_cousins / get_full_lineage: Extended relatives
- detect_cycle / has_cycles / get_all_cycles: Cycle queries
- validate_graph / get_graph_statistics / find_root_documents: Graph health
- export_graph / get_cache_statistics: JSON-compatible snapshots

Queries never raise for unknown documents or invalid parameters; they
return empty results. The only error is UnknownFieldError for a field
without a graph.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from relation_explorer.config import ConfigurationError
from relation_explorer.graph_analyzer import compute_graph_statistics, find_root_documents
from relation_explorer.models import (
    AncestorQueryResult,
    CousinQueryResult,
    CycleInfo,
    DescendantQueryResult,
    DiagnosticInfo,
    DocumentRef,
    FullLineageResult,
    GraphStatistics,
    SiblingQueryResult,
)
from relation_explorer.relation_graph import RelationGraph
from relation_explorer.relationship_engine import Generations, RelationshipEngine

if TYPE_CHECKING:
    from relation_explorer.metadata_cache import MetadataCache
    from relation_explorer.service import RelationExplorerService


class UnknownFieldError(KeyError):
    """Raised when a query names a relationship field without a graph."""

    pass


def _count(generations: Generations) -> int:
    return sum(len(generation) for generation in generations)


class QueryAPI:
    """Query API over the relationship graphs of every configured field.

    Usage with service:
        service = RelationExplorerService(config, source)
        api = QueryAPI.from_service(service)
        result = api.get_ancestors(document, max_depth=3)

    Usage with individual components:
        api = QueryAPI(graphs={"parent": graph}, default_field="parent")
        api.get_siblings(document)
    """

    def __init__(
        self,
        graphs: Dict[str, RelationGraph],
        default_field: str,
        engines: Optional[Dict[str, RelationshipEngine]] = None,
        cache: Optional["MetadataCache"] = None,
    ) -> None:
        """Initialize the Query API.

        Args:
            graphs: Relationship graphs keyed by field name.
            default_field: Field used when a query names none.
            engines: Engines keyed by field name; created for graphs without one.
            cache: Shared MetadataCache, for get_cache_statistics().

        Raises:
            ConfigurationError: If ``default_field`` has no graph.
        """
        if default_field not in graphs:
            raise ConfigurationError(
                f"Default relationship field '{default_field}' has no graph "
                f"(available: {sorted(graphs)})"
            )

        self._graphs = graphs
        self._default_field = default_field
        self._engines: Dict[str, RelationshipEngine] = dict(engines or {})
        for field_name, graph in graphs.items():
            self._engines.setdefault(field_name, RelationshipEngine(graph))
        self._cache = cache

    @classmethod
    def from_service(cls, service: "RelationExplorerService") -> "QueryAPI":
        """Create a QueryAPI connected to a RelationExplorerService's components."""
        return cls(
            graphs=service.graphs,
            default_field=service.config.default_relationship_field,
            engines=service.engines,
            cache=service.cache,
        )

    @property
    def default_field(self) -> str:
        return self._default_field

    @property
    def fields(self) -> List[str]:
        """Names of every field with a graph, in configuration order."""
        return list(self._graphs)

    def get_graph(self, field: Optional[str] = None) -> RelationGraph:
        """Get the graph of a field (default field if None).

        Raises:
            UnknownFieldError: If the field has no graph.
        """
        name = field or self._default_field
        if name not in self._graphs:
            raise UnknownFieldError(name)
        return self._graphs[name]

    def get_engine(self, field: Optional[str] = None) -> RelationshipEngine:
        """Get the engine of a field (default field if None).

        Raises:
            UnknownFieldError: If the field has no graph.
        """
        name = field or self._default_field
        if name not in self._engines:
            raise UnknownFieldError(name)
        return self._engines[name]

    def find_document(self, identifier: str, field: Optional[str] = None) -> Optional[DocumentRef]:
        """Look up a tracked document by path, path without ".md", or display name.

        Name matching is case-insensitive; the first match in graph order wins.
        """
        graph = self.get_graph(field)
        for candidate in (identifier, f"{identifier}.md"):
            document = graph.get_document(candidate)
            if document is not None:
                return document

        wanted = identifier.lower()
        for document in graph.get_all_documents():
            if document.name.lower() == wanted:
                return document
        return None

    # =========================================================================
    # Ancestors and descendants
    # =========================================================================

    def get_ancestors(
        self,
        document: DocumentRef,
        max_depth: Optional[int] = None,
        field: Optional[str] = None,
    ) -> AncestorQueryResult:
        """Get ancestors of a document organized by generation.

        Args:
            document: Document to query.
            max_depth: Generations to walk (defaults to the graph's max_depth).
            field: Relationship field (default field if None).

        Returns:
            AncestorQueryResult; ``was_truncated`` is True when at least one
            more generation exists beyond ``max_depth``.
        """
        engine = self.get_engine(field)
        depth = engine.graph.max_depth if max_depth is None else max_depth
        generations = engine.get_ancestors(document, depth)
        deeper = engine.get_ancestors(document, depth + 1) if depth >= 0 else []

        return AncestorQueryResult(
            document=document,
            generations=generations,
            total_count=_count(generations),
            depth=len(generations),
            was_truncated=len(deeper) > len(generations),
        )

    def get_descendants(
        self,
        document: DocumentRef,
        max_depth: Optional[int] = None,
        field: Optional[str] = None,
    ) -> DescendantQueryResult:
        """Get descendants of a document organized by generation.

        Symmetric to get_ancestors().
        """
        engine = self.get_engine(field)
        depth = engine.graph.max_depth if max_depth is None else max_depth
        generations = engine.get_descendants(document, depth)
        deeper = engine.get_descendants(document, depth + 1) if depth >= 0 else []

        return DescendantQueryResult(
            document=document,
            generations=generations,
            total_count=_count(generations),
            depth=len(generations),
            was_truncated=len(deeper) > len(generations),
        )

    def get_parents(self, document: DocumentRef, field: Optional[str] = None) -> List[DocumentRef]:
        return self.get_graph(field).get_parents(document)

    def get_children(self, document: DocumentRef, field: Optional[str] = None) -> List[DocumentRef]:
        return self.get_graph(field).get_children(document)

    def get_all_ancestors(
        self,
        document: DocumentRef,
        max_depth: Optional[int] = None,
        field: Optional[str] = None,
    ) -> List[DocumentRef]:
        """Get every ancestor up to ``max_depth`` as one flat list, nearest first."""
        result = self.get_ancestors(document, max_depth, field)
        return [doc for generation in result.generations for doc in generation]

    def get_all_descendants(
        self,
        document: DocumentRef,
        max_depth: Optional[int] = None,
        field: Optional[str] = None,
    ) -> List[DocumentRef]:
        """Get every descendant up to ``max_depth`` as one flat list, nearest first."""
        result = self.get_descendants(document, max_depth, field)
        return [doc for generation in result.generations for doc in generation]

    # =========================================================================
    # Siblings, cousins, lineage
    # =========================================================================

    def get_siblings(
        self,
        document: DocumentRef,
        include_self: bool = False,
        field: Optional[str] = None,
    ) -> SiblingQueryResult:
        siblings = self.get_engine(field).get_siblings(document, include_self)
        return SiblingQueryResult(
            document=document,
            siblings=siblings,
            total_count=len(siblings),
            includes_self=include_self,
        )

    def get_cousins(
        self,
        document: DocumentRef,
        degree: int = 1,
        field: Optional[str] = None,
    ) -> CousinQueryResult:
        cousins = self.get_engine(field).get_cousins(document, degree)
        return CousinQueryResult(
            document=document,
            cousins=cousins,
            total_count=len(cousins),
            degree=degree,
        )

    def get_full_lineage(
        self,
        document: DocumentRef,
        max_depth: Optional[int] = None,
        field: Optional[str] = None,
    ) -> FullLineageResult:
        """Get ancestors, descendants and siblings of a document in one call.

        Returns:
            FullLineageResult whose ``stats`` holds total_ancestors,
            total_descendants, total_siblings, ancestor_depth and
            descendant_depth.
        """
        ancestors = self.get_ancestors(document, max_depth, field)
        descendants = self.get_descendants(document, max_depth, field)
        siblings = self.get_siblings(document, field=field)

        return FullLineageResult(
            document=document,
            ancestors=ancestors.generations,
            descendants=descendants.generations,
            siblings=siblings.siblings,
            stats={
                "total_ancestors": ancestors.total_count,
                "total_descendants": descendants.total_count,
                "total_siblings": siblings.total_count,
                "ancestor_depth": ancestors.depth,
                "descendant_depth": descendants.depth,
            },
        )

    # =========================================================================
    # Cycles and graph health
    # =========================================================================

    def detect_cycle(self, document: DocumentRef, field: Optional[str] = None) -> Optional[CycleInfo]:
        return self.get_graph(field).detect_cycle(document)

    def has_cycles(self, field: Optional[str] = None) -> bool:
        return self.get_graph(field).has_cycles()

    def get_all_cycles(self, field: Optional[str] = None) -> List[CycleInfo]:
        return self.get_graph(field).get_all_cycles()

    def validate_graph(self, field: Optional[str] = None) -> DiagnosticInfo:
        return self.get_graph(field).validate_graph()

    def get_graph_statistics(self, field: Optional[str] = None) -> GraphStatistics:
        return compute_graph_statistics(self.get_graph(field))

    def find_root_documents(self, field: Optional[str] = None) -> List[DocumentRef]:
        return find_root_documents(self.get_graph(field))

    def export_graph(self, field: Optional[str] = None) -> Dict[str, Any]:
        """Get the full graph export of a field.

        Returns:
            Dictionary containing:
            - metadata: timestamp, field name, counts
            - documents: path, name, parents, children, in_cycle per document
            - graph_metadata: cycles, most connected documents
        """
        return self.get_graph(field).export_to_dict()

    def get_cache_statistics(self) -> Dict[str, Any]:
        """Get metadata cache statistics (empty dict without a cache)."""
        if self._cache is None:
            return {}
        return self._cache.get_statistics().to_dict()
