# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Extended relationship queries over a RelationGraph.

Every traversal is cycle-safe by construction: a document already visited in
the current traversal is never revisited, and the start document is marked
visited before the walk begins, so it never appears as its own ancestor or
descendant.

Invalid parameters (non-positive depth, cousin degree < 1) and unknown
documents yield empty results rather than exceptions.
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

from relation_explorer.models import DocumentRef

if TYPE_CHECKING:
    from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)

Generations = List[List[DocumentRef]]


class RelationshipEngine:
    """Computes ancestors, descendants, siblings and cousins.

    Usage:
        engine = RelationshipEngine(graph)
        engine.get_ancestors(document, max_depth=3)  # [[parents], [grandparents], ...]
        engine.get_cousins(document, degree=1)
    """

    def __init__(self, graph: "RelationGraph") -> None:
        """Initialize engine.

        Args:
            graph: Graph to traverse. The engine keeps no state of its own,
                so it always sees the graph's current adjacency.
        """
        self._graph = graph

    @property
    def graph(self) -> "RelationGraph":
        return self._graph

    def get_ancestors(self, document: DocumentRef, max_depth: Optional[int] = None) -> Generations:
        """Get ancestors organized by generation.

        Args:
            document: Start document.
            max_depth: Generations to walk (defaults to the graph's max_depth).

        Returns:
            [[parents], [grandparents], ...]. A document reachable by two
            paths at the same distance appears once; traversal stops at the
            first empty generation.

        Example:
            A -> B, A -> C, B -> D, C -> D
            get_ancestors(A, 2) == [[B, C], [D]]
        """
        return self._walk_generations(document, max_depth, self._graph.get_parents)

    def get_descendants(
        self, document: DocumentRef, max_depth: Optional[int] = None
    ) -> Generations:
        """Get descendants organized by generation.

        Symmetric to get_ancestors(), following child edges.
        """
        return self._walk_generations(document, max_depth, self._graph.get_children)

    def _walk_generations(
        self,
        document: DocumentRef,
        max_depth: Optional[int],
        neighbours: Callable[[DocumentRef], List[DocumentRef]],
    ) -> Generations:
        depth = self._graph.max_depth if max_depth is None else max_depth
        result: Generations = []
        visited: Set[str] = {document.path}
        current = [document]

        for _ in range(depth):
            next_generation: List[DocumentRef] = []

            for member in current:
                for relative in neighbours(member):
                    # visited covers both cycles and same-generation duplicates
                    if relative.path in visited:
                        continue
                    visited.add(relative.path)
                    next_generation.append(relative)

            if not next_generation:
                break

            result.append(next_generation)
            current = next_generation

        return result

    def get_siblings(self, document: DocumentRef, include_self: bool = False) -> List[DocumentRef]:
        """Get documents sharing at least one parent, half-siblings included.

        Args:
            document: Document to query.
            include_self: Whether to keep ``document`` in the result.

        Returns:
            Siblings in first-seen order (parents in declared order, then
            each parent's children). Empty for documents without parents.
        """
        parents = self._graph.get_parents(document)
        if not parents:
            return []

        siblings: Dict[str, DocumentRef] = {}
        for parent in parents:
            for child in self._graph.get_children(parent):
                if child.path not in siblings:
                    siblings[child.path] = child

        if not include_self:
            siblings.pop(document.path, None)

        return list(siblings.values())

    def get_cousins(self, document: DocumentRef, degree: int = 1) -> List[DocumentRef]:
        """Get cousins of the given degree.

        Cousins share an ancestor at generation ``degree + 1`` but no
        ancestor at any generation up to ``degree``. Siblings and the
        document itself are never cousins.

        Args:
            document: Document to query.
            degree: 1 for first cousins, 2 for second cousins, ...

        Returns:
            Cousins in discovery order. Empty if ``degree < 1`` or the
            document has no ancestors at generation ``degree + 1``.

        Example:
                  GP
                 /  \\
               P1    P2
              /  \\    \\
             A    B    C
            get_cousins(A, 1) == [C]  (B is a sibling)
        """
        if degree < 1:
            return []

        ancestors = self.get_ancestors(document, degree + 1)
        if len(ancestors) < degree + 1:
            return []

        closer_ancestors = {
            ancestor.path for generation in ancestors[:degree] for ancestor in generation
        }

        candidates: Dict[str, DocumentRef] = {}
        for shared in ancestors[degree]:
            descendants = self.get_descendants(shared, degree + 1)
            if len(descendants) >= degree + 1:
                for candidate in descendants[degree]:
                    candidates.setdefault(candidate.path, candidate)

        sibling_paths = {sibling.path for sibling in self.get_siblings(document)}

        cousins: List[DocumentRef] = []
        for path, candidate in candidates.items():
            if path == document.path or path in sibling_paths:
                continue
            if self._shares_closer_ancestor(candidate, degree, closer_ancestors):
                continue
            cousins.append(candidate)

        logger.debug(f"Found {len(cousins)} degree-{degree} cousin(s) of {document.path}")
        return cousins

    def _shares_closer_ancestor(
        self, candidate: DocumentRef, degree: int, closer_ancestors: Set[str]
    ) -> bool:
        return any(
            ancestor.path in closer_ancestors
            for generation in self.get_ancestors(candidate, degree)
            for ancestor in generation
        )
