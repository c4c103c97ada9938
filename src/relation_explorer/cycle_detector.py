# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Cycle detection over parent edges.

A document is in a cycle if it can reach itself by following one or more
parent edges. Two queries are supported:
- detect_cycle(doc): shortest cycle through ``doc``, via breadth-first search
  with a visited set and predecessor map (O(V + E) per query, no path
  enumeration, so dense multi-parent graphs cannot blow up)
- has_cycles(): whole-graph check via iterative WHITE/GRAY/BLACK DFS

Construction does no work; results are memoized for the lifetime of the
detector. The owning RelationGraph replaces the detector after every
mutation instead of patching it.
"""

import logging
from collections import deque
from typing import TYPE_CHECKING, Deque, Dict, Iterator, List, Optional, Tuple

from relation_explorer.models import CycleInfo, DocumentRef

if TYPE_CHECKING:
    from relation_explorer.relation_graph import RelationGraph

logger = logging.getLogger(__name__)

# DFS colours
_WHITE = 0
_GRAY = 1
_BLACK = 2


class CycleDetector:
    """Detects cycles in a RelationGraph.

    Holds only a reference to the graph; must be discarded after the graph
    changes (RelationGraph does this through its dirty flag).

    Usage:
        detector = CycleDetector(graph)
        info = detector.detect_cycle(document)
        if info:
            print(info.description)
    """

    def __init__(self, graph: "RelationGraph") -> None:
        """Initialize detector.

        Args:
            graph: Graph whose parent edges are searched.
        """
        self._graph = graph
        self._memo: Dict[str, Optional[CycleInfo]] = {}
        self._has_cycles: Optional[bool] = None

    def detect_cycle(self, document: DocumentRef) -> Optional[CycleInfo]:
        """Find the shortest cycle of parent edges through a document.

        Args:
            document: Document to check.

        Returns:
            CycleInfo whose path starts at ``document`` and follows parent
            edges, or None if the document is not in a cycle.
        """
        if document.path in self._memo:
            return self._memo[document.path]

        info = self._search_cycle(document)
        self._memo[document.path] = info

        if info is not None:
            logger.debug(f"{info.description} (via {document.path})")
        return info

    def _search_cycle(self, start: DocumentRef) -> Optional[CycleInfo]:
        if not self._graph.contains(start):
            return None

        # predecessor[path] = path of the document whose parent edge reached it
        predecessor: Dict[str, Optional[str]] = {start.path: None}
        refs: Dict[str, DocumentRef] = {start.path: start}
        queue: Deque[DocumentRef] = deque([start])

        while queue:
            current = queue.popleft()

            for parent in self._graph.get_parents(current):
                if parent.path == start.path:
                    return CycleInfo(
                        cycle_path=self._reconstruct(current.path, predecessor, refs),
                        length=self._path_length(current.path, predecessor),
                    )

                if parent.path not in predecessor:
                    predecessor[parent.path] = current.path
                    refs[parent.path] = parent
                    queue.append(parent)

        return None

    @staticmethod
    def _reconstruct(
        last: str,
        predecessor: Dict[str, Optional[str]],
        refs: Dict[str, DocumentRef],
    ) -> List[DocumentRef]:
        """Walk predecessors back from ``last`` to the start document."""
        path: List[DocumentRef] = []
        node: Optional[str] = last
        while node is not None:
            path.append(refs[node])
            node = predecessor[node]
        path.reverse()
        return path

    @staticmethod
    def _path_length(last: str, predecessor: Dict[str, Optional[str]]) -> int:
        length = 0
        node: Optional[str] = last
        while node is not None:
            length += 1
            node = predecessor[node]
        return length

    def is_in_cycle(self, document: DocumentRef) -> bool:
        """Check whether a document participates in any cycle."""
        return self.detect_cycle(document) is not None

    def has_cycles(self) -> bool:
        """Check whether any document in the graph participates in a cycle.

        Uses iterative DFS colouring: reaching a GRAY document means a back
        edge, i.e. a cycle.
        """
        if self._has_cycles is None:
            self._has_cycles = self._find_back_edge()
        return self._has_cycles

    def _find_back_edge(self) -> bool:
        colour: Dict[str, int] = {}

        for root in self._graph.get_all_documents():
            if colour.get(root.path, _WHITE) != _WHITE:
                continue

            colour[root.path] = _GRAY
            stack: List[Tuple[DocumentRef, Iterator[DocumentRef]]] = [
                (root, iter(self._graph.get_parents(root)))
            ]

            while stack:
                node, parents = stack[-1]
                advanced = False

                for parent in parents:
                    state = colour.get(parent.path, _WHITE)
                    if state == _GRAY:
                        logger.debug(f"Back edge {node.path} -> {parent.path}")
                        return True
                    if state == _WHITE:
                        colour[parent.path] = _GRAY
                        stack.append((parent, iter(self._graph.get_parents(parent))))
                        advanced = True
                        break

                if not advanced:
                    colour[node.path] = _BLACK
                    stack.pop()

        return False
