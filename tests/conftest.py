# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for relationship graph tests.

Graphs are described as ``{name: parents}`` mappings, where ``parents`` is a
list of document names (declared as wiki links) or None for a document that
does not declare the relationship field at all. Document "A" is stored at
path "A.md".
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from relation_explorer.metadata_cache import MetadataCache
from relation_explorer.models import DocumentRef
from relation_explorer.relation_graph import RelationGraph
from relation_explorer.relationship_engine import RelationshipEngine
from relation_explorer.sources import InMemorySource

GraphSpec = Dict[str, Optional[List[str]]]


def doc(name: str) -> DocumentRef:
    """DocumentRef for a document created from a GraphSpec."""
    return DocumentRef(path=f"{name}.md")


def make_source(spec: GraphSpec, field_name: str = "parent") -> InMemorySource:
    """Create an InMemorySource from a GraphSpec."""
    source = InMemorySource()
    for name, parents in spec.items():
        if parents is None:
            source.add_document(f"{name}.md", {"title": name})
        else:
            source.add_document(f"{name}.md", {field_name: [f"[[{p}]]" for p in parents]})
    return source


def make_graph(spec: GraphSpec, max_depth: int = 5) -> RelationGraph:
    """Create and build a RelationGraph from a GraphSpec."""
    source = make_source(spec)
    graph = RelationGraph(source, "parent", cache=MetadataCache(source), max_depth=max_depth)
    graph.build()
    return graph


# A -> B -> C -> D (each document's parent is the next one)
CHAIN: GraphSpec = {"A": ["B"], "B": ["C"], "C": ["D"], "D": []}

# A -> B, A -> C, B -> D, C -> D
DIAMOND: GraphSpec = {"A": ["B", "C"], "B": ["D"], "C": ["D"], "D": []}

# A -> B -> A
TWO_CYCLE: GraphSpec = {"A": ["B"], "B": ["A"]}

# P1 has children {A, B}, P2 has children {A, C}
HALF_SIBLINGS: GraphSpec = {
    "P1": [],
    "P2": [],
    "A": ["P1", "P2"],
    "B": ["P1"],
    "C": ["P2"],
}

# G has children {P1, P2}; P1 has children {A, B2}; P2 has child B
COUSINS: GraphSpec = {
    "G": [],
    "P1": ["G"],
    "P2": ["G"],
    "A": ["P1"],
    "B2": ["P1"],
    "B": ["P2"],
}


@pytest.fixture
def graph_factory() -> Callable[..., RelationGraph]:
    """Factory building a RelationGraph from a GraphSpec."""
    return make_graph


@pytest.fixture
def chain_graph() -> RelationGraph:
    return make_graph(CHAIN)


@pytest.fixture
def diamond_graph() -> RelationGraph:
    return make_graph(DIAMOND)


@pytest.fixture
def cycle_graph() -> RelationGraph:
    return make_graph(TWO_CYCLE)


@pytest.fixture
def cousins_graph() -> RelationGraph:
    return make_graph(COUSINS)


@pytest.fixture
def engine_factory() -> Callable[[GraphSpec], RelationshipEngine]:
    """Factory building a RelationshipEngine over a fresh graph."""

    def factory(spec: GraphSpec) -> RelationshipEngine:
        return RelationshipEngine(make_graph(spec))

    return factory


@pytest.fixture
def write_note(tmp_path: Path) -> Callable[..., Path]:
    """Write a Markdown note with optional YAML frontmatter into tmp_path."""

    def write(relative: str, frontmatter: Optional[str] = None, body: str = "Body\n") -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        text = body if frontmatter is None else f"---\n{frontmatter}\n---\n{body}"
        path.write_text(text, encoding="utf-8")
        return path

    return write


@pytest.fixture
def restore_root_logger():
    """Restore root logger handlers and level changed by setup_logging()."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)
