# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Document source abstraction for the relationship graph.

The graph engine never reads documents or resolves links itself. It talks to
a DocumentSource supplied by the embedding system, which plays three roles:

- Document Enumerator: ``get_documents()`` lists the whole collection
- Metadata provider: ``get_metadata()`` returns a document's structured fields
- Link Resolver: ``resolve_link()`` maps a raw reference to a document

Components:
- DocumentSource: Abstract interface for collections
- InMemorySource: Dictionary-backed collection for embedding and tests

See vault.py for a Markdown-folder implementation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from relation_explorer.models import DocumentRef

logger = logging.getLogger(__name__)


class DocumentSource(ABC):
    """Abstract interface for a collection of documents.

    Enables swapping the backing collection (in-memory, Markdown folder, ...)
    without changing graph logic.
    """

    @abstractmethod
    def get_documents(self) -> List[DocumentRef]:
        """Enumerate every document in the collection.

        Returns:
            List of all documents. Empty list if the collection is empty.
        """
        pass

    @abstractmethod
    def get_metadata(self, document: DocumentRef) -> Optional[Dict[str, Any]]:
        """Get the structured metadata (frontmatter) of a document.

        Args:
            document: Document to read.

        Returns:
            Mapping of field name to raw value, or None if the document has
            no metadata or is unknown.
        """
        pass

    @abstractmethod
    def resolve_link(self, reference: str, source: DocumentRef) -> Optional[DocumentRef]:
        """Resolve a raw reference string to a document.

        Args:
            reference: Raw reference as declared (e.g., "[[Parent Note]]").
            source: Document declaring the reference, for relative resolution.

        Returns:
            Target document, or None if the reference cannot be resolved.
        """
        pass


def strip_link_syntax(reference: str) -> str:
    """Reduce a wiki-style reference to its link target.

    ``"[[Folder/Note#Heading|Alias]]"`` becomes ``"Folder/Note"``.
    """
    target = reference.strip()
    if target.startswith("[[") and target.endswith("]]"):
        target = target[2:-2]
    target = target.split("|", 1)[0]
    target = target.split("#", 1)[0]
    return target.strip()


class InMemorySource(DocumentSource):
    """In-memory document collection.

    Documents are keyed by path. Links resolve by exact path, by path with a
    ``.md`` suffix, or by display name (first match in insertion order).

    Limitations:
    - NOT thread-safe: Designed for single-threaded use only
    - Changing documents here does not notify any graph; callers deliver
      change notifications themselves (see GraphUpdater)
    """

    def __init__(self) -> None:
        """Initialize empty source."""
        self._documents: Dict[str, DocumentRef] = {}
        self._metadata: Dict[str, Optional[Dict[str, Any]]] = {}

    def add_document(
        self,
        path: str,
        metadata: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> DocumentRef:
        """Add or replace a document.

        Args:
            path: Document identifier.
            metadata: Structured fields, or None for a document without any.
            name: Display name (defaults to basename without extension).

        Returns:
            The stored DocumentRef.
        """
        if not path:
            raise ValueError("Document path cannot be empty")

        document = DocumentRef(path=path, name=name or "")
        self._documents[path] = document
        self._metadata[path] = dict(metadata) if metadata is not None else None
        return document

    def set_metadata(self, path: str, metadata: Optional[Dict[str, Any]]) -> None:
        """Replace the metadata of an existing document.

        Raises:
            KeyError: If the document is unknown.
        """
        if path not in self._documents:
            raise KeyError(path)
        self._metadata[path] = dict(metadata) if metadata is not None else None

    def remove_document(self, path: str) -> Optional[DocumentRef]:
        """Remove a document, returning it if it existed."""
        self._metadata.pop(path, None)
        return self._documents.pop(path, None)

    def rename_document(
        self, old_path: str, new_path: str, name: Optional[str] = None
    ) -> DocumentRef:
        """Move a document to a new path, keeping its metadata.

        Raises:
            KeyError: If ``old_path`` is unknown.
        """
        if old_path not in self._documents:
            raise KeyError(old_path)
        metadata = self._metadata.pop(old_path)
        del self._documents[old_path]
        return self.add_document(new_path, metadata, name=name)

    def get_document(self, path: str) -> Optional[DocumentRef]:
        return self._documents.get(path)

    def get_documents(self) -> List[DocumentRef]:
        return list(self._documents.values())

    def get_metadata(self, document: DocumentRef) -> Optional[Dict[str, Any]]:
        return self._metadata.get(document.path)

    def resolve_link(self, reference: str, source: DocumentRef) -> Optional[DocumentRef]:
        target = strip_link_syntax(reference)
        if not target:
            return None

        if target in self._documents:
            return self._documents[target]
        if f"{target}.md" in self._documents:
            return self._documents[f"{target}.md"]

        for document in self._documents.values():
            if document.name == target:
                return document

        logger.debug(f"Unresolved reference '{reference}' from {source.path}")
        return None
