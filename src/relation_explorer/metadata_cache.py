# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Read-through cache for document metadata.

Several relationship graphs (one per relationship field) read the same
documents. This cache keeps the metadata fetched from the DocumentSource so
each document is parsed once per change, whichever graph asks first.

Key Features:
- Cache-aside lookups keyed by document path (``None`` results are cached too)
- Explicit invalidation by document or by path (for renames)
- Hit/miss statistics
- Field reading: raw values are normalized into a FieldValue exactly once,
  here, so the graph never handles loosely-typed metadata

Design Decisions:
- Injected dependency: graphs receive the cache in their constructor; there
  is no module-level instance
- No time-based expiry: the embedding system invalidates on change
  notifications (see GraphUpdater)
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from relation_explorer.models import DocumentRef, FieldKind, FieldValue, MetadataCacheStatistics
from relation_explorer.sources import DocumentSource

logger = logging.getLogger(__name__)


def read_field(metadata: Optional[Mapping[str, Any]], field_name: str) -> FieldValue:
    """Normalize a raw metadata field into a FieldValue.

    Args:
        metadata: Document metadata, or None.
        field_name: Relationship field to read.

    Returns:
        ABSENT if the field is not declared; LIST with no references if it is
        declared but empty; SINGLE for a scalar; LIST for a sequence.
    """
    if metadata is None or field_name not in metadata:
        return FieldValue.absent()

    value = metadata[field_name]

    if value is None or value == "":
        return FieldValue(kind=FieldKind.LIST)

    if isinstance(value, (list, tuple)):
        references = tuple(str(item) for item in value if item is not None and item != "")
        return FieldValue(kind=FieldKind.LIST, references=references)

    # Strings and any other scalar (numbers, booleans, dates)
    return FieldValue(kind=FieldKind.SINGLE, references=(str(value),))


def clean_reference(reference: str) -> str:
    """Strip wiki-link brackets from a raw reference."""
    return reference.replace("[", "").replace("]", "")


class MetadataCache:
    """Read-through cache of document metadata.

    NOT thread-safe: the engine is single-threaded and change notifications
    are serialized by the caller.

    Usage:
        cache = MetadataCache(source)
        value = cache.get_field_value(document, "parent")
        cache.invalidate(document)
    """

    def __init__(self, source: DocumentSource) -> None:
        """Initialize metadata cache.

        Args:
            source: DocumentSource that supplies metadata on a miss.
        """
        self._source = source
        self._cache: Dict[str, Optional[Dict[str, Any]]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def source(self) -> DocumentSource:
        return self._source

    def get_metadata(self, document: DocumentRef) -> Optional[Dict[str, Any]]:
        """Get metadata for a document, fetching it from the source on a miss.

        Args:
            document: Document to query.

        Returns:
            Metadata mapping, or None if the document has none.
        """
        if document.path in self._cache:
            self._hits += 1
            return self._cache[document.path]

        self._misses += 1
        metadata = self._source.get_metadata(document)
        self._cache[document.path] = metadata
        logger.debug(f"Metadata cache miss: {document.path}")
        return metadata

    def has_field(self, document: DocumentRef, field_name: str) -> bool:
        """Check whether a document declares a field, even with an empty value."""
        return self.get_field_value(document, field_name).is_present

    def get_field_value(self, document: DocumentRef, field_name: str) -> FieldValue:
        """Read a field of a document as a normalized FieldValue."""
        return read_field(self.get_metadata(document), field_name)

    def get_raw_references(self, document: DocumentRef, field_name: str) -> List[str]:
        """Get declared references with link brackets removed, pre-resolution."""
        value = self.get_field_value(document, field_name)
        return [clean_reference(ref) for ref in value.references]

    def invalidate(self, document: DocumentRef) -> None:
        """Drop the cached metadata of a document."""
        self.invalidate_path(document.path)

    def invalidate_path(self, path: str) -> None:
        """Drop cached metadata by path (used for the old path of a rename)."""
        if path in self._cache:
            del self._cache[path]
            logger.debug(f"Invalidated metadata cache entry: {path}")

    def clear(self) -> None:
        """Clear all entries and reset statistics."""
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        logger.debug("Metadata cache cleared")

    def get_statistics(self) -> MetadataCacheStatistics:
        """Get cache statistics.

        Returns:
            MetadataCacheStatistics with size, hits, misses and hit rate.
        """
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return MetadataCacheStatistics(
            size=len(self._cache),
            hits=self._hits,
            misses=self._misses,
            hit_rate=round(hit_rate, 2),
        )

    def __len__(self) -> int:
        return len(self._cache)
