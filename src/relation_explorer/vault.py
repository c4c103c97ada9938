# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Markdown vault document source.

A vault is a folder of Markdown notes whose relationships are declared in
YAML frontmatter:

    ---
    parent: "[[Projects]]"
    ---

Documents are identified by their POSIX path relative to the vault root
(e.g. "Projects/Roadmap.md"); the display name is the file name without
extension.

Link resolution order:
1. Exact vault-relative path (with or without ".md")
2. Path relative to the folder of the declaring note
3. Display name, case-insensitive; first match in sorted path order

Malformed frontmatter never fails a scan: it is logged and the note is
treated as having no metadata.
"""

import fnmatch
import logging
import os
import posixpath
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional

import yaml

from relation_explorer.models import DocumentRef
from relation_explorer.sources import DocumentSource, strip_link_syntax

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"

# Directories never scanned or watched
ALWAYS_IGNORED = {
    ".git",
    ".obsidian",
    ".trash",
    "node_modules",
    "__pycache__",
}

FRONTMATTER_DELIMITER = "---"
FRONTMATTER_END_MARKERS = ("---", "...")


def is_ignored(relative_path: str, ignore_patterns: Iterable[str] = ()) -> bool:
    """Check a vault-relative path against built-in and user ignore rules.

    Args:
        relative_path: POSIX path relative to the vault root.
        ignore_patterns: Glob patterns matched against the relative path and
            the file name.

    Returns:
        True if the path should be skipped.
    """
    path = PurePosixPath(relative_path)
    if any(part in ALWAYS_IGNORED for part in path.parts):
        return True

    for pattern in ignore_patterns:
        if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(path.name, pattern):
            return True

    return False


def _wiki_link(item: Any) -> Optional[str]:
    # Unquoted [[Note]] parses as a doubly nested YAML list
    if isinstance(item, list) and len(item) == 1:
        inner = item[0]
        if isinstance(inner, list) and len(inner) == 1 and isinstance(inner[0], str):
            return f"[[{inner[0]}]]"
    return None


def _unwrap_wiki_lists(value: Any) -> Any:
    if not isinstance(value, list):
        return value

    unwrapped = []
    for item in value:
        link = _wiki_link(item)
        if link is not None:
            # Block item "- [[Note]]"
            unwrapped.append(link)
        elif isinstance(item, list) and len(item) == 1 and isinstance(item[0], str):
            # Whole-value flow form "parent: [[Note]]"
            unwrapped.append(f"[[{item[0]}]]")
        else:
            unwrapped.append(item)
    return unwrapped


def parse_frontmatter(text: str, source: str = "<string>") -> Optional[Dict[str, Any]]:
    """Extract the YAML frontmatter mapping of a Markdown document.

    Args:
        text: Document content.
        source: Name used in log messages.

    Returns:
        Frontmatter mapping ({} for an empty block), or None if the document
        has no frontmatter or it is malformed.
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return None

    end = None
    for index, line in enumerate(lines[1:], start=1):
        if line.strip() in FRONTMATTER_END_MARKERS:
            end = index
            break

    if end is None:
        logger.warning(f"Unterminated frontmatter in {source}, ignoring it")
        return None

    try:
        data = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as e:
        logger.warning(f"Invalid YAML frontmatter in {source}: {e}")
        return None

    if data is None:
        return {}

    if not isinstance(data, dict):
        logger.warning(
            f"Frontmatter in {source} must be a mapping, got {type(data).__name__}, ignoring it"
        )
        return None

    return {str(key): _unwrap_wiki_lists(value) for key, value in data.items()}


class MarkdownVault(DocumentSource):
    """Folder of Markdown notes with YAML frontmatter.

    The name index used for link resolution is built on each full scan
    (get_documents() or refresh()). Path-based resolution always checks the
    file system, so notes created after a scan resolve by path immediately.

    Usage:
        vault = MarkdownVault("/path/to/vault", ignore_patterns=["Templates/*"])
        documents = vault.get_documents()
    """

    def __init__(self, root: str, ignore_patterns: Optional[List[str]] = None) -> None:
        """Initialize vault.

        Args:
            root: Vault root directory.
            ignore_patterns: Glob patterns of notes to skip.

        Raises:
            NotADirectoryError: If ``root`` is not a directory.
        """
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Vault root is not a directory: {self.root}")

        self.ignore_patterns = list(ignore_patterns or [])
        self._documents: Dict[str, DocumentRef] = {}
        self._name_index: Dict[str, DocumentRef] = {}
        self._scanned = False

        logger.info(f"MarkdownVault initialized for {self.root}")

    # =========================================================================
    # Enumeration
    # =========================================================================

    def refresh(self) -> List[DocumentRef]:
        """Rescan the vault and rebuild the name index.

        Returns:
            Documents sorted by path.
        """
        documents: Dict[str, DocumentRef] = {}

        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune ignored directories in place so os.walk skips them
            dirnames[:] = sorted(d for d in dirnames if d not in ALWAYS_IGNORED)

            for filename in filenames:
                if not filename.endswith(MARKDOWN_SUFFIX):
                    continue
                relative = self.relative_path(Path(dirpath) / filename)
                if relative is None or is_ignored(relative, self.ignore_patterns):
                    continue
                documents[relative] = DocumentRef(path=relative)

        self._documents = dict(sorted(documents.items()))
        self._name_index = {}
        for document in self._documents.values():
            self._name_index.setdefault(document.name.lower(), document)
        self._scanned = True

        logger.debug(f"Scanned {len(self._documents)} notes in {self.root}")
        return list(self._documents.values())

    def get_documents(self) -> List[DocumentRef]:
        return self.refresh()

    def relative_path(self, path: Path) -> Optional[str]:
        """Convert an absolute path to a vault-relative POSIX path.

        Returns:
            Relative path, or None if ``path`` is outside the vault.
        """
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def absolute_path(self, document: DocumentRef) -> Path:
        return self.root / document.path

    # =========================================================================
    # Metadata
    # =========================================================================

    def get_metadata(self, document: DocumentRef) -> Optional[Dict[str, Any]]:
        path = self.absolute_path(document)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"Note not found: {document.path}")
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read note {document.path}: {e}")
            return None

        return parse_frontmatter(text, source=document.path)

    # =========================================================================
    # Link resolution
    # =========================================================================

    def resolve_link(self, reference: str, source: DocumentRef) -> Optional[DocumentRef]:
        target = strip_link_syntax(reference)
        if not target:
            return None

        if not self._scanned:
            self.refresh()

        if posixpath.isabs(target) or os.path.isabs(target):
            logger.debug(f"Absolute reference '{reference}' from {source.path} never resolves")
            return None

        folder = posixpath.dirname(source.path)
        candidates = [posixpath.normpath(target)]
        if folder:
            candidates.append(posixpath.normpath(posixpath.join(folder, target)))

        for candidate in candidates:
            document = self._existing_document(candidate)
            if document is not None:
                return document

        document = self._name_index.get(posixpath.basename(target).lower())
        if document is not None and "/" not in target:
            return document

        logger.debug(f"Unresolved reference '{reference}' from {source.path}")
        return None

    def _existing_document(self, candidate: str) -> Optional[DocumentRef]:
        """Look up a normalized vault-relative candidate path.

        Candidates escaping the vault root, lexically or through symlinks,
        never resolve.
        """
        if candidate == ".." or candidate.startswith("../") or candidate.startswith("/"):
            return None

        path = candidate if candidate.endswith(MARKDOWN_SUFFIX) else candidate + MARKDOWN_SUFFIX
        if path in self._documents:
            return self._documents[path]

        if is_ignored(path, self.ignore_patterns):
            return None
        if self.relative_path(self.root / path) != path:
            return None
        if (self.root / path).is_file():
            return DocumentRef(path=path)
        return None
