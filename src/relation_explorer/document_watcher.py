# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File system watcher for Markdown vaults.

Monitors a vault with watchdog and records change notifications as
ChangeEvents in an ordered queue. The watcher never touches a graph: the
embedding system drains the queue and applies the events serially on its
own thread (see GraphUpdater.process_pending_changes).

Event mapping:
- created / modified -> upserted
- deleted -> removed
- moved (both sides Markdown) -> renamed(old_path -> path)
- moved into / out of the vault's Markdown set -> upserted / removed

No debouncing: a burst of modifications yields one upsert per event, and
re-applying an upsert is harmless.

Thread Safety:
- The queue is guarded by a lock; watchdog appends from its observer
  thread and drain_events() swaps the queue out atomically.
"""

import logging
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from relation_explorer.models import ChangeEvent, ChangeKind
from relation_explorer.vault import MARKDOWN_SUFFIX, is_ignored

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)


class DocumentWatcher:
    """Watches a vault and queues ChangeEvents for Markdown notes.

    Paths in events are POSIX paths relative to the vault root, the same
    identifiers MarkdownVault uses.

    Usage:
        watcher = DocumentWatcher("/path/to/vault")
        watcher.start()
        ...
        for event in watcher.drain_events():
            updater.apply(event)
        watcher.stop()
    """

    def __init__(self, root: str, ignore_patterns: Optional[List[str]] = None):
        """Initialize DocumentWatcher.

        Args:
            root: Vault root directory to watch.
            ignore_patterns: Glob patterns of notes to skip.
        """
        self.root = Path(root).resolve()
        self.ignore_patterns = list(ignore_patterns or [])

        self._pending: List[ChangeEvent] = []
        self._lock = threading.Lock()

        self._observer: Optional[BaseObserver] = None
        self._event_handler = _DocumentEventHandler(self)

        logger.info(f"DocumentWatcher initialized for {self.root}")

    def relative_path(self, file_path: str) -> Optional[str]:
        """Vault-relative POSIX path, or None for paths outside the vault."""
        try:
            return Path(file_path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def should_ignore(self, file_path: str) -> bool:
        """Check whether a file is outside the watched Markdown set.

        Args:
            file_path: Absolute file path.

        Returns:
            True for non-Markdown files, ignored directories and patterns,
            and paths outside the vault.
        """
        if not file_path.endswith(MARKDOWN_SUFFIX):
            return True

        relative = self.relative_path(file_path)
        if relative is None:
            return True

        return is_ignored(relative, self.ignore_patterns)

    def record(self, kind: str, file_path: str, old_file_path: Optional[str] = None) -> None:
        """Queue a change event for an absolute file path."""
        path = self.relative_path(file_path)
        if path is None:
            return
        old_path = self.relative_path(old_file_path) if old_file_path is not None else None

        event = ChangeEvent(kind=kind, path=path, old_path=old_path, timestamp=time.time())
        with self._lock:
            self._pending.append(event)
        logger.debug(f"Queued {kind} event for {path}")

    def drain_events(self) -> List[ChangeEvent]:
        """Remove and return all pending events in arrival order."""
        with self._lock:
            events, self._pending = self._pending, []
        return events

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def start(self) -> None:
        """Start watching the vault.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("DocumentWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"DocumentWatcher started, monitoring {self.root}")

    def stop(self) -> None:
        """Stop watching the vault.

        Blocks until observer thread terminates (with timeout).
        """
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("DocumentWatcher stopped")

    def is_running(self) -> bool:
        """Check if watcher is currently running.

        Returns:
            True if observer is alive
        """
        return self._observer is not None and self._observer.is_alive()


class _DocumentEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog.

    Delegates filtering and queueing to DocumentWatcher.
    """

    def __init__(self, watcher: DocumentWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_event(self, event: FileSystemEvent, kind: str) -> None:
        if event.is_directory:
            return

        # Convert path from Union[bytes, str] to str
        file_path = str(event.src_path)
        if self.watcher.should_ignore(file_path):
            return

        self.watcher.record(kind, file_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event, ChangeKind.UPSERTED)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event, ChangeKind.UPSERTED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event, ChangeKind.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename events.

        A move between two watched notes is a rename; otherwise it is a
        removal of the old note or an upsert of the new one.
        """
        if event.is_directory or not isinstance(event, FileMovedEvent):
            return

        src_path = str(event.src_path)
        dest_path = str(event.dest_path)
        src_watched = not self.watcher.should_ignore(src_path)
        dest_watched = not self.watcher.should_ignore(dest_path)

        if src_watched and dest_watched:
            self.watcher.record(ChangeKind.RENAMED, dest_path, old_file_path=src_path)
        elif src_watched:
            self.watcher.record(ChangeKind.REMOVED, src_path)
        elif dest_watched:
            self.watcher.record(ChangeKind.UPSERTED, dest_path)
