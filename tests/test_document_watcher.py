# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for DocumentWatcher and its watchdog event handler."""

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from relation_explorer.document_watcher import DocumentWatcher, _DocumentEventHandler
from relation_explorer.models import ChangeKind


@pytest.fixture
def watcher(tmp_path):
    return DocumentWatcher(str(tmp_path), ignore_patterns=["Templates/*"])


@pytest.fixture
def handler(watcher):
    return _DocumentEventHandler(watcher)


class TestShouldIgnore:
    """Tests for the watched Markdown set."""

    def test_markdown_in_vault_is_watched(self, watcher, tmp_path):
        assert not watcher.should_ignore(str(tmp_path / "notes" / "a.md"))

    def test_non_markdown_ignored(self, watcher, tmp_path):
        assert watcher.should_ignore(str(tmp_path / "image.png"))

    def test_ignored_directories_and_patterns(self, watcher, tmp_path):
        assert watcher.should_ignore(str(tmp_path / ".obsidian" / "a.md"))
        assert watcher.should_ignore(str(tmp_path / "Templates" / "daily.md"))

    def test_outside_vault_ignored(self, watcher, tmp_path):
        assert watcher.should_ignore(str(tmp_path.parent / "elsewhere.md"))


class TestEventHandler:
    """Tests for mapping watchdog events to change notifications."""

    def test_created_and_modified_are_upserts(self, handler, watcher, tmp_path):
        handler.on_created(FileCreatedEvent(str(tmp_path / "a.md")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "a.md")))

        events = watcher.drain_events()
        assert [(e.kind, e.path) for e in events] == [
            (ChangeKind.UPSERTED, "a.md"),
            (ChangeKind.UPSERTED, "a.md"),
        ]
        assert all(e.timestamp > 0 for e in events)

    def test_deleted_is_removal(self, handler, watcher, tmp_path):
        handler.on_deleted(FileDeletedEvent(str(tmp_path / "sub" / "a.md")))

        events = watcher.drain_events()
        assert [(e.kind, e.path) for e in events] == [(ChangeKind.REMOVED, "sub/a.md")]

    def test_directory_events_ignored(self, handler, watcher, tmp_path):
        handler.on_created(DirCreatedEvent(str(tmp_path / "folder.md")))
        assert watcher.pending_count() == 0

    def test_ignored_files_not_queued(self, handler, watcher, tmp_path):
        handler.on_created(FileCreatedEvent(str(tmp_path / "a.txt")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / ".obsidian" / "x.md")))
        assert watcher.pending_count() == 0

    def test_move_between_notes_is_rename(self, handler, watcher, tmp_path):
        handler.on_moved(FileMovedEvent(str(tmp_path / "a.md"), str(tmp_path / "b.md")))

        (event,) = watcher.drain_events()
        assert event.kind == ChangeKind.RENAMED
        assert event.path == "b.md"
        assert event.old_path == "a.md"

    def test_move_out_of_watched_set_is_removal(self, handler, watcher, tmp_path):
        handler.on_moved(
            FileMovedEvent(str(tmp_path / "a.md"), str(tmp_path / "Templates" / "a.md"))
        )

        (event,) = watcher.drain_events()
        assert (event.kind, event.path) == (ChangeKind.REMOVED, "a.md")

    def test_move_into_watched_set_is_upsert(self, handler, watcher, tmp_path):
        handler.on_moved(FileMovedEvent(str(tmp_path / "a.tmp"), str(tmp_path / "a.md")))

        (event,) = watcher.drain_events()
        assert (event.kind, event.path) == (ChangeKind.UPSERTED, "a.md")


class TestQueue:
    """Tests for the pending event queue."""

    def test_drain_empties_queue_in_order(self, watcher, tmp_path):
        watcher.record(ChangeKind.UPSERTED, str(tmp_path / "a.md"))
        watcher.record(ChangeKind.REMOVED, str(tmp_path / "b.md"))

        assert watcher.pending_count() == 2
        assert [e.path for e in watcher.drain_events()] == ["a.md", "b.md"]
        assert watcher.drain_events() == []

    def test_record_outside_vault_dropped(self, watcher, tmp_path):
        watcher.record(ChangeKind.UPSERTED, str(tmp_path.parent / "x.md"))
        assert watcher.pending_count() == 0


class TestLifecycle:
    """Tests for starting and stopping the observer."""

    def test_start_and_stop(self, watcher):
        assert not watcher.is_running()

        watcher.start()
        try:
            assert watcher.is_running()
            with pytest.raises(RuntimeError):
                watcher.start()
        finally:
            watcher.stop()

        assert not watcher.is_running()

    def test_stop_when_not_running(self, watcher):
        watcher.stop()
        assert not watcher.is_running()
