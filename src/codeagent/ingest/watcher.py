"""File system watcher driving incremental index updates.

watchdog delivers events on its observer thread; each supported file event is
handed to the Indexer there (``update_file`` for created/modified files,
``remove_file`` for deleted ones, both for a move). The Indexer opens its own
connection per call, so the observer thread never shares one.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from codeagent.ingest.indexer import FileResult, Indexer
from codeagent.languages import is_supported

ResultCallback = Callable[[FileResult], None]


def _decode(path: str | bytes) -> str:
    return path.decode() if isinstance(path, bytes) else path


class IndexingHandler(FileSystemEventHandler):
    """Map file events for supported extensions onto Indexer calls."""

    def __init__(self, indexer: Indexer, on_result: ResultCallback | None = None) -> None:
        super().__init__()
        self.indexer = indexer
        self.on_result = on_result

    def _report(self, result: FileResult) -> None:
        if self.on_result is not None:
            self.on_result(result)

    def _update(self, path: str) -> None:
        if is_supported(path):
            self._report(self.indexer.update_file(path))

    def _remove(self, path: str) -> None:
        if is_supported(path):
            self._report(self.indexer.remove_file(path))

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        if not event.is_directory:
            self._update(_decode(event.src_path))

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        if not event.is_directory:
            self._update(_decode(event.src_path))

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        if not event.is_directory:
            self._remove(_decode(event.src_path))

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        if event.is_directory:
            return
        self._remove(_decode(event.src_path))
        self._update(_decode(event.dest_path))


class ProjectWatcher:
    """Watch every project root of an Indexer recursively.

    Usage::

        watcher = ProjectWatcher(indexer, on_result=print)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(self, indexer: Indexer, on_result: ResultCallback | None = None) -> None:
        self.indexer = indexer
        self.handler = IndexingHandler(indexer, on_result)
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def roots(self) -> list[Path]:
        return [p.root for p in self.indexer.projects]

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        for root in self.roots:
            observer.schedule(self.handler, str(root), recursive=True)
        observer.start()
        self._observer = observer

    def stop(self, timeout: float = 5.0) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=timeout)
        self._observer = None

    def __enter__(self) -> ProjectWatcher:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()
