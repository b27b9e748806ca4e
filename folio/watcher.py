"""Filesystem watcher for Folio.

A watchdog observer pushes changed paths into a bounded queue; iterating a
Watcher drains that queue into debounced change batches. The watcher only
reports which paths changed. Deciding which artifacts they affect is the
build graph's job.

Key classes:
- Watcher: Produces batches of changed paths.
"""

from __future__ import annotations

import logging
import os
import queue
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .errors import WatchError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.2
DEFAULT_QUEUE_SIZE = 1024
HEALTH_CHECK_INTERVAL = 0.5

# Event types that can change file content. Opened/closed events are
# produced by our own reads and must not trigger builds.
CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})
IGNORED_PARTS = frozenset({".git", "__pycache__", "node_modules"})
IGNORED_SUFFIXES = (".swp", ".swx", ".tmp", "~")


def is_ignored_name(path: Path) -> bool:
    """Return True for editor temporaries and tool directories."""
    if IGNORED_PARTS.intersection(path.parts):
        return True
    name = path.name
    return name.startswith(".#") or name.endswith(IGNORED_SUFFIXES)


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory and event.event_type == "modified":
            return
        if event.event_type not in CHANGE_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for raw in paths:
            self.watcher.push(Path(os.fsdecode(raw)))


class Watcher:
    """Debounced source of change batches.

    Iterating a Watcher yields ``frozenset[Path]`` batches forever, starting
    the observer unless ``start`` was already called. Changes seen between
    ``start`` and iteration form the first batch. A Watcher can be iterated
    only once.

    Attributes:
        root: Directory being watched.
        ignore: Directories whose contents are never reported.
        debounce: Seconds the queue must stay quiet before a batch is emitted.
        max_delay: Upper bound on how long one batch keeps collecting events.
    """

    def __init__(
        self,
        root: Path,
        ignore: Iterable[Path] = (),
        debounce: float = DEFAULT_DEBOUNCE,
        observer_factory: Callable[[], Observer] = Observer,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.root = root.resolve()
        self.ignore = [Path(p).resolve() for p in ignore]
        self.debounce = debounce
        self.max_delay = max(debounce * 10, 1.0)
        self.observer_factory = observer_factory
        self.handler = _QueueingHandler(self)
        self._queue: queue.Queue[Path] = queue.Queue(maxsize=queue_size)
        self._overflowed = False
        self._observer = None
        self._polling = False
        self._consumed = False

    def push(self, path: Path) -> None:
        """Queue a changed path. Called from the observer thread."""
        if self._is_ignored(path):
            return
        try:
            self._queue.put_nowait(path)
        except queue.Full:
            self._overflowed = True

    def _is_ignored(self, path: Path) -> bool:
        if is_ignored_name(path):
            return True
        for ignored in self.ignore:
            try:
                path.relative_to(ignored)
                return True
            except ValueError:
                pass
        return False

    def __iter__(self) -> Iterator[frozenset[Path]]:
        if self._consumed:
            raise WatchError("A watcher can only be iterated once", self.root)
        self._consumed = True
        return self._batches()

    def _batches(self) -> Iterator[frozenset[Path]]:
        if self._observer is None:
            self.start()
        try:
            while True:
                yield self.next_batch()
        finally:
            self.stop()

    def start(self) -> None:
        if not self.root.is_dir():
            raise WatchError("Watch root does not exist", self.root)
        try:
            self._observer = self._start_observer(self.observer_factory)
        except OSError as exc:
            logger.warning("Native file watching unavailable (%s); polling instead", exc)
            self._polling = True
            self._observer = self._start_observer(PollingObserver)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def _start_observer(self, factory: Callable[[], Observer]):
        observer = factory()
        observer.schedule(self.handler, str(self.root), recursive=True)
        observer.start()
        return observer

    def next_batch(self) -> frozenset[Path]:
        """Block for the next change, then collect until the queue is quiet.

        Raises:
            WatchError: If the watch root disappears or the polling fallback stops.
        """
        paths = {self._wait_for_first()}
        started = time.monotonic()
        while True:
            timeout = min(self.debounce, started + self.max_delay - time.monotonic())
            if timeout <= 0:
                break
            try:
                paths.add(self._queue.get(timeout=timeout))
            except queue.Empty:
                break
        if self._overflowed:
            self._overflowed = False
            logger.warning("Change queue overflowed; rescanning %s", self.root)
            paths.add(self.root)
        return frozenset(paths)

    def _wait_for_first(self) -> Path:
        while True:
            try:
                return self._queue.get(timeout=HEALTH_CHECK_INTERVAL)
            except queue.Empty:
                if self._overflowed:
                    return self.root
                self._check_health()

    def _check_health(self) -> None:
        if not self.root.is_dir():
            raise WatchError("Watch root was removed", self.root)
        observer = self._observer
        if observer is None or observer.is_alive():
            return
        if self._polling:
            raise WatchError("Polling observer stopped", self.root)
        logger.error("File observer stopped; falling back to polling")
        self._polling = True
        self._observer = self._start_observer(PollingObserver)
