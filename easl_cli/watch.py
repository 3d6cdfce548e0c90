# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import atexit
import logging
import sys
from enum import Enum
from itertools import chain
from pathlib import Path
from threading import Event, Thread
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Tuple

import watchfiles

from .cache import ContentCache
from .config import WatchConfig
from .errors import EaslError, FileReadError, WatchChannelError, WatchInitError
from .operations import read_source
from .sources import has_extension

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    MODIFY = 0
    CREATE = 1
    REMOVE = 2
    OTHER = 3


CHANGE_KINDS = {
    watchfiles.Change.modified: ChangeKind.MODIFY,
    watchfiles.Change.added: ChangeKind.CREATE,
    watchfiles.Change.deleted: ChangeKind.REMOVE,
}

MODIFY_ONLY: FrozenSet[ChangeKind] = frozenset({ChangeKind.MODIFY})
# Editors that save through a temporary file and a rename show up as a create.
MODIFY_OR_CREATE: FrozenSet[ChangeKind] = frozenset({ChangeKind.MODIFY, ChangeKind.CREATE})
ANY_CONTENT_CHANGE: FrozenSet[ChangeKind] = frozenset({ChangeKind.MODIFY, ChangeKind.CREATE, ChangeKind.REMOVE})

ChangeBatch = List[Tuple[ChangeKind, Path]]

# An empty batch is yielded after this long without changes.
IDLE_TIMEOUT_MS = 100


def watch_changes(
    root: Path,
    recursive: bool = True,
    config: Optional[WatchConfig] = None,
    stop_event: Optional[Event] = None,
) -> Iterator[ChangeBatch]:
    config = config if config is not None else WatchConfig()
    if not root.exists():
        raise WatchInitError(root, FileNotFoundError(f"No such file or directory: {root}"))

    # Paths are filtered by the caller, watchfiles' default filter would hide
    # directories such as node_modules or .git.
    changes = watchfiles.watch(
        root,
        watch_filter=None,
        debounce=config.debounce_ms,
        step=config.step_ms,
        stop_event=stop_event,
        rust_timeout=IDLE_TIMEOUT_MS,
        yield_on_timeout=True,
        recursive=recursive,
    )

    # The OS watcher is created on the first iteration, failures before the
    # first batch are setup failures. Timeouts yield an empty batch, so the
    # first batch arrives shortly after the watcher is running.
    started = False
    while True:
        try:
            batch = next(changes)
        except StopIteration:
            return
        except Exception as e:
            if not started:
                raise WatchInitError(root, e) from e
            raise WatchChannelError(root, e) from e
        started = True
        yield [
            (CHANGE_KINDS.get(change, ChangeKind.OTHER), Path(path))
            for change, path in sorted(batch, key=lambda c: c[1])
        ]


def extension_filter(extension: str) -> Callable[[Path], bool]:
    return lambda path: has_extension(path, extension)


def file_filter(file: Path) -> Callable[[Path], bool]:
    target = file.resolve()
    return lambda path: path.resolve() == target


class WatchLoop:
    """Re-runs on_change for files whose content really changed.

    on_change(path, content) reports failure by raising EaslError; the cache is
    updated after every attempt. Events are processed strictly in order, a
    rebuild is never interrupted by later events.
    """

    def __init__(
        self,
        root: Path,
        on_change: Callable[[Path, str], None],
        accepts: Callable[[Path], bool],
        kinds: FrozenSet[ChangeKind] = MODIFY_ONLY,
        cache: Optional[ContentCache] = None,
        recursive: bool = True,
        config: Optional[WatchConfig] = None,
        events: Optional[Iterable[ChangeBatch]] = None,
    ):
        self.root = root
        self.on_change = on_change
        self.accepts = accepts
        self.kinds = kinds
        self.cache = cache if cache is not None else ContentCache()
        self.recursive = recursive
        self.config = config if config is not None else WatchConfig()
        self.events = events
        self.stop_event = Event()
        self.thread: Optional[Thread] = None
        self.error: Optional[EaslError] = None

    def seed(self, files: Iterable[Path]) -> None:
        for file in files:
            try:
                self.cache.update(file, read_source(file))
            except FileReadError as e:
                logger.debug("Not caching unreadable file %s (%s)", file, e.cause)

    def handle(self, kind: ChangeKind, path: Path) -> bool:
        if kind not in self.kinds:
            logger.debug("Ignoring %s event: %s", kind.name, path)
            return False
        if not self.accepts(path):
            return False

        try:
            content = read_source(path)
        except FileReadError as e:
            print(e, file=sys.stderr)
            return False

        if not self.cache.has_changed(path, content):
            logger.debug("Content unchanged: %s", path)
            return False

        print(f"\n{path} changed, recompiling...")
        try:
            self.on_change(path, content)
        except EaslError as e:
            print(e, file=sys.stderr)
        finally:
            self.cache.update(path, content)
        return True

    def _events(self) -> Iterable[ChangeBatch]:
        if self.events is not None:
            return self.events
        return watch_changes(self.root, self.recursive, self.config, self.stop_event)

    def run(self, events: Optional[Iterable[ChangeBatch]] = None) -> None:
        if events is None:
            events = self._events()
        for batch in events:
            for kind, path in batch:
                self.handle(kind, path)
            if self.stop_event.is_set():
                break

    def __thread_entry(self, events: Iterable[ChangeBatch]) -> None:
        try:
            self.run(events)
        except EaslError as e:
            self.error = e
            print(e, file=sys.stderr)

    def start(self) -> Thread:
        # Pull the first batch here so setup failures reach the caller.
        events = iter(self._events())
        first = next(events, [])
        self.thread = Thread(
            target=self.__thread_entry,
            args=(chain([first], events),),
            daemon=True,
            name="easl-watch",
        )
        self.thread.start()
        atexit.register(self.stop)
        return self.thread

    def stop(self) -> None:
        self.stop_event.set()
        if self.thread is not None:
            # watchfiles checks the stop event every step, so this returns quickly.
            self.thread.join(timeout=1.0)
            self.thread = None
