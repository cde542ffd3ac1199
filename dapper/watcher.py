"""Change detection and rebuild loop for Dapper.

The watcher polls the source tree, the layout tree and the configuration file
and rebuilds the site whenever any of them change. The output directory is
never watched, so a build cannot trigger itself.

Polling is the source of truth: every tick compares a fresh snapshot of
``(mtime_ns, size)`` signatures with the stored one. When ``use_events`` is
on, watchdog filesystem events only wake the loop early; the snapshot still
decides whether anything changed.

Key pieces:
- WatcherState: IDLE or REBUILDING.
- scan_paths / diff_states: Snapshot and compare watched files.
- Watcher: The poll-rebuild loop, runnable in the foreground or on a thread.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path
from typing import Protocol

import click
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import SiteConfig
from .console import echo_fatal, echo_report
from .errors import DapperError
from .utils import is_within
from .walker import BuildReport

DEFAULT_INTERVAL = 1.0

Signature = tuple[int, int]
WatchState = dict[Path, Signature]


class WatcherState(Enum):
    IDLE = "idle"
    REBUILDING = "rebuilding"


class Builder(Protocol):
    """Callable that runs one build; ``cancel`` stops it between files."""

    def __call__(
        self, config: SiteConfig, cancel: threading.Event | None = None
    ) -> BuildReport | None: ...


def _default_builder(
    config: SiteConfig, cancel: threading.Event | None = None
) -> BuildReport:
    return build_site(config, cancel=cancel)


def _signature(path: Path) -> Signature | None:
    try:
        stat = path.stat()
    except OSError:
        return None
    return (stat.st_mtime_ns, stat.st_size)


def scan_paths(roots: Iterable[Path], ignore: Path | None = None) -> WatchState:
    """Snapshot the signatures of every file under ``roots``.

    Args:
        roots: Files or directories to scan. Missing roots are skipped.
        ignore: Directory whose contents are never included.

    Returns:
        Mapping of file path to ``(mtime_ns, size)``.
    """
    state: WatchState = {}
    for root in roots:
        if root.is_file():
            sig = _signature(root)
            if sig is not None:
                state[root] = sig
            continue
        if not root.is_dir():
            continue
        for path in sorted(root.rglob("*")):
            if ignore is not None and is_within(path, ignore):
                continue
            if path.is_dir():
                continue
            sig = _signature(path)
            if sig is not None:
                state[path] = sig
    return state


def diff_states(old: WatchState, new: WatchState) -> set[Path]:
    """Return paths that were added, removed or modified between two snapshots."""
    return {path for path in old.keys() | new.keys() if old.get(path) != new.get(path)}


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if self.watcher.is_watched(path):
            self.watcher.notify()


class Watcher:
    """Poll watched paths and rebuild the site on change.

    Attributes:
        config: Site configuration to build.
        builder: Callable that performs one build.
        interval: Seconds between polls.
        use_events: Whether watchdog events wake the loop early.
        debounce: Seconds to wait after an event so bursts coalesce.
        state: Current WatcherState.
        watch_state: Last stored snapshot of watched files.
        rebuild_count: Number of rebuilds run so far.
        loader: Optional callable that re-reads the configuration before each
            rebuild, so edits to the configuration file take effect.
    """

    def __init__(
        self,
        config: SiteConfig,
        builder: Builder | None = None,
        interval: float = DEFAULT_INTERVAL,
        use_events: bool = False,
        debounce: float = 0.05,
        loader: Callable[[], SiteConfig] | None = None,
    ):
        self.config = config
        self.loader = loader
        self.builder = builder or _default_builder
        self.interval = interval
        self.use_events = use_events
        self.debounce = debounce
        self.state = WatcherState.IDLE
        self.watch_state: WatchState = {}
        self.rebuild_count = 0
        self._initialized = False
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._observer: Observer | None = None

    def scan(self) -> WatchState:
        return scan_paths(self.config.watched_paths(), ignore=self.config.output_dir)

    def init(self) -> None:
        """Record the baseline snapshot without building."""
        self.watch_state = self.scan()
        self._initialized = True

    def changes(self) -> set[Path]:
        """Return paths that differ from the stored snapshot."""
        return diff_states(self.watch_state, self.scan())

    def is_watched(self, path: Path) -> bool:
        if is_within(path, self.config.output_dir):
            return False
        if path.resolve() == self.config.config_path.resolve():
            return True
        return is_within(path, self.config.source_dir) or is_within(
            path, self.config.layout_dir
        )

    def notify(self) -> None:
        """Wake the poll loop before the interval elapses."""
        self._wake.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def check(self) -> bool:
        """Run one poll tick.

        Returns:
            True if a change was found and a rebuild ran.
        """
        if not self._lock.acquire(blocking=False):
            return False
        try:
            if not self._initialized:
                self.init()
                return False
            current = self.scan()
            changed = diff_states(self.watch_state, current)
            if not changed:
                return False
            self.state = WatcherState.REBUILDING
            click.echo("Change detected; rebuilding...")
            self.rebuild_count += 1
            previous_roots = self.config.watched_paths()
            try:
                if self.loader is not None:
                    self.config = self.loader()
                report = self.builder(self.config, cancel=self._stop)
            except DapperError as exc:
                echo_fatal(exc)
            except Exception as exc:
                click.echo(
                    click.style(f"Rebuild failed: {type(exc).__name__}: {exc}", fg="red"),
                    err=True,
                )
            else:
                if report is not None:
                    echo_report(report)
            # Builds never write watched paths, so the pre-build snapshot is
            # also the post-build one; edits made during the build show up
            # on the next tick.
            if self.config.watched_paths() != previous_roots:
                current = self.scan()
            self.watch_state = current
            return True
        finally:
            self.state = WatcherState.IDLE
            self._lock.release()

    def run(self) -> None:
        """Poll until stop() is called."""
        if not self._initialized:
            self.init()
        if self.use_events:
            self._start_observer()
        try:
            while not self._stop.is_set():
                woke = self._wake.wait(self.interval)
                if self._stop.is_set():
                    break
                if woke:
                    self._wake.clear()
                    if self._stop.wait(self.debounce):
                        break
                    self._wake.clear()
                self.check()
        finally:
            self._stop_observer()

    def start(self) -> None:
        """Take the baseline snapshot and run the loop on a daemon thread."""
        if not self._initialized:
            self.init()
        self._thread = threading.Thread(target=self.run, name="dapper-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the loop; a build in progress finishes its current file first."""
        self._stop.set()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
        self._stop_observer()

    def _start_observer(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for folder in (self.config.source_dir, self.config.layout_dir):
            if folder.is_dir():
                observer.schedule(handler, str(folder), recursive=True)
        config_dir = self.config.config_path.parent
        if config_dir.is_dir():
            observer.schedule(handler, str(config_dir), recursive=False)
        observer.start()
        self._observer = observer

    def _stop_observer(self) -> None:
        observer = self._observer
        self._observer = None
        if observer is not None:
            observer.stop()
            observer.join()
