"""Watch Espanso directories for edits made outside the editor.

Built on watchdog. Events for YAML files are collected and, after a short
quiet period, handed to registered callbacks and queued for `poll()`, so a
burst of writes from another editor shows up as one change per file.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


YAML_SUFFIXES = (".yml", ".yaml")


@dataclass(frozen=True)
class WatchEvent:
    src_path: Path
    event_type: str
    is_directory: bool = False


class _DebouncedHandler(FileSystemEventHandler):
    def __init__(self, emit: Callable[[List[WatchEvent]], None], suffixes: Sequence[str], debounce: float) -> None:
        self._emit = emit
        self._suffixes = tuple(s.lower() for s in suffixes)
        self._debounce = debounce
        self._pending: Dict[Path, WatchEvent] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return
        # a rename reports the new name in dest_path
        raw = getattr(event, "dest_path", "") or event.src_path
        path = Path(raw if isinstance(raw, str) else raw.decode())
        if path.suffix.lower() not in self._suffixes or path.name.startswith("."):
            return
        with self._lock:
            self._pending[path] = WatchEvent(src_path=path, event_type=event.event_type)
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            events = list(self._pending.values())
            self._pending.clear()
        if events:
            self._emit(events)


class FileWatcher:
    """Recursive watchdog observer over a set of directories."""

    def __init__(
        self,
        paths: Sequence[Path],
        suffixes: Sequence[str] = YAML_SUFFIXES,
        debounce: float = 0.5,
    ) -> None:
        self._paths = [Path(p) for p in paths]
        self._callbacks: List[Callable[[WatchEvent], None]] = []
        self._events: List[WatchEvent] = []
        self._events_lock = threading.Lock()
        self._handler = _DebouncedHandler(self._dispatch, suffixes, debounce)
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        for path in self._paths:
            if not path.exists():
                print(f"[WARNING] Not watching missing directory: {path}", flush=True)
                continue
            observer.schedule(self._handler, str(path), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=2.0)

    def register_callback(self, callback: Callable[[WatchEvent], None]) -> None:
        self._callbacks.append(callback)

    def poll(self) -> List[WatchEvent]:
        with self._events_lock:
            events, self._events = self._events, []
        return events

    def flush(self) -> None:
        self._handler.flush()

    def _dispatch(self, events: List[WatchEvent]) -> None:
        with self._events_lock:
            self._events.extend(events)
        for event in events:
            for callback in list(self._callbacks):
                try:
                    callback(event)
                except Exception as exc:
                    print(f"[ERROR] Watch callback failed for {event.src_path}: {exc}", flush=True)

