from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional

from core.file_watcher import FileWatcher, WatchEvent


class WatcherManager:
    """Own one watcher for the open Espanso directory.

    Accepts an optional `watcher` for tests. Start and stop never raise; a
    watcher that fails to start leaves the editor working without live
    reload.
    """

    def __init__(self, paths: List[Path], watcher: Optional[Any] = None) -> None:
        self._paths = list(paths)
        self._watcher = watcher or FileWatcher(self._paths)
        self._started = False

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def start(self) -> bool:
        if self._started:
            return True
        try:
            self._watcher.start()
            self._started = True
        except Exception as exc:
            print(f"[WARNING] File watcher unavailable: {exc}", flush=True)
            self._started = False
        return self._started

    def stop(self) -> None:
        if not self._started:
            return
        try:
            self._watcher.stop()
        except Exception as exc:
            print(f"[WARNING] Error stopping file watcher: {exc}", flush=True)
        finally:
            self._started = False

    def register_callback(self, callback: Callable[[WatchEvent], None]) -> None:
        self._watcher.register_callback(callback)

    def poll_events(self) -> List[WatchEvent]:
        if not self._started:
            return []
        return self._watcher.poll()

    def is_running(self) -> bool:
        return self._started
