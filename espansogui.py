"""PyWebView-based EspansoGUI application."""

from __future__ import annotations

import atexit
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import webview

from ui.gui_api import GUIApi


@dataclass(frozen=True)
class PlatformInfo:
    system: str
    is_wsl: bool = False

    @classmethod
    def detect(cls) -> "PlatformInfo":
        system = platform.system()
        is_wsl = system == "Linux" and "microsoft" in platform.release().lower()
        return cls(system=system, is_wsl=is_wsl)

    @property
    def is_windows(self) -> bool:
        return self.system == "Windows"

    def gui_preferences(self) -> List[Optional[str]]:
        """Backends to try in order; None lets pywebview pick."""
        override = os.environ.get("PYWEBVIEW_GUI")
        if override:
            return [override, None]
        if self.system == "Windows":
            return ["edgechromium", None]
        if self.system == "Linux":
            return ["gtk", "qt", None]
        return [None]

    def gui_dependency_hint(self) -> str:
        if self.system == "Linux":
            return "Install PyGObject (GTK) or `pip install pywebview[qt]`."
        if self.system == "Windows":
            return "Install the Microsoft Edge WebView2 runtime."
        return "See https://pywebview.flowrl.com/guide/installation.html"


PLATFORM = PlatformInfo.detect()


def _log_gui_attempt(backend: Optional[str]) -> None:
    label = backend or "auto"
    print(f"[DEBUG] Attempting to start PyWebView backend '{label}'", flush=True)


def _start_webview(platform_info: PlatformInfo, script_path: Path) -> None:
    if platform_info.is_wsl:
        message = (
            "[ERROR] PyWebView cannot run inside WSL without a GUI subsystem. "
            f"Install WSLg or run {script_path.name} directly on Windows."
        )
        print(message, flush=True)
        raise webview.errors.WebViewException(message)  # type: ignore[attr-defined]

    last_error: Optional[Exception] = None
    for preferred in platform_info.gui_preferences():
        try:
            _log_gui_attempt(preferred)
            webview.start(gui=preferred, debug=bool(os.environ.get("ESPANSOGUI_DEBUG")))
            return
        except webview.errors.WebViewException as exc:  # type: ignore[attr-defined]
            last_error = exc
            print(f"[WARNING] GUI backend '{preferred or 'auto'}' failed: {exc}", flush=True)
    print(
        "[ERROR] PyWebView could not initialize a GUI backend. "
        f"{platform_info.gui_dependency_hint()}",
        flush=True,
    )
    if last_error:
        raise last_error
    raise webview.errors.WebViewException("No GUI backend available")  # type: ignore[attr-defined]


def main() -> None:
    api = GUIApi()
    atexit.register(api.shutdown)
    html_path = Path(__file__).resolve().parent / "ui" / "webview_ui" / "index.html"
    webview.create_window(
        "EspansoGUI",
        html=html_path.read_text(encoding="utf-8"),
        js_api=api,
        width=1024,
        height=768,
        min_size=(800, 600),
    )
    _start_webview(PLATFORM, Path(__file__).resolve())


if __name__ == "__main__":
    main()
