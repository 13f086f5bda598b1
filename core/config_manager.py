from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from core.workspace import default_espanso_dir


class ConfigManager:
    """Editor preferences: the remembered Espanso directory and backup root.

    Stored as JSON in `~/.espansogui/preferences.json`; `base_dir` lets tests
    point it somewhere else.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base = Path(base_dir) if base_dir is not None else Path.home() / ".espansogui"
        self._base.mkdir(parents=True, exist_ok=True)
        self._preferences_path = self._base / "preferences.json"
        self._preferences: Dict[str, Any] = self._load_preferences()

    def _load_preferences(self) -> Dict[str, Any]:
        if not self._preferences_path.exists():
            return {}
        try:
            data = json.loads(self._preferences_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            print(f"[WARNING] Ignoring unreadable preferences: {exc}", flush=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _save_preferences(self) -> None:
        try:
            self._preferences_path.write_text(json.dumps(self._preferences, indent=2), encoding="utf-8")
        except OSError as exc:
            print(f"[WARNING] Could not save preferences: {exc}", flush=True)

    def get_preferences(self) -> Dict[str, Any]:
        return dict(self._preferences)

    def set_preference(self, key: str, value: Any) -> None:
        self._preferences[key] = value
        self._save_preferences()

    def get_espanso_dir(self) -> Path:
        stored = self._preferences.get("espansoDir")
        if stored:
            return Path(stored).expanduser()
        return default_espanso_dir()

    def set_espanso_dir(self, path: Path) -> None:
        self.set_preference("espansoDir", str(Path(path).expanduser()))

    def get_data_root(self) -> Path:
        override = self._preferences.get("storageRoot")
        if override:
            root = Path(override).expanduser()
            try:
                root.mkdir(parents=True, exist_ok=True)
                return root
            except OSError as exc:
                print(f"[WARNING] Storage root {root} unavailable: {exc}", flush=True)
        return self._base

    def editor_backup_dir(self) -> Path:
        path = self.get_data_root() / "editor_backups"
        path.mkdir(parents=True, exist_ok=True)
        return path
