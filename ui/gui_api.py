"""Backend surface exposed to the JavaScript front-end through pywebview.

`GUIApi` owns the workspace, one `EditSession` per open document and the
file watcher. Every public method returns a JSON-friendly dict; exceptions
from the core are turned into `{"status": "error", "detail": ...}` here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import webview

from core.backup_manager import BackupManager
from core.config_manager import ConfigManager
from core.edit_session import EditSession
from core.errors import DocumentIOError, ParseError, SessionBusyError, WorkspaceError
from core.file_system import FileSystem, LocalFileSystem
from core.models import Config, Document, DocumentKind, MatchFile
from core.parser import parse_match_file
from core.schema import CONFIG_FIELDS, MATCH_FIELDS, MATCH_FILE_FIELDS, describe
from core.serializer import match_to_python
from core.watcher_manager import WatcherManager
from core.workspace import Workspace
from core.yaml_value import bag_to_python


class WebviewDialogs:
    """File pickers backed by the active pywebview window.

    Both methods return None when the user cancels.
    """

    def _window(self) -> Any:
        try:
            return webview.windows[0]
        except IndexError:
            raise RuntimeError("No active window") from None

    def pick_file(self, directory: Optional[Path] = None) -> Optional[str]:
        result = self._window().create_file_dialog(
            webview.OPEN_DIALOG,
            directory=str(directory or ""),
            allow_multiple=False,
            file_types=("YAML files (*.yml;*.yaml)", "All files (*.*)"),
        )
        return result[0] if result else None

    def pick_directory(self, directory: Optional[Path] = None) -> Optional[str]:
        result = self._window().create_file_dialog(webview.FOLDER_DIALOG, directory=str(directory or ""))
        if not result:
            return None
        return result if isinstance(result, str) else result[0]


def _key(path: Any) -> str:
    return os.path.normpath(str(path))


def _public(result: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in result.items() if key != "error"}


def document_payload(document: Document) -> Dict[str, Any]:
    if document.kind == DocumentKind.CONFIG:
        config: Config = document
        return {
            "kind": config.kind.value,
            "options": dict(config.options),
            "effective": config.effective(),
            "unknown": bag_to_python(config.unknown),
        }
    match_file: MatchFile = document
    return {
        "kind": match_file.kind.value,
        "options": dict(match_file.options),
        "unknown": bag_to_python(match_file.unknown),
        "matches": [
            {**match.summary(), "fields": match_to_python(match)} for match in match_file.matches
        ],
    }


class GUIApi:
    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        fs: Optional[FileSystem] = None,
        dialogs: Optional[Any] = None,
        watcher_factory: Optional[Callable[[List[Path]], WatcherManager]] = None,
        espanso_dir: Optional[Path] = None,
    ) -> None:
        self._config_manager = config_manager or ConfigManager()
        self._fs = fs or LocalFileSystem()
        self._dialogs = dialogs or WebviewDialogs()
        self._watcher_factory = watcher_factory or WatcherManager
        self._watcher: Optional[WatcherManager] = None
        self._sessions: Dict[str, EditSession] = {}
        self._backups = BackupManager(self._config_manager.editor_backup_dir())
        self._workspace = self._make_workspace(espanso_dir or self._config_manager.get_espanso_dir())
        self._backups.source_root = self._workspace.root
        self._restart_watcher()
        print(f"[INFO] EspansoGUI ready for {self._workspace.root}", flush=True)

    def _make_workspace(self, root: Path) -> Workspace:
        return Workspace(Path(root), fs=self._fs, backups=self._backups)

    def _restart_watcher(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if not self._workspace.is_valid() or not isinstance(self._fs, LocalFileSystem):
            return
        paths = [self._workspace.config_path.parent, self._workspace.match_dir]
        self._watcher = self._watcher_factory(paths)
        self._watcher.start()

    def shutdown(self) -> None:
        print("[INFO] Shutting down EspansoGUI", flush=True)
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    # -------------------------
    # Settings & workspace
    # -------------------------
    def get_settings(self) -> Dict[str, Any]:
        valid = self._workspace.is_valid()
        return {
            "status": "success",
            "espansoDir": str(self._workspace.root),
            "valid": valid,
            "configPath": str(self._workspace.config_path),
            "matchFiles": self._match_file_list() if valid else [],
            "watching": bool(self._watcher and self._watcher.is_running()),
        }

    def _match_file_list(self) -> List[Dict[str, Any]]:
        return [
            {
                "path": str(path),
                "name": self._workspace.relative_name(path),
                "dirty": self._sessions.get(_key(path)) is not None and self._sessions[_key(path)].is_dirty,
            }
            for path in self._workspace.match_files()
        ]

    def set_espanso_dir(self, path: str) -> Dict[str, Any]:
        if not path or not path.strip():
            return {"status": "error", "detail": "Directory is required"}
        candidate = self._make_workspace(Path(path.strip()).expanduser())
        if not candidate.is_valid():
            return {
                "status": "error",
                "detail": f"{candidate.root} is not an Espanso directory (needs config/default.yml and match/)",
            }
        dirty = [s.path.name for s in self._sessions.values() if s.is_dirty]
        if dirty:
            return {"status": "error", "detail": f"Save or close first: {', '.join(dirty)}"}
        self._sessions.clear()
        self._workspace = candidate
        self._backups.source_root = candidate.root
        self._config_manager.set_espanso_dir(candidate.root)
        self._restart_watcher()
        return self.get_settings()

    def browse_espanso_dir(self) -> Dict[str, Any]:
        try:
            picked = self._dialogs.pick_directory(self._workspace.root)
        except RuntimeError as exc:
            return {"status": "error", "detail": f"Picker failed: {exc}"}
        if not picked:
            return {"status": "cancelled"}
        return self.set_espanso_dir(picked)

    def get_schema(self, kind: str) -> Dict[str, Any]:
        if kind == DocumentKind.CONFIG.value:
            return {"status": "success", "fields": describe(CONFIG_FIELDS)}
        return {
            "status": "success",
            "fields": describe(MATCH_FILE_FIELDS),
            "matchFields": describe(MATCH_FIELDS),
        }

    def create_match_file(self, name: str) -> Dict[str, Any]:
        try:
            path = self._workspace.create_match_file(name)
        except (WorkspaceError, DocumentIOError) as exc:
            return {"status": "error", "detail": str(exc)}
        return {"status": "success", "path": str(path), "matchFiles": self._match_file_list()}

    def rename_match_file(self, path: str, new_name: str) -> Dict[str, Any]:
        session = self._sessions.get(_key(path))
        if session is not None and session.is_dirty:
            return {"status": "error", "detail": "Save or discard changes before renaming"}
        try:
            target = self._workspace.rename_match_file(Path(path), new_name)
        except (WorkspaceError, DocumentIOError) as exc:
            return {"status": "error", "detail": str(exc)}
        self._sessions.pop(_key(path), None)
        return {"status": "success", "path": str(target), "matchFiles": self._match_file_list()}

    def delete_match_file(self, path: str) -> Dict[str, Any]:
        try:
            self._workspace.delete_match_file(Path(path))
        except (WorkspaceError, DocumentIOError, OSError) as exc:
            return {"status": "error", "detail": str(exc)}
        session = self._sessions.pop(_key(path), None)
        if session is not None:
            session.close()
        return {"status": "success", "matchFiles": self._match_file_list()}

    def import_match_file(self) -> Dict[str, Any]:
        """Copy a match file picked from anywhere into the match directory."""
        try:
            picked = self._dialogs.pick_file(self._workspace.root)
        except RuntimeError as exc:
            return {"status": "error", "detail": f"Picker failed: {exc}"}
        if not picked:
            return {"status": "cancelled"}
        source = Path(picked)
        try:
            data = self._fs.read(source)
            parse_match_file(data, source)
            target = self._workspace.match_dir / source.name
            if self._fs.exists(target):
                return {"status": "error", "detail": f"{target.name} already exists"}
            self._fs.write(target, data)
        except (ParseError, DocumentIOError) as exc:
            return {"status": "error", "detail": f"Cannot import {source.name}: {exc}"}
        return {"status": "success", "path": str(target), "matchFiles": self._match_file_list()}

    # -------------------------
    # Documents
    # -------------------------
    def open_config(self) -> Dict[str, Any]:
        return self.open_document(str(self._workspace.config_path))

    def open_document(self, path: str) -> Dict[str, Any]:
        key = _key(path)
        session = self._sessions.get(key)
        if session is None or not session.is_loaded:
            try:
                session = self._workspace.session_for(Path(path))
            except WorkspaceError as exc:
                return {"status": "error", "detail": str(exc)}
            result = session.load()
            if result["status"] != "success":
                return _public(result)
            self._sessions[key] = session
        return self.get_document(path)

    def get_document(self, path: str) -> Dict[str, Any]:
        session = self._sessions.get(_key(path))
        if session is None or session.document is None:
            return {"status": "error", "detail": "Document is not open"}
        return {"status": "success", "session": session.describe(), "document": document_payload(session.document)}

    def _with_session(self, path: str, action: Callable[[EditSession], Dict[str, Any]]) -> Dict[str, Any]:
        session = self._sessions.get(_key(path))
        if session is None:
            return {"status": "error", "detail": "Document is not open"}
        try:
            result = _public(action(session))
        except SessionBusyError as exc:
            return {"status": "error", "detail": str(exc)}
        result["session"] = session.describe()
        if session.document is not None:
            result["document"] = document_payload(session.document)
        return result

    def set_option(self, path: str, name: str, value: Any) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.set_option(name, value))

    def unset_option(self, path: str, name: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.unset_option(name))

    def add_match(self, path: str, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.add_match(**(values or {"trigger": "", "replace": ""})))

    def update_match(self, path: str, index: int, values: Dict[str, Any]) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.update_match(int(index), **values))

    def remove_match(self, path: str, index: int) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.remove_match(int(index)))

    def move_match(self, path: str, index: int, new_index: int) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.move_match(int(index), int(new_index)))

    def undo(self, path: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.undo())

    def revert(self, path: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.revert())

    def reset_to_defaults(self, path: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.reset_to_defaults())

    def list_backups(self, path: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: {"status": "success", "backups": s.list_backups()})

    def restore_backup(self, path: str, backup_name: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.restore_backup(backup_name))

    def validate(self, path: str) -> Dict[str, Any]:
        return self._with_session(
            path, lambda s: {"status": "success", "issues": [i.to_dict() for i in s.validate()]}
        )

    def save(self, path: str, confirm_warnings: bool = False) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.save(confirm_warnings=confirm_warnings))

    def force_save(self, path: str, confirm_warnings: bool = True) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.force_save(confirm_warnings=confirm_warnings))

    def reload(self, path: str) -> Dict[str, Any]:
        return self._with_session(path, lambda s: s.reload())

    def close_document(self, path: str) -> Dict[str, Any]:
        session = self._sessions.pop(_key(path), None)
        if session is None:
            return {"status": "success", "detail": "Not open"}
        return _public(session.close())

    # -------------------------
    # External changes
    # -------------------------
    def poll_changes(self) -> Dict[str, Any]:
        """Forward watcher events to the sessions they concern.

        The front-end calls this on a timer, so sessions are only touched
        from the UI thread.
        """
        if self._watcher is None:
            return {"status": "success", "changes": []}
        changes = []
        for event in self._watcher.poll_events():
            key = _key(event.src_path)
            entry: Dict[str, Any] = {"path": key, "event": event.event_type}
            session = self._sessions.get(key)
            if session is not None:
                try:
                    entry.update(_public(session.notify_external_change()))
                except SessionBusyError as exc:
                    entry.update({"status": "error", "detail": str(exc)})
            changes.append(entry)
        return {"status": "success", "changes": changes, "matchFiles": self._match_file_list()}
