"""Working copy of one open Espanso document.

A session moves through UNLOADED -> CLEAN -> DIRTY -> SAVED. It owns its
document exclusively; nothing else holds a reference to the model, and the
presentation layer reaches it only through the session. Mutating methods
are not reentrant: a second caller entering while one is active gets
`SessionBusyError` instead of interleaving with it.

Every operation returns a status dict the way the rest of the GUI backend
does: `{"status": ..., "detail": ..., "state": ...}` plus extras such as
`issues` or the caught `error`.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from core.backup_manager import BackupManager
from core.errors import DocumentIOError, IOErrorKind, ParseError, SessionBusyError, TypeMismatchError
from core.file_system import FileSystem, LocalFileSystem
from core.models import Document, DocumentKind, Match, MatchFile, new_document
from core.parser import parse_document
from core.serializer import serialize, to_python
from core.validation import ValidationIssue, has_errors, has_warnings, validate


class SessionState(str, Enum):
    UNLOADED = "unloaded"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVED = "saved"


EDIT_ERRORS = (TypeMismatchError, KeyError, IndexError, ValueError, TypeError)


class EditSession:
    def __init__(
        self,
        path: Path,
        kind: DocumentKind,
        fs: Optional[FileSystem] = None,
        backups: Optional[BackupManager] = None,
        history_limit: int = 100,
    ) -> None:
        self.path = Path(path)
        self.kind = kind
        self.fs = fs or LocalFileSystem()
        self.backups = backups
        self.history_limit = max(1, history_limit)
        self.state = SessionState.UNLOADED
        self.document: Optional[Document] = None
        self.snapshot: Optional[Document] = None
        self.conflict = False
        self.last_error: Optional[Exception] = None
        self._history: List[Document] = []
        self._disk_bytes: Optional[bytes] = None
        self._lock = threading.Lock()

    # -------------------------
    # State helpers
    # -------------------------
    @property
    def is_loaded(self) -> bool:
        return self.state != SessionState.UNLOADED

    @property
    def is_dirty(self) -> bool:
        return self.state == SessionState.DIRTY

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError(f"Session for {self.path.name} is busy")
        try:
            yield
        finally:
            self._lock.release()

    def _result(self, status: str, detail: str = "", **extra: Any) -> Dict[str, Any]:
        result = {"status": status, "detail": detail, "state": self.state.value, "conflict": self.conflict}
        result.update(extra)
        return result

    def _error(self, exc: Exception, detail: Optional[str] = None) -> Dict[str, Any]:
        self.last_error = exc
        kind = getattr(exc, "kind", type(exc).__name__)
        extra: Dict[str, Any] = {"error": exc, "kind": getattr(kind, "value", kind)}
        if isinstance(exc, TypeMismatchError):
            extra["field"] = exc.key
        return self._result("error", detail or str(exc), **extra)

    def _read_and_parse(self) -> Document:
        data = self.fs.read(self.path)
        document = parse_document(self.kind, data, self.path)
        self._disk_bytes = data
        return document

    def _install(self, document: Document, state: SessionState) -> None:
        self.document = document
        self.snapshot = copy.deepcopy(document)
        self._history.clear()
        self.conflict = False
        self.last_error = None
        self.state = state

    # -------------------------
    # Lifecycle
    # -------------------------
    def load(self) -> Dict[str, Any]:
        """Read and parse the file; on failure the session stays UNLOADED."""
        with self._guard():
            try:
                document = self._read_and_parse()
            except (ParseError, DocumentIOError) as exc:
                print(f"[ERROR] Failed to load {self.path}: {exc}", flush=True)
                self.state = SessionState.UNLOADED
                self.document = None
                self.snapshot = None
                return self._error(exc)
            self._install(document, SessionState.CLEAN)
            return self._result("success", f"Loaded {self.path.name}")

    def start_new(self, document: Optional[Document] = None) -> Dict[str, Any]:
        """Begin editing a document that does not exist on disk yet."""
        with self._guard():
            document = document or new_document(self.kind, self.path)
            document.path = self.path
            self._install(new_document(self.kind, self.path), SessionState.DIRTY)
            self.document = document
            self._disk_bytes = None
            return self._result("success", f"New {self.kind.value} {self.path.name}")

    def close(self) -> Dict[str, Any]:
        """Drop the working copy, discarding unsaved edits."""
        with self._guard():
            discarded = self.state == SessionState.DIRTY
            self.document = None
            self.snapshot = None
            self._history.clear()
            self._disk_bytes = None
            self.conflict = False
            self.state = SessionState.UNLOADED
            return self._result("success", "Closed", discarded=discarded)

    # -------------------------
    # Editing
    # -------------------------
    def edit(self, mutator: Callable[[Document], Any], detail: str = "Edited") -> Dict[str, Any]:
        """Apply `mutator` to the working copy.

        If the mutator raises, the working copy is restored and the error is
        returned; the session state does not change.
        """
        with self._guard():
            if self.document is None:
                return self._result("error", "No document loaded")
            before = copy.deepcopy(self.document)
            try:
                mutator(self.document)
            except EDIT_ERRORS as exc:
                self.document = before
                return self._error(exc)
            self._history.append(before)
            del self._history[: -self.history_limit]
            self.state = SessionState.DIRTY
            return self._result("success", detail)

    def set_option(self, name: str, value: Any) -> Dict[str, Any]:
        return self.edit(lambda doc: doc.set(name, value), f"Set {name}")

    def unset_option(self, name: str) -> Dict[str, Any]:
        return self.edit(lambda doc: doc.unset(name), f"Reset {name} to default")

    def _match_file(self, document: Document) -> MatchFile:
        if document.kind != DocumentKind.MATCH_FILE:
            raise TypeError(f"{self.path.name} is not a match file")
        return document

    def add_match(self, match: Optional[Match] = None, index: Optional[int] = None, **values: Any) -> Dict[str, Any]:
        def mutate(document: Document) -> None:
            entry = match if match is not None else Match.create(**values)
            matches = self._match_file(document).matches
            matches.insert(len(matches) if index is None else index, entry)

        return self.edit(mutate, "Added match")

    def update_match(self, index: int, **values: Any) -> Dict[str, Any]:
        """Set fields on one match; a value of None removes the field."""

        def mutate(document: Document) -> None:
            entry = self._match_file(document).matches[index]
            for name, value in values.items():
                if value is None:
                    entry.unset(name)
                else:
                    entry.set(name, value)

        return self.edit(mutate, f"Updated match {index}")

    def remove_match(self, index: int) -> Dict[str, Any]:
        return self.edit(lambda doc: self._match_file(doc).matches.pop(index), f"Removed match {index}")

    def move_match(self, index: int, new_index: int) -> Dict[str, Any]:
        def mutate(document: Document) -> None:
            matches = self._match_file(document).matches
            if not 0 <= new_index < len(matches):
                raise IndexError(f"Position {new_index} is out of range")
            matches.insert(new_index, matches.pop(index))

        return self.edit(mutate, f"Moved match {index} to {new_index}")

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Clear every known config option; unknown keys stay. Undoable."""

        def mutate(document: Document) -> None:
            if document.kind != DocumentKind.CONFIG:
                raise TypeError(f"{self.path.name} is not a configuration file")
            document.reset()

        return self.edit(mutate, "Reset configuration to defaults")

    def list_backups(self) -> List[Dict[str, Any]]:
        if self.backups is None:
            return []
        return self.backups.list_backups(self.path)

    def restore_backup(self, backup_name: str) -> Dict[str, Any]:
        """Replace the working copy with a backup of this file.

        The restored content is an ordinary edit: the session turns DIRTY,
        `undo()` brings the previous copy back and nothing is written until
        `save()`.
        """
        with self._guard():
            if self.document is None:
                return self._result("error", "No document loaded")
            if self.backups is None:
                return self._result("error", "Backups are not enabled")
            if backup_name not in {item["name"] for item in self.backups.list_backups(self.path)}:
                return self._result("error", f"{backup_name} is not a backup of {self.path.name}")
            try:
                document = parse_document(self.kind, self.backups.read_backup(backup_name), self.path)
            except (ParseError, DocumentIOError, OSError) as exc:
                print(f"[ERROR] Failed to restore {backup_name}: {exc}", flush=True)
                return self._error(exc)
            self._history.append(self.document)
            del self._history[: -self.history_limit]
            self.document = document
            self.state = SessionState.DIRTY
            print(f"[INFO] Restored {backup_name} into {self.path.name}", flush=True)
            return self._result("success", f"Restored {backup_name}; save to keep it")

    def undo(self) -> Dict[str, Any]:
        with self._guard():
            if not self._history:
                return self._result("error", "Nothing to undo")
            self.document = self._history.pop()
            self.state = SessionState.CLEAN if self.document == self.snapshot else SessionState.DIRTY
            return self._result("success", "Undone")

    def revert(self) -> Dict[str, Any]:
        """Return to the last loaded or saved snapshot."""
        with self._guard():
            if self.snapshot is None:
                return self._result("error", "No document loaded")
            self.document = copy.deepcopy(self.snapshot)
            self._history.clear()
            self.state = SessionState.CLEAN
            return self._result("success", "Reverted to last saved version")

    # -------------------------
    # Validation & saving
    # -------------------------
    def validate(self) -> List[ValidationIssue]:
        if self.document is None:
            return []
        return validate(self.document)

    def save(self, confirm_warnings: bool = True) -> Dict[str, Any]:
        """Validate and write. Errors refuse the save; warnings need confirmation."""
        return self._save(confirm_warnings, force=False)

    def force_save(self, confirm_warnings: bool = True) -> Dict[str, Any]:
        """Save over a file that changed on disk since it was loaded."""
        return self._save(confirm_warnings, force=True)

    def _save(self, confirm_warnings: bool, force: bool) -> Dict[str, Any]:
        with self._guard():
            if self.document is None:
                return self._result("error", "No document loaded")
            if self.conflict and not force:
                return self._result(
                    "conflict", f"{self.path.name} changed on disk; reload or overwrite it"
                )
            issues = validate(self.document)
            payload = [issue.to_dict() for issue in issues]
            if has_errors(issues):
                return self._result("refused", "Fix the errors before saving", issues=payload)
            if has_warnings(issues) and not confirm_warnings:
                return self._result("needs_confirmation", "Save with warnings?", issues=payload)

            data = serialize(self.document)
            try:
                self._backup_existing()
                self.fs.write(self.path, data)
            except (DocumentIOError, OSError) as exc:
                print(f"[ERROR] Failed to save {self.path}: {exc}", flush=True)
                return self._error(exc)

            self._disk_bytes = data
            self.snapshot = copy.deepcopy(self.document)
            self.conflict = False
            self.last_error = None
            self.state = SessionState.SAVED
            print(f"[INFO] Saved {self.path}", flush=True)
            return self._result("success", f"Saved {self.path.name}", issues=payload)

    def _backup_existing(self) -> None:
        if self.backups is None or not self.fs.exists(self.path):
            return
        current = self.fs.read(self.path)
        if current:
            self.backups.backup_bytes(self.path, current)

    # -------------------------
    # External changes
    # -------------------------
    def notify_external_change(self) -> Dict[str, Any]:
        """Called when the file changed on disk.

        A clean session reloads; a dirty one is flagged as a conflict and
        keeps its edits until `reload()` or `force_save()` resolves it.
        """
        with self._guard():
            if self.state == SessionState.UNLOADED:
                return self._result("ignored", "Session not loaded")
            try:
                current = self.fs.read(self.path)
            except DocumentIOError as exc:
                if exc.kind != IOErrorKind.NOT_FOUND:
                    return self._error(exc)
                current = None
            if current is not None and current == self._disk_bytes:
                return self._result("unchanged", "File on disk matches the editor")
            if self.state == SessionState.DIRTY or current is None:
                self.conflict = True
                detail = "deleted on disk" if current is None else "changed on disk"
                print(f"[WARNING] {self.path.name} {detail} while it has unsaved edits", flush=True)
                return self._result("conflict", f"{self.path.name} {detail}")
        return self.reload()

    def reload(self) -> Dict[str, Any]:
        """Re-read the file, discarding local edits.

        If the file on disk no longer parses, the working copy is kept and the
        error is returned.
        """
        with self._guard():
            try:
                document = self._read_and_parse()
            except (ParseError, DocumentIOError) as exc:
                print(f"[ERROR] Failed to reload {self.path}: {exc}", flush=True)
                return self._error(exc)
            self._install(document, SessionState.CLEAN)
            return self._result("reloaded", f"Reloaded {self.path.name}")

    # -------------------------
    # Presentation helpers
    # -------------------------
    def diff(self) -> Dict[str, List[str]]:
        """Top-level keys (and match positions) that differ from the snapshot."""
        if self.document is None or self.snapshot is None:
            return {"added": [], "removed": [], "changed": []}
        old = _flatten(to_python(self.snapshot))
        new = _flatten(to_python(self.document))
        return {
            "added": [key for key in new if key not in old],
            "removed": [key for key in old if key not in new],
            "changed": [key for key in new if key in old and new[key] != old[key]],
        }

    def describe(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "name": self.path.name,
            "kind": self.kind.value,
            "state": self.state.value,
            "dirty": self.is_dirty,
            "conflict": self.conflict,
            "canUndo": self.can_undo,
            "issues": [issue.to_dict() for issue in self.validate()],
        }


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "matches" and isinstance(value, list):
            for index, entry in enumerate(value):
                flat[f"matches[{index}]"] = entry
        else:
            flat[key] = value
    return flat
