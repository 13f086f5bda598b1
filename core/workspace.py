from __future__ import annotations

import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from core.backup_manager import BackupManager
from core.edit_session import EditSession
from core.errors import WorkspaceError
from core.file_system import FileSystem, LocalFileSystem
from core.models import DocumentKind, MatchFile
from core.serializer import serialize


VALID_FILE_NAME = re.compile(r"^[\w\-. ]+$")


@dataclass(frozen=True)
class EspansoLayout:
    """Where documents live relative to the Espanso root directory."""

    config_file: str = "config/default.yml"
    match_dir: str = "match"
    extensions: Tuple[str, ...] = (".yml", ".yaml")


def default_espanso_dir() -> Path:
    override = os.environ.get("ESPANSO_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    system = platform.system()
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "espanso"
    if system == "Windows":
        appdata = os.environ.get("APPDATA")
        return (Path(appdata) if appdata else Path.home() / "AppData" / "Roaming") / "espanso"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return (Path(xdg) if xdg else Path.home() / ".config") / "espanso"


def is_valid_file_name(name: str) -> bool:
    return bool(VALID_FILE_NAME.match(name)) and name.strip(" .") != ""


class Workspace:
    """One Espanso root: a config document plus a tree of match files."""

    def __init__(
        self,
        root: Path,
        fs: Optional[FileSystem] = None,
        layout: Optional[EspansoLayout] = None,
        backups: Optional[BackupManager] = None,
    ) -> None:
        self.root = Path(root)
        self.fs = fs or LocalFileSystem()
        self.layout = layout or EspansoLayout()
        self.backups = backups

    @property
    def config_path(self) -> Path:
        return self.root / self.layout.config_file

    @property
    def match_dir(self) -> Path:
        return self.root / self.layout.match_dir

    def is_valid(self) -> bool:
        return (
            self.fs.is_dir(self.config_path.parent)
            and self.fs.is_dir(self.match_dir)
            and self.fs.exists(self.config_path)
            and not self.fs.is_dir(self.config_path)
        )

    def is_match_file(self, path: Path) -> bool:
        path = Path(path)
        return path.suffix.lower() in self.layout.extensions and self.match_dir in path.parents

    def match_files(self) -> List[Path]:
        """All match documents under the match directory, recursively."""
        if not self.fs.is_dir(self.match_dir):
            return []
        found: List[Path] = []
        pending = [self.match_dir]
        while pending:
            directory = pending.pop()
            for entry in self.fs.list_dir(directory):
                if entry.name.startswith("."):
                    continue
                if self.fs.is_dir(entry):
                    pending.append(entry)
                elif entry.suffix.lower() in self.layout.extensions:
                    found.append(Path(entry))
        return sorted(found)

    def relative_name(self, path: Path) -> str:
        return Path(path).relative_to(self.match_dir).with_suffix("").as_posix()

    # -------------------------
    # Sessions
    # -------------------------
    def open_config(self) -> EditSession:
        return EditSession(self.config_path, DocumentKind.CONFIG, self.fs, self.backups)

    def open_match_file(self, path: Path) -> EditSession:
        path = Path(path)
        if not path.is_absolute() and self.match_dir not in path.parents:
            path = self.match_dir / path
        if not self.is_match_file(path):
            raise WorkspaceError(f"Not a match file: {path}")
        return EditSession(path, DocumentKind.MATCH_FILE, self.fs, self.backups)

    def session_for(self, path: Path) -> EditSession:
        if Path(path) == self.config_path:
            return self.open_config()
        return self.open_match_file(path)

    # -------------------------
    # Match file management
    # -------------------------
    def _match_path(self, name: str) -> Path:
        name = name.strip()
        for ext in self.layout.extensions:
            if name.lower().endswith(ext):
                name = name[: -len(ext)]
                break
        if not is_valid_file_name(name):
            raise WorkspaceError(f"Invalid file name: {name!r}")
        return self.match_dir / f"{name}{self.layout.extensions[0]}"

    def create_match_file(self, name: str) -> Path:
        path = self._match_path(name)
        if self.fs.exists(path):
            raise WorkspaceError(f"{path.name} already exists")
        self.fs.write(path, serialize(MatchFile(path=path)))
        print(f"[INFO] Created match file {path}", flush=True)
        return path

    def rename_match_file(self, path: Path, new_name: str) -> Path:
        path = Path(path)
        if not self.is_match_file(path):
            raise WorkspaceError(f"Not a match file: {path}")
        target = self._match_path(new_name).with_suffix(path.suffix)
        target = path.parent / target.name
        if target == path:
            return path
        if self.fs.exists(target):
            raise WorkspaceError(f"{target.name} already exists")
        self.fs.rename(path, target)
        print(f"[INFO] Renamed {path.name} to {target.name}", flush=True)
        return target

    def delete_match_file(self, path: Path) -> None:
        path = Path(path)
        if not self.is_match_file(path):
            raise WorkspaceError(f"Not a match file: {path}")
        if self.backups is not None and self.fs.exists(path):
            self.backups.backup_bytes(path, self.fs.read(path))
        self.fs.remove(path)
        print(f"[INFO] Deleted match file {path}", flush=True)
