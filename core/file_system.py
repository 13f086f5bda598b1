from __future__ import annotations

import os
import tempfile
from pathlib import Path, PurePath
from typing import Dict, List, Optional, Protocol

from core.errors import DocumentIOError, IOErrorKind


class FileSystem(Protocol):
    """Storage operations the editor core depends on."""

    def read(self, path: Path) -> bytes: ...

    def write(self, path: Path, data: bytes) -> None: ...

    def list_dir(self, path: Path) -> List[Path]: ...

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def remove(self, path: Path) -> None: ...

    def rename(self, source: Path, target: Path) -> None: ...


class LocalFileSystem:
    """Disk-backed `FileSystem`; every OSError surfaces as DocumentIOError."""

    def read(self, path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise DocumentIOError.from_os_error(path, exc) from exc

    def write(self, path: Path, data: bytes) -> None:
        path = Path(path)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise DocumentIOError.from_os_error(path, exc) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def list_dir(self, path: Path) -> List[Path]:
        try:
            return sorted(Path(path).iterdir())
        except OSError as exc:
            raise DocumentIOError.from_os_error(path, exc) from exc

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: Path) -> bool:
        return Path(path).is_dir()

    def remove(self, path: Path) -> None:
        try:
            Path(path).unlink()
        except OSError as exc:
            raise DocumentIOError.from_os_error(path, exc) from exc

    def rename(self, source: Path, target: Path) -> None:
        if Path(target).exists():
            raise DocumentIOError(target, IOErrorKind.OTHER, "target already exists")
        try:
            Path(source).rename(target)
        except OSError as exc:
            raise DocumentIOError.from_os_error(source, exc) from exc


class InMemoryFileSystem:
    """Dictionary-backed `FileSystem` for tests and previews."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None, dirs: Optional[List[str]] = None) -> None:
        self.files: Dict[PurePath, bytes] = {}
        self.dirs = {PurePath(name) for name in (dirs or [])}
        self.writes: List[PurePath] = []
        for name, data in (files or {}).items():
            self.files[PurePath(name)] = data

    def read(self, path: Path) -> bytes:
        key = PurePath(path)
        if key not in self.files:
            raise DocumentIOError(path, IOErrorKind.NOT_FOUND, "No such file")
        return self.files[key]

    def write(self, path: Path, data: bytes) -> None:
        key = PurePath(path)
        self.files[key] = bytes(data)
        self.writes.append(key)

    def list_dir(self, path: Path) -> List[Path]:
        base = PurePath(path)
        children = set()
        for key in list(self.files) + list(self.dirs):
            if base in key.parents:
                children.add(base / key.relative_to(base).parts[0])
        if not children and not self.is_dir(path):
            raise DocumentIOError(path, IOErrorKind.NOT_FOUND, "No such directory")
        return [Path(child) for child in sorted(children)]

    def exists(self, path: Path) -> bool:
        return PurePath(path) in self.files or self.is_dir(path)

    def is_dir(self, path: Path) -> bool:
        base = PurePath(path)
        if any(base == d or base in d.parents for d in self.dirs):
            return True
        return any(base in key.parents for key in self.files)

    def remove(self, path: Path) -> None:
        if self.files.pop(PurePath(path), None) is None:
            raise DocumentIOError(path, IOErrorKind.NOT_FOUND, "No such file")

    def rename(self, source: Path, target: Path) -> None:
        if PurePath(target) in self.files:
            raise DocumentIOError(target, IOErrorKind.OTHER, "target already exists")
        self.files[PurePath(target)] = self.read(source)
        del self.files[PurePath(source)]
