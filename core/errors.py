from __future__ import annotations

import errno
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class ParseError(Exception):
    """Base class for documents that cannot be turned into a model."""

    kind = "parse"


class MalformedYamlError(ParseError):
    """The bytes are not valid YAML, or the root is not a mapping."""

    kind = "malformed"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)


class TypeMismatchError(ParseError):
    """A recognized key holds a value of the wrong type."""

    kind = "type_mismatch"

    def __init__(self, key: str, expected: str, actual: Any) -> None:
        self.key = key
        self.expected = expected
        self.actual = type(actual).__name__
        super().__init__(f"'{key}' should be {expected}, got {self.actual}")


class IOErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


class DocumentIOError(Exception):
    """File-system failure scoped to one document."""

    def __init__(self, path: Path, kind: IOErrorKind, message: str) -> None:
        self.path = Path(path)
        self.kind = kind
        super().__init__(f"{path}: {message}")

    @classmethod
    def from_os_error(cls, path: Path, exc: OSError) -> "DocumentIOError":
        if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT:
            kind = IOErrorKind.NOT_FOUND
        elif isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
            kind = IOErrorKind.PERMISSION_DENIED
        else:
            kind = IOErrorKind.OTHER
        return cls(path, kind, exc.strerror or str(exc))


class SessionBusyError(RuntimeError):
    """An edit session was entered while another operation held it."""


class WorkspaceError(Exception):
    """Invalid request against the Espanso directory layout."""
