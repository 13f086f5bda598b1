"""In-memory Espanso documents: the top-level config and match files.

`Config` and `MatchFile` are independent kinds joined only by the
`Document` union; code that handles both dispatches on `doc.kind`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Union

from core.schema import (
    CONFIG_FIELDS,
    MATCH_FIELDS,
    MATCH_FILE_FIELDS,
    REPLACEMENT_KEYS,
    FieldSpec,
    coerce,
)
from core.yaml_value import YamlValue


class DocumentKind(str, Enum):
    CONFIG = "config"
    MATCH_FILE = "match_file"


def _get(table: Dict[str, FieldSpec], options: Dict[str, Any], name: str) -> Any:
    value = options.get(name)
    if value is None and name in table:
        return table[name].default
    return value


def _set(table: Dict[str, FieldSpec], options: Dict[str, Any], key_order: List[str], name: str, value: Any) -> None:
    spec = table.get(name)
    if spec is None:
        raise KeyError(f"Unknown option: {name}")
    options[name] = coerce(spec, value)
    if name not in key_order:
        key_order.append(name)


def _unset(options: Dict[str, Any], key_order: List[str], name: str) -> None:
    options.pop(name, None)
    if name in key_order:
        key_order.remove(name)


@dataclass
class Config:
    path: Optional[Path] = field(default=None, compare=False)
    options: Dict[str, Any] = field(default_factory=dict)
    unknown: Dict[str, YamlValue] = field(default_factory=dict)
    key_order: List[str] = field(default_factory=list, compare=False)

    kind: ClassVar[DocumentKind] = DocumentKind.CONFIG
    fields: ClassVar[Dict[str, FieldSpec]] = CONFIG_FIELDS

    def get(self, name: str) -> Any:
        """Value of a known option, falling back to its documented default."""
        return _get(self.fields, self.options, name)

    def is_set(self, name: str) -> bool:
        return name in self.options

    def set(self, name: str, value: Any) -> None:
        _set(self.fields, self.options, self.key_order, name, value)

    def unset(self, name: str) -> None:
        _unset(self.options, self.key_order, name)

    def reset(self) -> None:
        """Drop every known option. Unknown keys are kept."""
        for name in list(self.options):
            _unset(self.options, self.key_order, name)

    def effective(self) -> Dict[str, Any]:
        return {name: self.get(name) for name in self.fields}


@dataclass
class Match:
    options: Dict[str, Any] = field(default_factory=dict)
    unknown: Dict[str, YamlValue] = field(default_factory=dict)
    key_order: List[str] = field(default_factory=list, compare=False)

    fields: ClassVar[Dict[str, FieldSpec]] = MATCH_FIELDS

    @classmethod
    def create(cls, **values: Any) -> "Match":
        match = cls()
        for name, value in values.items():
            match.set(name, value)
        return match

    def get(self, name: str) -> Any:
        return _get(self.fields, self.options, name)

    def set(self, name: str, value: Any) -> None:
        _set(self.fields, self.options, self.key_order, name, value)

    def unset(self, name: str) -> None:
        _unset(self.options, self.key_order, name)

    @property
    def trigger(self) -> Optional[str]:
        return self.options.get("trigger")

    @property
    def label(self) -> str:
        return self.options.get("label") or ""

    def trigger_list(self) -> List[str]:
        triggers: List[str] = []
        if self.options.get("trigger") is not None:
            triggers.append(self.options["trigger"])
        triggers.extend(self.options.get("triggers") or [])
        return triggers

    def is_form(self) -> bool:
        return bool(self.options.get("form"))

    def content_kind(self) -> str:
        if self.is_form():
            return "form"
        names = {"replace": "text", "markdown": "markdown", "html": "html", "image_path": "image"}
        for key in REPLACEMENT_KEYS:
            if self.options.get(key) is not None:
                return names[key]
        return "none"

    def content_key(self) -> str:
        """Field the editor shows as the match body."""
        if self.is_form():
            return "form"
        for key in REPLACEMENT_KEYS:
            if self.options.get(key) is not None:
                return key
        return "replace"

    def summary(self) -> Dict[str, Any]:
        return {
            "triggers": self.trigger_list(),
            "regex": self.options.get("regex") or "",
            "label": self.label,
            "content": self.content_kind(),
            "contentKey": self.content_key(),
            "replace": self.options.get("replace") or "",
        }


@dataclass
class MatchFile:
    path: Optional[Path] = field(default=None, compare=False)
    matches: List[Match] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    unknown: Dict[str, YamlValue] = field(default_factory=dict)
    key_order: List[str] = field(default_factory=list, compare=False)

    kind: ClassVar[DocumentKind] = DocumentKind.MATCH_FILE
    fields: ClassVar[Dict[str, FieldSpec]] = MATCH_FILE_FIELDS

    def get(self, name: str) -> Any:
        return _get(self.fields, self.options, name)

    def set(self, name: str, value: Any) -> None:
        _set(self.fields, self.options, self.key_order, name, value)

    def unset(self, name: str) -> None:
        _unset(self.options, self.key_order, name)

    def find(self, trigger: str) -> Optional[int]:
        for index, match in enumerate(self.matches):
            if trigger in match.trigger_list():
                return index
        return None


Document = Union[Config, MatchFile]


def new_document(kind: DocumentKind, path: Optional[Path] = None) -> Document:
    if kind == DocumentKind.CONFIG:
        return Config(path=path)
    return MatchFile(path=path)
