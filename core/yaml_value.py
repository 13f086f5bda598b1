from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class YamlKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


@dataclass(frozen=True)
class YamlValue:
    """A YAML node kept verbatim for keys the editor does not understand.

    Sequences hold a tuple of `YamlValue`; mappings hold a tuple of
    (key, `YamlValue`) pairs so source order is part of the value.
    """

    kind: YamlKind
    value: Any = None

    @classmethod
    def from_python(cls, obj: Any) -> "YamlValue":
        if obj is None:
            return cls(YamlKind.NULL)
        # bool before int: bool is an int subclass
        if isinstance(obj, bool):
            return cls(YamlKind.BOOL, obj)
        if isinstance(obj, int):
            return cls(YamlKind.INT, int(obj))
        if isinstance(obj, float):
            return cls(YamlKind.FLOAT, float(obj))
        if isinstance(obj, str):
            return cls(YamlKind.STRING, obj)
        if isinstance(obj, (datetime.date, datetime.datetime)):
            return cls(YamlKind.STRING, obj.isoformat())
        if isinstance(obj, bytes):
            return cls(YamlKind.STRING, obj.decode("utf-8", errors="replace"))
        if isinstance(obj, (list, tuple, set)):
            return cls(YamlKind.SEQUENCE, tuple(cls.from_python(item) for item in obj))
        if isinstance(obj, dict):
            return cls(
                YamlKind.MAPPING,
                tuple((str(getattr(key, "source", None) or key), cls.from_python(item)) for key, item in obj.items()),
            )
        return cls(YamlKind.STRING, str(obj))

    def to_python(self) -> Any:
        if self.kind == YamlKind.SEQUENCE:
            return [item.to_python() for item in self.value]
        if self.kind == YamlKind.MAPPING:
            return {key: item.to_python() for key, item in self.value}
        return self.value

    def __repr__(self) -> str:
        return f"YamlValue({self.kind.value}, {self.to_python()!r})"


def bag_from_python(items: Dict[str, Any]) -> Dict[str, YamlValue]:
    return {str(key): YamlValue.from_python(value) for key, value in items.items()}


def bag_to_python(bag: Dict[str, YamlValue]) -> Dict[str, Any]:
    return {key: value.to_python() for key, value in bag.items()}


def plain_copy(obj: Any) -> Any:
    """Normalize a loaded YAML object into plain lists/dicts/scalars."""
    return YamlValue.from_python(obj).to_python()
