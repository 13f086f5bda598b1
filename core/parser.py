from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from core.errors import MalformedYamlError, TypeMismatchError
from core.models import Config, Document, DocumentKind, Match, MatchFile
from core.schema import MATCHES_KEY, FieldSpec, coerce
from core.yaml_value import YamlValue


class SourceInt(int):
    """An int read from a plain scalar, remembering how it was written."""

    source = ""


class SourceFloat(float):
    """A float read from a plain scalar, remembering how it was written."""

    source = ""


INT_TAG = "tag:yaml.org,2002:int"
FLOAT_TAG = "tag:yaml.org,2002:float"

# YAML 1.2 core schema. `010` is decimal, `0b1`, `1_000` and `12:30` are text.
CORE_RESOLVERS = [
    ("tag:yaml.org,2002:bool", re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"), list("tTfF")),
    (INT_TAG, re.compile(r"^(?:[-+]?[0-9]+|0o[0-7]+|0x[0-9a-fA-F]+)$"), list("-+0123456789")),
    (
        FLOAT_TAG,
        re.compile(
            r"^(?:[-+]?(?:\.[0-9]+|[0-9]+\.[0-9]*|[0-9]+(?:\.[0-9]*)?[eE][-+]?[0-9]+)"
            r"|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"
        ),
        list("-+0123456789."),
    ),
]


class EspansoLoader(yaml.SafeLoader):
    """SafeLoader with YAML 1.2 scalars, matching how Espanso reads its files.

    `OFF`/`yes`/`on` stay strings (`toggle_key: OFF` is common), dates and
    sexagesimal numbers stay strings, and numbers keep their source text so a
    string field like `trigger: 1.10` is read back exactly as written.
    """

    def construct_core_int(self, node):
        text = self.construct_scalar(node)
        try:
            if text.startswith("0o"):
                value = int(text[2:], 8)
            elif text.startswith("0x"):
                value = int(text[2:], 16)
            else:
                value = int(text, 10)
        except ValueError as exc:
            raise yaml.constructor.ConstructorError(
                None, None, f"invalid integer {text!r}", node.start_mark
            ) from exc
        number = SourceInt(value)
        number.source = text
        return number

    def construct_core_float(self, node):
        text = self.construct_scalar(node)
        try:
            number = SourceFloat(self.construct_yaml_float(node))
        except ValueError as exc:
            raise yaml.constructor.ConstructorError(
                None, None, f"invalid float {text!r}", node.start_mark
            ) from exc
        number.source = text
        return number


EspansoLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in ("tag:yaml.org,2002:bool", "tag:yaml.org,2002:timestamp", INT_TAG, FLOAT_TAG)
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
for _tag, _regexp, _first in CORE_RESOLVERS:
    EspansoLoader.add_implicit_resolver(_tag, _regexp, _first)
EspansoLoader.add_constructor(INT_TAG, EspansoLoader.construct_core_int)
EspansoLoader.add_constructor(FLOAT_TAG, EspansoLoader.construct_core_float)


def _decode(data: Union[bytes, str]) -> str:
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedYamlError(f"File is not valid UTF-8: {exc}") from exc
    return data


def is_yaml_empty(text: str) -> bool:
    """True when the text holds only blank lines and comments."""
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return False
    return True


def load_mapping(data: Union[bytes, str]) -> Dict[str, Any]:
    text = _decode(data)
    if is_yaml_empty(text):
        return {}
    try:
        loaded = yaml.load(text, Loader=EspansoLoader)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark
        line = mark.line + 1 if mark is not None else None
        column = mark.column + 1 if mark is not None else None
        raise MalformedYamlError(exc.problem or str(exc), line, column) from exc
    except yaml.YAMLError as exc:
        raise MalformedYamlError(str(exc)) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise MalformedYamlError(f"Expected a mapping at the top level, got {type(loaded).__name__}")
    return loaded


def _split(
    raw: Dict[Any, Any], table: Dict[str, FieldSpec], prefix: str = "", skip: Tuple[str, ...] = ()
) -> Tuple[Dict[str, Any], Dict[str, YamlValue], List[str]]:
    options: Dict[str, Any] = {}
    unknown: Dict[str, YamlValue] = {}
    order: List[str] = []
    for raw_key, value in raw.items():
        key = str(getattr(raw_key, "source", None) or raw_key)
        order.append(key)
        if key in skip:
            continue
        spec = table.get(key)
        if spec is None:
            unknown[key] = YamlValue.from_python(value)
        else:
            options[key] = coerce(spec, value, f"{prefix}{key}")
    return options, unknown, order


def parse_config(data: Union[bytes, str], path: Optional[Path] = None) -> Config:
    raw = load_mapping(data)
    options, unknown, order = _split(raw, Config.fields)
    return Config(path=path, options=options, unknown=unknown, key_order=order)


def parse_match(raw: Any, index: int = 0) -> Match:
    key = f"{MATCHES_KEY}[{index}]"
    if not isinstance(raw, dict):
        raise TypeMismatchError(key, "a mapping", raw)
    options, unknown, order = _split(raw, Match.fields, prefix=f"{key}.")
    return Match(options=options, unknown=unknown, key_order=order)


def parse_match_file(data: Union[bytes, str], path: Optional[Path] = None) -> MatchFile:
    raw = load_mapping(data)
    options, unknown, order = _split(raw, MatchFile.fields, skip=(MATCHES_KEY,))
    entries = raw.get(MATCHES_KEY)
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise TypeMismatchError(MATCHES_KEY, "a list", entries)
    matches = [parse_match(entry, index) for index, entry in enumerate(entries)]
    return MatchFile(path=path, matches=matches, options=options, unknown=unknown, key_order=order)


def parse_document(kind: DocumentKind, data: Union[bytes, str], path: Optional[Path] = None) -> Document:
    if kind == DocumentKind.CONFIG:
        return parse_config(data, path)
    return parse_match_file(data, path)
