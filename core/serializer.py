from __future__ import annotations

from typing import Any, Dict, List

import yaml

from core.models import Config, Document, DocumentKind, Match, MatchFile
from core.parser import CORE_RESOLVERS
from core.schema import MATCHES_KEY, FieldSpec
from core.yaml_value import YamlValue


class EspansoDumper(yaml.SafeDumper):
    """SafeDumper that writes multi-line replacements as literal blocks.

    Strings that either YAML 1.1 or YAML 1.2 would read as another type, such
    as `12:30` or `0o17`, are quoted.
    """

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


EspansoDumper.add_representer(str, _represent_str)
for _tag, _regexp, _first in CORE_RESOLVERS:
    EspansoDumper.add_implicit_resolver(_tag, _regexp, _first)


def _ordered(
    key_order: List[str],
    table: Dict[str, FieldSpec],
    options: Dict[str, Any],
    unknown: Dict[str, YamlValue],
    extra: Dict[str, Any],
) -> Dict[str, Any]:
    """Lay out keys in source order, then new known keys, then new unknown keys."""
    values: Dict[str, Any] = dict(extra)
    values.update(options)
    for key, value in unknown.items():
        values[key] = value.to_python()

    out: Dict[str, Any] = {}
    for key in key_order:
        if key in values and key not in out:
            out[key] = values[key]
    for key in list(table) + list(extra):
        if key in values and key not in out:
            out[key] = values[key]
    for key in unknown:
        if key not in out:
            out[key] = values[key]
    return out


def match_to_python(match: Match) -> Dict[str, Any]:
    return _ordered(match.key_order, match.fields, match.options, match.unknown, {})


def config_to_python(config: Config) -> Dict[str, Any]:
    return _ordered(config.key_order, config.fields, config.options, config.unknown, {})


def match_file_to_python(match_file: MatchFile) -> Dict[str, Any]:
    entries = [match_to_python(match) for match in match_file.matches]
    return _ordered(
        match_file.key_order,
        match_file.fields,
        match_file.options,
        match_file.unknown,
        {MATCHES_KEY: entries},
    )


def to_python(document: Document) -> Dict[str, Any]:
    if document.kind == DocumentKind.CONFIG:
        return config_to_python(document)
    return match_file_to_python(document)


def dump_yaml(data: Any) -> str:
    return yaml.dump(
        data,
        Dumper=EspansoDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def serialize(document: Document) -> bytes:
    data = to_python(document)
    if not data:
        return b""
    return dump_yaml(data).encode("utf-8")
