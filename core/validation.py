from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple

from core.models import Config, Document, DocumentKind, Match, MatchFile
from core.schema import INT, MATCHES_KEY, REPLACEMENT_KEYS, FieldSpec


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    severity: Severity
    field: str
    message: str
    entries: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "field": self.field,
            "message": self.message,
            "entries": list(self.entries),
        }


def has_errors(issues: List[ValidationIssue]) -> bool:
    return any(issue.severity == Severity.ERROR for issue in issues)


def has_warnings(issues: List[ValidationIssue]) -> bool:
    return any(issue.severity == Severity.WARNING for issue in issues)


def _check_options(
    table: Dict[str, FieldSpec], options: Dict[str, Any], prefix: str = "", entries: Tuple[int, ...] = ()
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for name, value in options.items():
        spec = table.get(name)
        if spec is None or value is None:
            continue
        ref = f"{prefix}{name}"
        if spec.choices and value not in spec.choices:
            issues.append(
                ValidationIssue(
                    Severity.WARNING,
                    ref,
                    f"'{value}' is not one of {', '.join(spec.choices)}",
                    entries,
                )
            )
        if spec.kind == INT and spec.minimum is not None and value < spec.minimum:
            issues.append(
                ValidationIssue(Severity.ERROR, ref, f"must be at least {spec.minimum}", entries)
            )
    return issues


def _check_regex(pattern: str, ref: str, entries: Tuple[int, ...]) -> List[ValidationIssue]:
    try:
        re.compile(pattern)
    except re.error as exc:
        return [ValidationIssue(Severity.ERROR, ref, f"invalid regular expression: {exc}", entries)]
    return []


def validate_config(config: Config) -> List[ValidationIssue]:
    issues = _check_options(config.fields, config.options)
    for name in ("filter_title", "filter_class", "filter_exec"):
        pattern = config.options.get(name)
        if pattern:
            issues.extend(_check_regex(pattern, name, ()))
    return issues


def validate_match(match: Match, index: int) -> List[ValidationIssue]:
    prefix = f"{MATCHES_KEY}[{index}]."
    entries = (index,)
    issues = _check_options(match.fields, match.options, prefix, entries)

    triggers = match.trigger_list()
    regex = match.options.get("regex")
    if not triggers and not regex:
        issues.append(
            ValidationIssue(Severity.ERROR, f"{prefix}trigger", "match has no trigger", entries)
        )
    if any(not trigger.strip() for trigger in triggers):
        issues.append(
            ValidationIssue(Severity.ERROR, f"{prefix}trigger", "trigger cannot be empty", entries)
        )
    if regex:
        issues.extend(_check_regex(regex, f"{prefix}regex", entries))

    if not match.is_form():
        has_content = any(
            isinstance(match.options.get(key), str) and match.options[key].strip()
            for key in REPLACEMENT_KEYS
        )
        if not has_content:
            issues.append(
                ValidationIssue(Severity.WARNING, f"{prefix}replace", "replacement is empty", entries)
            )
        if match.options.get("form_fields"):
            issues.append(
                ValidationIssue(
                    Severity.WARNING, f"{prefix}form_fields", "form_fields has no form to apply to", entries
                )
            )
    return issues


def validate_match_file(match_file: MatchFile) -> List[ValidationIssue]:
    issues = _check_options(match_file.fields, match_file.options)
    seen: Dict[str, List[int]] = {}
    for index, match in enumerate(match_file.matches):
        issues.extend(validate_match(match, index))
        # a match listing the same trigger twice only counts once
        for trigger in dict.fromkeys(match.trigger_list()):
            if trigger.strip():
                seen.setdefault(trigger, []).append(index)
    for trigger, indexes in seen.items():
        if len(indexes) > 1:
            refs = ", ".join(f"{MATCHES_KEY}[{i}]" for i in indexes)
            issues.append(
                ValidationIssue(
                    Severity.ERROR,
                    f"{MATCHES_KEY}.trigger",
                    f"duplicate trigger '{trigger}' in {refs}",
                    tuple(indexes),
                )
            )
    return issues


def validate(document: Document) -> List[ValidationIssue]:
    """Check a document without touching it; issues come back as data."""
    if document.kind == DocumentKind.CONFIG:
        return validate_config(document)
    return validate_match_file(document)
