"""Field tables for the Espanso documents this editor understands.

The host tool adds options on its own schedule, so key names live here as
data. Parser, serializer and validator read these tables; anything missing
from them is carried through untouched as an unknown field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.errors import TypeMismatchError
from core.yaml_value import plain_copy


STR = "str"
BOOL = "bool"
INT = "int"
STR_LIST = "str_list"
STR_MAP = "str_map"
LIST = "list"
MAPPING = "mapping"

BACKENDS = ("Auto", "Clipboard", "Inject")
TOGGLE_KEYS = (
    "OFF",
    "CTRL",
    "ALT",
    "SHIFT",
    "META",
    "LEFT_CTRL",
    "LEFT_ALT",
    "LEFT_SHIFT",
    "LEFT_META",
    "RIGHT_CTRL",
    "RIGHT_ALT",
    "RIGHT_SHIFT",
    "RIGHT_META",
)
UPPERCASE_STYLES = ("uppercase", "capitalize", "capitalize_words")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    default: Any = None
    choices: Tuple[str, ...] = ()
    minimum: Optional[int] = None
    description: str = ""


def _table(*specs: FieldSpec) -> Dict[str, FieldSpec]:
    return {spec.name: spec for spec in specs}


CONFIG_FIELDS: Dict[str, FieldSpec] = _table(
    FieldSpec("label", STR, description="Name shown for this configuration"),
    FieldSpec("backend", STR, "Auto", choices=BACKENDS, description="Injection backend"),
    FieldSpec("enable", BOOL, True, description="Enable expansions"),
    FieldSpec("clipboard_threshold", INT, 100, minimum=0,
              description="Replacements longer than this use the clipboard backend"),
    FieldSpec("pre_paste_delay", INT, 300, minimum=0, description="Delay before pasting (ms)"),
    FieldSpec("toggle_key", STR, "OFF", choices=TOGGLE_KEYS,
              description="Key that toggles espanso when pressed twice"),
    FieldSpec("auto_restart", BOOL, True, description="Restart the worker when config changes"),
    FieldSpec("preserve_clipboard", BOOL, True, description="Restore clipboard after pasting"),
    FieldSpec("restore_clipboard_delay", INT, 300, minimum=0,
              description="Delay before restoring the clipboard (ms)"),
    FieldSpec("paste_shortcut_event_delay", INT, 10, minimum=0,
              description="Delay between paste shortcut key events (ms)"),
    FieldSpec("paste_shortcut", STR, description="Custom paste shortcut, e.g. CTRL+SHIFT+V"),
    FieldSpec("disable_x11_fast_inject", BOOL, False, description="Use slower, more compatible X11 injection"),
    FieldSpec("inject_delay", INT, minimum=0, description="Delay between injected characters (ms)"),
    FieldSpec("key_delay", INT, minimum=0, description="Delay between key events (ms)"),
    FieldSpec("backspace_delay", INT, minimum=0, description="Legacy alias of key_delay"),
    FieldSpec("evdev_modifier_delay", INT, 10, minimum=0, description="Wayland modifier delay (ms)"),
    FieldSpec("word_separators", STR_LIST, description="Characters that end a word"),
    FieldSpec("backspace_limit", INT, 5, minimum=0, description="Backspaces that undo an expansion"),
    FieldSpec("apply_patch", BOOL, True, description="Apply built-in application patches"),
    FieldSpec("keyboard_layout", STR_MAP, description="Keyboard layout (rules, model, layout, ...)"),
    FieldSpec("search_trigger", STR, description="Trigger that opens the search bar"),
    FieldSpec("search_shortcut", STR, "ALT+SPACE", description="Shortcut that opens the search bar"),
    FieldSpec("undo_backspace", BOOL, True, description="Backspace right after expanding undoes it"),
    FieldSpec("show_notifications", BOOL, True, description="Show desktop notifications"),
    FieldSpec("show_icon", BOOL, True, description="Show the tray icon"),
    FieldSpec("post_form_delay", INT, 200, minimum=0, description="Delay after a form closes (ms)"),
    FieldSpec("post_search_delay", INT, 200, minimum=0, description="Delay after the search bar closes (ms)"),
    FieldSpec("secure_input_notification", BOOL, True, description="Warn when secure input is active"),
    FieldSpec("emulate_alt_codes", BOOL, False, description="Emulate Windows alt codes"),
    FieldSpec("win32_exclude_orphan_events", BOOL, True, description="Ignore orphan key events on Windows"),
    FieldSpec("win32_keyboard_layout_cache_interval", INT, 2000,
              description="Keyboard layout cache interval on Windows (ms)"),
    FieldSpec("x11_use_xclip_backend", BOOL, False, description="Use xclip for clipboard on X11"),
    FieldSpec("x11_use_xdotool_backend", BOOL, False, description="Use xdotool for injection on X11"),
    FieldSpec("includes", STR_LIST, description="Match files to include"),
    FieldSpec("excludes", STR_LIST, description="Match files to exclude"),
    FieldSpec("extra_includes", STR_LIST, description="Additional includes"),
    FieldSpec("extra_excludes", STR_LIST, description="Additional excludes"),
    FieldSpec("use_standard_includes", BOOL, True, description="Include the standard match files"),
    FieldSpec("filter_title", STR, description="Window title filter (regex)"),
    FieldSpec("filter_class", STR, description="Window class filter (regex)"),
    FieldSpec("filter_exec", STR, description="Executable filter (regex)"),
    FieldSpec("filter_os", STR, description="Operating system filter"),
)

MATCH_FIELDS: Dict[str, FieldSpec] = _table(
    FieldSpec("trigger", STR, description="Text that activates the match"),
    FieldSpec("triggers", STR_LIST, description="Several triggers for the same match"),
    FieldSpec("regex", STR, description="Regex trigger"),
    FieldSpec("replace", STR, description="Plain-text replacement"),
    FieldSpec("markdown", STR, description="Markdown replacement"),
    FieldSpec("html", STR, description="HTML replacement"),
    FieldSpec("image_path", STR, description="Image replacement"),
    FieldSpec("form", STR, description="Form layout with [[field]] placeholders"),
    FieldSpec("form_fields", MAPPING, description="Per-field form options"),
    FieldSpec("vars", LIST, description="Match-local variables"),
    FieldSpec("label", STR, description="Label shown in the search bar"),
    FieldSpec("word", BOOL, False, description="Only expand on word boundaries"),
    FieldSpec("left_word", BOOL, False, description="Require a word boundary on the left"),
    FieldSpec("right_word", BOOL, False, description="Require a word boundary on the right"),
    FieldSpec("propagate_case", BOOL, False, description="Propagate trigger case to the replacement"),
    FieldSpec("uppercase_style", STR, choices=UPPERCASE_STYLES,
              description="How case propagation capitalizes"),
    FieldSpec("search_terms", STR_LIST, description="Extra search-bar keywords"),
    FieldSpec("passive_only", BOOL, False, description="Only expand in passive mode"),
)

MATCH_FILE_FIELDS: Dict[str, FieldSpec] = _table(
    FieldSpec("imports", STR_LIST, description="Other match files to import"),
    FieldSpec("global_vars", LIST, description="Variables shared by all matches in the file"),
)

# parsed separately into Match entries
MATCHES_KEY = "matches"

REPLACEMENT_KEYS = ("replace", "markdown", "html", "image_path")


def describe(table: Dict[str, FieldSpec]) -> list:
    """JSON-friendly listing used by the presentation layer to build forms."""
    return [
        {
            "name": spec.name,
            "kind": spec.kind,
            "default": spec.default,
            "choices": list(spec.choices),
            "minimum": spec.minimum,
            "description": spec.description,
        }
        for spec in table.values()
    ]


def coerce(spec: FieldSpec, value: Any, key: Optional[str] = None) -> Any:
    """Check `value` against `spec` and normalize it, or raise TypeMismatchError.

    `None` is kept as an explicit null so `key: ~` survives a round trip.
    """
    key = key or spec.name
    if value is None:
        return None
    if spec.kind == STR:
        return _coerce_str(value, key)
    if spec.kind == BOOL:
        if isinstance(value, bool):
            return value
        raise TypeMismatchError(key, "a boolean", value)
    if spec.kind == INT:
        if isinstance(value, int) and not isinstance(value, bool):
            return int(value)
        raise TypeMismatchError(key, "an integer", value)
    if spec.kind == STR_LIST:
        if not isinstance(value, (list, tuple)):
            raise TypeMismatchError(key, "a list of strings", value)
        return [_coerce_str(item, f"{key}[{index}]") for index, item in enumerate(value)]
    if spec.kind == STR_MAP:
        if not isinstance(value, dict):
            raise TypeMismatchError(key, "a mapping", value)
        return {str(getattr(k, "source", None) or k): _coerce_str(v, f"{key}.{k}") for k, v in value.items()}
    if spec.kind == LIST:
        if not isinstance(value, (list, tuple)):
            raise TypeMismatchError(key, "a list", value)
        return plain_copy(value)
    if spec.kind == MAPPING:
        if not isinstance(value, dict):
            raise TypeMismatchError(key, "a mapping", value)
        return plain_copy(value)
    return plain_copy(value)


def _coerce_str(value: Any, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # numbers loaded from a file keep their source text, e.g. `1.10`
        return getattr(value, "source", None) or str(value)
    raise TypeMismatchError(key, "a string", value)
