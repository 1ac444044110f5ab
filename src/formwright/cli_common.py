"""Shared CLI helpers: state discovery, argument parsing, error reporting."""

from __future__ import annotations

import json as json_mod
import sys
from typing import Any, NoReturn

import click

from formwright.core import FORMWRIGHT_DIR_NAME, AppState, find_formwright_root, get_log_level
from formwright.logging import setup_logging
from formwright.models import FieldDescriptor, Template

_BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def get_state() -> AppState:
    """Discover .formwright/, enable logging, and load the application state."""
    try:
        formwright_dir = find_formwright_root()
    except FileNotFoundError:
        click.echo(f"No {FORMWRIGHT_DIR_NAME}/ found. Run 'formwright init' first.", err=True)
        sys.exit(1)
    setup_logging(formwright_dir, get_log_level(formwright_dir))
    return AppState.from_project(formwright_dir)


def fail(message: str, as_json: bool, **extra: Any) -> NoReturn:
    if as_json:
        click.echo(json_mod.dumps({"error": message, **extra}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def parse_field_spec(spec: str) -> dict[str, Any]:
    """Parse ``type[!]:label[:extra]`` into a partial field spec.

    ``!`` after the type makes the field optional. ``extra`` is a ``|``-separated
    option list for enum fields and the heading style (h1/h2/h3) for label fields.

    Raises:
        ValueError: On malformed input.
    """
    parts = spec.split(":", 2)
    if len(parts) < 2 or not parts[0]:
        msg = f"Invalid field spec '{spec}' (expected type:label[:extra])"
        raise ValueError(msg)
    field_type, label = parts[0], parts[1]
    result: dict[str, Any] = {}
    if field_type.endswith("!"):
        field_type = field_type[:-1]
        result["required"] = False
    result["type"] = field_type
    result["label"] = label
    if len(parts) == 3:
        if field_type == "enum":
            result["options"] = parts[2].split("|")
        elif field_type == "label":
            result["labelStyle"] = parts[2]
        else:
            msg = f"Field spec '{spec}': only enum and label fields take a third part"
            raise ValueError(msg)
    return result


def _coerce(field: FieldDescriptor, raw: str) -> Any:
    if field.type == "boolean":
        lowered = raw.strip().lower()
        if lowered in _BOOL_TRUE_VALUES:
            return True
        if lowered in _BOOL_FALSE_VALUES:
            return False
    return raw


def parse_values(template: Template, pairs: tuple[str, ...]) -> dict[str, Any]:
    """Turn ``FIELD=VALUE`` pairs into a value map.

    FIELD may be a field id or a field label. Boolean fields accept
    true/false/yes/no/on/off/1/0.

    Raises:
        ValueError: On a malformed pair or an unknown field.
    """
    by_key: dict[str, FieldDescriptor] = {}
    for _section, f in template.iter_fields():
        if f.takes_value:
            by_key.setdefault(f.label, f)
    for _section, f in template.iter_fields():
        if f.takes_value:
            by_key[f.id] = f

    values: dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            msg = f"Invalid value format: {pair} (expected FIELD=VALUE)"
            raise ValueError(msg)
        key, raw = pair.split("=", 1)
        found = by_key.get(key)
        if found is None:
            msg = f"Unknown field '{key}' in template '{template.name}'"
            raise ValueError(msg)
        values[found.id] = _coerce(found, raw)
    return values
