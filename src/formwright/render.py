"""Plain-text rendering of templates and filled-in values.

Rendering holds no state: each field is a pure function of
(field descriptor, value) -> display lines, dispatched on the field type.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from formwright.models import FieldDescriptor, Template

_HEADING_MARKS = {"h1": "#", "h2": "##", "h3": "###"}


def render_field(field: FieldDescriptor, value: Any = None, error: str | None = None) -> list[str]:
    """Display lines for one field."""
    if field.type == "label":
        return [f"{_HEADING_MARKS.get(field.label_style or 'h2', '##')} {field.label}"]

    marker = " *" if field.required else ""
    if field.type == "boolean":
        box = "[x]" if value is True else "[ ]"
        lines = [f"{box} {field.label}{marker}"]
    elif field.type == "enum":
        shown = value if value not in (None, "") else "(choose one)"
        lines = [f"{field.label}{marker}: {shown}", f"    options: {' | '.join(field.options)}"]
    else:
        shown = "" if value is None else str(value)
        placeholder = "(number)" if field.type == "number" else "(text)"
        lines = [f"{field.label}{marker}: {shown or placeholder}"]
    if error:
        lines.append(f"    ! {error}")
    return lines


def render_template(
    template: Template,
    values: Mapping[str, Any] | None = None,
    errors: Mapping[str, str] | None = None,
) -> str:
    """Render a whole template as text, with optional values and inline errors."""
    values = values or {}
    errors = errors or {}
    lines = [template.name, "=" * max(len(template.name), 1)]
    for section in template.sections:
        lines.append("")
        lines.append(f"[{section.title}]")
        if not section.fields:
            lines.append("  (no fields)")
        for f in section.fields:
            lines.extend(f"  {line}" for line in render_field(f, values.get(f.id), errors.get(f.id)))
    return "\n".join(lines) + "\n"
