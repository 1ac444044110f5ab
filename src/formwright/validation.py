"""Template and submission validation.

Pure functions: no storage, click, or FastAPI dependencies. Safe to call on
every keystroke.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from formwright.models import FieldDescriptor, Template

# ---------------------------------------------------------------------------
# Template: "valid to save"
# ---------------------------------------------------------------------------

PROBLEM_NO_NAME = "template name is empty"
PROBLEM_NO_SECTIONS = "template has no sections"
PROBLEM_NO_FIELDS = "no section has any fields"


def template_problems(template: Template) -> list[str]:
    """Return the reasons *template* cannot be saved. Empty list means valid."""
    problems: list[str] = []
    if not template.name.strip():
        problems.append(PROBLEM_NO_NAME)
    if not template.sections:
        problems.append(PROBLEM_NO_SECTIONS)
    elif not any(s.fields for s in template.sections):
        problems.append(PROBLEM_NO_FIELDS)
    return problems


def is_template_valid(template: Template) -> bool:
    return not template_problems(template)


# ---------------------------------------------------------------------------
# Submission values
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    """None, empty strings, and whitespace-only strings count as not filled."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float):
        return math.isfinite(value)
    if isinstance(value, str):
        # float() accepts "1_000"; a typed number must not contain digit separators
        if "_" in value:
            return False
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


class SubmissionValidator:
    """Decides whether a value map is submittable against a template.

    Stateless: a pure function of (template, values) -> {field_id: reason}.
    """

    @staticmethod
    def validate_field(field: FieldDescriptor, value: Any) -> str | None:
        """Return the error reason for one field, or None if it passes."""
        if field.type == "label":
            return None

        if field.type == "boolean":
            # An explicit False is a filled answer; only a missing entry is unfilled.
            if value is None:
                return f"{field.label} is required" if field.required else None
            if not isinstance(value, bool):
                return f"{field.label} must be true or false"
            return None

        if _is_blank(value):
            return f"{field.label} is required" if field.required else None

        if field.type == "number":
            if not _is_finite_number(value):
                return f"{field.label} must be a valid number"
        elif field.type == "enum":
            if value not in field.options:
                return f"{field.label} must be one of: {', '.join(field.options)}"
        elif field.type == "text":
            if not isinstance(value, str):
                return f"{field.label} must be text"
        return None

    @staticmethod
    def validate(template: Template, values: Mapping[str, Any]) -> dict[str, str]:
        """Error map for *values*, in section order then field order.

        Contains an entry for every field in error and none for passing fields.
        """
        errors: dict[str, str] = {}
        for _section, field in template.iter_fields():
            reason = SubmissionValidator.validate_field(field, values.get(field.id))
            if reason is not None:
                errors[field.id] = reason
        return errors

    @staticmethod
    def is_submittable(template: Template, values: Mapping[str, Any]) -> bool:
        return not SubmissionValidator.validate(template, values)
