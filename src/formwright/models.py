# src/formwright/models.py
"""Data model for form templates and submissions.

A Template is a named, ordered list of Sections; each Section is an ordered
list of FieldDescriptors. FieldDescriptor is a tagged variant over five field
kinds (``type``), and everything that behaves differently per kind (rendering,
validation, editing) dispatches on that tag explicitly.

Serialization uses the attribute names of the stored format (``labelStyle``,
``createdAt``, ``templateId`` ...) and round-trips exactly, element order included.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from formwright.types import FieldDict, ISOTimestamp, SectionDict, SubmissionDict, TemplateDict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

FieldType = Literal["label", "text", "number", "boolean", "enum"]
LabelStyle = Literal["h1", "h2", "h3"]

_VALID_FIELD_TYPES: frozenset[str] = frozenset({"label", "text", "number", "boolean", "enum"})
_VALID_LABEL_STYLES: frozenset[str] = frozenset({"h1", "h2", "h3"})
_SPEC_KEYS: frozenset[str] = frozenset({"id", "type", "label", "labelStyle", "options", "required"})
_SPEC_ALIASES = {"label_style": "labelStyle"}

DEFAULT_TEMPLATE_NAME = "Untitled Template"
DEFAULT_SECTION_TITLE = "New Section"
DEFAULT_LABEL_STYLE: LabelStyle = "h2"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def generate_id(prefix: str) -> str:
    """Opaque identifier: ``<prefix>-<10 hex chars>``."""
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


# ---------------------------------------------------------------------------
# FieldDescriptor
# ---------------------------------------------------------------------------
# Field descriptors are frozen: the edit session replaces them wholesale on
# update, so a descriptor handed out to a renderer can never change under it.
# Sections and Templates are mutable containers owned by one session.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDescriptor:
    """One typed form field and its type-specific configuration.

    ``label_style`` is only kept for label fields (defaulting to h2), ``options``
    only for enum fields, and ``required`` is always False for label fields.
    """

    id: str
    type: FieldType
    label: str
    required: bool = False
    label_style: LabelStyle | None = None
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            msg = f"Invalid field id {self.id!r}: must be a non-empty string"
            raise ValueError(msg)
        if self.type not in _VALID_FIELD_TYPES:
            allowed = sorted(_VALID_FIELD_TYPES)
            msg = f"Invalid field type '{self.type}' for field '{self.id}': must be one of {allowed}"
            raise ValueError(msg)
        if not isinstance(self.label, str):
            msg = f"Field '{self.id}': label must be a string, got {type(self.label).__name__}"
            raise ValueError(msg)
        if not isinstance(self.required, bool):
            msg = f"Field '{self.id}': required must be a bool, got {type(self.required).__name__}"
            raise ValueError(msg)

        if self.type == "label":
            style = self.label_style or DEFAULT_LABEL_STYLE
            if style not in _VALID_LABEL_STYLES:
                allowed = sorted(_VALID_LABEL_STYLES)
                msg = f"Invalid labelStyle '{style}' for field '{self.id}': must be one of {allowed}"
                raise ValueError(msg)
            object.__setattr__(self, "label_style", style)
            object.__setattr__(self, "required", False)
        else:
            object.__setattr__(self, "label_style", None)

        if self.type == "enum":
            object.__setattr__(self, "options", _check_options(self.id, self.options))
        else:
            object.__setattr__(self, "options", ())

    @property
    def takes_value(self) -> bool:
        """Label fields are display-only and carry no entered value."""
        return self.type != "label"

    def to_dict(self) -> FieldDict:
        result = FieldDict(id=self.id, type=self.type, label=self.label, required=self.required)
        if self.type == "label":
            result["labelStyle"] = self.label_style or DEFAULT_LABEL_STYLE
        if self.type == "enum":
            result["options"] = list(self.options)
        return result

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> FieldDescriptor:
        """Parse a field from its serialized form.

        Raises:
            ValueError: If the shape or values are invalid.
        """
        if not isinstance(raw, Mapping):
            msg = f"field must be an object, got {type(raw).__name__}"
            raise ValueError(msg)
        for key in ("id", "type", "label"):
            if key not in raw:
                msg = f"field is missing '{key}'"
                raise ValueError(msg)
        options = raw.get("options") or ()
        if not isinstance(options, list | tuple):
            msg = f"Field '{raw['id']}': options must be a list, got {type(options).__name__}"
            raise ValueError(msg)
        return cls(
            id=raw["id"],
            type=raw["type"],
            label=raw["label"],
            required=raw.get("required", False),
            label_style=raw.get("labelStyle"),
            options=tuple(options),
        )


def _check_options(field_id: str, options: Any) -> tuple[str, ...]:
    if not isinstance(options, list | tuple) or not options:
        msg = f"Enum field '{field_id}' requires a non-empty list of options"
        raise ValueError(msg)
    seen: set[str] = set()
    for opt in options:
        if not isinstance(opt, str) or not opt.strip():
            msg = f"Enum field '{field_id}': options must be non-empty strings, got {opt!r}"
            raise ValueError(msg)
        if opt in seen:
            msg = f"Enum field '{field_id}': duplicate option '{opt}'"
            raise ValueError(msg)
        seen.add(opt)
    return tuple(options)


def _normalize_spec(spec: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in spec.items():
        key = _SPEC_ALIASES.get(key, key)
        if key not in _SPEC_KEYS:
            msg = f"Unknown field attribute '{key}'"
            raise ValueError(msg)
        normalized[key] = value
    if isinstance(normalized.get("options"), list | tuple):
        normalized["options"] = [o.strip() if isinstance(o, str) else o for o in normalized["options"]]
    return normalized


def build_field(spec: Mapping[str, Any]) -> FieldDescriptor:
    """Build a complete FieldDescriptor from a partial spec, filling defaults.

    Defaults: ``type`` text, a generated ``id``, ``label`` "New Label" for label
    fields and "New <type> field" otherwise, ``required`` True for every type
    that takes a value, ``labelStyle`` h2 for label fields.
    """
    raw = _normalize_spec(spec)
    field_type = raw.get("type") or "text"
    if field_type == "label":
        default_label = "New Label"
    else:
        default_label = f"New {field_type} field"
    options = raw.get("options")
    if options is not None and not isinstance(options, list | tuple):
        msg = f"options must be a list of strings, got {type(options).__name__}"
        raise ValueError(msg)
    return FieldDescriptor(
        id=raw.get("id") or generate_id("field"),
        type=field_type,
        label=raw["label"] if raw.get("label") is not None else default_label,
        required=raw.get("required", field_type != "label"),
        label_style=raw.get("labelStyle"),
        options=tuple(options or ()),
    )


def merge_field(current: FieldDescriptor, changes: Mapping[str, Any]) -> FieldDescriptor:
    """Return a new descriptor with *changes* merged over *current*.

    Switching away from enum drops the options; switching to label drops
    ``required``; switching from label to a value-taking type makes the field
    required unless *changes* says otherwise.

    Raises:
        ValueError: If the id would change or the result breaks a field invariant.
    """
    updates = _normalize_spec(changes)
    if "id" in updates and updates["id"] != current.id:
        msg = f"Field id cannot be changed ('{current.id}' -> '{updates['id']}')"
        raise ValueError(msg)

    merged: dict[str, Any] = dict(current.to_dict())
    new_type = updates.get("type", current.type)
    if new_type != current.type:
        if current.type == "enum":
            merged.pop("options", None)
        if current.type == "label":
            merged.pop("labelStyle", None)
            merged["required"] = True
    merged.update(updates)
    return FieldDescriptor.from_dict(merged)


# ---------------------------------------------------------------------------
# Section / Template
# ---------------------------------------------------------------------------


@dataclass
class Section:
    id: str
    title: str
    fields: list[FieldDescriptor] = field(default_factory=list)

    def field_index(self, field_id: str) -> int | None:
        for i, f in enumerate(self.fields):
            if f.id == field_id:
                return i
        return None

    def to_dict(self) -> SectionDict:
        return SectionDict(id=self.id, title=self.title, fields=[f.to_dict() for f in self.fields])

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Section:
        if not isinstance(raw, Mapping) or "id" not in raw:
            msg = "section must be an object with an 'id'"
            raise ValueError(msg)
        raw_fields = raw.get("fields", [])
        if not isinstance(raw_fields, list):
            msg = f"Section '{raw['id']}': 'fields' must be a list, got {type(raw_fields).__name__}"
            raise ValueError(msg)
        fields = [FieldDescriptor.from_dict(f) for f in raw_fields]
        seen: set[str] = set()
        for f in fields:
            if f.id in seen:
                msg = f"Section '{raw['id']}': duplicate field id '{f.id}'"
                raise ValueError(msg)
            seen.add(f.id)
        return cls(id=raw["id"], title=str(raw.get("title", "")), fields=fields)


@dataclass
class Template:
    """The root aggregate: a named, ordered list of sections plus timestamps."""

    id: str
    name: str
    sections: list[Section] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def section_index(self, section_id: str) -> int | None:
        for i, s in enumerate(self.sections):
            if s.id == section_id:
                return i
        return None

    def get_section(self, section_id: str) -> Section | None:
        idx = self.section_index(section_id)
        return None if idx is None else self.sections[idx]

    def iter_fields(self) -> Iterator[tuple[Section, FieldDescriptor]]:
        """Yield (section, field) pairs in section order, then field order."""
        for section in self.sections:
            for f in section.fields:
                yield section, f

    @property
    def field_count(self) -> int:
        return sum(len(s.fields) for s in self.sections)

    def structure(self) -> dict[str, Any]:
        """Structural content used for change detection (timestamps excluded)."""
        return {"id": self.id, "name": self.name, "sections": [s.to_dict() for s in self.sections]}

    def to_dict(self) -> TemplateDict:
        return TemplateDict(
            id=self.id,
            name=self.name,
            sections=[s.to_dict() for s in self.sections],
            createdAt=ISOTimestamp(self.created_at),
            updatedAt=ISOTimestamp(self.updated_at),
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Template:
        """Parse a template from its serialized form.

        Raises:
            ValueError: If the shape is invalid or section ids repeat.
        """
        if not isinstance(raw, Mapping):
            msg = f"template must be an object, got {type(raw).__name__}"
            raise ValueError(msg)
        for key in ("id", "name"):
            if not isinstance(raw.get(key), str):
                msg = f"template '{key}' must be a string"
                raise ValueError(msg)
        raw_sections = raw.get("sections", [])
        if not isinstance(raw_sections, list):
            msg = f"Template '{raw['id']}': 'sections' must be a list, got {type(raw_sections).__name__}"
            raise ValueError(msg)
        sections = [Section.from_dict(s) for s in raw_sections]
        seen: set[str] = set()
        for s in sections:
            if s.id in seen:
                msg = f"Template '{raw['id']}': duplicate section id '{s.id}'"
                raise ValueError(msg)
            seen.add(s.id)
        return cls(
            id=raw["id"],
            name=raw["name"],
            sections=sections,
            created_at=str(raw.get("createdAt", "")),
            updated_at=str(raw.get("updatedAt", "")),
        )


@dataclass(frozen=True)
class Submission:
    """One completed, immutable record of values entered against a template."""

    template_id: str
    data: dict[str, Any]
    submitted_at: str

    def to_dict(self) -> SubmissionDict:
        return SubmissionDict(
            templateId=self.template_id,
            data=dict(self.data),
            submittedAt=ISOTimestamp(self.submitted_at),
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Submission:
        if not isinstance(raw, Mapping) or not isinstance(raw.get("templateId"), str):
            msg = "submission must be an object with a string 'templateId'"
            raise ValueError(msg)
        data = raw.get("data", {})
        if not isinstance(data, dict):
            msg = f"submission data must be an object, got {type(data).__name__}"
            raise ValueError(msg)
        return cls(template_id=raw["templateId"], data=dict(data), submitted_at=str(raw.get("submittedAt", "")))


# ---------------------------------------------------------------------------
# Scaffolding
# ---------------------------------------------------------------------------


def new_section(title: str = DEFAULT_SECTION_TITLE) -> Section:
    return Section(id=generate_id("section"), title=title)


def new_template(name: str = DEFAULT_TEMPLATE_NAME, *, now: str | None = None) -> Template:
    """A fresh template with one empty section, ready for an edit session."""
    stamp = now or _now_iso()
    tpl = Template(id=generate_id("tpl"), name=name, sections=[new_section()], created_at=stamp, updated_at=stamp)
    logger.debug("Scaffolded template %s", tpl.id)
    return tpl
