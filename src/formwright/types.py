"""TypedDicts for the serialized shapes returned by ``to_dict()``."""

from __future__ import annotations

from typing import Any, NewType, NotRequired, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .formwright/config.json."""

    version: int
    log_level: str


class FieldDict(TypedDict):
    id: str
    type: str
    label: str
    required: bool
    labelStyle: NotRequired[str]
    options: NotRequired[list[str]]


class SectionDict(TypedDict):
    id: str
    title: str
    fields: list[FieldDict]


class TemplateDict(TypedDict):
    id: str
    name: str
    sections: list[SectionDict]
    createdAt: ISOTimestamp
    updatedAt: ISOTimestamp


class SubmissionDict(TypedDict):
    templateId: str
    data: dict[str, Any]
    submittedAt: ISOTimestamp


class SessionSnapshot(TypedDict):
    """Dashboard view of an open edit session."""

    session_id: str
    template: TemplateDict
    valid: bool
    dirty: bool
    problems: list[str]
