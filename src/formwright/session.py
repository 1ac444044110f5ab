# src/formwright/session.py
"""Template edit session -- the working copy and its save/discard protocol.

A session owns exactly one working copy of a Template. Every structural change
goes through it; none touches storage except ``commit()``, which hands the
working copy to the TemplateRepository.

Dirty tracking compares a structural fingerprint (SHA-256 of the canonical JSON
of name, sections, and fields, timestamps excluded) recomputed after each
mutation against the fingerprint taken at session start or last save. An edit
that is later reverted by hand therefore reads as clean again.

Leaving a session is a three-step protocol::

    decision = session.request_exit()
    if decision == "clean_exit":
        session.close()
    else:
        # ask the user: discard, save, or cancel
        session.resolve_exit(action)

Stale ids (a section or field deleted by a racing UI event) make the
corresponding operation a silent no-op rather than an error.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Literal

from formwright.errors import InvalidTemplateError, SessionClosedError
from formwright.models import (
    DEFAULT_SECTION_TITLE,
    FieldDescriptor,
    Section,
    Template,
    _now_iso,
    build_field,
    merge_field,
    new_section,
)
from formwright.repository import TemplateRepository
from formwright.validation import template_problems

logger = logging.getLogger(__name__)

ExitDecision = Literal["clean_exit", "confirmation_required"]
ExitAction = Literal["discard", "save", "cancel"]
_VALID_EXIT_ACTIONS: frozenset[str] = frozenset({"discard", "save", "cancel"})


def _fingerprint(template: Template) -> str:
    canonical = json.dumps(template.structure(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _move(items: list[Any], from_index: int, to_index: int) -> bool:
    """Single-item move. Returns False (and leaves *items* alone) when out of bounds."""
    n = len(items)
    if not (0 <= from_index < n and 0 <= to_index < n):
        return False
    if from_index == to_index:
        return False
    item = items.pop(from_index)
    items.insert(to_index, item)
    return True


class TemplateEditSession:
    """Holds one working copy of a Template and mediates every change to it."""

    def __init__(
        self,
        template: Template,
        repository: TemplateRepository,
        *,
        clock: Callable[[], str] = _now_iso,
    ) -> None:
        self._working = copy.deepcopy(template)
        self._repository = repository
        self._clock = clock
        self._baseline = _fingerprint(self._working)
        self._current = self._baseline
        self._closed = False

    # -- Inspection ---------------------------------------------------------

    @property
    def template(self) -> Template:
        """A copy of the working copy. Mutate through the session, not this."""
        return copy.deepcopy(self._working)

    @property
    def template_id(self) -> str:
        return self._working.id

    @property
    def closed(self) -> bool:
        return self._closed

    def problems(self) -> list[str]:
        return template_problems(self._working)

    def is_valid(self) -> bool:
        return not self.problems()

    def is_dirty(self) -> bool:
        return self._current != self._baseline

    # -- Internal -----------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(self._working.id)

    def _touched(self) -> None:
        self._current = _fingerprint(self._working)

    def _find_section(self, section_id: str, op: str) -> Section | None:
        section = self._working.get_section(section_id)
        if section is None:
            logger.debug("%s: unknown section %s ignored", op, section_id)
        return section

    # -- Template -----------------------------------------------------------

    def rename_template(self, name: str) -> None:
        """Replace the name. ``updated_at`` only changes on commit."""
        self._ensure_open()
        self._working.name = name
        self._touched()

    # -- Sections -----------------------------------------------------------

    def add_section(self, title: str = DEFAULT_SECTION_TITLE) -> Section:
        self._ensure_open()
        section = new_section(title)
        self._working.sections.append(section)
        self._touched()
        return copy.deepcopy(section)

    def rename_section(self, section_id: str, title: str) -> None:
        self._ensure_open()
        section = self._find_section(section_id, "rename_section")
        if section is None:
            return
        section.title = title
        self._touched()

    def delete_section(self, section_id: str) -> None:
        self._ensure_open()
        idx = self._working.section_index(section_id)
        if idx is None:
            logger.debug("delete_section: unknown section %s ignored", section_id)
            return
        del self._working.sections[idx]
        self._touched()

    def reorder_sections(self, from_index: int, to_index: int) -> None:
        self._ensure_open()
        if _move(self._working.sections, from_index, to_index):
            self._touched()

    # -- Fields -------------------------------------------------------------

    def add_field(self, section_id: str, field_spec: Mapping[str, Any] | None = None) -> FieldDescriptor | None:
        """Build a field from a partial spec and append it to the section.

        Does not create sections: returns None when *section_id* is unknown.

        Raises:
            ValueError: If the spec breaks a field invariant or reuses a field id
                already present in the section.
        """
        self._ensure_open()
        section = self._find_section(section_id, "add_field")
        if section is None:
            return None
        new_field = build_field(field_spec or {})
        if section.field_index(new_field.id) is not None:
            msg = f"Section '{section_id}' already has a field with id '{new_field.id}'"
            raise ValueError(msg)
        section.fields.append(new_field)
        self._touched()
        return new_field

    def update_field(self, section_id: str, field_id: str, changes: Mapping[str, Any]) -> FieldDescriptor | None:
        """Merge *changes* into the field. No-op (returns None) on unknown ids.

        Raises:
            ValueError: If the merged field would be invalid. The field is left as it was.
        """
        self._ensure_open()
        section = self._find_section(section_id, "update_field")
        if section is None:
            return None
        idx = section.field_index(field_id)
        if idx is None:
            logger.debug("update_field: unknown field %s in section %s ignored", field_id, section_id)
            return None
        updated = merge_field(section.fields[idx], changes)
        section.fields[idx] = updated
        self._touched()
        return updated

    def delete_field(self, section_id: str, field_id: str) -> None:
        self._ensure_open()
        section = self._find_section(section_id, "delete_field")
        if section is None:
            return
        idx = section.field_index(field_id)
        if idx is None:
            logger.debug("delete_field: unknown field %s in section %s ignored", field_id, section_id)
            return
        del section.fields[idx]
        self._touched()

    def reorder_fields(self, section_id: str, from_index: int, to_index: int) -> None:
        """Move the field at *from_index* to *to_index* within one section.

        Unknown sections and out-of-bounds indexes are no-ops: the gesture that
        produced them may be stale.
        """
        self._ensure_open()
        section = self._find_section(section_id, "reorder_fields")
        if section is None:
            return
        if _move(section.fields, from_index, to_index):
            self._touched()

    def move_field(self, source_section_id: str, from_index: int, dest_section_id: str, to_index: int) -> None:
        """Drop event from a drag gesture. Cross-section moves are ignored."""
        self._ensure_open()
        if source_section_id != dest_section_id:
            logger.debug("move_field: cross-section move %s -> %s ignored", source_section_id, dest_section_id)
            return
        self.reorder_fields(source_section_id, from_index, to_index)

    # -- Save / exit protocol -----------------------------------------------

    def commit(self) -> Template:
        """Validate, stamp ``updated_at``, and upsert the working copy.

        On success the dirty baseline moves to the saved state. On any failure
        the working copy (timestamp included) is left exactly as it was.

        Raises:
            InvalidTemplateError: If the working copy is not valid to save.
            TemplateLimitReachedError: If this is a create and the repository is full.
            PersistenceError: If the repository write fails.
        """
        self._ensure_open()
        problems = self.problems()
        if problems:
            logger.info("Refusing to save template %s: %s", self._working.id, "; ".join(problems))
            raise InvalidTemplateError(problems)

        previous = self._working.updated_at
        self._working.updated_at = self._clock()
        try:
            self._repository.upsert(self._working)
        except Exception:
            self._working.updated_at = previous
            raise
        self._baseline = self._current
        logger.info("Saved template %s", self._working.id, extra={"op": "commit", "template_id": self._working.id})
        return copy.deepcopy(self._working)

    def request_exit(self) -> ExitDecision:
        """Whether leaving now needs the user to confirm. Never mutates."""
        return "confirmation_required" if self.is_dirty() else "clean_exit"

    def close(self) -> None:
        self._closed = True

    def discard(self) -> None:
        """Abandon the working copy without touching the repository."""
        if self.is_dirty():
            logger.info("Discarded unsaved changes to template %s", self._working.id)
        self.close()

    def save_and_exit(self) -> Template:
        """Commit, then close. If commit raises, the session stays open and unchanged."""
        saved = self.commit()
        self.close()
        return saved

    def resolve_exit(self, action: ExitAction) -> bool:
        """Apply the user's answer to a confirmation prompt.

        Returns True if the caller should leave the editor. ``cancel`` returns
        False and leaves the session untouched.
        """
        if action not in _VALID_EXIT_ACTIONS:
            allowed = sorted(_VALID_EXIT_ACTIONS)
            msg = f"Invalid exit action '{action}': must be one of {allowed}"
            raise ValueError(msg)
        if action == "cancel":
            return False
        if action == "discard":
            self.discard()
            return True
        self.save_and_exit()
        return True
