"""Template and submission repositories.

Both own an in-memory collection loaded once from the blob store at
construction, and write the whole collection back on every successful
mutation (write-through, no batching). A mutation is applied to a copy first
and only swapped in after the write succeeds, so a failed write or a refused
create leaves the collection exactly as it was.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any

from formwright.errors import PersistenceError, TemplateLimitReachedError
from formwright.models import Submission, Template
from formwright.storage import BlobStore

logger = logging.getLogger(__name__)

TEMPLATES_KEY = "form_templates"
SUBMISSIONS_KEY = "form_submissions"
MAX_TEMPLATES = 5


def _load_entries(store: BlobStore, key: str) -> list[Any]:
    """Read a JSON list blob. Absent or unparseable data is an empty list."""
    blob = store.get(key)
    if blob is None:
        return []
    try:
        parsed = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Unparseable blob under '%s', starting empty: %s", key, exc)
        return []
    if not isinstance(parsed, list):
        logger.warning("Blob under '%s' is %s, not a list; starting empty", key, type(parsed).__name__)
        return []
    return parsed


def _write_entries(store: BlobStore, key: str, entries: list[Any]) -> None:
    data = json.dumps(entries, separators=(",", ":")).encode("utf-8")
    try:
        store.set(key, data)
    except PersistenceError:
        raise
    except OSError as exc:
        raise PersistenceError(key, str(exc)) from exc


class SubmissionRepository:
    """Append-only store of submissions, keyed by template id."""

    def __init__(self, store: BlobStore) -> None:
        self._store = store
        self._submissions: list[Submission] = []
        for i, raw in enumerate(_load_entries(store, SUBMISSIONS_KEY)):
            try:
                self._submissions.append(Submission.from_dict(raw))
            except ValueError as exc:
                logger.warning("Skipping malformed submission at index %d: %s", i, exc)

    def _persist(self, submissions: list[Submission]) -> None:
        _write_entries(self._store, SUBMISSIONS_KEY, [s.to_dict() for s in submissions])
        self._submissions = submissions

    def append(self, submission: Submission) -> None:
        self._persist([*self._submissions, submission])
        logger.info(
            "Stored submission for template %s",
            submission.template_id,
            extra={"op": "append_submission", "template_id": submission.template_id},
        )

    def list_all(self) -> list[Submission]:
        return list(self._submissions)

    def list_by_template(self, template_id: str) -> list[Submission]:
        return [s for s in self._submissions if s.template_id == template_id]

    def delete_by_template(self, template_id: str) -> int:
        """Remove every submission for *template_id*. Returns the number removed."""
        kept = [s for s in self._submissions if s.template_id != template_id]
        removed = len(self._submissions) - len(kept)
        if removed:
            self._persist(kept)
            logger.info(
                "Deleted %d submission(s) for template %s",
                removed,
                template_id,
                extra={"op": "delete_submissions", "template_id": template_id},
            )
        return removed


class TemplateRepository:
    """Authoritative set of saved templates, bounded to ``limit`` entries.

    Templates are stored and returned as deep copies: callers (edit sessions,
    the dashboard) never share a mutable instance with the repository.
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        submissions: SubmissionRepository | None = None,
        limit: int = MAX_TEMPLATES,
    ) -> None:
        self._store = store
        self._submissions = submissions
        self.limit = limit
        self._templates: list[Template] = []
        for i, raw in enumerate(_load_entries(store, TEMPLATES_KEY)):
            try:
                tpl = Template.from_dict(raw)
            except ValueError as exc:
                logger.warning("Skipping malformed template at index %d: %s", i, exc)
                continue
            if self._index(tpl.id) is not None:
                logger.warning("Skipping duplicate template id %s at index %d", tpl.id, i)
                continue
            self._templates.append(tpl)

    def _index(self, template_id: str) -> int | None:
        for i, t in enumerate(self._templates):
            if t.id == template_id:
                return i
        return None

    def _persist(self, templates: list[Template]) -> None:
        _write_entries(self._store, TEMPLATES_KEY, [t.to_dict() for t in templates])
        self._templates = templates

    # -- Queries ------------------------------------------------------------

    def list(self) -> list[Template]:
        """All templates in insertion order (updates keep their position)."""
        return [copy.deepcopy(t) for t in self._templates]

    def get(self, template_id: str) -> Template | None:
        idx = self._index(template_id)
        return None if idx is None else copy.deepcopy(self._templates[idx])

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def is_full(self) -> bool:
        return len(self._templates) >= self.limit

    # -- Mutations ----------------------------------------------------------

    def upsert(self, template: Template) -> None:
        """Replace in place when the id exists, otherwise append.

        Raises:
            TemplateLimitReachedError: On create when already holding ``limit`` templates.
            PersistenceError: If the write-through fails. The collection is unchanged.
        """
        stored = copy.deepcopy(template)
        idx = self._index(template.id)
        updated = list(self._templates)
        if idx is not None:
            updated[idx] = stored
        else:
            if len(updated) >= self.limit:
                logger.warning("Template limit reached (%d); refusing create of %s", self.limit, template.id)
                raise TemplateLimitReachedError(self.limit)
            updated.append(stored)
        self._persist(updated)
        logger.info(
            "%s template %s (%s)",
            "Updated" if idx is not None else "Created",
            template.id,
            template.name,
            extra={"op": "upsert_template", "template_id": template.id},
        )

    def delete(self, template_id: str) -> bool:
        """Remove a template and its submissions. Absent ids are a no-op.

        Returns True if a template was removed. Once the template write succeeds
        the delete has happened: a failed submission cleanup is logged and the
        orphaned submissions are left behind.

        Raises:
            PersistenceError: If the template write fails. Nothing is removed.
        """
        idx = self._index(template_id)
        if idx is None:
            logger.debug("Delete of unknown template %s ignored", template_id)
            return False
        self._persist([t for t in self._templates if t.id != template_id])
        logger.info("Deleted template %s", template_id, extra={"op": "delete_template", "template_id": template_id})
        if self._submissions is not None:
            try:
                self._submissions.delete_by_template(template_id)
            except PersistenceError as exc:
                logger.warning(
                    "Template %s deleted but its submissions could not be removed: %s",
                    template_id,
                    exc,
                    extra={"op": "delete_submissions", "template_id": template_id, "error": str(exc)},
                )
        return True
