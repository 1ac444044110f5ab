"""Exceptions raised by the template editing engine.

Validation failures of a submission are not exceptions; they are returned as
an error map by :class:`formwright.validation.SubmissionValidator`.
"""

from __future__ import annotations


class InvalidTemplateError(ValueError):
    """Raised by ``commit()`` when the working copy is not valid to save."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__(f"Template cannot be saved: {'; '.join(problems)}")


class TemplateLimitReachedError(ValueError):
    """Raised when creating a template would exceed the repository bound."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"You can only save up to {limit} templates. Delete a template before creating a new one."
        )


class PersistenceError(OSError):
    """Raised when the storage collaborator fails to write a collection.

    Distinct from validation errors: the edit was valid, retrying the write is reasonable.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to persist '{key}': {reason}")


class SessionClosedError(RuntimeError):
    """Raised when an edit session is used after it was discarded or saved-and-exited."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Edit session for template '{template_id}' is closed")
