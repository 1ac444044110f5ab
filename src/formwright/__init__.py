"""Formwright -- form template builder with an edit-session engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("formwright")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from formwright.core import AppState
from formwright.errors import InvalidTemplateError, PersistenceError, SessionClosedError, TemplateLimitReachedError
from formwright.models import FieldDescriptor, Section, Submission, Template
from formwright.session import TemplateEditSession
from formwright.validation import SubmissionValidator

__all__ = [
    "AppState",
    "FieldDescriptor",
    "InvalidTemplateError",
    "PersistenceError",
    "Section",
    "SessionClosedError",
    "Submission",
    "SubmissionValidator",
    "Template",
    "TemplateEditSession",
    "TemplateLimitReachedError",
    "__version__",
]
