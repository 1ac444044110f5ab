"""Shared pytest fixtures for formwright tests."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner

from formwright.core import FORMWRIGHT_DIR_NAME, STORE_DIRNAME, AppState, write_config
from formwright.models import FieldDescriptor, Section, Template
from formwright.repository import SubmissionRepository, TemplateRepository
from formwright.session import TemplateEditSession
from formwright.storage import MemoryBlobStore


@pytest.fixture
def clock() -> Callable[[], str]:
    """Deterministic, strictly increasing ISO timestamps."""
    counter = itertools.count(1)
    return lambda: f"2026-01-01T00:00:{next(counter):02d}+00:00"


@pytest.fixture
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def submission_repo(store: MemoryBlobStore) -> SubmissionRepository:
    return SubmissionRepository(store)


@pytest.fixture
def template_repo(store: MemoryBlobStore, submission_repo: SubmissionRepository) -> TemplateRepository:
    return TemplateRepository(store, submissions=submission_repo)


@pytest.fixture
def state(store: MemoryBlobStore, clock: Callable[[], str]) -> AppState:
    return AppState(store, clock=clock)


@pytest.fixture
def intake_template() -> Template:
    """A valid template covering every field type.

    Section "Basics": h1 label, required text, required number, optional number.
    Section "Preferences": required enum (Red/Green/Blue), required boolean, optional text.
    """
    return Template(
        id="tpl-intake",
        name="Intake",
        sections=[
            Section(
                id="sec-basics",
                title="Basics",
                fields=[
                    FieldDescriptor(id="f-title", type="label", label="Patient intake", label_style="h1"),
                    FieldDescriptor(id="f-name", type="text", label="Name", required=True),
                    FieldDescriptor(id="f-age", type="number", label="Age", required=True),
                    FieldDescriptor(id="f-weight", type="number", label="Weight", required=False),
                ],
            ),
            Section(
                id="sec-prefs",
                title="Preferences",
                fields=[
                    FieldDescriptor(
                        id="f-color", type="enum", label="Color", required=True, options=("Red", "Green", "Blue")
                    ),
                    FieldDescriptor(id="f-consent", type="boolean", label="Consent", required=True),
                    FieldDescriptor(id="f-notes", type="text", label="Notes", required=False),
                ],
            ),
        ],
        created_at="2025-12-31T00:00:00+00:00",
        updated_at="2025-12-31T00:00:00+00:00",
    )


@pytest.fixture
def session(intake_template: Template, template_repo: TemplateRepository, clock: Callable[[], str]) -> TemplateEditSession:
    """Edit session on the (not yet saved) intake template."""
    return TemplateEditSession(intake_template, template_repo, clock=clock)


@pytest.fixture
def formwright_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a formwright project (.formwright/ with config + store).

    Returns the project root (parent of .formwright/).
    """
    formwright_dir = tmp_path / FORMWRIGHT_DIR_NAME
    formwright_dir.mkdir()
    (formwright_dir / STORE_DIRNAME).mkdir()
    write_config(formwright_dir, {"version": 1, "log_level": "INFO"})
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
