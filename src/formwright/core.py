"""Project discovery, configuration, and the application state object.

Convention-based discovery: each project has a `.formwright/` directory
containing `config.json` and a `store/` directory of JSON blobs (one per
collection).

``AppState`` is the one explicit owner of both repositories. The CLI and the
dashboard build one and pass it by reference; nothing looks it up implicitly.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from formwright.models import Submission, Template, _now_iso, new_template
from formwright.repository import SubmissionRepository, TemplateRepository
from formwright.session import TemplateEditSession
from formwright.storage import BlobStore, DirectoryBlobStore, MemoryBlobStore
from formwright.types import ProjectConfig
from formwright.validation import SubmissionValidator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

FORMWRIGHT_DIR_NAME = ".formwright"
CONFIG_FILENAME = "config.json"
STORE_DIRNAME = "store"
VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})


def find_formwright_root(start: Path | None = None) -> Path:
    """Return the nearest `.formwright/` directory at or above *start* (default: cwd).

    The returned path is the `.formwright/` directory itself, not the project root.

    Raises:
        FileNotFoundError: If no enclosing directory is a formwright project.
    """
    origin = (start or Path.cwd()).resolve()
    candidates = (directory / FORMWRIGHT_DIR_NAME for directory in (origin, *origin.parents))
    found = next((c for c in candidates if c.is_dir()), None)
    if found is None:
        msg = f"Not inside a formwright project: no {FORMWRIGHT_DIR_NAME}/ in {origin} or its parents"
        raise FileNotFoundError(msg)
    return found


def read_config(formwright_dir: Path) -> ProjectConfig:
    """Read .formwright/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(version=1, log_level="INFO")
    config_path = formwright_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("%s is not a JSON object, using defaults", config_path)
        return defaults
    merged: ProjectConfig = {**defaults, **result}  # type: ignore[typeddict-item]
    return merged


def write_config(formwright_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .formwright/config.json."""
    config_path = formwright_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def get_log_level(formwright_dir: Path) -> int:
    """Configured log level, defaulting to INFO for unknown values."""
    level = str(read_config(formwright_dir).get("log_level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        logger.warning("Unknown log_level '%s' in config, falling back to INFO", level)
        level = "INFO"
    return int(logging.getLevelName(level))


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------


@dataclass
class AppState:
    """Templates and submissions, plus the blob store they persist to."""

    store: BlobStore
    clock: Callable[[], str] = _now_iso
    submissions: SubmissionRepository = field(init=False)
    templates: TemplateRepository = field(init=False)

    def __post_init__(self) -> None:
        self.submissions = SubmissionRepository(self.store)
        self.templates = TemplateRepository(self.store, submissions=self.submissions)

    @classmethod
    def in_memory(cls) -> AppState:
        return cls(MemoryBlobStore())

    @classmethod
    def from_project(cls, formwright_dir: Path | None = None) -> AppState:
        """Open the state stored under a .formwright/ directory (discovered if not given)."""
        root = formwright_dir or find_formwright_root()
        return cls(DirectoryBlobStore(root / STORE_DIRNAME))

    # -- Editing ------------------------------------------------------------

    def open_session(self, template_id: str | None = None) -> TemplateEditSession:
        """Start editing a saved template, or a fresh scaffold when no id is given.

        Raises:
            KeyError: If *template_id* is not a saved template.
        """
        if template_id is None:
            template = new_template(now=self.clock())
        else:
            found = self.templates.get(template_id)
            if found is None:
                raise KeyError(template_id)
            template = found
        return TemplateEditSession(template, self.templates, clock=self.clock)

    # -- Form filling -------------------------------------------------------

    def get_template(self, template_id: str) -> Template:
        """Raises KeyError if not found."""
        found = self.templates.get(template_id)
        if found is None:
            raise KeyError(template_id)
        return found

    def submit(self, template_id: str, values: Mapping[str, Any]) -> tuple[Submission | None, dict[str, str]]:
        """Validate *values* and store a submission only if there are no errors.

        Returns (submission, {}) on success or (None, error_map) when refused.

        Raises:
            KeyError: If the template does not exist.
            PersistenceError: If the submission could not be written.
        """
        template = self.get_template(template_id)
        errors = SubmissionValidator.validate(template, values)
        if errors:
            logger.info("Submission for template %s refused: %d field error(s)", template_id, len(errors))
            return None, errors
        data = {k: v for k, v in values.items() if v is not None}
        submission = Submission(template_id=template_id, data=data, submitted_at=self.clock())
        self.submissions.append(submission)
        return submission, {}
