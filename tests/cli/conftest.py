"""Fixtures for CLI interface tests."""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from formwright.cli import cli
from formwright.logging import teardown_logging


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a formwright project in tmp_path and return (runner, project_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)
    teardown_logging()


@pytest.fixture
def intake(cli_in_project: tuple[CliRunner, Path]) -> dict[str, Any]:
    """Create the Intake template via the CLI and return its JSON form."""
    runner, _ = cli_in_project
    result = runner.invoke(
        cli,
        [
            "create",
            "Intake",
            "--section",
            "Basics",
            "-f",
            "label:Welcome:h1",
            "-f",
            "text:Name",
            "-f",
            "number:Age",
            "-f",
            "enum:Color:Red|Green|Blue",
            "-f",
            "boolean:Consent",
            "-f",
            "text!:Nickname",
            "--json",
        ],
    )
    assert result.exit_code == 0, result.output
    template: dict[str, Any] = json.loads(result.output)["template"]
    return template
