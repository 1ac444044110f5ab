"""CLI tests for template editing commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from click.testing import CliRunner

from formwright.cli import cli


def _fields(template: dict[str, Any], section: int = 0) -> list[dict[str, Any]]:
    fields: list[dict[str, Any]] = template["sections"][section]["fields"]
    return fields


class TestInit:
    def test_init_creates_project(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        _, root = cli_in_project
        assert (root / ".formwright" / "config.json").exists()
        assert (root / ".formwright" / "store").is_dir()

    def test_init_twice(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_commands_need_project(self, tmp_path: Path, cli_runner: CliRunner, monkeypatch: Any) -> None:
        monkeypatch.chdir(tmp_path)
        result = cli_runner.invoke(cli, ["list"])
        assert result.exit_code == 1
        assert "formwright init" in result.output


class TestCreate:
    def test_create_builds_fields(self, intake: dict[str, Any]) -> None:
        assert intake["name"] == "Intake"
        assert intake["sections"][0]["title"] == "Basics"
        fields = _fields(intake)
        assert [f["type"] for f in fields] == ["label", "text", "number", "enum", "boolean", "text"]
        assert fields[0]["labelStyle"] == "h1"
        assert fields[3]["options"] == ["Red", "Green", "Blue"]
        assert [f["required"] for f in fields] == [False, True, True, True, True, False]

    def test_create_without_fields_refused(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "Empty", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.output)["problems"] == ["no section has any fields"]
        assert json.loads(runner.invoke(cli, ["list", "--json"]).output) == []

    def test_create_bad_spec(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["create", "X", "-f", "enum:Color"])
        assert result.exit_code == 1
        assert "options" in result.output

    def test_limit_of_five(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        for n in range(5):
            assert runner.invoke(cli, ["create", f"T{n}", "-f", "text:A"]).exit_code == 0
        result = runner.invoke(cli, ["create", "T5", "-f", "text:A"])
        assert result.exit_code == 1
        assert "up to 5 templates" in result.output
        listing = runner.invoke(cli, ["list"])
        assert "Template limit reached" in listing.output
        assert len(json.loads(runner.invoke(cli, ["list", "--json"]).output)) == 5


class TestEditCommands:
    def test_rename(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["rename", intake["id"], "Intake v2", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["changed"] is True
        assert data["template"]["name"] == "Intake v2"
        assert data["template"]["updatedAt"] != intake["updatedAt"]
        assert data["template"]["createdAt"] == intake["createdAt"]

    def test_rename_blank_refused(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["rename", intake["id"], "  "])
        assert result.exit_code == 1
        assert "template name is empty" in result.output

    def test_unknown_template(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["rename", "tpl-missing", "x"])
        assert result.exit_code == 1
        assert "Template not found" in result.output

    def test_add_and_rename_section(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["add-section", intake["id"], "Contact", "--json"])
        assert result.exit_code == 0
        sections = json.loads(result.output)["template"]["sections"]
        assert [s["title"] for s in sections] == ["Basics", "Contact"]
        result = runner.invoke(cli, ["rename-section", intake["id"], sections[1]["id"], "Reach you", "--json"])
        assert json.loads(result.output)["template"]["sections"][1]["title"] == "Reach you"

    def test_stale_section_id_is_no_change(
        self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]
    ) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["rename-section", intake["id"], "section-gone", "X"])
        assert result.exit_code == 0
        assert "No changes." in result.output

    def test_delete_only_section_refused(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        section_id = intake["sections"][0]["id"]
        result = runner.invoke(cli, ["delete-section", intake["id"], section_id])
        assert result.exit_code == 1
        assert "template has no sections" in result.output

    def test_add_update_delete_field(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        tid, sid = intake["id"], intake["sections"][0]["id"]

        result = runner.invoke(cli, ["add-field", tid, sid, "number!:Height", "--json"])
        assert result.exit_code == 0
        added = _fields(json.loads(result.output)["template"])[-1]
        assert (added["type"], added["label"], added["required"]) == ("number", "Height", False)

        result = runner.invoke(cli, ["update-field", tid, sid, added["id"], "--label", "Height (cm)", "--required", "--json"])
        updated = _fields(json.loads(result.output)["template"])[-1]
        assert (updated["label"], updated["required"]) == ("Height (cm)", True)

        result = runner.invoke(cli, ["delete-field", tid, sid, added["id"], "--json"])
        assert added["id"] not in [f["id"] for f in _fields(json.loads(result.output)["template"])]

    def test_update_field_to_enum_needs_options(
        self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]
    ) -> None:
        runner, _ = cli_in_project
        tid, sid = intake["id"], intake["sections"][0]["id"]
        name_id = _fields(intake)[1]["id"]
        result = runner.invoke(cli, ["update-field", tid, sid, name_id, "--type", "enum"])
        assert result.exit_code == 1
        result = runner.invoke(cli, ["update-field", tid, sid, name_id, "--type", "enum", "--options", "A|B", "--json"])
        assert _fields(json.loads(result.output)["template"])[1]["options"] == ["A", "B"]

    def test_update_field_nothing_to_do(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["update-field", intake["id"], "s", "f"])
        assert result.exit_code == 1
        assert "Nothing to update" in result.output

    def test_move_field(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        tid, sid = intake["id"], intake["sections"][0]["id"]
        before = [f["id"] for f in _fields(intake)]
        result = runner.invoke(cli, ["move-field", tid, sid, "5", "0", "--json"])
        after = [f["id"] for f in _fields(json.loads(result.output)["template"])]
        assert after == [before[5], *before[:5]]

    def test_move_field_out_of_bounds(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["move-field", intake["id"], intake["sections"][0]["id"], "0", "42"])
        assert result.exit_code == 0
        assert "No changes." in result.output


class TestShowAndDelete:
    def test_show_renders(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["show", intake["id"]])
        assert result.exit_code == 0
        assert "# Welcome" in result.output
        assert "Color *: (choose one)" in result.output

    def test_show_json(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["show", intake["id"], "--json"])
        assert json.loads(result.output) == intake

    def test_delete_with_confirmation(self, cli_in_project: tuple[CliRunner, Path], intake: dict[str, Any]) -> None:
        runner, _ = cli_in_project
        aborted = runner.invoke(cli, ["delete", intake["id"]], input="n\n")
        assert aborted.exit_code == 1
        assert len(json.loads(runner.invoke(cli, ["list", "--json"]).output)) == 1
        result = runner.invoke(cli, ["delete", intake["id"]], input="y\n")
        assert result.exit_code == 0
        assert json.loads(runner.invoke(cli, ["list", "--json"]).output) == []

    def test_delete_missing(self, cli_in_project: tuple[CliRunner, Path]) -> None:
        runner, _ = cli_in_project
        result = runner.invoke(cli, ["delete", "tpl-missing", "--yes"])
        assert result.exit_code == 0
        assert "nothing deleted" in result.output
