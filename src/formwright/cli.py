"""CLI for formwright form templates.

Convention-based: discovers .formwright/ by walking up from cwd. Every editing
command opens an edit session on the saved template, applies one operation,
and commits, so a command can never save a template that is not valid to save.

Usage:
    formwright init                                        # Initialize .formwright/ in cwd
    formwright create "Intake" -s Basics -f "text:Name"    # Create a template
    formwright list                                        # List templates
    formwright show <id>                                   # Preview a template
    formwright rename <id> "New name"                      # Rename a template
    formwright add-section <id> "Contact"                  # Append a section
    formwright add-field <id> <section> "enum:Color:Red|Green"
    formwright update-field <id> <section> <field> --optional
    formwright move-field <id> <section> 0 2               # Reorder fields
    formwright fill <id> -v Name=Ada                       # Submit a filled form
    formwright submissions <id>                            # List submissions
    formwright delete <id>                                 # Delete template + submissions
    formwright dashboard                                   # Serve the JSON API
"""

from __future__ import annotations

import json as json_mod
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from formwright import __version__
from formwright.cli_common import fail, get_state, parse_field_spec, parse_values
from formwright.core import FORMWRIGHT_DIR_NAME, STORE_DIRNAME, write_config
from formwright.errors import InvalidTemplateError, PersistenceError, TemplateLimitReachedError
from formwright.render import render_template
from formwright.session import TemplateEditSession
from formwright.validation import SubmissionValidator


def _run_edit(template_id: str, as_json: bool, apply: Callable[[TemplateEditSession], Any]) -> None:
    """Open a session on *template_id*, apply one operation, and save it."""
    state = get_state()
    try:
        session = state.open_session(template_id)
    except KeyError:
        fail(f"Template not found: {template_id}", as_json)
    try:
        apply(session)
    except ValueError as e:
        fail(str(e), as_json)
    if not session.is_dirty():
        if as_json:
            click.echo(json_mod.dumps({"changed": False, "template": session.template.to_dict()}, indent=2))
        else:
            click.echo("No changes.")
        return
    _commit(session, as_json)


def _commit(session: TemplateEditSession, as_json: bool) -> None:
    try:
        saved = session.commit()
    except InvalidTemplateError as e:
        fail(str(e), as_json, problems=e.problems)
    except (TemplateLimitReachedError, PersistenceError) as e:
        fail(str(e), as_json)
    if as_json:
        click.echo(json_mod.dumps({"changed": True, "template": saved.to_dict()}, indent=2))
    else:
        click.echo(f"Saved {saved.id}: {saved.name}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="formwright")
def cli() -> None:
    """Formwright -- form template builder."""


@cli.command()
def init() -> None:
    """Initialize .formwright/ in the current directory."""
    cwd = Path.cwd()
    formwright_dir = cwd / FORMWRIGHT_DIR_NAME
    if formwright_dir.exists():
        click.echo(f"{FORMWRIGHT_DIR_NAME}/ already exists in {cwd}")
        return
    formwright_dir.mkdir()
    (formwright_dir / STORE_DIRNAME).mkdir()
    write_config(formwright_dir, {"version": 1, "log_level": "INFO"})
    click.echo(f"Initialized {FORMWRIGHT_DIR_NAME}/ in {cwd}")
    click.echo("\nNext: formwright create <name> --field text:Name")


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_templates(as_json: bool) -> None:
    """List saved templates."""
    state = get_state()
    templates = state.templates.list()
    if as_json:
        click.echo(json_mod.dumps([t.to_dict() for t in templates], indent=2))
        return
    if not templates:
        click.echo("No templates. Create one with 'formwright create'.")
        return
    for t in templates:
        n_subs = len(state.submissions.list_by_template(t.id))
        click.echo(f"{t.id}  {t.name}  ({len(t.sections)} sections, {t.field_count} fields, {n_subs} submissions)")
    if state.templates.is_full:
        click.echo(f"\nTemplate limit reached ({state.templates.limit}). Delete a template to create a new one.")


@cli.command()
@click.argument("template_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(template_id: str, as_json: bool) -> None:
    """Show a template (ids and a text preview)."""
    state = get_state()
    try:
        template = state.get_template(template_id)
    except KeyError:
        fail(f"Template not found: {template_id}", as_json)
    if as_json:
        click.echo(json_mod.dumps(template.to_dict(), indent=2))
        return
    click.echo(f"ID:       {template.id}")
    click.echo(f"Created:  {template.created_at}")
    click.echo(f"Updated:  {template.updated_at}")
    for section in template.sections:
        click.echo(f"Section {section.id}: {section.title}")
        for i, f in enumerate(section.fields):
            click.echo(f"  {i}. {f.id}  [{f.type}] {f.label}")
    click.echo("")
    click.echo(render_template(template), nl=False)


@cli.command()
@click.argument("name")
@click.option("--section", "-s", "section_title", default=None, help="Title of the first section")
@click.option("--field", "-f", "field_specs", multiple=True, help="Field as type[!]:label[:extra] (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def create(name: str, section_title: str | None, field_specs: tuple[str, ...], as_json: bool) -> None:
    """Create a new template with one section."""
    state = get_state()
    if state.templates.is_full:
        fail(str(TemplateLimitReachedError(state.templates.limit)), as_json)
    session = state.open_session()
    section_id = session.template.sections[0].id
    try:
        session.rename_template(name)
        if section_title:
            session.rename_section(section_id, section_title)
        for spec in field_specs:
            session.add_field(section_id, parse_field_spec(spec))
    except ValueError as e:
        fail(str(e), as_json)
    _commit(session, as_json)


@cli.command()
@click.argument("template_id")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rename(template_id: str, name: str, as_json: bool) -> None:
    """Rename a template."""
    _run_edit(template_id, as_json, lambda s: s.rename_template(name))


@cli.command()
@click.argument("template_id")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete(template_id: str, yes: bool, as_json: bool) -> None:
    """Delete a template and all of its submissions."""
    state = get_state()
    if not yes and not as_json:
        click.confirm(f"Delete template {template_id} and its submissions?", abort=True)
    n_subs = len(state.submissions.list_by_template(template_id))
    try:
        removed = state.templates.delete(template_id)
    except PersistenceError as e:
        fail(str(e), as_json)
    n_subs -= len(state.submissions.list_by_template(template_id))
    if as_json:
        click.echo(json_mod.dumps({"deleted": removed, "submissions_deleted": n_subs if removed else 0}))
    elif removed:
        click.echo(f"Deleted {template_id} ({n_subs} submissions removed)")
    else:
        click.echo(f"No template {template_id}; nothing deleted.")


# -- Sections ---------------------------------------------------------------


@cli.command("add-section")
@click.argument("template_id")
@click.argument("title", default="New Section")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def add_section(template_id: str, title: str, as_json: bool) -> None:
    """Append a section. Saving still requires at least one field somewhere."""
    _run_edit(template_id, as_json, lambda s: s.add_section(title))


@cli.command("rename-section")
@click.argument("template_id")
@click.argument("section_id")
@click.argument("title")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rename_section(template_id: str, section_id: str, title: str, as_json: bool) -> None:
    """Change a section's title."""
    _run_edit(template_id, as_json, lambda s: s.rename_section(section_id, title))


@cli.command("delete-section")
@click.argument("template_id")
@click.argument("section_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete_section(template_id: str, section_id: str, as_json: bool) -> None:
    """Remove a section and its fields."""
    _run_edit(template_id, as_json, lambda s: s.delete_section(section_id))


@cli.command("move-section")
@click.argument("template_id")
@click.argument("from_index", type=int)
@click.argument("to_index", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def move_section(template_id: str, from_index: int, to_index: int, as_json: bool) -> None:
    """Move a section to a new position."""
    _run_edit(template_id, as_json, lambda s: s.reorder_sections(from_index, to_index))


# -- Fields -----------------------------------------------------------------


@cli.command("add-field")
@click.argument("template_id")
@click.argument("section_id")
@click.argument("spec")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def add_field(template_id: str, section_id: str, spec: str, as_json: bool) -> None:
    """Append a field given as type[!]:label[:extra].

    Examples: text:Name, number!:Age, enum:Color:Red|Green|Blue, label:Intro:h1
    """
    try:
        field_spec = parse_field_spec(spec)
    except ValueError as e:
        fail(str(e), as_json)
    _run_edit(template_id, as_json, lambda s: s.add_field(section_id, field_spec))


@cli.command("update-field")
@click.argument("template_id")
@click.argument("section_id")
@click.argument("field_id")
@click.option("--type", "field_type", default=None, help="label, text, number, boolean, enum")
@click.option("--label", default=None, help="Field label (the content, for label fields)")
@click.option("--required/--optional", default=None, help="Whether a value must be entered")
@click.option("--options", default=None, help="Enum options separated by |")
@click.option("--label-style", default=None, type=click.Choice(["h1", "h2", "h3"]), help="Heading style")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def update_field(
    template_id: str,
    section_id: str,
    field_id: str,
    field_type: str | None,
    label: str | None,
    required: bool | None,
    options: str | None,
    label_style: str | None,
    as_json: bool,
) -> None:
    """Change attributes of a field."""
    changes: dict[str, Any] = {}
    if field_type is not None:
        changes["type"] = field_type
    if label is not None:
        changes["label"] = label
    if required is not None:
        changes["required"] = required
    if options is not None:
        changes["options"] = options.split("|")
    if label_style is not None:
        changes["labelStyle"] = label_style
    if not changes:
        fail("Nothing to update (pass --label, --type, --required/--optional, --options or --label-style)", as_json)
    _run_edit(template_id, as_json, lambda s: s.update_field(section_id, field_id, changes))


@cli.command("delete-field")
@click.argument("template_id")
@click.argument("section_id")
@click.argument("field_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def delete_field(template_id: str, section_id: str, field_id: str, as_json: bool) -> None:
    """Remove a field."""
    _run_edit(template_id, as_json, lambda s: s.delete_field(section_id, field_id))


@cli.command("move-field")
@click.argument("template_id")
@click.argument("section_id")
@click.argument("from_index", type=int)
@click.argument("to_index", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def move_field(template_id: str, section_id: str, from_index: int, to_index: int, as_json: bool) -> None:
    """Move a field to a new position within its section."""
    _run_edit(template_id, as_json, lambda s: s.reorder_fields(section_id, from_index, to_index))


# -- Filling ----------------------------------------------------------------


@cli.command()
@click.argument("template_id")
@click.option("--value", "-v", "pairs", multiple=True, help="FIELD=VALUE, FIELD is an id or label (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def fill(template_id: str, pairs: tuple[str, ...], as_json: bool) -> None:
    """Fill in a form and submit it."""
    state = get_state()
    try:
        template = state.get_template(template_id)
    except KeyError:
        fail(f"Template not found: {template_id}", as_json)
    try:
        values = parse_values(template, pairs)
    except ValueError as e:
        fail(str(e), as_json)
    try:
        submission, errors = state.submit(template_id, values)
    except PersistenceError as e:
        fail(str(e), as_json)
    if submission is None:
        if as_json:
            click.echo(json_mod.dumps({"error": "validation failed", "errors": errors}, indent=2))
        else:
            click.echo("Please fill out all required fields correctly:", err=True)
            for field_id, reason in errors.items():
                click.echo(f"  {field_id}: {reason}", err=True)
        sys.exit(1)
    if as_json:
        click.echo(json_mod.dumps(submission.to_dict(), indent=2))
    else:
        click.echo(f"Submitted {template.name} at {submission.submitted_at}")


@cli.command()
@click.argument("template_id")
@click.option("--value", "-v", "pairs", multiple=True, help="FIELD=VALUE (repeatable)")
def check(template_id: str, pairs: tuple[str, ...]) -> None:
    """Validate values without submitting, showing errors inline."""
    state = get_state()
    try:
        template = state.get_template(template_id)
        values = parse_values(template, pairs)
    except KeyError:
        fail(f"Template not found: {template_id}", False)
    except ValueError as e:
        fail(str(e), False)
    errors = SubmissionValidator.validate(template, values)
    click.echo(render_template(template, values, errors), nl=False)
    if errors:
        sys.exit(1)


@cli.command()
@click.argument("template_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def submissions(template_id: str, as_json: bool) -> None:
    """List submissions for a template."""
    state = get_state()
    subs = state.submissions.list_by_template(template_id)
    if as_json:
        click.echo(json_mod.dumps([s.to_dict() for s in subs], indent=2))
        return
    if not subs:
        click.echo("No submissions.")
        return
    for s in subs:
        click.echo(f"{s.submitted_at}  {json_mod.dumps(s.data)}")


@cli.command()
@click.option("--port", default=8377, type=int, help="Port to listen on")
def dashboard(port: int) -> None:
    """Serve the JSON API for a builder UI."""
    from formwright.dashboard import main

    main(port=port)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
