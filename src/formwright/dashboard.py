"""JSON API for a form-builder UI.

Exposes the template repository, edit sessions, the submission validator, and
the submission repository over HTTP. Edit sessions live server-side: the UI
opens one, sends one operation per user action, and resolves the exit
protocol through ``/exit``. At most one session is open per template.

A module-level ``_state`` is set at startup (or by test fixtures) and injected
via ``Depends(_get_state)``.

Usage:
    formwright dashboard                  # Serves on localhost:8377
    formwright dashboard --port 9000      # Custom port
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from formwright.core import AppState, find_formwright_root, get_log_level
from formwright.errors import InvalidTemplateError, PersistenceError, TemplateLimitReachedError
from formwright.session import TemplateEditSession
from formwright.types import SessionSnapshot
from formwright.validation import SubmissionValidator

DEFAULT_PORT = 8377

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state -- set by main() or test fixtures
# ---------------------------------------------------------------------------

_state: AppState | None = None


class SessionStore:
    """Open edit sessions keyed by session id, at most one per template."""

    def __init__(self) -> None:
        self._sessions: dict[str, TemplateEditSession] = {}

    def open(self, session: TemplateEditSession) -> str:
        """Register *session*. Raises ``ValueError`` if its template is already being edited."""
        for sid, existing in self._sessions.items():
            if existing.template_id == session.template_id:
                msg = f"Template {session.template_id} is already being edited in session {sid}"
                raise ValueError(msg)
        sid = secrets.token_hex(8)
        self._sessions[sid] = session
        return sid

    def get(self, sid: str) -> TemplateEditSession:
        """Raises ``KeyError`` for unknown or closed sessions."""
        session = self._sessions[sid]
        if session.closed:
            del self._sessions[sid]
            raise KeyError(sid)
        return session

    def close(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    def close_for_template(self, template_id: str) -> None:
        for sid in [k for k, v in self._sessions.items() if v.template_id == template_id]:
            del self._sessions[sid]


_sessions = SessionStore()


def _get_state() -> AppState:
    if _state is None:
        msg = "Dashboard state not initialized"
        raise RuntimeError(msg)
    return _state


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    import json

    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _snapshot(sid: str, session: TemplateEditSession) -> SessionSnapshot:
    problems = session.problems()
    return SessionSnapshot(
        session_id=sid,
        template=session.template.to_dict(),
        valid=not problems,
        dirty=session.is_dirty(),
        problems=problems,
    )


# ---------------------------------------------------------------------------
# Session operations
# ---------------------------------------------------------------------------
# Each op names its arguments and their JSON types; the handler checks them
# before calling into the session.
# ---------------------------------------------------------------------------

_OpHandler = Callable[[TemplateEditSession, dict[str, Any]], Any]

_OPS: dict[str, tuple[dict[str, type], _OpHandler]] = {
    "rename_template": ({"name": str}, lambda s, a: s.rename_template(a["name"])),
    "add_section": ({}, lambda s, a: s.add_section(a["title"]) if "title" in a else s.add_section()),
    "rename_section": ({"section_id": str, "title": str}, lambda s, a: s.rename_section(a["section_id"], a["title"])),
    "delete_section": ({"section_id": str}, lambda s, a: s.delete_section(a["section_id"])),
    "reorder_sections": (
        {"from_index": int, "to_index": int},
        lambda s, a: s.reorder_sections(a["from_index"], a["to_index"]),
    ),
    "add_field": ({"section_id": str, "field": dict}, lambda s, a: s.add_field(a["section_id"], a["field"])),
    "update_field": (
        {"section_id": str, "field_id": str, "changes": dict},
        lambda s, a: s.update_field(a["section_id"], a["field_id"], a["changes"]),
    ),
    "delete_field": ({"section_id": str, "field_id": str}, lambda s, a: s.delete_field(a["section_id"], a["field_id"])),
    "reorder_fields": (
        {"section_id": str, "from_index": int, "to_index": int},
        lambda s, a: s.reorder_fields(a["section_id"], a["from_index"], a["to_index"]),
    ),
    "move_field": (
        {"source_section_id": str, "from_index": int, "dest_section_id": str, "to_index": int},
        lambda s, a: s.move_field(a["source_section_id"], a["from_index"], a["dest_section_id"], a["to_index"]),
    ),
}


def _check_op_args(op: str, body: dict[str, Any]) -> str | None:
    """Return an error message if *body* lacks or mistypes an argument of *op*."""
    arg_types, _handler = _OPS[op]
    for name, expected in arg_types.items():
        value = body.get(name)
        # bool is a subclass of int and must not pass as an index
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            return f"'{op}' requires '{name}' of type {expected.__name__}"
    if op == "add_section" and "title" in body and not isinstance(body["title"], str):
        return "'add_section' title must be a string"
    return None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app() -> Any:
    """Create the FastAPI application with all API endpoints."""
    from fastapi import APIRouter, Depends, FastAPI
    from fastapi.responses import JSONResponse
    from starlette.requests import Request

    # Expose Request/JSONResponse in module globals so PEP 563 deferred annotations resolve
    globals()["Request"] = Request
    globals()["JSONResponse"] = JSONResponse

    app = FastAPI(title="Formwright", docs_url=None, redoc_url=None)
    router = APIRouter()

    # -- Templates ----------------------------------------------------------

    @router.get("/templates")
    async def api_templates(state: AppState = Depends(_get_state)) -> JSONResponse:
        return JSONResponse(
            {
                "templates": [t.to_dict() for t in state.templates.list()],
                "limit": state.templates.limit,
                "full": state.templates.is_full,
            }
        )

    @router.get("/templates/{template_id}")
    async def api_template(template_id: str, state: AppState = Depends(_get_state)) -> JSONResponse:
        tpl = state.templates.get(template_id)
        if tpl is None:
            return _error_response(f"Template not found: {template_id}", "NOT_FOUND", 404)
        return JSONResponse(tpl.to_dict())

    @router.delete("/templates/{template_id}")
    async def api_delete_template(template_id: str, state: AppState = Depends(_get_state)) -> JSONResponse:
        try:
            removed = state.templates.delete(template_id)
        except PersistenceError as e:
            return _error_response(str(e), "PERSISTENCE_ERROR", 500)
        if removed:
            _sessions.close_for_template(template_id)
        return JSONResponse({"deleted": removed})

    # -- Filling ------------------------------------------------------------

    @router.post("/templates/{template_id}/validate")
    async def api_validate(template_id: str, request: Request, state: AppState = Depends(_get_state)) -> JSONResponse:
        tpl = state.templates.get(template_id)
        if tpl is None:
            return _error_response(f"Template not found: {template_id}", "NOT_FOUND", 404)
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        values = body.get("values", {})
        if not isinstance(values, dict):
            return _error_response("'values' must be an object", "VALIDATION_ERROR", 400)
        errors = SubmissionValidator.validate(tpl, values)
        return JSONResponse({"valid": not errors, "errors": errors})

    @router.post("/templates/{template_id}/submissions")
    async def api_submit(template_id: str, request: Request, state: AppState = Depends(_get_state)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        values = body.get("values", {})
        if not isinstance(values, dict):
            return _error_response("'values' must be an object", "VALIDATION_ERROR", 400)
        try:
            submission, errors = state.submit(template_id, values)
        except KeyError:
            return _error_response(f"Template not found: {template_id}", "NOT_FOUND", 404)
        except PersistenceError as e:
            return _error_response(str(e), "PERSISTENCE_ERROR", 500)
        if submission is None:
            return _error_response(
                "Please fill out all required fields correctly.", "VALIDATION_ERROR", 400, {"errors": errors}
            )
        return JSONResponse(submission.to_dict(), status_code=201)

    @router.get("/templates/{template_id}/submissions")
    async def api_submissions(template_id: str, state: AppState = Depends(_get_state)) -> JSONResponse:
        return JSONResponse([s.to_dict() for s in state.submissions.list_by_template(template_id)])

    # -- Edit sessions ------------------------------------------------------

    @router.post("/sessions")
    async def api_open_session(request: Request, state: AppState = Depends(_get_state)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        template_id = body.get("template_id")
        if template_id is not None and not isinstance(template_id, str):
            return _error_response("'template_id' must be a string", "VALIDATION_ERROR", 400)
        if template_id is None and state.templates.is_full:
            err = TemplateLimitReachedError(state.templates.limit)
            return _error_response(str(err), "TEMPLATE_LIMIT", 409, {"limit": err.limit})
        try:
            session = state.open_session(template_id)
        except KeyError:
            return _error_response(f"Template not found: {template_id}", "NOT_FOUND", 404)
        try:
            sid = _sessions.open(session)
        except ValueError as e:
            return _error_response(str(e), "SESSION_CONFLICT", 409)
        return JSONResponse(_snapshot(sid, session), status_code=201)

    @router.get("/sessions/{sid}")
    async def api_session(sid: str) -> JSONResponse:
        try:
            session = _sessions.get(sid)
        except KeyError:
            return _error_response(f"Session not found: {sid}", "NOT_FOUND", 404)
        return JSONResponse(_snapshot(sid, session))

    @router.post("/sessions/{sid}/ops")
    async def api_session_op(sid: str, request: Request) -> JSONResponse:
        try:
            session = _sessions.get(sid)
        except KeyError:
            return _error_response(f"Session not found: {sid}", "NOT_FOUND", 404)
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        op = body.get("op")
        if op not in _OPS:
            valid = ", ".join(sorted(_OPS))
            return _error_response(f"Unknown op {op!r}. Valid ops: {valid}", "VALIDATION_ERROR", 400)
        arg_error = _check_op_args(op, body)
        if arg_error:
            return _error_response(arg_error, "VALIDATION_ERROR", 400)
        _arg_types, handler = _OPS[op]
        try:
            handler(session, body)
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse(_snapshot(sid, session))

    @router.post("/sessions/{sid}/exit")
    async def api_session_exit(sid: str, request: Request) -> JSONResponse:
        try:
            session = _sessions.get(sid)
        except KeyError:
            return _error_response(f"Session not found: {sid}", "NOT_FOUND", 404)
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        action = body.get("action")
        if action is None:
            return JSONResponse({"decision": session.request_exit(), "closed": False})
        if action not in ("discard", "save", "cancel"):
            return _error_response(f"Invalid action {action!r}", "VALIDATION_ERROR", 400)
        try:
            leave = session.resolve_exit(action)
        except InvalidTemplateError as e:
            return _error_response(str(e), "INVALID_TEMPLATE", 400, {"problems": e.problems})
        except TemplateLimitReachedError as e:
            return _error_response(str(e), "TEMPLATE_LIMIT", 409, {"limit": e.limit})
        except PersistenceError as e:
            return _error_response(str(e), "PERSISTENCE_ERROR", 500)
        if leave:
            _sessions.close(sid)
        return JSONResponse({"closed": leave, "template": session.template.to_dict()})

    @router.post("/sessions/{sid}/commit")
    async def api_session_commit(sid: str) -> JSONResponse:
        try:
            session = _sessions.get(sid)
        except KeyError:
            return _error_response(f"Session not found: {sid}", "NOT_FOUND", 404)
        try:
            session.commit()
        except InvalidTemplateError as e:
            return _error_response(str(e), "INVALID_TEMPLATE", 400, {"problems": e.problems})
        except TemplateLimitReachedError as e:
            return _error_response(str(e), "TEMPLATE_LIMIT", 409, {"limit": e.limit})
        except PersistenceError as e:
            return _error_response(str(e), "PERSISTENCE_ERROR", 500)
        return JSONResponse(_snapshot(sid, session))

    app.include_router(router, prefix="/api")
    return app


def main(port: int = DEFAULT_PORT) -> None:
    """Start the API server for the local project."""
    import uvicorn

    from formwright.logging import setup_logging

    global _state

    formwright_dir = find_formwright_root()
    setup_logging(formwright_dir, get_log_level(formwright_dir))
    _state = AppState.from_project(formwright_dir)
    app = create_app()
    print(f"Formwright API: http://localhost:{port}/api/templates")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
