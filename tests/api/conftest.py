"""Fixtures for HTTP API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

import formwright.dashboard as dash_module
from formwright.core import AppState
from formwright.dashboard import SessionStore, create_app
from formwright.models import Template


@pytest.fixture
async def client(state: AppState) -> AsyncIterator[AsyncClient]:
    """Test client backed by an in-memory AppState and a fresh session store."""
    dash_module._state = state
    dash_module._sessions = SessionStore()
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._state = None
    dash_module._sessions = SessionStore()


@pytest.fixture
def saved_intake(state: AppState, intake_template: Template) -> Template:
    state.templates.upsert(intake_template)
    return intake_template

