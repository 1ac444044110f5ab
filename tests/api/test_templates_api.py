"""Tests for the template and submission endpoints."""

from __future__ import annotations

from httpx import AsyncClient

from formwright.core import AppState
from formwright.models import Submission, Template

_VALID_VALUES = {"f-name": "Ada", "f-age": 36, "f-color": "Blue", "f-consent": False}


class TestTemplatesAPI:
    async def test_empty_listing(self, client: AsyncClient) -> None:
        resp = await client.get("/api/templates")
        assert resp.status_code == 200
        assert resp.json() == {"templates": [], "limit": 5, "full": False}

    async def test_listing(self, client: AsyncClient, saved_intake: Template) -> None:
        data = (await client.get("/api/templates")).json()
        assert [t["id"] for t in data["templates"]] == ["tpl-intake"]
        assert data["templates"][0]["sections"][1]["fields"][0]["options"] == ["Red", "Green", "Blue"]

    async def test_get_template(self, client: AsyncClient, saved_intake: Template) -> None:
        resp = await client.get("/api/templates/tpl-intake")
        assert resp.status_code == 200
        assert resp.json() == saved_intake.to_dict()

    async def test_get_missing(self, client: AsyncClient) -> None:
        resp = await client.get("/api/templates/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    async def test_delete_cascades(self, client: AsyncClient, state: AppState, saved_intake: Template) -> None:
        state.submissions.append(Submission(template_id="tpl-intake", data={"f-name": "Ada"}, submitted_at="t"))
        resp = await client.delete("/api/templates/tpl-intake")
        assert resp.json() == {"deleted": True}
        assert state.templates.get("tpl-intake") is None
        assert state.submissions.list_by_template("tpl-intake") == []

    async def test_delete_absent_is_noop(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/templates/nope")
        assert resp.status_code == 200
        assert resp.json() == {"deleted": False}


class TestFillingAPI:
    async def test_validate_reports_errors(self, client: AsyncClient, saved_intake: Template) -> None:
        resp = await client.post("/api/templates/tpl-intake/validate", json={"values": {"f-age": "x"}})
        data = resp.json()
        assert data["valid"] is False
        assert list(data["errors"]) == ["f-name", "f-age", "f-color", "f-consent"]
        assert data["errors"]["f-age"] == "Age must be a valid number"

    async def test_validate_non_object_values(self, client: AsyncClient, saved_intake: Template) -> None:
        resp = await client.post("/api/templates/tpl-intake/validate", json={"values": ["x"]})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_validate_missing_template(self, client: AsyncClient) -> None:
        resp = await client.post("/api/templates/nope/validate", json={"values": {}})
        assert resp.status_code == 404

    async def test_submit(self, client: AsyncClient, state: AppState, saved_intake: Template) -> None:
        resp = await client.post("/api/templates/tpl-intake/submissions", json={"values": _VALID_VALUES})
        assert resp.status_code == 201
        assert resp.json()["templateId"] == "tpl-intake"
        listing = (await client.get("/api/templates/tpl-intake/submissions")).json()
        assert len(listing) == 1
        assert listing[0]["data"] == _VALID_VALUES

    async def test_submit_refused(self, client: AsyncClient, state: AppState, saved_intake: Template) -> None:
        resp = await client.post("/api/templates/tpl-intake/submissions", json={"values": {"f-name": "  "}})
        assert resp.status_code == 400
        err = resp.json()["error"]
        assert err["code"] == "VALIDATION_ERROR"
        assert err["details"]["errors"]["f-name"] == "Name is required"
        assert state.submissions.list_all() == []

    async def test_submit_non_object_values(self, client: AsyncClient, saved_intake: Template) -> None:
        resp = await client.post("/api/templates/tpl-intake/submissions", json={"values": [1, 2]})
        assert resp.status_code == 400

    async def test_submit_invalid_json(self, client: AsyncClient, saved_intake: Template) -> None:
        resp = await client.post(
            "/api/templates/tpl-intake/submissions",
            content=b"{nope",
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid JSON body"

    async def test_submit_missing_template(self, client: AsyncClient) -> None:
        resp = await client.post("/api/templates/nope/submissions", json={"values": {}})
        assert resp.status_code == 404
