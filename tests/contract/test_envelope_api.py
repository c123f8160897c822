"""Contract tests for validated request bodies served through FastAPI."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi import FastAPI
from fastapi import Request
from fastapi.testclient import TestClient
from pydantic import BaseModel
from pydantic import Field
from starlette.responses import Response

from httpapi.core.gateway import ResponseWriter
from httpapi.core.gateway import read_validated
from httpapi.core.gateway import validated_body
from httpapi.core.gateway import write_envelope
from httpapi.core.handlers import register_error_handlers
from httpapi.validation.rules import Rules

API_PREFIX = "/api/v1"


class CreateWorkspaceRequest(BaseModel):
    name: Annotated[str, Rules("required")] = ""
    owner: Annotated[str, Rules("required", "username")] = Field(default="", alias="ownerName")
    template: str = ""
    token: Annotated[str, Rules("required")] = Field(default="", exclude=True)


class BrokenRequest(BaseModel):
    name: Annotated[str, Rules("required", "unregistered")] = ""


def _assert_error_envelope(payload: dict) -> None:
    assert isinstance(payload.get("message"), str) and payload["message"]
    assert isinstance(payload.get("errors"), list)
    for item in payload["errors"]:
        assert isinstance(item, dict)
        assert isinstance(item.get("field"), str) and item["field"]
        assert isinstance(item.get("code"), str) and item["code"]


def _build_client() -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.post(f"{API_PREFIX}/workspaces", status_code=201)
    def create_workspace(
        payload: CreateWorkspaceRequest = Depends(validated_body(CreateWorkspaceRequest)),
    ) -> dict[str, str]:
        return {"name": payload.name, "owner": payload.owner}

    @app.post(f"{API_PREFIX}/workspaces/manual")
    async def create_workspace_manually(request: Request) -> Response:
        writer = ResponseWriter()
        payload = await read_validated(request, writer, CreateWorkspaceRequest)
        if payload is None:
            return writer.to_response()
        write_envelope(writer, 201, f"Created workspace {payload.name}")
        return writer.to_response()

    @app.post(f"{API_PREFIX}/broken")
    def broken(payload: BrokenRequest = Depends(validated_body(BrokenRequest))) -> dict[str, str]:
        return {"name": payload.name}

    return TestClient(app)


def test_valid_body_reaches_the_handler() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/workspaces", json={"name": "dev", "ownerName": "ab-cd"})

    assert response.status_code == 201
    assert response.json() == {"name": "dev", "owner": "ab-cd"}


def test_handler_writes_its_own_success_envelope() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/workspaces/manual", json={"name": "dev", "ownerName": "a"})

    assert response.status_code == 201
    assert response.json() == {"message": "Created workspace dev"}


def test_missing_required_field_reports_external_name() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/workspaces", json={"name": "dev"})

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload)
    assert payload == {
        "message": "Validation failed",
        "errors": [{"field": "ownerName", "code": "required"}],
    }


def test_invalid_username_reports_username_code() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/workspaces/manual", json={"name": "dev", "ownerName": "-abc"})

    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "ownerName", "code": "username"}]


def test_excluded_field_is_never_reported() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/workspaces", json={"ownerName": "ab-cd", "token": ""})

    assert response.status_code == 400
    fields = [item["field"] for item in response.json()["errors"]]
    assert fields == ["name"]


def test_malformed_json_is_a_client_fault_without_violations() -> None:
    client = _build_client()

    response = client.post(
        f"{API_PREFIX}/workspaces",
        content=b'{"name": "dev",',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload)
    assert payload["errors"] == []
    assert payload["message"].startswith("read body: ")


def test_unregistered_rule_is_a_server_fault() -> None:
    client = _build_client()

    response = client.post(f"{API_PREFIX}/broken", json={"name": "dev"})

    assert response.status_code == 500
    payload = response.json()
    _assert_error_envelope(payload)
    assert payload["errors"] == []
    assert "unregistered" in payload["message"]


def test_error_responses_are_html_safe() -> None:
    client = _build_client()

    response = client.post(
        f"{API_PREFIX}/workspaces",
        content=b'{"name": "<b>", "ownerName": 5}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.headers["content-type"] == "application/json; charset=utf-8"
    assert "<" not in response.text
    assert ">" not in response.text


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
