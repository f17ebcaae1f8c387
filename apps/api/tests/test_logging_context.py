from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dealflow import audit, events
from dealflow.core.auth import AuthUser, get_current_user
from dealflow.core.database import Base, get_db
from dealflow.logging import JsonLogFormatter
from dealflow.main import app


ADMIN = {"x-test-user": "admin-1", "x-test-groups": "admin"}


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user(request: Request) -> AuthUser:
        groups = request.headers.get("x-test-groups", "")
        return AuthUser(
            sub=request.headers.get("x-test-user", "anonymous"),
            groups=[group for group in groups.split(",") if group],
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()




def _as_rep(user_id: str) -> dict[str, str]:
    return {"x-test-user": user_id, "x-test-groups": "rep"}


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    deal_id = uuid.uuid4()
    response = client.get(f"/api/deals/{deal_id}", headers={**ADMIN, "X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "dealflow.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/deals/{id}"
        and getattr(record, "status_code", None) == 404
        and record.levelno == logging.WARNING
        and getattr(record, "resource_id", None) == str(deal_id)
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_logs_include_status_transition(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    rep = client.post("/api/reps", json={"user_id": "rep-a"}, headers=ADMIN)
    assert rep.status_code == 201
    deal = client.post(
        "/api/deals",
        json={"homeowner_name": "Dana Reyes", "address": "12 Elm St"},
        headers=_as_rep("rep-a"),
    ).json()

    response = client.patch(
        f"/api/deals/{deal['id']}",
        json={"approval_type": "partial"},
        headers={**_as_rep("rep-a"), "X-Correlation-Id": "abc-456"},
    )
    assert response.status_code == 200

    transitions = [
        record
        for record in caplog.records
        if record.name == "dealflow.lifecycle" and record.getMessage() == "deal.status_advanced"
    ]
    assert any(
        getattr(record, "deal_id", None) == deal["id"]
        and getattr(record, "from_status", None) == "lead"
        and getattr(record, "to_status", None) == "approved"
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in transitions
    )


def test_access_denied_logged_as_warning(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    response = client.delete(f"/api/deals/{uuid.uuid4()}", headers={"x-test-user": "crew-1", "x-test-groups": "crew"})
    assert response.status_code == 404

    client.post("/api/reps", json={"user_id": "rep-z"}, headers={"x-test-user": "crew-1", "x-test-groups": "crew"})
    denied = [record for record in caplog.records if record.name == "dealflow.security"]
    assert denied
    assert denied[-1].levelno == logging.WARNING
    assert getattr(denied[-1], "resource", None) == "rep"
    assert getattr(denied[-1], "action", None) == "create"


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "dealflow.lifecycle",
            "levelname": "INFO",
            "msg": "deal.status_advanced",
            "deal_id": "d-1",
            "to_status": "approved",
            "homeowner_email": "dana@example.com",
            "correlation_id": "corr-9",
        }
    )
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["msg"] == "deal.status_advanced"
    assert payload["correlation_id"] == "corr-9"
    assert payload["fields"] == {"deal_id": "d-1", "to_status": "approved"}
