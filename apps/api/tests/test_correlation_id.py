from __future__ import annotations

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


def _create_rep(client: TestClient, user_id: str) -> dict:
    response = client.post("/api/reps", json={"user_id": user_id}, headers=ADMIN)
    assert response.status_code == 201
    return response.json()


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get(f"/api/deals/{uuid.uuid4()}", headers=ADMIN)
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value
    assert body["code"] == "not_found"
    assert body["message"] == "deal not found"


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/deals/{uuid.uuid4()}", headers={**ADMIN, "X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_audit_and_events_carry_request_correlation_id(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = client.post(
        "/api/deals",
        json={"homeowner_name": "Dana Reyes", "address": "12 Elm St"},
        headers={**_as_rep("rep-a"), "X-Correlation-Id": "corr-audit-1"},
    )
    assert deal.status_code == 201

    deal_audits = [entry for entry in audit.audit_entries if entry.get("entity_type") == "deal"]
    assert deal_audits
    assert deal_audits[-1]["correlation_id"] == "corr-audit-1"

    updated = client.patch(
        f"/api/deals/{deal.json()['id']}",
        json={"insurance_company": "Acme Mutual", "claim_number": "CLM-1"},
        headers={**_as_rep("rep-a"), "X-Correlation-Id": "corr-event-1"},
    )
    assert updated.status_code == 200

    changed = [item for item in events.published_events if item.get("event_type") == "deal.status_changed"]
    assert changed
    assert changed[-1]["correlation_id"] == "corr-event-1"


def test_denied_access_is_audited_with_correlation_id(client: TestClient) -> None:
    response = client.get("/api/deals", headers={"X-Correlation-Id": "corr-denied-1"})
    assert response.status_code == 403
    assert response.json()["correlation_id"] == "corr-denied-1"

    denied = [entry for entry in audit.audit_entries if entry.get("action") == "access.denied"]
    assert denied
    assert denied[-1]["correlation_id"] == "corr-denied-1"


def test_malformed_correlation_id_is_replaced(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Correlation-Id": "bad id\twith spaces"})
    assert response.status_code == 200
    replaced = response.headers.get("x-correlation-id")
    assert replaced
    assert replaced != "bad id\twith spaces"
    assert uuid.UUID(replaced)


def test_audit_trail_for_deal_lists_changed_fields(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = client.post(
        "/api/deals",
        json={"homeowner_name": "Dana Reyes", "address": "12 Elm St"},
        headers=_as_rep("rep-a"),
    ).json()
    client.patch(
        f"/api/deals/{deal['id']}",
        json={"insurance_company": "Acme Mutual", "claim_number": "CLM-1"},
        headers=_as_rep("rep-a"),
    )

    trail = audit.entries_for("deal", deal["id"])
    assert [entry["action"] for entry in trail] == ["deal.created", "deal.updated"]
    assert trail[-1]["actor_user_id"] == "rep-a"
    assert "status" in trail[-1]["changed"]
    assert trail[-1]["after"]["status"] == "claim_filed"


def test_status_change_event_envelope(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = client.post(
        "/api/deals",
        json={"homeowner_name": "Dana Reyes", "address": "12 Elm St"},
        headers=_as_rep("rep-a"),
    ).json()
    client.patch(f"/api/deals/{deal['id']}", json={"approval_type": "full"}, headers=_as_rep("rep-a"))

    changed = [item for item in events.published_events if item["event_type"] == "deal.status_changed"]
    assert len(changed) == 1
    envelope = changed[0]
    assert envelope["deal_id"] == deal["id"]
    assert envelope["mode"] == "auto"
    assert envelope["event_id"]
    assert envelope["occurred_at"]
