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


def _create_rep(client: TestClient, user_id: str, level: str = "junior") -> dict:
    response = client.post(
        "/api/reps",
        json={"user_id": user_id, "full_name": user_id.title(), "commission_level": level},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()


def _create_pin(client: TestClient, user_id: str, **fields: object) -> dict:
    body = {"lat": 32.7767, "lng": -96.797, "homeowner_name": "Pat Doe", "address": "5 Oak Ln", **fields}
    response = client.post("/api/pins", json=body, headers=_as_rep(user_id))
    assert response.status_code == 201, response.json()
    return response.json()


def test_create_pin_defaults_status_and_accepts_lat_lng(client: TestClient) -> None:
    rep = _create_rep(client, "rep-a")
    pin = _create_pin(client, "rep-a")
    assert pin["status"] == "lead"
    assert pin["rep_id"] == rep["id"]
    assert float(pin["latitude"]) == pytest.approx(32.7767)
    assert pin["deal_id"] is None


def test_closer_can_read_and_update_but_unrelated_rep_cannot(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    closer = _create_rep(client, "rep-b", "senior")
    _create_rep(client, "rep-c")
    pin = _create_pin(client, "rep-a", assigned_closer_id=closer["id"])

    read = client.get(f"/api/pins/{pin['id']}", headers=_as_rep("rep-b"))
    assert read.status_code == 200

    updated = client.patch(f"/api/pins/{pin['id']}", json={"notes": "Dog in yard"}, headers=_as_rep("rep-b"))
    assert updated.status_code == 200
    assert updated.json()["notes"] == "Dog in yard"

    denied = client.get(f"/api/pins/{pin['id']}", headers=_as_rep("rep-c"))
    assert denied.status_code == 403
    assert denied.json()["code"] == "forbidden"

    listed = client.get("/api/pins", headers=_as_rep("rep-c"))
    assert listed.status_code == 200
    assert listed.json() == []

    closer_list = client.get("/api/pins", headers=_as_rep("rep-b"))
    assert [item["id"] for item in closer_list.json()] == [pin["id"]]


def test_missing_pin_is_not_found_before_ownership(client: TestClient) -> None:
    _create_rep(client, "rep-c")
    response = client.get(f"/api/pins/{uuid.uuid4()}", headers=_as_rep("rep-c"))
    assert response.status_code == 404


def test_junior_needs_closer_for_appointment(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    response = client.post(
        "/api/pins",
        json={"lat": 30.1, "lng": -97.2, "status": "appointment"},
        headers=_as_rep("rep-a"),
    )
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "invalid_state"
    assert body["details"] == {"precondition": "assigned_closer_id"}

    pin = _create_pin(client, "rep-a")
    update = client.patch(f"/api/pins/{pin['id']}", json={"status": "appointment"}, headers=_as_rep("rep-a"))
    assert update.status_code == 409


def test_senior_can_book_appointment_without_closer(client: TestClient) -> None:
    _create_rep(client, "rep-s", "senior")
    pin = _create_pin(client, "rep-s", status="appointment")
    assert pin["status"] == "appointment"


def test_assigned_closer_must_be_senior_or_manager(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    junior = _create_rep(client, "rep-j")
    response = client.post(
        "/api/pins",
        json={"lat": 30.1, "lng": -97.2, "assigned_closer_id": junior["id"]},
        headers=_as_rep("rep-a"),
    )
    assert response.status_code == 409

    missing = client.post(
        "/api/pins",
        json={"lat": 30.1, "lng": -97.2, "assigned_closer_id": str(uuid.uuid4())},
        headers=_as_rep("rep-a"),
    )
    assert missing.status_code == 404


def test_rep_cannot_reassign_pin_owner(client: TestClient) -> None:
    rep = _create_rep(client, "rep-a")
    other = _create_rep(client, "rep-o")
    pin = _create_pin(client, "rep-a")

    response = client.patch(
        f"/api/pins/{pin['id']}",
        json={"rep_id": other["id"], "notes": "moved"},
        headers=_as_rep("rep-a"),
    )
    assert response.status_code == 200
    assert response.json()["rep_id"] == rep["id"]

    admin_move = client.patch(f"/api/pins/{pin['id']}", json={"rep_id": other["id"]}, headers=ADMIN)
    assert admin_move.status_code == 200
    assert admin_move.json()["rep_id"] == other["id"]


def test_only_owner_or_admin_deletes_pin(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    closer = _create_rep(client, "rep-b", "manager")
    pin = _create_pin(client, "rep-a", assigned_closer_id=closer["id"])

    assert client.delete(f"/api/pins/{pin['id']}", headers=_as_rep("rep-b")).status_code == 403
    assert client.delete(f"/api/pins/{pin['id']}", headers=_as_rep("rep-a")).status_code == 204
    assert client.get(f"/api/pins/{pin['id']}", headers=ADMIN).status_code == 404


def test_caller_without_rep_profile_cannot_create_pin(client: TestClient) -> None:
    response = client.post(
        "/api/pins",
        json={"lat": 30.1, "lng": -97.2},
        headers={"x-test-user": "crew-1", "x-test-groups": "crew"},
    )
    assert response.status_code == 403
