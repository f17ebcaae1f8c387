from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dealflow import audit, events
from dealflow.core.auth import AuthUser, get_current_user
from dealflow.core.config import get_settings
from dealflow.core.database import Base, get_db
from dealflow.deals.models import DealCommission
from dealflow.deals.service import deal_service
from dealflow.main import app
from dealflow.pins.models import Pin
from dealflow.platform.security import Caller, Role
from dealflow.storage import get_object_store


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
    response = client.post("/api/reps", json={"user_id": user_id, "commission_level": level}, headers=ADMIN)
    assert response.status_code == 201
    return response.json()


def _create_deal(client: TestClient, user_id: str, **fields: object) -> dict:
    body = {"homeowner_name": "Dana Reyes", "address": "12 Elm St", **fields}
    response = client.post("/api/deals", json=body, headers=_as_rep(user_id))
    assert response.status_code == 201, response.json()
    return response.json()


def test_create_deal_requires_homeowner_and_address(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    response = client.post("/api/deals", json={"homeowner_name": "Dana"}, headers=_as_rep("rep-a"))
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["message"] == "Missing required fields: address"
    assert body["details"] == {"missing_fields": ["address"]}


def test_create_deal_starts_at_lead_with_self_gen_commission(client: TestClient) -> None:
    rep = _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a", rcv=20000, acv=17000, depreciation=3000, deductible=1000, status="paid")

    assert deal["status"] == "lead"
    assert deal["lead_date"] is not None
    assert deal["progress_percentage"] == 7
    assert deal["next_status"] == "inspection_scheduled"
    assert len(deal["commissions"]) == 1
    commission = deal["commissions"][0]
    assert commission["rep_id"] == rep["id"]
    assert commission["commission_type"] == "self_gen"
    assert Decimal(commission["commission_percent"]) == Decimal("5")
    assert Decimal(commission["commission_amount"]) == Decimal("917.50")

    breakdown = deal["commission_breakdown"]
    assert Decimal(breakdown["calculated_rcv"]) == Decimal("20000")
    assert Decimal(breakdown["sales_tax"]) == Decimal("1650.00")
    assert Decimal(breakdown["first_check"]) == Decimal("16000")
    assert Decimal(breakdown["second_check"]) == Decimal("3000")

    created = [entry for entry in audit.audit_entries if entry["action"] == "deal.created"]
    assert created and created[-1]["entity_id"] == deal["id"]


def test_rep_sees_only_linked_deals(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    _create_rep(client, "rep-c")
    deal = _create_deal(client, "rep-a")

    assert [item["id"] for item in client.get("/api/deals", headers=_as_rep("rep-a")).json()] == [deal["id"]]
    assert client.get("/api/deals", headers=_as_rep("rep-c")).json() == []
    assert client.get(f"/api/deals/{deal['id']}", headers=_as_rep("rep-c")).status_code == 403
    assert client.get(f"/api/deals/{uuid.uuid4()}", headers=_as_rep("rep-c")).status_code == 404
    assert len(client.get("/api/deals", headers=ADMIN).json()) == 1


def test_anonymous_and_crew_callers(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    assert client.get("/api/deals").status_code == 403
    crew = {"x-test-user": "crew-1", "x-test-groups": "crew"}
    assert client.get("/api/deals", headers=crew).json() == []
    assert client.get(f"/api/deals/{deal['id']}", headers=crew).status_code == 403


def test_rep_update_drops_fields_outside_allow_list(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    response = client.patch(
        f"/api/deals/{deal['id']}",
        json={"status": "complete", "commission_paid": True, "claim_number": "CLM-7"},
        headers=_as_rep("rep-a"),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "lead"
    assert body["commission_paid"] is False
    assert body["claim_number"] == "CLM-7"

    empty = client.patch(f"/api/deals/{deal['id']}", json={"status": "complete"}, headers=_as_rep("rep-a"))
    assert empty.status_code == 422


def test_update_advances_several_steps_and_stamps_target_only(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    response = client.patch(f"/api/deals/{deal['id']}", json={"approval_type": "full"}, headers=_as_rep("rep-a"))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "approved"
    assert body["approved_date"] is not None
    assert body["claim_filed_date"] is None
    assert body["inspection_scheduled_date"] is None

    changes = [item for item in events.published_events if item.get("event_type") == "deal.status_changed"]
    assert changes[-1]["from_status"] == "lead"
    assert changes[-1]["to_status"] == "approved"
    assert changes[-1]["mode"] == "auto"

    still = client.patch(f"/api/deals/{deal['id']}", json={"approval_type": "supplement_needed"}, headers=_as_rep("rep-a"))
    assert still.json()["status"] == "approved"


def test_parked_deal_keeps_status_but_merges_fields(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    parked = client.put(f"/api/deals/{deal['id']}/status", json={"status": "on_hold"}, headers=ADMIN)
    assert parked.status_code == 200
    assert parked.json()["progress_percentage"] == 0

    response = client.patch(f"/api/deals/{deal['id']}", json={"approval_type": "partial"}, headers=_as_rep("rep-a"))
    assert response.json()["status"] == "on_hold"
    assert response.json()["approval_type"] == "partial"


def test_status_override_is_admin_only(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    denied = client.put(f"/api/deals/{deal['id']}/status", json={"status": "complete"}, headers=_as_rep("rep-a"))
    assert denied.status_code == 403

    bad = client.put(f"/api/deals/{deal['id']}/status", json={"status": "archived"}, headers=ADMIN)
    assert bad.status_code == 422

    admin_patch = client.patch(f"/api/deals/{deal['id']}", json={"status": "install_scheduled"}, headers=ADMIN)
    assert admin_patch.status_code == 200
    assert admin_patch.json()["status"] == "install_scheduled"
    assert admin_patch.json()["install_scheduled_date"] is not None


def test_advance_requires_next_step_prerequisites(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    blocked = client.post(f"/api/deals/{deal['id']}/advance", headers=_as_rep("rep-a"))
    assert blocked.status_code == 409
    assert blocked.json()["details"] == {"precondition": "inspection_images|inspection_date"}

    client.patch(
        f"/api/deals/{deal['id']}",
        json={"insurance_company": "Acme Mutual", "claim_number": "CLM-1"},
        headers=_as_rep("rep-a"),
    )
    client.put(f"/api/deals/{deal['id']}/status", json={"status": "inspection_scheduled"}, headers=ADMIN)

    advanced = client.post(f"/api/deals/{deal['id']}/advance", headers=_as_rep("rep-a"))
    assert advanced.status_code == 200
    assert advanced.json()["status"] == "claim_filed"


def test_complete_deal_cannot_be_advanced(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")
    client.put(f"/api/deals/{deal['id']}/status", json={"status": "complete"}, headers=ADMIN)

    response = client.post(f"/api/deals/{deal['id']}/advance", headers=_as_rep("rep-a"))
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


def test_request_payment_gated_on_depreciation_and_idempotent(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    blocked = client.post(f"/api/deals/{deal['id']}/request-payment", headers=_as_rep("rep-a"))
    assert blocked.status_code == 409
    assert blocked.json()["details"] == {"precondition": "depreciation_check_collected"}

    client.patch(f"/api/deals/{deal['id']}", json={"depreciation_check_collected": True}, headers=_as_rep("rep-a"))
    first = client.post(f"/api/deals/{deal['id']}/request-payment", headers=_as_rep("rep-a"))
    assert first.status_code == 200
    assert first.json()["payment_requested"] is True
    requested_at = first.json()["payment_request_date"]

    second = client.post(f"/api/deals/{deal['id']}/request-payment", headers=_as_rep("rep-a"))
    assert second.status_code == 200
    assert second.json()["payment_request_date"] == requested_at
    assert [item["event_type"] for item in events.published_events].count("deal.payment_requested") == 1


def test_rep_cannot_set_payment_request_fields_directly(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")
    url = f"/api/deals/{deal['id']}"

    skipped = client.patch(url, json={"payment_requested": True}, headers=_as_rep("rep-a"))
    assert skipped.status_code == 422
    assert skipped.json()["message"] == "No fields to update"

    client.patch(url, json={"depreciation_check_collected": True}, headers=_as_rep("rep-a"))
    requested = client.post(f"{url}/request-payment", headers=_as_rep("rep-a")).json()
    assert requested["payment_requested"] is True
    assert requested["payment_request_date"] is not None

    rewritten = client.patch(
        url,
        json={"payment_request_date": "2030-01-01T00:00:00", "notes": "called adjuster"},
        headers=_as_rep("rep-a"),
    )
    assert rewritten.status_code == 200
    assert rewritten.json()["payment_request_date"] == requested["payment_request_date"]


def test_failed_payment_request_commit_publishes_nothing(
    client: TestClient, db_session: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    rep = _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a", depreciation_check_collected=True)
    caller = Caller(user_id="rep-a", role=Role.REP, rep_id=uuid.UUID(rep["id"]))

    def failing_commit() -> None:
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(OperationalError):
        deal_service.request_payment(db_session, caller, uuid.UUID(deal["id"]))

    assert not [item for item in events.published_events if item["event_type"] == "deal.payment_requested"]

def test_financial_update_refreshes_unpaid_commission(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")
    assert Decimal(deal["commissions"][0]["commission_amount"]) == Decimal("0")

    response = client.patch(f"/api/deals/{deal['id']}", json={"rcv": 20000}, headers=_as_rep("rep-a"))
    assert Decimal(response.json()["commissions"][0]["commission_amount"]) == Decimal("917.50")


def test_delete_deal_is_admin_only(client: TestClient, db_session: Session) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")

    assert client.delete(f"/api/deals/{deal['id']}", headers=_as_rep("rep-a")).status_code == 403
    assert client.delete(f"/api/deals/{deal['id']}", headers=ADMIN).status_code == 204
    assert client.get(f"/api/deals/{deal['id']}", headers=ADMIN).status_code == 404
    assert db_session.scalars(select(DealCommission)).all() == []


def test_documents(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    deal = _create_deal(client, "rep-a")
    url = f"/api/deals/{deal['id']}/documents"

    missing = client.post(url, json={"document_type": "contract", "file_name": "c.pdf"}, headers=_as_rep("rep-a"))
    assert missing.status_code == 422
    assert missing.json()["details"] == {"missing_fields": ["file_url"]}

    created = client.post(
        url,
        json={"document_type": "contract", "file_name": "c.pdf", "file_url": "local://uploads/c.pdf"},
        headers=_as_rep("rep-a"),
    )
    assert created.status_code == 201
    assert created.json()["uploaded_by"] == "rep-a"

    listed = client.get(url, headers=_as_rep("rep-a"))
    assert [item["id"] for item in listed.json()] == [created.json()["id"]]

    document_url = f"{url}/{created.json()['id']}"
    assert client.delete(document_url, headers=_as_rep("rep-a")).status_code == 403
    assert client.delete(document_url, headers=ADMIN).status_code == 204
    assert client.get(url, headers=_as_rep("rep-a")).json() == []


def test_convert_pin_to_deal_once(client: TestClient, db_session: Session) -> None:
    owner = _create_rep(client, "rep-a")
    closer = _create_rep(client, "rep-b", "senior")
    pin = client.post(
        "/api/pins",
        json={
            "lat": 32.1,
            "lng": -96.4,
            "homeowner_name": "Pat Doe",
            "address": "5 Oak Ln",
            "assigned_closer_id": closer["id"],
            "inspection_images": ["local://pins/roof.jpg"],
        },
        headers=_as_rep("rep-a"),
    ).json()

    converted = client.post("/api/deals/from-pin", json={"pin_id": pin["id"]}, headers=_as_rep("rep-b"))
    assert converted.status_code == 201
    deal = converted.json()["deal"]
    assert deal["homeowner_name"] == "Pat Doe"
    assert deal["inspection_images"] == ["local://pins/roof.jpg"]
    commissions = {item["commission_type"]: item for item in deal["commissions"]}
    assert commissions["setter"]["rep_id"] == owner["id"]
    assert Decimal(commissions["setter"]["commission_percent"]) == Decimal("5")
    assert commissions["closer"]["rep_id"] == closer["id"]
    assert Decimal(commissions["closer"]["commission_percent"]) == Decimal("10")

    stored_pin = db_session.get(Pin, uuid.UUID(pin["id"]))
    assert stored_pin is not None
    assert str(stored_pin.deal_id) == deal["id"]
    assert stored_pin.status == "installed"

    again = client.post("/api/deals/from-pin", json={"pin_id": pin["id"]}, headers=_as_rep("rep-a"))
    assert again.status_code == 409
    assert again.json()["code"] == "conflict"


def test_convert_pin_without_closer_creates_self_gen(client: TestClient) -> None:
    _create_rep(client, "rep-a")
    _create_rep(client, "rep-c")
    pin = client.post("/api/pins", json={"lat": 32.1, "lng": -96.4}, headers=_as_rep("rep-a")).json()

    denied = client.post("/api/deals/from-pin", json={"pin_id": pin["id"]}, headers=_as_rep("rep-c"))
    assert denied.status_code == 403

    incomplete = client.post("/api/deals/from-pin", json={"pin_id": pin["id"]}, headers=_as_rep("rep-a"))
    assert incomplete.status_code == 422

    converted = client.post(
        "/api/deals/from-pin",
        json={"pin_id": pin["id"], "homeowner_name": "Sam Lee", "address": "9 Pine Ct"},
        headers=_as_rep("rep-a"),
    )
    assert converted.status_code == 201
    assert [item["commission_type"] for item in converted.json()["deal"]["commissions"]] == ["self_gen"]

    missing = client.post("/api/deals/from-pin", json={"pin_id": str(uuid.uuid4())}, headers=_as_rep("rep-a"))
    assert missing.status_code == 404


def test_status_catalog_endpoint(client: TestClient) -> None:
    response = client.get("/api/deals/statuses")
    assert response.status_code == 200
    statuses = response.json()
    assert [item["status"] for item in statuses][:3] == ["lead", "inspection_scheduled", "claim_filed"]
    assert statuses[-1]["status"] == "paid"
    assert statuses[-1]["progress_percentage"] == 100


def test_local_upload_url_stores_and_serves_document_bytes(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_LOCAL_DIR", str(tmp_path))
    get_settings.cache_clear()
    get_object_store.cache_clear()
    try:
        _create_rep(client, "rep-a")
        presigned = client.post(
            "/api/uploads/url",
            json={"file_name": "contract.pdf", "file_type": "application/pdf", "folder": "contracts"},
            headers=_as_rep("rep-a"),
        ).json()
        assert presigned["url"] == f"/api/uploads/local/{presigned['key']}"

        stored = client.put(presigned["url"], content=b"%PDF-1.7", headers=_as_rep("rep-a"))
        assert stored.status_code == 200
        assert stored.json() == {"key": presigned["key"], "size": 8}

        foreign = client.put(presigned["url"], content=b"overwrite", headers=_as_rep("rep-b"))
        assert foreign.status_code == 403

        fetched = client.get(presigned["url"], headers=_as_rep("rep-a"))
        assert fetched.status_code == 200
        assert fetched.content == b"%PDF-1.7"

        missing = client.get("/api/uploads/local/contracts/rep-a/missing.pdf", headers=_as_rep("rep-a"))
        assert missing.status_code == 404
    finally:
        get_settings.cache_clear()
        get_object_store.cache_clear()
