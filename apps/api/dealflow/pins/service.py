from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from dealflow import audit
from dealflow.core.database import transaction
from dealflow.errors import NotFoundError, StateError, ValidationError
from dealflow.lifecycle.commission import CommissionTier
from dealflow.pins.models import Pin
from dealflow.pins.schemas import PinAdminUpdate, PinCreate, PinMemberUpdate, PinRead
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, access_guard, restrict_update
from dealflow.reps.models import Rep


CLOSER_TIERS = frozenset({CommissionTier.SENIOR.value, CommissionTier.MANAGER.value})
_REQUIRED_COLUMNS = frozenset({"status", "latitude", "longitude", "inspection_images", "rep_id"})


@dataclass(slots=True)
class PinService:
    guard: AccessGuard = access_guard

    def list_pins(self, session: Session, caller: Caller) -> list[PinRead]:
        self.guard.require_role(caller, ResourceKind.PIN, ResourceAction.READ)
        query = select(Pin).order_by(Pin.created_at.desc())
        if not caller.is_admin:
            if caller.rep_id is None:
                return []
            query = query.where(or_(Pin.rep_id == caller.rep_id, Pin.assigned_closer_id == caller.rep_id))
        return [PinRead.model_validate(pin) for pin in session.scalars(query).all()]

    def get_pin(self, session: Session, caller: Caller, pin_id: uuid.UUID) -> PinRead:
        pin = self._load(session, pin_id)
        self.guard.check(caller, ResourceKind.PIN, [pin.rep_id, pin.assigned_closer_id], ResourceAction.READ)
        return PinRead.model_validate(pin)

    def create_pin(self, session: Session, caller: Caller, dto: PinCreate) -> PinRead:
        self.guard.require_role(caller, ResourceKind.PIN, ResourceAction.CREATE)
        data = dto.model_dump(exclude_unset=True)
        data.setdefault("status", dto.status)
        requested_rep_id = data.pop("rep_id", None)
        if caller.is_admin and requested_rep_id is not None:
            rep_id = requested_rep_id
        else:
            rep_id = self.guard.require_rep(caller, ResourceKind.PIN, ResourceAction.CREATE)
        if session.get(Rep, rep_id) is None:
            raise NotFoundError("rep not found")

        self._enforce_appointment_rules(session, caller, data["status"], data.get("assigned_closer_id"))
        pin = Pin(rep_id=rep_id, **{key: value for key, value in data.items() if value is not None or key not in _REQUIRED_COLUMNS})
        with transaction(session):
            session.add(pin)
            session.flush()
            audit.record_for(caller, "pin", pin.id, "pin.created", None, {"status": pin.status})
        return PinRead.model_validate(pin)

    def update_pin(self, session: Session, caller: Caller, pin_id: uuid.UUID, payload: dict[str, Any]) -> PinRead:
        pin = self._load(session, pin_id)
        self.guard.check(caller, ResourceKind.PIN, [pin.rep_id, pin.assigned_closer_id], ResourceAction.UPDATE)

        updates = restrict_update(caller, payload, member_schema=PinMemberUpdate, admin_schema=PinAdminUpdate)
        updates = {key: value for key, value in updates.items() if value is not None or key not in _REQUIRED_COLUMNS}
        if not updates:
            raise ValidationError("No fields to update")

        if "status" in updates or "assigned_closer_id" in updates:
            self._enforce_appointment_rules(
                session,
                caller,
                updates.get("status", pin.status),
                updates.get("assigned_closer_id", pin.assigned_closer_id),
                closer_changed="assigned_closer_id" in updates,
            )
        if "rep_id" in updates and session.get(Rep, updates["rep_id"]) is None:
            raise NotFoundError("rep not found")

        before = {"status": pin.status}
        for key, value in updates.items():
            setattr(pin, key, value)
        with transaction(session):
            session.flush()
            audit.record_for(caller, "pin", pin.id, "pin.updated", before, {"status": pin.status, "fields": sorted(updates)})
        return PinRead.model_validate(pin)

    def delete_pin(self, session: Session, caller: Caller, pin_id: uuid.UUID) -> None:
        pin = self._load(session, pin_id)
        self.guard.check(caller, ResourceKind.PIN, [pin.rep_id], ResourceAction.DELETE)
        with transaction(session):
            session.delete(pin)
            audit.record_for(caller, "pin", pin.id, "pin.deleted", {"status": pin.status}, None)

    def _enforce_appointment_rules(
        self,
        session: Session,
        caller: Caller,
        status: str,
        closer_id: uuid.UUID | None,
        *,
        closer_changed: bool = True,
    ) -> None:
        if closer_id is not None and closer_changed:
            closer = session.get(Rep, closer_id)
            if closer is None:
                raise NotFoundError("assigned closer not found")
            if not closer.active or closer.commission_level not in CLOSER_TIERS:
                raise StateError("Assigned closer must be an active senior or manager rep", "assigned_closer_id")

        if status != "appointment" or closer_id is not None or caller.is_admin or caller.rep_id is None:
            return
        rep = session.get(Rep, caller.rep_id)
        if rep is not None and rep.commission_level == CommissionTier.JUNIOR.value:
            raise StateError("Junior reps must assign a closer before booking an appointment", "assigned_closer_id")

    def _load(self, session: Session, pin_id: uuid.UUID) -> Pin:
        pin = session.get(Pin, pin_id)
        if pin is None:
            raise NotFoundError("pin not found")
        return pin


pin_service = PinService()
