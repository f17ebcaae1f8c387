from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealflow import audit
from dealflow.core.database import transaction
from dealflow.errors import ConflictError, NotFoundError, ValidationError
from dealflow.lifecycle.commission import CommissionTier, tier_percent
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, access_guard
from dealflow.reps.models import Rep
from dealflow.reps.schemas import RepCreate, RepRead, RepUpdate


CLOSER_TIERS = (CommissionTier.SENIOR.value, CommissionTier.MANAGER.value)
_REQUIRED_COLUMNS = frozenset({"commission_level", "default_commission_percent", "can_self_gen", "active", "training_completed"})


@dataclass(slots=True)
class RepService:
    guard: AccessGuard = access_guard

    def list_reps(self, session: Session, caller: Caller, *, for_assignment: bool = False) -> list[RepRead]:
        self.guard.require_role(caller, ResourceKind.REP, ResourceAction.READ)
        query = select(Rep).order_by(Rep.created_at.desc())
        if for_assignment:
            query = query.where(Rep.active.is_(True), Rep.commission_level.in_(CLOSER_TIERS))
        elif not caller.is_admin:
            if caller.rep_id is None:
                return []
            query = query.where(Rep.id == caller.rep_id)
        return [RepRead.model_validate(rep) for rep in session.scalars(query).all()]

    def get_rep(self, session: Session, caller: Caller, rep_id: uuid.UUID) -> RepRead:
        rep = self._load(session, rep_id)
        self.guard.check(caller, ResourceKind.REP, [rep.id], ResourceAction.READ)
        return RepRead.model_validate(rep)

    def create_rep(self, session: Session, caller: Caller, dto: RepCreate) -> RepRead:
        self.guard.require_admin(caller, ResourceKind.REP, ResourceAction.CREATE)
        data = dto.model_dump()
        if data["default_commission_percent"] is None:
            data["default_commission_percent"] = tier_percent(dto.commission_level)

        rep = Rep(**data)
        try:
            with transaction(session):
                session.add(rep)
                session.flush()
                audit.record_for(caller, "rep", rep.id, "rep.created", None, {"commission_level": rep.commission_level})
        except IntegrityError as exc:
            raise ConflictError("A rep already exists for this user") from exc
        return RepRead.model_validate(rep)

    def update_rep(self, session: Session, caller: Caller, rep_id: uuid.UUID, dto: RepUpdate) -> RepRead:
        rep = self._load(session, rep_id)
        self.guard.require_admin(caller, ResourceKind.REP, ResourceAction.UPDATE)

        updates = dto.model_dump(exclude_unset=True)
        updates = {key: value for key, value in updates.items() if value is not None or key not in _REQUIRED_COLUMNS}
        if not updates:
            raise ValidationError("No fields to update")
        tier = updates.get("commission_level")
        if tier is not None and tier != rep.commission_level and "default_commission_percent" not in updates:
            updates["default_commission_percent"] = tier_percent(tier)

        before = {"commission_level": rep.commission_level, "default_commission_percent": str(rep.default_commission_percent)}
        for key, value in updates.items():
            setattr(rep, key, value)
        with transaction(session):
            session.flush()
            audit.record_for(caller, "rep", rep.id, "rep.updated", before, {"fields": sorted(updates)})
        return RepRead.model_validate(rep)

    def delete_rep(self, session: Session, caller: Caller, rep_id: uuid.UUID) -> None:
        rep = self._load(session, rep_id)
        self.guard.require_admin(caller, ResourceKind.REP, ResourceAction.DELETE)

        before = {"user_id": rep.user_id, "commission_level": rep.commission_level}
        with transaction(session):
            session.delete(rep)
            session.flush()
            audit.record_for(caller, "rep", rep_id, "rep.deleted", before, None)

    def _load(self, session: Session, rep_id: uuid.UUID) -> Rep:
        rep = session.get(Rep, rep_id)
        if rep is None:
            raise NotFoundError("rep not found")
        return rep


rep_service = RepService()
