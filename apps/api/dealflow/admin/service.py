from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealflow import audit
from dealflow.admin.models import Profile, UserRole
from dealflow.admin.schemas import IdentityRecord, IdentitySyncRequest, IdentitySyncResult
from dealflow.core.database import transaction
from dealflow.errors import ConflictError
from dealflow.lifecycle.commission import CommissionTier, tier_percent
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, Role, access_guard
from dealflow.reps.models import Rep


logger = logging.getLogger("dealflow.admin")


@dataclass(slots=True)
class IdentityService:
    """Mirrors identities from the identity provider into local profile, role and rep rows."""

    guard: AccessGuard = access_guard

    def sync_identities(self, session: Session, caller: Caller, dto: IdentitySyncRequest) -> IdentitySyncResult:
        self.guard.require_admin(caller, ResourceKind.IDENTITY, ResourceAction.CREATE)
        result = IdentitySyncResult()
        try:
            with transaction(session):
                for record in dto.users:
                    self._upsert(session, record, result)
                session.flush()
                audit.record_for(caller, "identity", "sync", "identity.synced", after=result.model_dump())
        except IntegrityError as exc:
            raise ConflictError("Identity sync conflicts with an existing profile") from exc

        logger.info("identity.synced", extra={"user_id": caller.user_id, "action": "sync"})
        return result

    def create_user(self, session: Session, caller: Caller, record: IdentityRecord) -> IdentitySyncResult:
        self.guard.require_admin(caller, ResourceKind.IDENTITY, ResourceAction.CREATE)
        existing = session.scalar(
            select(Profile.id).where((Profile.email == record.email) | (Profile.id == record.user_id))
        )
        if existing is not None:
            raise ConflictError("A user with this email already exists")
        return self.sync_identities(session, caller, IdentitySyncRequest(users=[record]))

    def _upsert(self, session: Session, record: IdentityRecord, result: IdentitySyncResult) -> None:
        profile = session.get(Profile, record.user_id)
        if profile is None:
            session.add(Profile(id=record.user_id, email=record.email, full_name=record.full_name, phone=record.phone))
            result.profiles_created += 1
        else:
            renamed = record.full_name is not None and record.full_name != profile.full_name
            if renamed or profile.email != record.email:
                profile.email = record.email
                if renamed:
                    profile.full_name = record.full_name
                result.profiles_updated += 1

        user_role = session.scalar(select(UserRole).where(UserRole.user_id == record.user_id))
        if user_role is None:
            session.add(UserRole(user_id=record.user_id, role=record.role))
            result.roles_assigned += 1
        elif user_role.role != record.role:
            user_role.role = record.role
            result.roles_assigned += 1

        if record.role == Role.REP.value:
            rep = session.scalar(select(Rep).where(Rep.user_id == record.user_id))
            if rep is None:
                session.add(
                    Rep(
                        user_id=record.user_id,
                        full_name=record.full_name,
                        email=record.email,
                        commission_level=CommissionTier.JUNIOR.value,
                        default_commission_percent=tier_percent(CommissionTier.JUNIOR),
                    )
                )
                result.reps_created += 1
        session.flush()


identity_service = IdentityService()
