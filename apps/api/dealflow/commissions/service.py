from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealflow import audit, events
from dealflow.commissions.schemas import (
    CommissionAdminUpdate,
    CommissionBreakdownRead,
    CommissionCreate,
    CommissionMemberUpdate,
    CommissionRead,
)
from dealflow.core.database import transaction
from dealflow.deals.models import Deal, DealCommission
from dealflow.deals.service import deal_snapshot
from dealflow.errors import ConflictError, NotFoundError, ValidationError
from dealflow.lifecycle.catalog import DealStatus
from dealflow.lifecycle.commission import CommissionCalculator, commission_calculator
from dealflow.lifecycle.milestones import MilestoneRecorder, milestone_recorder
from dealflow.metrics import observe_commission_payout, observe_status_transition
from dealflow.otel import annotate
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, access_guard, restrict_update
from dealflow.reps.models import Rep


logger = logging.getLogger("dealflow.lifecycle")
tracer = trace.get_tracer("dealflow.lifecycle")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CommissionService:
    guard: AccessGuard = access_guard
    calculator: CommissionCalculator = commission_calculator
    milestones: MilestoneRecorder = milestone_recorder

    def list_commissions(
        self,
        session: Session,
        caller: Caller,
        *,
        paid: bool | None = None,
        deal_id: uuid.UUID | None = None,
    ) -> list[CommissionRead]:
        self.guard.require_role(caller, ResourceKind.COMMISSION, ResourceAction.READ)
        query = select(DealCommission).order_by(DealCommission.created_at.desc())
        if not caller.is_admin:
            if caller.rep_id is None:
                return []
            query = query.where(DealCommission.rep_id == caller.rep_id)
        if paid is not None:
            query = query.where(DealCommission.paid.is_(paid))
        if deal_id is not None:
            query = query.where(DealCommission.deal_id == deal_id)
        return [CommissionRead.model_validate(item) for item in session.scalars(query).all()]

    def get_commission(self, session: Session, caller: Caller, commission_id: uuid.UUID) -> CommissionRead:
        commission = self._load(session, commission_id)
        self.guard.check(caller, ResourceKind.COMMISSION, [commission.rep_id], ResourceAction.READ)
        return CommissionRead.model_validate(commission)

    def breakdown(self, session: Session, caller: Caller, commission_id: uuid.UUID) -> CommissionBreakdownRead:
        commission = self._load(session, commission_id)
        self.guard.check(caller, ResourceKind.COMMISSION, [commission.rep_id], ResourceAction.READ)
        result = self.calculator.for_deal(deal_snapshot(commission.deal), commission.commission_percent)
        return CommissionBreakdownRead.model_validate(result)

    def create_commission(self, session: Session, caller: Caller, dto: CommissionCreate) -> CommissionRead:
        self.guard.require_role(caller, ResourceKind.COMMISSION, ResourceAction.CREATE)
        deal = session.get(Deal, dto.deal_id)
        if deal is None:
            raise NotFoundError("deal not found")
        owners = [item.rep_id for item in deal.commissions]
        self.guard.check(caller, ResourceKind.DEAL, owners, ResourceAction.UPDATE)

        rep_id = dto.rep_id if caller.is_admin else caller.rep_id
        if rep_id is None:
            raise ValidationError.missing(["rep_id"])
        rep = session.get(Rep, rep_id)
        if rep is None:
            raise NotFoundError("rep not found")

        percent = dto.commission_percent if dto.commission_percent is not None else rep.default_commission_percent
        amount = dto.commission_amount
        if amount is None:
            amount = self.calculator.for_deal(deal_snapshot(deal), percent).commission_amount

        commission = DealCommission(
            deal_id=deal.id,
            rep_id=rep.id,
            commission_type=dto.commission_type,
            commission_percent=percent,
            commission_amount=amount,
        )
        try:
            with transaction(session):
                session.add(commission)
                session.flush()
                audit.record_for(caller, "commission", commission.id, "commission.created", None, {"deal_id": str(deal.id)})
        except IntegrityError as exc:
            raise ConflictError("Commission already exists for this deal, rep and type") from exc
        return CommissionRead.model_validate(commission)

    def update_commission(
        self,
        session: Session,
        caller: Caller,
        commission_id: uuid.UUID,
        payload: dict[str, Any],
    ) -> CommissionRead:
        commission = self._load(session, commission_id)
        self.guard.check(caller, ResourceKind.COMMISSION, [commission.rep_id], ResourceAction.UPDATE)

        updates = restrict_update(caller, payload, member_schema=CommissionMemberUpdate, admin_schema=CommissionAdminUpdate)
        updates = {key: value for key, value in updates.items() if value is not None or key == "paid_date"}
        if not updates:
            raise ValidationError("No fields to update")

        paid_value = updates.pop("paid", None)
        newly_paid = paid_value is True and not commission.paid
        if paid_value is False:
            updates["paid"] = False
        before = {"paid": commission.paid, "commission_amount": str(commission.commission_amount)}
        for key, value in updates.items():
            setattr(commission, key, value)
        previous_status = commission.deal.status
        try:
            with transaction(session):
                if newly_paid:
                    self._settle(commission, utcnow())
                session.flush()
                audit.record_for(caller, "commission", commission.id, "commission.updated", before, {"fields": sorted(updates)})
        except IntegrityError as exc:
            raise ConflictError("Commission already exists for this deal, rep and type") from exc
        if newly_paid:
            self._announce_payout(commission, previous_status)
        return CommissionRead.model_validate(commission)

    def mark_paid(self, session: Session, caller: Caller, commission_id: uuid.UUID) -> CommissionRead:
        commission = self._load(session, commission_id)
        self.guard.require_admin(caller, ResourceKind.COMMISSION, ResourceAction.UPDATE)
        if commission.paid:
            return CommissionRead.model_validate(commission)

        previous_status = commission.deal.status
        with transaction(session):
            self._settle(commission, utcnow())
            session.flush()
            audit.record_for(caller, "commission", commission.id, "commission.paid", {"paid": False}, {"paid": True})
        self._announce_payout(commission, previous_status)
        return CommissionRead.model_validate(commission)

    def _settle(self, commission: DealCommission, now: datetime) -> None:
        """Mark a commission paid and move its deal to the paid status."""
        with tracer.start_as_current_span("commission.payout") as span:
            annotate(span, commission_id=commission.id, deal_id=commission.deal_id)
            self._mark_settled(commission, now)

    def _mark_settled(self, commission: DealCommission, now: datetime) -> None:
        commission.paid = True
        if commission.paid_date is None:
            commission.paid_date = now.date()

        deal = commission.deal
        for key, value in self.milestones.stamp(deal_snapshot(deal), DealStatus.PAID, now).items():
            setattr(deal, key, value)
        deal.status = DealStatus.PAID.value
        deal.commission_paid = True
        if deal.commission_paid_date is None:
            deal.commission_paid_date = now

    def _announce_payout(self, commission: DealCommission, previous: str) -> None:
        deal = commission.deal
        observe_commission_payout()
        events.emit("commission.paid", commission_id=commission.id, deal_id=deal.id, rep_id=commission.rep_id)
        if previous != deal.status:
            observe_status_transition(from_status=previous, to_status=deal.status, mode="payout")
            logger.info(
                "deal.status_advanced",
                extra={"deal_id": str(deal.id), "from_status": previous, "to_status": deal.status},
            )

    def _load(self, session: Session, commission_id: uuid.UUID) -> DealCommission:
        commission = session.get(DealCommission, commission_id)
        if commission is None:
            raise NotFoundError("commission not found")
        return commission


commission_service = CommissionService()
