from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealflow import audit, events
from dealflow.commissions.schemas import CommissionBreakdownRead, CommissionRead
from dealflow.core.database import transaction
from dealflow.deals.models import Deal, DealCommission, DealDocument
from dealflow.deals.schemas import (
    DealAdminUpdate,
    DealCreate,
    DealDetailRead,
    DealMemberUpdate,
    DealRead,
    DocumentCreate,
    DocumentRead,
    PinConversionRead,
    PinConversionRequest,
)
from dealflow.errors import ConflictError, NotFoundError, StateError, ValidationError
from dealflow.lifecycle.catalog import DealStatus, StatusCatalog, status_catalog
from dealflow.lifecycle.commission import (
    CommissionCalculator,
    CommissionType,
    commission_calculator,
    payment_request_patch,
)
from dealflow.lifecycle.milestones import MilestoneRecorder, milestone_recorder
from dealflow.lifecycle.progression import Progression, ProgressionEvaluator, progression_evaluator
from dealflow.metrics import observe_payment_request, observe_status_transition
from dealflow.otel import annotate
from dealflow.pins.models import Pin
from dealflow.platform.security import AccessGuard, Caller, ResourceAction, ResourceKind, access_guard, restrict_update
from dealflow.reps.models import Rep


logger = logging.getLogger("dealflow.lifecycle")
tracer = trace.get_tracer("dealflow.lifecycle")

_FINANCIAL_FIELDS = frozenset({"rcv", "acv", "depreciation", "deductible", "sales_tax", "commission_override_amount"})
_PIN_COPY_FIELDS = (
    "homeowner_name",
    "homeowner_phone",
    "homeowner_email",
    "address",
    "city",
    "state",
    "zip_code",
    "notes",
)
_REQUIRED_ON_CREATE = ("homeowner_name", "address")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def deal_snapshot(deal: Deal) -> dict[str, Any]:
    return {column.key: getattr(deal, column.key) for column in Deal.__table__.columns}


def _assignable(values: dict[str, Any]) -> dict[str, Any]:
    """Drop keys that are not columns and nulls aimed at required columns."""
    columns = Deal.__table__.columns
    return {
        key: value
        for key, value in values.items()
        if key in columns and (value is not None or columns[key].nullable)
    }


@dataclass(slots=True)
class DealService:
    guard: AccessGuard = access_guard
    catalog: StatusCatalog = status_catalog
    evaluator: ProgressionEvaluator = progression_evaluator
    milestones: MilestoneRecorder = milestone_recorder
    calculator: CommissionCalculator = commission_calculator

    def list_deals(self, session: Session, caller: Caller) -> list[DealRead]:
        self.guard.require_role(caller, ResourceKind.DEAL, ResourceAction.READ)
        query = select(Deal).order_by(Deal.created_at.desc())
        if not caller.is_admin:
            if caller.rep_id is None:
                return []
            owned = select(DealCommission.deal_id).where(DealCommission.rep_id == caller.rep_id)
            query = query.where(Deal.id.in_(owned))
        return [DealRead.model_validate(deal) for deal in session.scalars(query).all()]

    def get_deal(self, session: Session, caller: Caller, deal_id: uuid.UUID) -> DealDetailRead:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DEAL, self._owners(deal), ResourceAction.READ)
        return self._detail(deal, caller)

    def create_deal(self, session: Session, caller: Caller, dto: DealCreate) -> DealDetailRead:
        self.guard.require_role(caller, ResourceKind.DEAL, ResourceAction.CREATE)
        data = dto.model_dump(exclude_unset=True)
        requested_rep_id = data.pop("rep_id", None)
        commission_type = data.pop("commission_type", CommissionType.SELF_GEN.value)

        missing = [name for name in _REQUIRED_ON_CREATE if not data.get(name)]
        if missing:
            raise ValidationError.missing(missing)

        if caller.is_admin:
            rep_id = requested_rep_id or caller.rep_id
        else:
            rep_id = self.guard.require_rep(caller, ResourceKind.DEAL, ResourceAction.CREATE)
        rep = None
        if rep_id is not None:
            rep = session.get(Rep, rep_id)
            if rep is None:
                raise NotFoundError("rep not found")

        deal = self._new_deal(_assignable(data), utcnow())
        try:
            with transaction(session):
                session.add(deal)
                session.flush()
                if rep is not None:
                    self._add_commission(deal, rep.id, commission_type, rep.default_commission_percent)
                session.flush()
                audit.record_for(caller, "deal", deal.id, "deal.created", None, {"status": deal.status})
        except IntegrityError as exc:
            raise ConflictError("deal could not be created") from exc

        logger.info("deal.created", extra={"deal_id": str(deal.id), "rep_id": str(rep_id) if rep_id else None})
        return self._detail(deal, caller)

    def create_deal_from_pin(self, session: Session, caller: Caller, dto: PinConversionRequest) -> PinConversionRead:
        pin = session.get(Pin, dto.pin_id)
        if pin is None:
            raise NotFoundError("pin not found")
        self.guard.check(caller, ResourceKind.PIN, [pin.rep_id, pin.assigned_closer_id], ResourceAction.UPDATE)
        if pin.deal_id is not None:
            raise ConflictError("This pin already has an associated deal", {"deal_id": str(pin.deal_id)})

        fallback = dto.model_dump(exclude_unset=True)
        fields = {name: getattr(pin, name) or fallback.get(name) for name in _PIN_COPY_FIELDS}
        missing = [name for name in _REQUIRED_ON_CREATE if not fields.get(name)]
        if missing:
            raise ValidationError.missing(missing)

        owner = session.get(Rep, pin.rep_id)
        closer = None
        if pin.assigned_closer_id is not None and pin.assigned_closer_id != pin.rep_id:
            closer = session.get(Rep, pin.assigned_closer_id)

        deal = self._new_deal(fields, utcnow())
        deal.inspection_images = list(pin.inspection_images or [])
        owner_type = dto.commission_type or (CommissionType.SETTER.value if closer else CommissionType.SELF_GEN.value)
        owner_percent = dto.commission_percent
        if owner_percent is None:
            owner_percent = owner.default_commission_percent if owner is not None else Decimal("0")

        try:
            with transaction(session):
                session.add(deal)
                session.flush()
                self._add_commission(deal, pin.rep_id, owner_type, owner_percent)
                if closer is not None:
                    closer_percent = dto.closer_commission_percent
                    if closer_percent is None:
                        closer_percent = closer.default_commission_percent
                    self._add_commission(deal, closer.id, CommissionType.CLOSER.value, closer_percent)
                claimed = session.execute(
                    update(Pin)
                    .where(Pin.id == pin.id, Pin.deal_id.is_(None))
                    .values(deal_id=deal.id, status="installed", updated_at=utcnow())
                )
                if claimed.rowcount == 0:
                    raise ConflictError("This pin already has an associated deal")
                session.flush()
                audit.record_for(caller, "deal", deal.id, "deal.created_from_pin", None, {"status": deal.status, "pin_id": str(pin.id)})
        except IntegrityError as exc:
            raise ConflictError("This pin already has an associated deal") from exc

        logger.info("deal.created", extra={"deal_id": str(deal.id), "pin_id": str(dto.pin_id)})
        return PinConversionRead(deal=self._detail(deal, caller), pin_id=dto.pin_id)

    def update_deal(self, session: Session, caller: Caller, deal_id: uuid.UUID, payload: dict[str, Any]) -> DealDetailRead:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DEAL, self._owners(deal), ResourceAction.UPDATE)

        updates = restrict_update(caller, payload, member_schema=DealMemberUpdate, admin_schema=DealAdminUpdate)
        requested_status = updates.pop("status", None)
        updates = _assignable(updates)
        if not updates and requested_status is None:
            raise ValidationError("No fields to update")

        now = utcnow()
        snapshot = deal_snapshot(deal)
        previous = deal.status
        with tracer.start_as_current_span("deal.progression") as span:
            annotate(span, deal_id=deal.id, correlation_id=caller.correlation_id)
            if requested_status is not None:
                target = self._parse_status(requested_status)
                progression = Progression(target, self.milestones.stamp({**snapshot, **updates}, target, now))
                mode = "override"
            else:
                progression = self.evaluator.apply(previous, snapshot, updates, now)
                mode = "auto"
            annotate(span, from_status=previous, to_status=progression.status, mode=mode)

        for key, value in {**updates, **progression.timestamp_patch}.items():
            setattr(deal, key, value)
        deal.status = progression.status.value
        if _FINANCIAL_FIELDS & updates.keys():
            self._refresh_commission_amounts(deal)

        with transaction(session):
            session.flush()
            audit.record_for(caller, "deal", deal.id, "deal.updated", {"status": previous}, {"status": deal.status, "fields": sorted(updates)})
        if previous != deal.status:
            self._on_transition(deal, previous, mode)
        return self._detail(deal, caller)

    def advance_deal(self, session: Session, caller: Caller, deal_id: uuid.UUID) -> DealDetailRead:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DEAL, self._owners(deal), ResourceAction.UPDATE)

        current = self._parse_status(deal.status)
        target = self.catalog.next_status(current)
        if target is None:
            raise StateError(f"Deal in status '{current.value}' cannot be advanced", "next_status")
        snapshot = deal_snapshot(deal)
        missing = self.evaluator.missing_requirements(snapshot, target)
        if missing:
            raise StateError(
                f"Cannot advance to '{target.value}': missing {', '.join(missing)}",
                ", ".join(missing),
            )

        for key, value in self.milestones.stamp(snapshot, target, utcnow()).items():
            setattr(deal, key, value)
        deal.status = target.value
        with transaction(session):
            session.flush()
            audit.record_for(caller, "deal", deal.id, "deal.advanced", {"status": current.value}, {"status": target.value})
        self._on_transition(deal, current.value, "manual")
        return self._detail(deal, caller)

    def override_status(self, session: Session, caller: Caller, deal_id: uuid.UUID, status: str) -> DealDetailRead:
        deal = self._load(session, deal_id)
        self.guard.require_admin(caller, ResourceKind.DEAL, ResourceAction.UPDATE)
        target = self._parse_status(status)

        previous = deal.status
        for key, value in self.milestones.stamp(deal_snapshot(deal), target, utcnow()).items():
            setattr(deal, key, value)
        deal.status = target.value
        with transaction(session):
            session.flush()
            audit.record_for(caller, "deal", deal.id, "deal.status_overridden", {"status": previous}, {"status": target.value})
        if previous != deal.status:
            self._on_transition(deal, previous, "override")
        return self._detail(deal, caller)

    def request_payment(self, session: Session, caller: Caller, deal_id: uuid.UUID) -> DealDetailRead:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DEAL, self._owners(deal), ResourceAction.UPDATE)

        patch = payment_request_patch(deal_snapshot(deal), utcnow())
        if patch:
            for key, value in patch.items():
                setattr(deal, key, value)
            with transaction(session):
                session.flush()
                audit.record_for(caller, "deal", deal.id, "deal.payment_requested", {"payment_requested": False}, {"payment_requested": True})
            events.emit("deal.payment_requested", deal_id=deal.id)
            observe_payment_request()
        return self._detail(deal, caller)

    def delete_deal(self, session: Session, caller: Caller, deal_id: uuid.UUID) -> None:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DEAL, self._owners(deal), ResourceAction.DELETE)

        with transaction(session):
            session.execute(update(Pin).where(Pin.deal_id == deal.id).values(deal_id=None))
            session.delete(deal)
            audit.record_for(caller, "deal", deal.id, "deal.deleted", {"status": deal.status}, None)
        logger.info("deal.deleted", extra={"deal_id": str(deal_id)})

    def list_documents(self, session: Session, caller: Caller, deal_id: uuid.UUID) -> list[DocumentRead]:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DOCUMENT, self._owners(deal), ResourceAction.READ)
        documents = session.scalars(
            select(DealDocument).where(DealDocument.deal_id == deal.id).order_by(DealDocument.created_at.desc())
        ).all()
        return [DocumentRead.model_validate(document) for document in documents]

    def add_document(self, session: Session, caller: Caller, deal_id: uuid.UUID, dto: DocumentCreate) -> DocumentRead:
        deal = self._load(session, deal_id)
        self.guard.check(caller, ResourceKind.DOCUMENT, self._owners(deal), ResourceAction.CREATE)
        missing = [name for name in ("document_type", "file_name", "file_url") if not getattr(dto, name)]
        if missing:
            raise ValidationError.missing(missing)

        document = DealDocument(deal_id=deal.id, uploaded_by=caller.user_id, **dto.model_dump())
        with transaction(session):
            session.add(document)
            session.flush()
            audit.record(
                actor_user_id=caller.user_id,
                entity_type="deal_document",
                entity_id=str(document.id),
                action="deal.document_added",
                before=None,
                after={"deal_id": str(deal.id), "document_type": document.document_type},
                correlation_id=caller.correlation_id,
            )
        return DocumentRead.model_validate(document)

    def delete_document(self, session: Session, caller: Caller, deal_id: uuid.UUID, document_id: uuid.UUID) -> None:
        deal = self._load(session, deal_id)
        document = session.get(DealDocument, document_id)
        if document is None or document.deal_id != deal.id:
            raise NotFoundError("document not found")
        self.guard.check(caller, ResourceKind.DOCUMENT, self._owners(deal), ResourceAction.DELETE)

        with transaction(session):
            session.delete(document)

    def _load(self, session: Session, deal_id: uuid.UUID) -> Deal:
        deal = session.get(Deal, deal_id)
        if deal is None:
            raise NotFoundError("deal not found")
        return deal

    @staticmethod
    def _owners(deal: Deal) -> list[uuid.UUID]:
        return [commission.rep_id for commission in deal.commissions]

    def _new_deal(self, fields: dict[str, Any], now: datetime) -> Deal:
        deal = Deal(**fields)
        deal.status = DealStatus.LEAD.value
        for key, value in self.milestones.stamp(deal_snapshot(deal), DealStatus.LEAD, now).items():
            setattr(deal, key, value)
        return deal

    def _add_commission(self, deal: Deal, rep_id: uuid.UUID, commission_type: str, percent: Decimal) -> DealCommission:
        breakdown = self.calculator.for_deal(deal_snapshot(deal), percent)
        commission = DealCommission(
            rep_id=rep_id,
            commission_type=commission_type,
            commission_percent=percent,
            commission_amount=breakdown.commission_amount,
        )
        deal.commissions.append(commission)
        return commission

    def _refresh_commission_amounts(self, deal: Deal) -> None:
        snapshot = deal_snapshot(deal)
        for commission in deal.commissions:
            if not commission.paid:
                commission.commission_amount = self.calculator.for_deal(snapshot, commission.commission_percent).commission_amount

    @staticmethod
    def _parse_status(value: str) -> DealStatus:
        try:
            return DealStatus(value)
        except ValueError:
            raise ValidationError(f"Unknown deal status: {value}") from None

    def _commission_percent(self, deal: Deal, caller: Caller) -> Decimal:
        for commission in deal.commissions:
            if commission.rep_id == caller.rep_id:
                return commission.commission_percent
        if deal.commissions:
            return deal.commissions[0].commission_percent
        return Decimal("0")

    def _detail(self, deal: Deal, caller: Caller) -> DealDetailRead:
        definition = self.catalog.get(deal.status)
        breakdown = self.calculator.for_deal(deal_snapshot(deal), self._commission_percent(deal, caller))
        return DealDetailRead(
            **DealRead.model_validate(deal).model_dump(),
            commissions=[CommissionRead.model_validate(commission) for commission in deal.commissions],
            commission_breakdown=CommissionBreakdownRead.model_validate(breakdown),
            progress_percentage=self.catalog.progress_percentage(deal.status),
            next_status=definition.next_status.value if definition.next_status else None,
            next_requirements=list(definition.requirements),
        )

    def _on_transition(self, deal: Deal, previous: str, mode: str) -> None:
        observe_status_transition(from_status=previous, to_status=deal.status, mode=mode)
        message = "deal.status_overridden" if mode == "override" else "deal.status_advanced"
        logger.info(
            message,
            extra={"deal_id": str(deal.id), "from_status": previous, "to_status": deal.status},
        )
        events.emit("deal.status_changed", deal_id=deal.id, from_status=previous, to_status=deal.status, mode=mode)


deal_service = DealService()
