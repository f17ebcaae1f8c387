from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealflow.admin.models import utcnow
from dealflow.core.database import Base


def _money() -> Any:
    return Numeric(18, 2)


class Deal(Base):
    __tablename__ = "deals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="lead", server_default="lead")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    homeowner_name: Mapped[str] = mapped_column(Text, nullable=False)
    homeowner_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    homeowner_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(16), nullable=True)

    roof_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    roof_squares: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    roof_squares_with_waste: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    stories: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)
    roofing_system_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    material_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    material_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    material_color: Mapped[str | None] = mapped_column(String(64), nullable=True)
    drip_edge: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vent_color: Mapped[str | None] = mapped_column(String(64), nullable=True)

    insurance_company: Mapped[str | None] = mapped_column(Text, nullable=True)
    policy_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    claim_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    date_of_loss: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    inspection_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rcv: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    acv: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    depreciation: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    deductible: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    sales_tax: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    sales_tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 4), nullable=True)
    total_price: Mapped[Decimal] = mapped_column(_money(), nullable=False, default=Decimal("0"), server_default="0")
    total_contract_value: Mapped[Decimal] = mapped_column(_money(), nullable=False, default=Decimal("0"), server_default="0")
    approval_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    adjuster_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    adjuster_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    adjuster_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    adjuster_meeting_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    adjuster_not_assigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    adjuster_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    contract_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    signed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    agreement_document_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    signature_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    signature_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    insurance_agreement_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    lost_statement_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    permit_file_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    acv_check_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    acv_check_amount: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    acv_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    acv_receipt_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    deductible_receipt_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    materials_ordered_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    materials_delivered_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    install_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    install_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    install_request_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    install_request_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    crew_assignment: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    inspection_images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    install_images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    completion_images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    completion_form_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_form_signature_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    homeowner_completion_signature_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoice_sent_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    invoice_amount: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    invoice_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    invoice_total: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    invoice_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invoice_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    depreciation_check_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    depreciation_check_amount: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    depreciation_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    depreciation_receipt_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    supplement_amount: Mapped[Decimal] = mapped_column(_money(), nullable=False, default=Decimal("0"), server_default="0")
    supplement_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    supplement_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    payment_request_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    commission_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    commission_paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    commission_override_amount: Mapped[Decimal | None] = mapped_column(_money(), nullable=True)
    commission_override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    commission_override_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    lead_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    inspection_scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claim_filed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    adjuster_met_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    collect_acv_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    collect_deductible_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    materials_selected_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    install_scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    installed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    invoice_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    depreciation_collected_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    complete_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    awaiting_approval_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acv_collected_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deductible_collected_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_signed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    commissions: Mapped[list[DealCommission]] = relationship(
        "DealCommission",
        back_populates="deal",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    documents: Mapped[list[DealDocument]] = relationship(
        "DealDocument",
        back_populates="deal",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_deals_status", "status"),)


class DealCommission(Base):
    __tablename__ = "deal_commissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    rep_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("reps.id", ondelete="CASCADE"), nullable=False)
    commission_type: Mapped[str] = mapped_column(String(16), nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"), server_default="0")
    commission_amount: Mapped[Decimal] = mapped_column(_money(), nullable=False, default=Decimal("0"), server_default="0")
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    deal: Mapped[Deal] = relationship("Deal", back_populates="commissions")

    __table_args__ = (
        UniqueConstraint("deal_id", "rep_id", "commission_type", name="uq_deal_commissions_deal_rep_type"),
        Index("ix_deal_commissions_rep_id", "rep_id"),
    )


class DealDocument(Base):
    __tablename__ = "deal_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    document_type: Mapped[str] = mapped_column(String(64), nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    deal: Mapped[Deal] = relationship("Deal", back_populates="documents")

    __table_args__ = (Index("ix_deal_documents_deal_id", "deal_id"),)
