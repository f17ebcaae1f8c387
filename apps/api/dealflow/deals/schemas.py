from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dealflow.commissions.schemas import CommissionBreakdownRead, CommissionRead, CommissionTypeValue


ApprovalType = Literal["full", "partial", "supplement_needed", "homeowner_pays"]


class DealMemberUpdate(BaseModel):
    """Fields a rep or crew member may change on a deal they own."""

    model_config = ConfigDict(extra="ignore")

    homeowner_name: str | None = None
    homeowner_phone: str | None = None
    homeowner_email: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None

    roof_type: str | None = None
    roof_squares: Decimal | None = None
    roof_squares_with_waste: Decimal | None = None
    stories: int | None = None
    roofing_system_type: str | None = None
    material_category: str | None = None
    material_type: str | None = None
    material_color: str | None = None
    drip_edge: str | None = None
    vent_color: str | None = None

    insurance_company: str | None = None
    policy_number: str | None = None
    claim_number: str | None = None
    date_of_loss: date | None = None
    date_type: str | None = None
    inspection_date: datetime | None = None
    rcv: Decimal | None = None
    acv: Decimal | None = None
    depreciation: Decimal | None = None
    deductible: Decimal | None = None
    sales_tax: Decimal | None = None
    sales_tax_rate: Decimal | None = None
    total_price: Decimal | None = None
    total_contract_value: Decimal | None = None
    approval_type: ApprovalType | None = None

    adjuster_name: str | None = None
    adjuster_phone: str | None = None
    adjuster_email: str | None = None
    adjuster_meeting_date: datetime | None = None
    adjuster_not_assigned: bool | None = None
    adjuster_notes: str | None = None

    contract_signed: bool | None = None
    signed_date: datetime | None = None
    agreement_document_url: str | None = None
    signature_url: str | None = None
    signature_date: datetime | None = None
    insurance_agreement_url: str | None = None
    lost_statement_url: str | None = None
    permit_file_url: str | None = None

    acv_check_collected: bool | None = None
    acv_check_amount: Decimal | None = None
    acv_check_date: date | None = None
    acv_receipt_url: str | None = None
    deductible_receipt_url: str | None = None

    materials_ordered_date: date | None = None
    materials_delivered_date: date | None = None
    install_date: date | None = None
    install_time: str | None = None
    install_request_date: date | None = None
    install_request_notes: str | None = None
    crew_assignment: str | None = None
    completion_date: date | None = None
    inspection_images: list[str] | None = None
    install_images: list[str] | None = None
    completion_images: list[str] | None = None
    completion_form_url: str | None = None
    completion_form_signature_url: str | None = None
    homeowner_completion_signature_url: str | None = None

    invoice_sent_date: date | None = None
    invoice_amount: Decimal | None = None
    invoice_items: list[dict[str, Any]] | None = None
    invoice_total: Decimal | None = None
    invoice_created_at: datetime | None = None
    invoice_url: str | None = None
    depreciation_check_collected: bool | None = None
    depreciation_check_amount: Decimal | None = None
    depreciation_check_date: date | None = None
    depreciation_receipt_url: str | None = None

    supplement_amount: Decimal | None = None
    supplement_approved: bool | None = None
    supplement_notes: str | None = None

    lead_date: datetime | None = None
    inspection_scheduled_date: datetime | None = None
    claim_filed_date: datetime | None = None
    adjuster_met_date: datetime | None = None
    approved_date: datetime | None = None
    collect_acv_date: datetime | None = None
    collect_deductible_date: datetime | None = None
    materials_selected_date: datetime | None = None
    install_scheduled_date: datetime | None = None
    installed_date: datetime | None = None
    invoice_sent_at: datetime | None = None
    depreciation_collected_date: datetime | None = None
    complete_date: datetime | None = None
    awaiting_approval_date: datetime | None = None
    acv_collected_date: datetime | None = None
    deductible_collected_date: datetime | None = None
    completion_signed_date: datetime | None = None


class DealAdminUpdate(DealMemberUpdate):
    status: str | None = None
    payment_requested: bool | None = None
    payment_request_date: datetime | None = None
    paid_date: datetime | None = None
    commission_paid: bool | None = None
    commission_paid_date: datetime | None = None
    commission_override_amount: Decimal | None = None
    commission_override_reason: str | None = None
    commission_override_date: datetime | None = None


class DealCreate(DealMemberUpdate):
    rep_id: UUID | None = None
    commission_type: CommissionTypeValue = "self_gen"


class DealRead(DealAdminUpdate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    homeowner_name: str
    address: str
    inspection_images: list[str] = Field(default_factory=list)
    install_images: list[str] = Field(default_factory=list)
    completion_images: list[str] = Field(default_factory=list)
    invoice_items: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DealDetailRead(DealRead):
    commissions: list[CommissionRead] = Field(default_factory=list)
    commission_breakdown: CommissionBreakdownRead | None = None
    progress_percentage: int = 0
    next_status: str | None = None
    next_requirements: list[str] = Field(default_factory=list)


class StatusOverrideRequest(BaseModel):
    status: str = Field(min_length=1)


class DocumentCreate(BaseModel):
    document_type: str | None = None
    file_name: str | None = None
    file_url: str | None = None
    file_type: str | None = None
    description: str | None = None


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    deal_id: UUID
    document_type: str
    file_name: str
    file_url: str
    file_type: str | None
    description: str | None
    uploaded_by: str | None
    created_at: datetime


class PinConversionRequest(BaseModel):
    pin_id: UUID
    homeowner_name: str | None = None
    homeowner_phone: str | None = None
    homeowner_email: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None
    commission_type: CommissionTypeValue | None = None
    commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    closer_commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))


class PinConversionRead(BaseModel):
    deal: DealDetailRead
    pin_id: UUID
