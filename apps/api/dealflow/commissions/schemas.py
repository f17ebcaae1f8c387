from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer


CommissionTypeValue = Literal["setter", "closer", "self_gen"]


class CommissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    deal_id: UUID
    rep_id: UUID
    commission_type: CommissionTypeValue | str
    commission_percent: Decimal
    commission_amount: Decimal
    paid: bool
    paid_date: date | None
    created_at: datetime
    updated_at: datetime


class CommissionCreate(BaseModel):
    deal_id: UUID
    rep_id: UUID | None = None
    commission_type: CommissionTypeValue = "self_gen"
    commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    commission_amount: Decimal | None = Field(default=None, ge=Decimal("0"))


class CommissionMemberUpdate(BaseModel):
    """Reps change commissions only through the deal lifecycle."""

    model_config = ConfigDict(extra="ignore")


class CommissionAdminUpdate(CommissionMemberUpdate):
    commission_type: CommissionTypeValue | None = None
    commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    commission_amount: Decimal | None = Field(default=None, ge=Decimal("0"))
    paid: bool | None = None
    paid_date: date | None = None


class CommissionBreakdownRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    calculated_rcv: Decimal
    sales_tax: Decimal
    base_amount: Decimal
    commission_percent: Decimal
    commission_amount: Decimal
    override_applied: bool
    first_check: Decimal
    deductible: Decimal
    second_check: Decimal

    @field_serializer("sales_tax", "base_amount")
    def _display_cents(self, value: Decimal) -> Decimal:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
