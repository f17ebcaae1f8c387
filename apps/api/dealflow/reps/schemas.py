from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


CommissionLevel = Literal["junior", "senior", "manager"]


class RepCreate(BaseModel):
    user_id: str = Field(min_length=1)
    full_name: str | None = None
    email: str | None = None
    commission_level: CommissionLevel = "junior"
    default_commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    can_self_gen: bool = True
    manager_id: UUID | None = None
    active: bool = True
    training_completed: bool = False


class RepUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str | None = None
    email: str | None = None
    commission_level: CommissionLevel | None = None
    default_commission_percent: Decimal | None = Field(default=None, ge=Decimal("0"), le=Decimal("100"))
    can_self_gen: bool | None = None
    manager_id: UUID | None = None
    active: bool | None = None
    training_completed: bool | None = None


class RepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    full_name: str | None
    email: str | None
    commission_level: CommissionLevel | str
    default_commission_percent: Decimal
    can_self_gen: bool
    manager_id: UUID | None
    active: bool
    training_completed: bool
    created_at: datetime
    updated_at: datetime
