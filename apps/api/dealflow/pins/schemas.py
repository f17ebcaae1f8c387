from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


PinStatus = Literal["lead", "followup", "installed", "appointment", "renter", "not_interested"]


class PinMemberUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: PinStatus | None = None
    latitude: Decimal | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: Decimal | None = Field(default=None, validation_alias=AliasChoices("longitude", "lng"))
    homeowner_name: str | None = None
    homeowner_phone: str | None = None
    homeowner_email: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    notes: str | None = None
    appointment_date: datetime | None = None
    appointment_end_date: datetime | None = None
    appointment_all_day: bool | None = None
    assigned_closer_id: UUID | None = None
    outcome: str | None = None
    outcome_notes: str | None = None
    follow_up_date: date | None = None
    document_url: str | None = None
    image_url: str | None = None
    utility_url: str | None = None
    contract_url: str | None = None
    inspection_images: list[str] | None = None


class PinAdminUpdate(PinMemberUpdate):
    rep_id: UUID | None = None


class PinCreate(PinAdminUpdate):
    status: PinStatus = "lead"
    latitude: Decimal = Field(validation_alias=AliasChoices("latitude", "lat"))
    longitude: Decimal = Field(validation_alias=AliasChoices("longitude", "lng"))


class PinRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rep_id: UUID
    assigned_closer_id: UUID | None
    deal_id: UUID | None
    status: PinStatus | str
    latitude: Decimal
    longitude: Decimal
    homeowner_name: str | None
    homeowner_phone: str | None
    homeowner_email: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    notes: str | None
    appointment_date: datetime | None
    appointment_end_date: datetime | None
    appointment_all_day: bool | None
    outcome: str | None
    outcome_notes: str | None
    follow_up_date: date | None
    document_url: str | None
    image_url: str | None
    utility_url: str | None
    contract_url: str | None
    inspection_images: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
