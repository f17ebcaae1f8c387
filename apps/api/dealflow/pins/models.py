from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dealflow.admin.models import utcnow
from dealflow.core.database import Base


class Pin(Base):
    __tablename__ = "rep_pins"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    rep_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("reps.id", ondelete="CASCADE"), nullable=False)
    assigned_closer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("reps.id", ondelete="SET NULL"), nullable=True
    )
    deal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="lead", server_default="lead")
    latitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    longitude: Mapped[Decimal] = mapped_column(Numeric(10, 7), nullable=False)
    homeowner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    homeowner_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    homeowner_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    appointment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    appointment_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    appointment_all_day: Mapped[bool | None] = mapped_column(nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(64), nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    document_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    utility_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    contract_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    inspection_images: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_rep_pins_rep_id", "rep_id"),
        Index("ix_rep_pins_assigned_closer_id", "assigned_closer_id"),
    )
