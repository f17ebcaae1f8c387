from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


RoleName = Literal["admin", "rep", "crew"]


class IdentityRecord(BaseModel):
    user_id: str = Field(min_length=1)
    email: str = Field(min_length=3)
    full_name: str | None = None
    phone: str | None = None
    role: RoleName = "rep"


class IdentitySyncRequest(BaseModel):
    users: list[IdentityRecord] = Field(default_factory=list)


class IdentitySyncResult(BaseModel):
    profiles_created: int = 0
    profiles_updated: int = 0
    roles_assigned: int = 0
    reps_created: int = 0
