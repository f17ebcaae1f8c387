from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable


class Role(StrEnum):
    ADMIN = "admin"
    REP = "rep"
    CREW = "crew"

    @classmethod
    def from_groups(cls, groups: Iterable[str]) -> "Role | None":
        """Resolve the single primary role from identity groups; admin wins over rep, rep over crew."""
        normalized = {str(group).strip().lower() for group in groups}
        for role in (cls.ADMIN, cls.REP, cls.CREW):
            if role.value in normalized:
                return role
        return None


@dataclass(slots=True)
class Caller:
    """Identity and primary role of the user behind one request."""

    user_id: str
    role: Role | None
    rep_id: uuid.UUID | None = None
    email: str | None = None
    correlation_id: str | None = None
    groups: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_authenticated(self) -> bool:
        return self.role is not None
