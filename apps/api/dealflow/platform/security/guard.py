from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from enum import StrEnum

from dealflow import audit
from dealflow.errors import AuthorizationError
from dealflow.metrics import observe_access_denied
from dealflow.platform.security.context import Caller


logger = logging.getLogger("dealflow.security")


class ResourceKind(StrEnum):
    DEAL = "deal"
    PIN = "pin"
    COMMISSION = "commission"
    DOCUMENT = "document"
    REP = "rep"
    IDENTITY = "identity"
    TRAINING = "training"


class ResourceAction(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


_ADMIN_ONLY: frozenset[tuple[ResourceKind, ResourceAction]] = frozenset(
    {
        (ResourceKind.DEAL, ResourceAction.DELETE),
        (ResourceKind.DOCUMENT, ResourceAction.DELETE),
        (ResourceKind.REP, ResourceAction.CREATE),
        (ResourceKind.REP, ResourceAction.UPDATE),
        (ResourceKind.REP, ResourceAction.DELETE),
        (ResourceKind.IDENTITY, ResourceAction.CREATE),
    }
)


class AccessGuard:
    """Single capability check for every resource the service exposes.

    Admins bypass ownership. Everyone else must hold a role and appear among
    the rep ids that own the resource. Existence checks happen before this
    is called so a denial never stands in for a missing record.
    """

    def check(
        self,
        caller: Caller,
        kind: ResourceKind,
        owner_rep_ids: Iterable[uuid.UUID | None] = (),
        action: ResourceAction = ResourceAction.READ,
    ) -> None:
        if not caller.is_authenticated:
            self._deny(caller, kind, action, "Authentication required")
        if caller.is_admin:
            return
        if (kind, action) in _ADMIN_ONLY:
            self._deny(caller, kind, action, f"Only admins can {action.value} a {kind.value}")
        owners = {owner for owner in owner_rep_ids if owner is not None}
        if caller.rep_id is None or caller.rep_id not in owners:
            self._deny(caller, kind, action, f"Access denied to {kind.value}")

    def require_role(self, caller: Caller, kind: ResourceKind, action: ResourceAction) -> None:
        if not caller.is_authenticated:
            self._deny(caller, kind, action, "Authentication required")

    def require_admin(self, caller: Caller, kind: ResourceKind, action: ResourceAction) -> None:
        if not caller.is_admin:
            self._deny(caller, kind, action, f"Only admins can {action.value} a {kind.value}")

    def require_self(self, caller: Caller, kind: ResourceKind, action: ResourceAction, user_id: str) -> None:
        self.require_role(caller, kind, action)
        if not caller.is_admin and caller.user_id != user_id:
            self._deny(caller, kind, action, f"Cannot {action.value} another user's {kind.value}")

    def require_rep(self, caller: Caller, kind: ResourceKind, action: ResourceAction) -> uuid.UUID:
        self.require_role(caller, kind, action)
        if caller.rep_id is None:
            self._deny(caller, kind, action, "Caller has no rep profile")
        return caller.rep_id  # type: ignore[return-value]

    def can(
        self,
        caller: Caller,
        kind: ResourceKind,
        owner_rep_ids: Iterable[uuid.UUID | None] = (),
        action: ResourceAction = ResourceAction.READ,
    ) -> bool:
        if caller.is_admin:
            return True
        if not caller.is_authenticated or (kind, action) in _ADMIN_ONLY or caller.rep_id is None:
            return False
        return caller.rep_id in {owner for owner in owner_rep_ids if owner is not None}

    def _deny(self, caller: Caller, kind: ResourceKind, action: ResourceAction, message: str) -> None:
        observe_access_denied(resource=kind.value, action=action.value)
        logger.warning(
            "access.denied",
            extra={"user_id": caller.user_id, "resource": kind.value, "action": action.value},
        )
        audit.record_for(
            caller,
            "security.access",
            kind.value,
            "access.denied",
            after={"action": action.value, "role": caller.role.value if caller.role else None},
        )
        raise AuthorizationError(message)


access_guard = AccessGuard()
