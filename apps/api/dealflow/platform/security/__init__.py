from dealflow.platform.security.context import Caller, Role
from dealflow.platform.security.fields import restrict_update, updatable_fields
from dealflow.platform.security.guard import AccessGuard, ResourceAction, ResourceKind, access_guard

__all__ = [
    "AccessGuard",
    "Caller",
    "ResourceAction",
    "ResourceKind",
    "Role",
    "access_guard",
    "restrict_update",
    "updatable_fields",
]
