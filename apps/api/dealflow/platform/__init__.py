from dealflow.platform.security import (
    AccessGuard,
    Caller,
    ResourceAction,
    ResourceKind,
    Role,
    access_guard,
    restrict_update,
    updatable_fields,
)

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
