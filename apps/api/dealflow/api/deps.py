from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from dealflow.context import get_correlation_id
from dealflow.core.auth import AuthUser, get_current_user
from dealflow.core.database import get_db
from dealflow.platform.security import Caller, Role
from dealflow.reps.models import Rep


def get_caller(
    request: Request,
    auth_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Caller:
    role = Role.from_groups(auth_user.groups)
    rep_id = None
    if role is not None:
        rep_id = db.scalar(select(Rep.id).where(Rep.user_id == auth_user.sub))
    return Caller(
        user_id=auth_user.sub,
        role=role,
        rep_id=rep_id,
        email=auth_user.email,
        correlation_id=get_correlation_id() or getattr(request.state, "correlation_id", None),
        groups=list(auth_user.groups),
    )
