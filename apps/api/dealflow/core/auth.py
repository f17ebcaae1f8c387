from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from dealflow.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    email: str | None = None
    groups: list[str] = field(default_factory=list)


def _claim_groups(payload: dict) -> list[str]:
    groups = payload.get("groups", payload.get("cognito:groups", []))
    if isinstance(groups, str):
        groups = [item.strip() for item in groups.split(",") if item.strip()]
    if not isinstance(groups, list):
        return []
    return [str(group) for group in groups]


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous")

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub="anonymous")

    email = payload.get("email")
    return AuthUser(
        sub=str(payload.get("sub", "anonymous")),
        email=str(email) if email else None,
        groups=_claim_groups(payload),
    )
