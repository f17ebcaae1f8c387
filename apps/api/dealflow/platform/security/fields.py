from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from dealflow.errors import ValidationError
from dealflow.platform.security.context import Caller


def restrict_update(
    caller: Caller,
    payload: dict[str, Any],
    *,
    member_schema: type[BaseModel],
    admin_schema: type[BaseModel],
) -> dict[str, Any]:
    """Parse a partial update through the caller's role schema.

    Schemas ignore unknown keys, so fields outside the role's allow-list are
    dropped rather than rejected.
    """
    schema = admin_schema if caller.is_admin else member_schema
    try:
        parsed = schema.model_validate(payload)
    except SchemaValidationError as exc:
        invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error.get("loc")})
        raise ValidationError(f"Invalid values for fields: {', '.join(invalid)}") from exc
    return parsed.model_dump(exclude_unset=True)


def updatable_fields(schema: type[BaseModel]) -> frozenset[str]:
    return frozenset(schema.model_fields)
