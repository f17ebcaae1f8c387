from __future__ import annotations

import re
import uuid
from contextvars import ContextVar, Token

# Inbound ids are echoed into headers, logs and span attributes.
_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

correlation_id_var: ContextVar[str | None] = ContextVar("dealflow_correlation_id", default=None)


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def normalize_correlation_id(raw: str | None) -> str:
    if raw and _CORRELATION_ID_RE.match(raw.strip()):
        return raw.strip()
    return new_correlation_id()


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()