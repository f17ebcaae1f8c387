"""In-process audit trail for lifecycle writes and access decisions.

Entries are plain dicts so tests and the admin tooling can filter them
without a schema. Values are normalized to JSON-friendly types on write.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from dealflow.context import get_correlation_id

if TYPE_CHECKING:
    from dealflow.platform.security.context import Caller

audit_entries: list[dict[str, Any]] = []


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_plain(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    return value


def changed_fields(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> list[str]:
    before = before or {}
    after = after or {}
    return sorted(key for key in before.keys() | after.keys() if before.get(key) != after.get(key))


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": _plain(before),
        "after": _plain(after),
        "changed": changed_fields(_plain(before), _plain(after)),
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    return entry


def record_for(
    caller: Caller,
    entity_type: str,
    entity_id: uuid.UUID | str,
    action: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return record(
        actor_user_id=caller.user_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        before=before,
        after=after,
        correlation_id=caller.correlation_id,
    )


def entries_for(entity_type: str, entity_id: uuid.UUID | str) -> list[dict[str, Any]]:
    wanted = str(entity_id)
    return [entry for entry in audit_entries if entry["entity_type"] == entity_type and entry["entity_id"] == wanted]
