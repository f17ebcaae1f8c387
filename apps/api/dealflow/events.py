from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from dealflow.context import get_correlation_id
from dealflow.core.events import event_bus

published_events: list[dict[str, Any]] = []


def build_envelope(event_type: str, **fields: Any) -> dict[str, Any]:
    envelope: dict[str, Any] = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    for key, value in fields.items():
        envelope[key] = str(value) if isinstance(value, uuid.UUID) else value
    return envelope


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)


def emit(event_type: str, **fields: Any) -> dict[str, Any]:
    envelope = build_envelope(event_type, **fields)
    publish(envelope)
    return envelope
