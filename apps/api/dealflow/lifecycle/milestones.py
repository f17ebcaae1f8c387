from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from dealflow.lifecycle.catalog import LIFECYCLE_ORDER, DealStatus


_FIELD_OVERRIDES = {
    DealStatus.INVOICE_SENT: "invoice_sent_at",
}


class MilestoneRecorder:
    """Maps each lifecycle status to the timestamp field recording when it was first reached."""

    def __init__(self) -> None:
        self._fields: dict[DealStatus, str] = {
            status: _FIELD_OVERRIDES.get(status, f"{status.value}_date") for status in LIFECYCLE_ORDER
        }

    def field_for(self, status: DealStatus | str) -> str | None:
        return self._fields.get(DealStatus(status))

    def fields(self) -> list[str]:
        return list(self._fields.values())

    def stamp(self, snapshot: Mapping[str, Any], status: DealStatus | str, now: datetime) -> dict[str, datetime]:
        """Return the patch setting the status milestone, or nothing if it already holds a value."""
        field_name = self.field_for(status)
        if field_name is None or snapshot.get(field_name) is not None:
            return {}
        return {field_name: now}


milestone_recorder = MilestoneRecorder()
