from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

WILDCARD = "*"


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def domain(self) -> str:
        return self.name.split(".", 1)[0]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous fan-out to handlers registered by exact name or ``*``."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        if handler not in self._subscribers[event_name]:
            self._subscribers[event_name].append(handler)

    def publish(self, event_name: str, payload: dict[str, Any]) -> int:
        event = InternalEvent(name=event_name, payload=payload)
        handlers = [*self._subscribers.get(event_name, []), *self._subscribers.get(WILDCARD, [])]
        for handler in handlers:
            handler(event)
        return len(handlers)


event_bus = InProcessEventBus()
