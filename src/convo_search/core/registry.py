from typing import Any

from convo_search.core.ports import IEventSink
from convo_search.infrastructure.diagnostics.events import LoguruEventSink, NullEventSink
from convo_search.infrastructure.storage.turn_store import JsonlTurnStore


class ComponentRegistry:
    """Registry pattern to dynamically map string names to class implementations."""

    _stores: dict[str, Any] = {
        "jsonl": JsonlTurnStore,
    }

    _event_sinks: dict[str, type[IEventSink]] = {
        "loguru": LoguruEventSink,
        "null": NullEventSink,
    }

    @classmethod
    def get_store(cls, name: str) -> Any:
        if name not in cls._stores:
            raise ValueError(f"Unknown store type: '{name}'")
        return cls._stores[name]

    @classmethod
    def get_event_sink(cls, name: str) -> type[IEventSink]:
        if name not in cls._event_sinks:
            raise ValueError(f"Unknown event sink: '{name}'")
        return cls._event_sinks[name]
