from typing import Any

from loguru import logger


class LoguruEventSink:
    """Forwards diagnostic events to loguru with their fields bound as extras."""

    def __init__(self, level: str = "DEBUG") -> None:
        self.level = level

    def emit(self, event: str, **fields: Any) -> None:
        logger.bind(event=event, **fields).log(self.level, "{} {}", event, fields)


class NullEventSink:
    """Discards every event."""

    def emit(self, event: str, **fields: Any) -> None:
        return None
