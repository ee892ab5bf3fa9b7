"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest
from loguru import logger

# Importing the sink setup removes every existing handler, so it must precede the caplog bridge
import convo_search.logger  # noqa: F401
from convo_search.core.models import ConversationTurn


@pytest.fixture
def caplog(caplog):
    """Enable Loguru logging to be captured by pytest's caplog fixture."""
    import logging

    class PropagateHandler(logging.Handler):
        def emit(self, record):
            logging.getLogger(record.name).handle(record)

    handler_id = logger.add(PropagateHandler(), format="{message}")
    yield caplog
    logger.remove(handler_id)


@pytest.fixture
def make_turn():
    """Factory for ConversationTurn instances with sensible defaults."""

    def _make(
        prompt: str = "",
        response: str = "",
        model: str = "gpt-4",
        tools_used: tuple[str, ...] = (),
        conversation_id: str = "conv-1",
        turn_number: int = 1,
        utc_timestamp: datetime | None = None,
    ) -> ConversationTurn:
        return ConversationTurn(
            conversation_id=conversation_id,
            turn_number=turn_number,
            utc_timestamp=utc_timestamp or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            prompt=prompt,
            response=response,
            model=model,
            tools_used=tools_used,
        )

    return _make


class RecordingEventSink:
    """Collects emitted events for assertions."""

    def __init__(self):
        self.events = []

    def emit(self, event, **fields):
        self.events.append((event, fields))


@pytest.fixture
def recording_sink():
    return RecordingEventSink()
