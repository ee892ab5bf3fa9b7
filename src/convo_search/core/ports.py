from collections.abc import Mapping
from typing import Any, Protocol

from convo_search.core.cancellation import CancellationToken
from convo_search.core.models import (
    ConversationTurn,
    ParsedQuery,
    PluginData,
    QueryContext,
    RelevanceResult,
    TurnFilter,
)


class IQueryParser(Protocol):
    """Protocol defining how a raw query becomes a ParsedQuery."""

    def parse(
        self,
        query: str,
        context: QueryContext | Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ParsedQuery:
        """Normalizes, tokenizes and classifies a free-text query."""
        ...


class IRelevanceScorer(Protocol):
    """Protocol defining how a turn is scored against a parsed query."""

    def score(
        self,
        turn: ConversationTurn,
        query: ParsedQuery,
        cancel_token: CancellationToken | None = None,
    ) -> RelevanceResult:
        """Returns a deterministic score with its explanation."""
        ...


class ITurnStore(Protocol):
    """Read-only access to stored conversation turns."""

    def list_turns(self, criteria: TurnFilter | None = None) -> list[ConversationTurn]:
        """Returns every stored turn matching the criteria."""
        ...

    def get_conversation(self, conversation_id: str) -> list[ConversationTurn]:
        """Returns the turns of one conversation ordered by turn number."""
        ...


class IEventSink(Protocol):
    """Receives structured diagnostic events from the search core."""

    def emit(self, event: str, **fields: Any) -> None: ...


class IContextPlugin(Protocol):
    """Captures and restores the state of an external system alongside a conversation."""

    @property
    def name(self) -> str: ...

    def capture(self) -> PluginData: ...

    def restore(self, data: PluginData) -> bool: ...

    def validate(self, data: PluginData) -> bool: ...

    def is_available(self) -> bool: ...
