from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def as_utc(value: datetime | None) -> datetime | None:
    """Treats naive timestamps as UTC so stored and requested dates compare safely."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SearchIntent(str, Enum):
    """The inferred purpose behind a search query."""

    GENERAL = "general"
    HOW_TO = "how_to"
    TROUBLESHOOTING = "troubleshooting"
    DEFINITION = "definition"
    EXAMPLE = "example"
    COMPARISON = "comparison"


class QueryContext(BaseModel):
    """Caller-supplied hints accompanying a query. Not used by the scoring math."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: int = 1
    user_id: str | None = None
    conversation_id: str | None = None
    locale: str | None = None


class ParsedQuery(BaseModel):
    """A free-text query after normalization, tokenization and intent detection."""

    model_config = ConfigDict(frozen=True)

    original_query: str
    processed_query: str
    terms: tuple[str, ...] = ()
    intent: SearchIntent = SearchIntent.GENERAL
    interpretation: str = ""
    complexity: float = 0.0


class ConversationTurn(BaseModel):
    """One prompt/response exchange, as supplied by the persistence layer."""

    # Stored records may use camelCase keys; output always uses field names.
    model_config = ConfigDict(
        frozen=True,
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
    )

    conversation_id: str
    turn_number: int
    utc_timestamp: datetime
    prompt: str
    response: str = ""
    model: str = ""
    tools_used: tuple[str, ...] = ()
    hash: str | None = None
    schema_version: str = "v1.0.0"

    @field_validator("utc_timestamp")
    @classmethod
    def _timestamp_as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ScoreFactor(BaseModel):
    """A single weighted sub-score contributing to a relevance score."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    weight: float
    contribution: float


class RelevanceResult(BaseModel):
    """Score of one turn against one parsed query, with its breakdown."""

    model_config = ConfigDict(frozen=True)

    score: float
    explanation: str
    factors: tuple[ScoreFactor, ...] = ()


class TurnFilter(BaseModel):
    """Candidate selection criteria passed to a turn store."""

    conversation_id: str | None = None
    model: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    tools_used: list[str] = []

    @field_validator("from_date", "to_date")
    @classmethod
    def _dates_as_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def matches(self, turn: ConversationTurn) -> bool:
        if self.conversation_id is not None and turn.conversation_id != self.conversation_id:
            return False
        if self.model and self.model.lower() not in turn.model.lower():
            return False
        if self.from_date is not None and turn.utc_timestamp < self.from_date:
            return False
        if self.to_date is not None and turn.utc_timestamp > self.to_date:
            return False
        if self.tools_used:
            available = {tool.lower() for tool in turn.tools_used}
            if not all(tool.lower() in available for tool in self.tools_used):
                return False
        return True


class SearchRequest(BaseModel):
    """A ranked search over stored conversation turns."""

    query: str = Field(..., description="Free-text search query.")
    context: QueryContext | None = None
    conversation_id: str | None = Field(None, description="Restrict to one conversation.")
    model: str | None = Field(None, description="Case-insensitive model name filter.")
    from_date: datetime | None = None
    to_date: datetime | None = None
    tools_used: list[str] = Field(default_factory=list, description="Turns must use all tools.")
    skip: int = Field(0, ge=0)
    take: int = Field(10, ge=1, le=100)
    min_score: float = Field(0.0, ge=0.0)
    include_highlights: bool = True
    include_suggestions: bool = False

    def to_filter(self) -> TurnFilter:
        return TurnFilter(
            conversation_id=self.conversation_id,
            model=self.model,
            from_date=self.from_date,
            to_date=self.to_date,
            tools_used=list(self.tools_used),
        )


class SearchHighlight(BaseModel):
    """A term occurrence inside a turn field, with surrounding context."""

    field: str
    original_text: str
    highlighted_text: str
    start_index: int
    length: int


class ScoredTurn(BaseModel):
    """A candidate turn together with its relevance result."""

    turn: ConversationTurn
    relevance: RelevanceResult
    highlights: list[SearchHighlight] = []

    @property
    def score(self) -> float:
        return self.relevance.score


class SearchSuggestion(BaseModel):
    text: str
    confidence: float
    type: str
    description: str = ""


class SearchResponse(BaseModel):
    """Ranked page of results for one search request."""

    query: str
    interpretation: str
    intent: SearchIntent
    complexity: float
    results: list[ScoredTurn]
    total_count: int
    has_more: bool
    skip: int
    take: int
    search_time_ms: float
    suggestions: list[SearchSuggestion] = []


class RelatedConversation(BaseModel):
    conversation_id: str
    score: float
    best_turn_number: int
    explanation: str


class PluginData(BaseModel):
    """Opaque payload captured by a context plugin."""

    plugin_name: str
    data_type: str
    payload: Any = None
    metadata: dict[str, Any] = {}
    links: list[str] = []
