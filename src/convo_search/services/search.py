import time
from collections.abc import Iterable

from loguru import logger

from convo_search.core.cancellation import CancellationToken, check_cancelled
from convo_search.core.models import (
    ConversationTurn,
    ParsedQuery,
    RelatedConversation,
    ScoredTurn,
    SearchRequest,
    SearchResponse,
    SearchSuggestion,
)
from convo_search.core.ports import IEventSink, IQueryParser, IRelevanceScorer, ITurnStore
from convo_search.infrastructure.diagnostics.events import NullEventSink
from convo_search.services.highlights import find_highlights
from convo_search.services.suggestions import SuggestionGenerator

RELATED_QUERY_TERMS = 8


def _rank_key(item: ScoredTurn) -> tuple[float, float, str, int]:
    """Score desc, then most recent first, then conversation id and turn number."""
    turn = item.turn
    return (-item.score, -turn.utc_timestamp.timestamp(), turn.conversation_id, turn.turn_number)


class SearchService:
    """Orchestrates query parsing, per-turn scoring and deterministic ranking."""

    def __init__(
        self,
        store: ITurnStore,
        parser: IQueryParser,
        scorer: IRelevanceScorer,
        suggester: SuggestionGenerator | None = None,
        events: IEventSink | None = None,
    ) -> None:
        self.store = store
        self.parser = parser
        self.scorer = scorer
        self.suggester = suggester or SuggestionGenerator()
        self.events = events or NullEventSink()

    def rank(
        self,
        turns: Iterable[ConversationTurn],
        parsed: ParsedQuery,
        cancel_token: CancellationToken | None = None,
        include_highlights: bool = False,
    ) -> list[ScoredTurn]:
        """Scores every turn against one parsed query and sorts the results."""
        scored: list[ScoredTurn] = []
        for turn in turns:
            check_cancelled(cancel_token)
            relevance = self.scorer.score(turn, parsed, cancel_token)
            highlights = find_highlights(turn, parsed.terms) if include_highlights else []
            scored.append(ScoredTurn(turn=turn, relevance=relevance, highlights=highlights))

        scored.sort(key=_rank_key)
        return scored

    def execute_query(
        self,
        request: SearchRequest,
        cancel_token: CancellationToken | None = None,
    ) -> SearchResponse:
        """Parses the query once, scores the filtered candidates and returns one page."""
        logger.info("Executing query: {}", request.query)
        started = time.perf_counter()

        # Step 1: Parse once per request
        parsed = self.parser.parse(request.query, request.context, cancel_token)

        # Step 2: Candidate selection is delegated to the store
        candidates = self.store.list_turns(request.to_filter())

        # Step 3: Fan-out scoring, then a deterministic sort
        ranked = self.rank(candidates, parsed, cancel_token, request.include_highlights)
        ranked = [item for item in ranked if item.score >= request.min_score]

        page = ranked[request.skip : request.skip + request.take]
        suggestions = self.suggester.suggest(parsed) if request.include_suggestions else []
        elapsed_ms = (time.perf_counter() - started) * 1000

        self.events.emit(
            "search.completed",
            candidates=len(candidates),
            matched=len(ranked),
            returned=len(page),
            search_time_ms=round(elapsed_ms, 3),
        )
        return SearchResponse(
            query=request.query,
            interpretation=parsed.interpretation,
            intent=parsed.intent,
            complexity=parsed.complexity,
            results=page,
            total_count=len(ranked),
            has_more=request.skip + len(page) < len(ranked),
            skip=request.skip,
            take=request.take,
            search_time_ms=elapsed_ms,
            suggestions=suggestions,
        )

    def suggest(self, query: str) -> list[SearchSuggestion]:
        return self.suggester.suggest(self.parser.parse(query))

    def related_conversations(
        self,
        conversation_id: str,
        limit: int = 5,
        cancel_token: CancellationToken | None = None,
    ) -> list[RelatedConversation]:
        """Finds other conversations whose turns best match this conversation's prompts."""
        target = self.store.get_conversation(conversation_id)
        if not target:
            return []

        seed = " ".join(turn.prompt for turn in target)
        parsed = self.parser.parse(seed, cancel_token=cancel_token)
        parsed = parsed.model_copy(update={"terms": parsed.terms[:RELATED_QUERY_TERMS]})

        others = [t for t in self.store.list_turns() if t.conversation_id != conversation_id]
        best: dict[str, ScoredTurn] = {}
        # rank() output is already sorted, so the first hit per conversation is its best turn
        for item in self.rank(others, parsed, cancel_token):
            if item.score > 0 and item.turn.conversation_id not in best:
                best[item.turn.conversation_id] = item

        return [
            RelatedConversation(
                conversation_id=cid,
                score=item.score,
                best_turn_number=item.turn.turn_number,
                explanation=item.relevance.explanation,
            )
            for cid, item in list(best.items())[:limit]
        ]

    def print_results(self, response: SearchResponse, explain: bool = False) -> None:
        """Formats and prints the ranked search results."""
        logger.info("Interpretation: {} (complexity {:.2f})", response.interpretation, response.complexity)
        if not response.results:
            logger.info("No results found")
            return

        logger.info("Top Results ({} of {}):", len(response.results), response.total_count)
        for item in response.results:
            turn = item.turn
            logger.info(
                "[Score: {:.4f} | Conversation: {} #{} | Model: {} | {}]",
                item.score,
                turn.conversation_id,
                turn.turn_number,
                turn.model or "unknown",
                turn.utc_timestamp.isoformat(),
            )
            snippet = turn.prompt[:100].replace("\n", " ")
            logger.info('  --> "{}..."', snippet)
            if explain:
                logger.info("      {}", item.relevance.explanation)

        for suggestion in response.suggestions:
            logger.info("Suggestion: {} ({})", suggestion.text, suggestion.description)
