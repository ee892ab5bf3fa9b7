from convo_search.config import ScoringConfig
from convo_search.core.cancellation import CancellationToken, check_cancelled
from convo_search.core.models import (
    ConversationTurn,
    ParsedQuery,
    RelevanceResult,
    ScoreFactor,
    SearchIntent,
)
from convo_search.core.ports import IEventSink
from convo_search.infrastructure.diagnostics.events import NullEventSink


class RelevanceScorer:
    """
    Explainable multi-factor relevance scorer.

    The score is a weighted sum of four sub-scores, each in [0, 1]:
    lexical overlap of the query terms with the turn text, the fraction of
    intent-specific keywords present, a model-name match and a tool-usage
    match. Every non-zero factor is reported in the explanation.
    """

    def __init__(self, config: ScoringConfig | None = None, events: IEventSink | None = None) -> None:
        self.config = config or ScoringConfig()
        self.events = events or NullEventSink()
        self._intent_keywords = {
            intent: tuple(k.lower() for k in keywords)
            for intent, keywords in self.config.intent_keywords.items()
        }

    def score(
        self,
        turn: ConversationTurn,
        query: ParsedQuery,
        cancel_token: CancellationToken | None = None,
    ) -> RelevanceResult:
        """Scores one turn against a parsed query. Pure function of its inputs."""
        check_cancelled(cancel_token)

        terms = [term.lower() for term in query.terms]
        if not terms:
            return RelevanceResult(score=0.0, explanation="Total: 0.00. No query terms to match")

        text = f"{turn.prompt}\n{turn.response}".lower()
        weights = self.config.weights

        candidates = [
            ("overlap", self._overlap(text, terms), weights.overlap),
            (f"intent[{query.intent.value}]", self._intent_boost(text, query.intent), weights.intent),
            ("model", self._model_boost(turn.model, terms), weights.model),
            ("tools", self._tool_boost(turn.tools_used, terms), weights.tools),
        ]
        factors = tuple(
            ScoreFactor(name=name, value=value, weight=weight, contribution=value * weight)
            for name, value, weight in candidates
            if value > 0 and weight > 0
        )
        total = sum(f.contribution for f in factors)

        self.events.emit(
            "turn.scored",
            conversation_id=turn.conversation_id,
            turn_number=turn.turn_number,
            score=total,
        )
        return RelevanceResult(
            score=total,
            explanation=self._explain(total, factors),
            factors=factors,
        )

    @staticmethod
    def _overlap(text: str, terms: list[str]) -> float:
        matched = sum(1 for term in terms if term in text)
        return matched / len(terms)

    def _intent_boost(self, text: str, intent: SearchIntent) -> float:
        keywords = self._intent_keywords.get(intent, ())
        if not keywords:
            return 0.0
        found = sum(1 for keyword in keywords if keyword in text)
        return found / len(keywords)

    @staticmethod
    def _model_boost(model: str, terms: list[str]) -> float:
        model_lower = model.lower()
        if not model_lower:
            return 0.0
        return 1.0 if any(term in model_lower for term in terms) else 0.0

    @staticmethod
    def _tool_boost(tools: tuple[str, ...], terms: list[str]) -> float:
        tools_lower = [tool.lower() for tool in tools if tool]
        if not tools_lower:
            return 0.0
        matched = sum(
            1 for term in terms if any(term in tool for tool in tools_lower)
        )
        return matched / len(terms)

    @staticmethod
    def _explain(total: float, factors: tuple[ScoreFactor, ...]) -> str:
        parts = [
            f"{f.name}: {f.value:.2f} (weight {f.weight:.2f}, contribution {f.contribution:.2f})"
            for f in factors
        ]
        if not parts:
            return f"Total: {total:.2f}. No contributing factors"
        return f"Total: {total:.2f}. " + "; ".join(parts)
