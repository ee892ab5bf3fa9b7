import re
from collections.abc import Mapping
from typing import Any, NamedTuple

from pydantic import ValidationError

from convo_search.config import IntentRule, ParserConfig
from convo_search.core.cancellation import CancellationToken, check_cancelled
from convo_search.core.models import ParsedQuery, QueryContext, SearchIntent
from convo_search.core.ports import IEventSink
from convo_search.infrastructure.diagnostics.events import NullEventSink
from convo_search.infrastructure.text.tokenizer import Tokenizer

MAX_TERM_SIGNAL = 0.5
MAX_LENGTH_SIGNAL = 0.2
QUOTED_PHRASE_SIGNAL = 0.1
BOOLEAN_CONNECTOR_SIGNAL = 0.2


class CompiledRule(NamedTuple):
    intent: SearchIntent
    prefixes: list[re.Pattern[str]]
    keywords: tuple[str, ...]
    tokens: frozenset[str]


def _compile_prefix(prefix: str) -> re.Pattern[str]:
    words = [re.escape(word) for word in prefix.lower().split()]
    return re.compile(r"^" + r"\s+".join(words) + r"(?:\s+|$)")


def _compile_rule(rule: IntentRule) -> CompiledRule:
    return CompiledRule(
        intent=rule.intent,
        prefixes=[_compile_prefix(p) for p in rule.prefixes if p.strip()],
        keywords=tuple(k.lower() for k in rule.keywords if k),
        tokens=frozenset(t.lower() for t in rule.tokens if t),
    )


class QueryParser:
    """
    Heuristic natural-language query parser.
    Classifies intent with an ordered first-match-wins rule list, strips
    intent-signaling prefixes, extracts stop-word-filtered terms and estimates
    query complexity. Holds no mutable state, so one instance may be shared
    across threads.
    """

    def __init__(self, config: ParserConfig | None = None, events: IEventSink | None = None) -> None:
        self.config = config or ParserConfig()
        self.events = events or NullEventSink()
        self.tokenizer = Tokenizer(self.config.stop_words, self.config.min_term_length)
        self._rules = [_compile_rule(rule) for rule in self.config.intent_rules]

    def parse(
        self,
        query: str,
        context: QueryContext | Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ParsedQuery:
        """Turns a raw query into an immutable ParsedQuery."""
        check_cancelled(cancel_token)
        query_context = self._coerce_context(context)

        normalized = query.strip().lower()
        words = self.tokenizer.words(normalized)
        intent, processed = self._classify(normalized, words)
        terms = self.tokenizer.terms(processed)
        complexity = self._complexity(query, words, terms)

        parsed = ParsedQuery(
            original_query=query,
            processed_query=processed,
            terms=tuple(terms),
            intent=intent,
            interpretation=self.config.interpretations.get(intent, ""),
            complexity=complexity,
        )
        self.events.emit(
            "query.parsed",
            intent=intent.value,
            terms=list(terms),
            complexity=complexity,
            context_version=query_context.version,
        )
        return parsed

    def _coerce_context(self, context: QueryContext | Mapping[str, Any] | None) -> QueryContext:
        if context is None:
            return QueryContext()
        if isinstance(context, QueryContext):
            return context
        try:
            return QueryContext.model_validate(dict(context))
        except ValidationError as e:
            # Context is advisory; a malformed one must not fail the search.
            self.events.emit("query.context_ignored", error=str(e))
            return QueryContext()

    def _classify(self, normalized: str, words: list[str]) -> tuple[SearchIntent, str]:
        """Evaluates the rules in order; the first rule that matches decides the intent."""
        if not words:
            return SearchIntent.GENERAL, normalized

        for rule in self._rules:
            for prefix in rule.prefixes:
                if match := prefix.match(normalized):
                    return rule.intent, normalized[match.end() :].strip()
            if any(word.startswith(k) for word in words for k in rule.keywords):
                return rule.intent, normalized
            if rule.tokens.intersection(words):
                return rule.intent, normalized

        return SearchIntent.GENERAL, normalized

    def _complexity(self, original: str, words: list[str], terms: list[str]) -> float:
        if not words:
            return 0.0

        complexity = min(len(terms) * 0.1, MAX_TERM_SIGNAL)
        complexity += min(len(words) * 0.02, MAX_LENGTH_SIGNAL)
        if self.tokenizer.quoted_phrases(original):
            complexity += QUOTED_PHRASE_SIGNAL
        if self.tokenizer.has_boolean_connector(original):
            complexity += BOOLEAN_CONNECTOR_SIGNAL

        return round(min(complexity, 1.0), 4)
