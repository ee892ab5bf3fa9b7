from convo_search.core.models import ParsedQuery, SearchIntent, SearchSuggestion

MAX_SUGGESTIONS = 10

INTENT_SUGGESTIONS: dict[SearchIntent, tuple[str, str]] = {
    SearchIntent.TROUBLESHOOTING: ("error resolution", "Find error resolution discussions"),
    SearchIntent.HOW_TO: ("step by step guide", "Find step-by-step walkthroughs"),
    SearchIntent.DEFINITION: ("explanation", "Find explanations and definitions"),
    SearchIntent.EXAMPLE: ("code example", "Find discussions containing code samples"),
    SearchIntent.COMPARISON: ("differences", "Find side-by-side comparisons"),
}


class SuggestionGenerator:
    """Proposes follow-up queries from a parsed query. No spelling correction."""

    def __init__(self, related_topics: dict[str, list[str]] | None = None) -> None:
        self.related_topics = related_topics or {}

    def suggest(self, parsed: ParsedQuery, limit: int = MAX_SUGGESTIONS) -> list[SearchSuggestion]:
        suggestions: list[SearchSuggestion] = []
        suggestions.extend(self._expansions(parsed))
        suggestions.extend(self._related_topics(parsed))
        suggestions.extend(self._intent_based(parsed))

        # Stable sort keeps generation order among equal confidences
        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions[:limit]

    @staticmethod
    def _expansions(parsed: ParsedQuery) -> list[SearchSuggestion]:
        query = parsed.original_query.strip()
        if len(query.split()) != 1:
            return []
        return [
            SearchSuggestion(
                text=f"{query} error",
                confidence=0.7,
                type="query_expansion",
                description="Search for errors related to this term",
            ),
            SearchSuggestion(
                text=f"how to {query}",
                confidence=0.6,
                type="query_expansion",
                description="Search for how-to discussions",
            ),
        ]

    def _related_topics(self, parsed: ParsedQuery) -> list[SearchSuggestion]:
        normalized = parsed.original_query.lower()
        suggestions = []
        for topic, related in self.related_topics.items():
            if topic.lower() not in normalized:
                continue
            for term in related:
                if term.lower() in parsed.terms:
                    continue
                suggestions.append(
                    SearchSuggestion(
                        text=term,
                        confidence=0.6,
                        type="related_topic",
                        description=f"Related to {topic}",
                    )
                )
        return suggestions

    @staticmethod
    def _intent_based(parsed: ParsedQuery) -> list[SearchSuggestion]:
        if parsed.intent not in INTENT_SUGGESTIONS:
            return []
        text, description = INTENT_SUGGESTIONS[parsed.intent]
        return [SearchSuggestion(text=text, confidence=0.8, type="intent_based", description=description)]
