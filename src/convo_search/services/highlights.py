import re
from collections.abc import Iterator

from convo_search.core.models import ConversationTurn, SearchHighlight

CONTEXT_CHARS = 50
MAX_HIGHLIGHTS = 20


def _field_highlights(field: str, text: str, terms: tuple[str, ...]) -> Iterator[SearchHighlight]:
    for term in terms:
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        for match in pattern.finditer(text):
            start = max(0, match.start() - CONTEXT_CHARS)
            end = min(len(text), match.end() + CONTEXT_CHARS)
            snippet = text[start:end]
            yield SearchHighlight(
                field=field,
                original_text=snippet,
                highlighted_text=pattern.sub(lambda m: f"<mark>{m.group(0)}</mark>", snippet),
                start_index=match.start(),
                length=len(match.group(0)),
            )


def find_highlights(
    turn: ConversationTurn, terms: tuple[str, ...], limit: int = MAX_HIGHLIGHTS
) -> list[SearchHighlight]:
    """Collects term occurrences in the prompt, the response and each tool name."""
    if not terms:
        return []

    fields = [("prompt", turn.prompt), ("response", turn.response)]
    fields.extend(("tools", tool) for tool in turn.tools_used)

    highlights: list[SearchHighlight] = []
    for field, text in fields:
        for highlight in _field_highlights(field, text, terms):
            highlights.append(highlight)
            if len(highlights) >= limit:
                return highlights
    return highlights
