import re
from collections.abc import Iterable

WORD_PATTERN = re.compile(r"\w*[^\W_]\w*")
QUOTED_PHRASE_PATTERN = re.compile(r"[\"“]([^\"“”]*[^\W_][^\"“”]*)[\"”]")
BOOLEAN_CONNECTOR_PATTERN = re.compile(r"\b(?:AND|OR|NOT)\b")


class Tokenizer:
    """Splits query text into lowercase words and stop-word-filtered terms."""

    def __init__(self, stop_words: Iterable[str], min_term_length: int = 2) -> None:
        self.stop_words = frozenset(word.lower() for word in stop_words)
        self.min_term_length = min_term_length

    def words(self, text: str) -> list[str]:
        """Word runs holding at least one letter or digit, lowercased, stop words included."""
        return [match.group(0).lower() for match in WORD_PATTERN.finditer(text)]

    def terms(self, text: str) -> list[str]:
        """Distinct searchable terms in order of first appearance."""
        seen: set[str] = set()
        terms: list[str] = []
        for word in self.words(text):
            if len(word) < self.min_term_length or word in self.stop_words or word in seen:
                continue
            seen.add(word)
            terms.append(word)
        return terms

    @staticmethod
    def quoted_phrases(text: str) -> list[str]:
        return [match.group(1).strip() for match in QUOTED_PHRASE_PATTERN.finditer(text)]

    @staticmethod
    def has_boolean_connector(text: str) -> bool:
        """Uppercase AND, OR, NOT as whole words; lowercase forms are ordinary prose."""
        return BOOLEAN_CONNECTOR_PATTERN.search(text) is not None
