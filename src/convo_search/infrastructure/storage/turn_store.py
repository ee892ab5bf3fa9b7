import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from convo_search.core.models import ConversationTurn, TurnFilter


class InMemoryTurnStore:
    """Holds turns in a list. Implements the ITurnStore protocol."""

    def __init__(self, turns: Iterable[ConversationTurn] = ()) -> None:
        self._turns = list(turns)

    def add(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    def list_turns(self, criteria: TurnFilter | None = None) -> list[ConversationTurn]:
        if criteria is None:
            return list(self._turns)
        return [turn for turn in self._turns if criteria.matches(turn)]

    def get_conversation(self, conversation_id: str) -> list[ConversationTurn]:
        turns = [turn for turn in self._turns if turn.conversation_id == conversation_id]
        return sorted(turns, key=lambda t: t.turn_number)


class JsonlTurnStore(InMemoryTurnStore):
    """
    Loads conversation turns from JSON Lines (``*.jsonl``) and JSON (``*.json``) exports.
    Accepts a single file or a directory, which is scanned recursively.
    Invalid lines and records are skipped with a warning.
    """

    supported_extensions = (".jsonl", ".json")

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        super().__init__(self._load())

    def reload(self) -> None:
        self._turns = list(self._load())

    def _files(self) -> list[Path]:
        if not self.path.exists():
            logger.warning("Conversation data path '{}' not found, store is empty", self.path)
            return []
        if self.path.is_file():
            return [self.path]

        files: list[Path] = []
        for ext in self.supported_extensions:
            files.extend(self.path.rglob(f"*{ext}"))
        return sorted(files)

    def _load(self) -> Iterator[ConversationTurn]:
        for filepath in self._files():
            with open(filepath, encoding="utf-8") as f:
                content = f.read()

            if filepath.suffix == ".jsonl":
                records = self._jsonl_records(filepath, content)
            else:
                records = self._json_records(filepath, content)

            for location, record in records:
                try:
                    yield ConversationTurn.model_validate(record)
                except ValidationError as e:
                    logger.warning(
                        "Skipping invalid turn record at {}: {} validation error(s)",
                        location,
                        e.error_count(),
                    )

    @staticmethod
    def _jsonl_records(filepath: Path, content: str) -> Iterator[tuple[str, Any]]:
        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                yield f"{filepath}:{lineno}", json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Error decoding JSON from {}:{}: {}", filepath, lineno, e)

    @staticmethod
    def _json_records(filepath: Path, content: str) -> Iterator[tuple[str, Any]]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Error decoding JSON from {}: {}", filepath, e)
            return

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            logger.warning("Expected a JSON object or array of turn records in {}", filepath)
            return

        for index, record in enumerate(data):
            yield f"{filepath}[{index}]", record
