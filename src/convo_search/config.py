import os
from pathlib import Path

import yaml
from loguru import logger
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from convo_search.core.models import SearchIntent

DEFAULT_STOP_WORDS: list[str] = [
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "can", "may", "might", "must", "this", "that",
    "these", "those", "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us",
    "them", "how", "what", "where", "when", "why", "which", "who",
]  # fmt: skip


class IntentRule(BaseModel):
    """One entry of the ordered, first-match-wins intent rule list.

    ``prefixes`` match at the start of the normalized query and are stripped from
    the processed query. ``keywords`` match any word starting with the keyword
    (``error`` matches ``errors``). ``tokens`` match whole words only.
    """

    intent: SearchIntent
    prefixes: list[str] = []
    keywords: list[str] = []
    tokens: list[str] = []


def _default_intent_rules() -> list[IntentRule]:
    return [
        IntentRule(intent=SearchIntent.HOW_TO, prefixes=["how to"]),
        IntentRule(intent=SearchIntent.DEFINITION, prefixes=["what is"]),
        IntentRule(intent=SearchIntent.TROUBLESHOOTING, keywords=["error"]),
        IntentRule(intent=SearchIntent.EXAMPLE, keywords=["example"]),
        IntentRule(intent=SearchIntent.COMPARISON, keywords=["compare"], tokens=["vs"]),
    ]


def _default_interpretations() -> dict[SearchIntent, str]:
    return {
        SearchIntent.GENERAL: "General search",
        SearchIntent.HOW_TO: "Looking for step-by-step instructions",
        SearchIntent.TROUBLESHOOTING: "Seeking solutions to a problem",
        SearchIntent.DEFINITION: "Looking for a definition or explanation",
        SearchIntent.EXAMPLE: "Looking for examples",
        SearchIntent.COMPARISON: "Comparing alternatives",
    }


def _default_related_topics() -> dict[str, list[str]]:
    return {
        "error": ["exception", "bug", "debugging", "troubleshooting"],
        "api": ["rest", "endpoint", "http", "json", "request"],
        "database": ["sql", "query", "connection", "schema", "migration"],
        "authentication": ["login", "oauth", "token", "security", "authorization"],
    }


def _default_intent_keywords() -> dict[SearchIntent, list[str]]:
    return {
        SearchIntent.GENERAL: [],
        SearchIntent.TROUBLESHOOTING: ["error", "debug", "fix", "solve", "issue", "problem"],
        SearchIntent.HOW_TO: [
            "step", "first", "then", "next", "finally", "follow", "guide", "tutorial",
            "instructions",
        ],
        SearchIntent.DEFINITION: [
            "is defined as", "means", "refers to", "definition", "explanation", "essentially",
        ],
        SearchIntent.EXAMPLE: ["example", "for instance", "such as", "sample", "demo", "```"],
        SearchIntent.COMPARISON: [
            "difference", "versus", "compared", "better", "whereas", "trade-off",
        ],
    }  # fmt: skip


class ParserConfig(BaseModel):
    """Vocabulary tables driving the query parser."""

    stop_words: list[str] = Field(default_factory=lambda: list(DEFAULT_STOP_WORDS))
    min_term_length: int = Field(2, ge=1)
    intent_rules: list[IntentRule] = Field(default_factory=_default_intent_rules)
    interpretations: dict[SearchIntent, str] = Field(default_factory=_default_interpretations)
    related_topics: dict[str, list[str]] = Field(default_factory=_default_related_topics)


class ScoringWeights(BaseModel):
    """Relative weight of each relevance factor."""

    overlap: float = Field(0.6, ge=0.0)
    intent: float = Field(0.2, ge=0.0)
    model: float = Field(0.1, ge=0.0)
    tools: float = Field(0.1, ge=0.0)


class ScoringConfig(BaseModel):
    """Weights and intent keyword sets driving the relevance scorer."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    intent_keywords: dict[SearchIntent, list[str]] = Field(
        default_factory=_default_intent_keywords
    )


class Settings(BaseSettings):
    """Global configuration for the convo-search application."""

    # General System
    data_path: str = "./data"
    store_type: str = "jsonl"
    event_sink: str = "loguru"
    default_limit: int = 10
    log_level: str = "INFO"
    log_serialize: bool = False

    parser: ParserConfig = Field(default_factory=ParserConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    model_config = SettingsConfigDict(env_prefix="CONVO_", env_file=".env")


def load_settings(config_file: str | None = None) -> Settings:
    """Loads base settings and overrides them from config.yaml."""
    base_settings = Settings()

    if config_file is None:
        config_file = os.getenv("CONVO_CONFIG_FILE", "config.yaml")

    yaml_path = Path(config_file)
    if yaml_path.exists():
        with open(yaml_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

            if not data:
                return base_settings

            # Override System configuration
            if "system" in data and isinstance(data["system"], dict):
                for key, value in data["system"].items():
                    if hasattr(base_settings, key):
                        setattr(base_settings, key, value)

            # Override vocabulary and scoring tables
            if "parser" in data and isinstance(data["parser"], dict):
                base_settings.parser = ParserConfig(**data["parser"])

            if "scoring" in data and isinstance(data["scoring"], dict):
                base_settings.scoring = ScoringConfig(**data["scoring"])
    else:
        logger.warning("Configuration file '{}' not found, using defaults", yaml_path)

    return base_settings


# Global singleton instance
settings = load_settings()
