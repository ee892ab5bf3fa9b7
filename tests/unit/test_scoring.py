"""Unit tests for the RelevanceScorer."""

import pytest

from convo_search.config import ScoringConfig, ScoringWeights
from convo_search.core.cancellation import CancellationToken, SearchCancelledError
from convo_search.core.models import ParsedQuery, SearchIntent
from convo_search.services.query_parser import QueryParser
from convo_search.services.scoring import RelevanceScorer


@pytest.fixture
def parser():
    return QueryParser()


@pytest.fixture
def scorer():
    return RelevanceScorer()


@pytest.fixture
def auth_turn(make_turn):
    return make_turn(
        prompt="My login endpoint returns 401",
        response="To debug authentication errors, first check the log files...",
    )


@pytest.fixture
def cake_turn(make_turn):
    return make_turn(
        prompt="How do I bake a chocolate cake?",
        response="Preheat the oven, mix flour, sugar and eggs, then bake for 35 minutes.",
        model="claude-2",
    )


class TestScenarios:
    """End-to-end parse-then-score scenarios."""

    def test_exact_term_match_scores_high(self, parser, scorer, auth_turn):
        result = scorer.score(auth_turn, parser.parse("debug authentication errors"))

        assert result.score > 0.5

    def test_unrelated_turn_scores_low(self, parser, scorer, cake_turn):
        result = scorer.score(cake_turn, parser.parse("debug authentication errors"))

        assert result.score < 0.3

    def test_model_name_match_outscores_other_model(self, parser, scorer, make_turn):
        query = parser.parse("gpt streaming responses")
        gpt = make_turn(prompt="streaming responses", model="gpt-4")
        claude = make_turn(prompt="streaming responses", model="claude-2")

        assert scorer.score(gpt, query).score > scorer.score(claude, query).score

    def test_how_to_query_scores_matching_turn(self, parser, scorer, auth_turn):
        query = parser.parse("how to debug authentication errors")

        assert query.intent == SearchIntent.HOW_TO
        assert scorer.score(auth_turn, query).score > 0.5


class TestFactors:
    """Tests for the individual sub-scores."""

    def test_overlap_fraction(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("alpha", "beta"))
        turn = make_turn(prompt="alpha only", model="")

        result = scorer.score(turn, query)

        assert result.score == pytest.approx(0.6 * 0.5)
        assert [f.name for f in result.factors] == ["overlap"]

    def test_overlap_is_case_insensitive(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("redis",))
        turn = make_turn(response="Use REDIS for caching", model="")

        assert scorer.score(turn, query).factors[0].value == 1.0

    def test_intent_boost_fraction(self, scorer, make_turn):
        query = ParsedQuery(
            original_query="q",
            processed_query="q",
            terms=("zzz",),
            intent=SearchIntent.TROUBLESHOOTING,
        )
        turn = make_turn(response="We need to fix this issue and solve the problem", model="")

        result = scorer.score(turn, query)

        intent = next(f for f in result.factors if f.name == "intent[troubleshooting]")
        assert intent.value == pytest.approx(4 / 6)
        assert result.score == pytest.approx(0.2 * 4 / 6)

    def test_general_intent_has_no_boost(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("zzz",))
        turn = make_turn(response="error debug fix solve issue problem", model="")

        assert scorer.score(turn, query).score == 0.0

    def test_tool_boost_fraction(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("grep", "curl"))
        turn = make_turn(prompt="", model="", tools_used=("GREP",))

        result = scorer.score(turn, query)

        assert result.factors[0].name == "tools"
        assert result.factors[0].value == pytest.approx(0.5)

    def test_short_tool_name_does_not_match_longer_terms(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("redis", "cache"))
        turn = make_turn(prompt="", model="", tools_used=("e", "ca"))

        assert scorer.score(turn, query).score == 0.0

    def test_tool_name_containing_term_matches(self, scorer, make_turn):
        query = ParsedQuery(original_query="q", processed_query="q", terms=("debug",))
        turn = make_turn(prompt="", model="", tools_used=("Debugger",))

        result = scorer.score(turn, query)

        assert [f.name for f in result.factors] == ["tools"]
        assert result.factors[0].value == 1.0

    def test_custom_weights(self, make_turn):
        scorer = RelevanceScorer(ScoringConfig(weights=ScoringWeights(overlap=1.0, model=0.0)))
        query = ParsedQuery(original_query="q", processed_query="q", terms=("gpt",))
        turn = make_turn(prompt="gpt", model="gpt-4")

        result = scorer.score(turn, query)

        assert result.score == pytest.approx(1.0)
        assert [f.name for f in result.factors] == ["overlap"]

    def test_negative_weights_are_rejected(self):
        with pytest.raises(ValueError):
            ScoringWeights(overlap=-0.1)


class TestMonotonicity:
    """Adding matching evidence never lowers the score."""

    def test_adding_matching_tool(self, parser, scorer, make_turn):
        query = parser.parse("grep the nginx logs")
        without = make_turn(prompt="nginx logs", tools_used=("read_file",))
        with_tool = make_turn(prompt="nginx logs", tools_used=("read_file", "grep"))

        assert scorer.score(with_tool, query).score >= scorer.score(without, query).score

    def test_adding_matching_model(self, parser, scorer, make_turn):
        query = parser.parse("claude prompt caching")
        base = make_turn(prompt="prompt caching", model="other")
        matching = make_turn(prompt="prompt caching", model="claude-3-haiku")

        assert scorer.score(matching, query).score >= scorer.score(base, query).score

    def test_adding_overlapping_terms(self, parser, scorer, make_turn):
        query = parser.parse("postgres index bloat vacuum")
        scores = [
            scorer.score(make_turn(prompt=text), query).score
            for text in ["postgres", "postgres index", "postgres index bloat vacuum"]
        ]

        assert scores == sorted(scores)


class TestExplainability:
    """Tests for the explanation string."""

    def test_explanation_lists_non_zero_factors(self, parser, scorer, make_turn):
        query = parser.parse("debug gpt errors")
        turn = make_turn(
            prompt="debug these errors", model="gpt-4", tools_used=("debugger",), response=""
        )

        result = scorer.score(turn, query)

        assert result.explanation.startswith(f"Total: {result.score:.2f}. ")
        assert "overlap: " in result.explanation
        assert "intent[troubleshooting]: " in result.explanation
        assert "model: 1.00" in result.explanation
        assert "tools: " in result.explanation
        assert sum(f.contribution for f in result.factors) == pytest.approx(result.score)

    def test_zero_factors_are_omitted(self, parser, scorer, make_turn):
        query = parser.parse("kubernetes")
        turn = make_turn(prompt="kubernetes pods", model="gpt-4")

        result = scorer.score(turn, query)

        assert "model" not in result.explanation
        assert "tools" not in result.explanation

    def test_scoring_is_idempotent(self, parser, scorer, auth_turn):
        query = parser.parse("debug authentication errors")

        first = scorer.score(auth_turn, query)
        second = scorer.score(auth_turn, query)

        assert first.score == second.score
        assert first.explanation == second.explanation


class TestDegenerateInput:
    """Missing optional data never raises."""

    def test_query_without_terms(self, parser, scorer, auth_turn):
        result = scorer.score(auth_turn, parser.parse("what is it"))

        assert result.score == 0.0
        assert "No query terms" in result.explanation

    def test_empty_response_and_tools(self, parser, scorer, make_turn):
        turn = make_turn(prompt="", response="", model="", tools_used=())

        result = scorer.score(turn, parser.parse("debug authentication errors"))

        assert result.score == 0.0
        assert result.factors == ()

    def test_emits_scored_event(self, parser, recording_sink, auth_turn):
        scorer = RelevanceScorer(events=recording_sink)

        scorer.score(auth_turn, parser.parse("debug"))

        event, fields = recording_sink.events[-1]
        assert event == "turn.scored"
        assert fields["conversation_id"] == "conv-1"

    def test_cancelled_token_aborts(self, parser, scorer, auth_turn):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(SearchCancelledError):
            scorer.score(auth_turn, parser.parse("debug"), cancel_token=token)
