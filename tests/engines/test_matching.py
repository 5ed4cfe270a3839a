"""
Tests for label normalization, similarity strategies and the match policy.
"""

from uuid import uuid4

import pytest

from portfolio_engines.matching import (
    EntityNameMatcher,
    LevenshteinSimilarity,
    MatchDecision,
    MatchPolicy,
    TokenSetSimilarity,
    get_similarity_strategy,
    normalize_label,
)
from portfolio_kernel.domain.dtos import EntityInfo

OWNER = uuid4()


def _entity(name, **kwargs):
    return EntityInfo(entity_id=uuid4(), owner_id=OWNER, name=name, **kwargs)


@pytest.fixture
def entities():
    return [
        _entity("Apartamento Leblon 201"),
        _entity("Loft Centro"),
        _entity("Casa Búzios", external_name="Casa de praia em Búzios", aliases=("Buzios",)),
    ]


class TestNormalizeLabel:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("  Apto. Copacabana - 302 ", "apto copacabana 302"),
            ("Casa Búzios", "casa buzios"),
            ("LOFT_centro", "loft centro"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_label(raw) == expected


class TestStrategies:
    def test_levenshtein_is_normalized(self):
        similarity = LevenshteinSimilarity().similarity(
            "apartamento leblon 20", "apartamento leblon 201"
        )
        assert similarity == pytest.approx(1 - 1 / 22)

    def test_levenshtein_identical_empty(self):
        assert LevenshteinSimilarity().similarity("", "") == 1.0

    def test_token_set_ignores_order(self):
        assert TokenSetSimilarity().similarity("centro loft", "loft centro") == 1.0

    def test_lookup_by_name(self):
        assert isinstance(get_similarity_strategy("token_set"), TokenSetSimilarity)
        with pytest.raises(ValueError):
            get_similarity_strategy("soundex")


class TestMatchPolicy:
    def test_thresholds_validated(self):
        with pytest.raises(ValueError):
            MatchPolicy(accept_threshold=0.95, auto_learn_threshold=0.9)
        with pytest.raises(ValueError):
            MatchPolicy(accept_threshold=-0.1)

    @pytest.mark.parametrize(
        "best, runner_up, decision",
        [
            (0.95, 0.3, MatchDecision.AUTO_LEARN),
            (0.9, None, MatchDecision.AUTO_LEARN),
            (0.75, 0.3, MatchDecision.NEEDS_CONFIRMATION),
            (0.6, None, MatchDecision.NEEDS_CONFIRMATION),
            (0.59, None, MatchDecision.BELOW_THRESHOLD),
            (0.8, 0.8, MatchDecision.AMBIGUOUS),
        ],
    )
    def test_decide(self, best, runner_up, decision):
        assert MatchPolicy().decide(best, runner_up) == decision


class TestExactMatch:
    def setup_method(self):
        self.matcher = EntityNameMatcher()

    def test_name_ignoring_case_and_punctuation(self, entities):
        assert self.matcher.exact_match("  LOFT-centro ", entities) is entities[1]

    def test_external_name(self, entities):
        assert self.matcher.exact_match("Casa de praia em Buzios", entities) is entities[2]

    def test_alias(self, entities):
        assert self.matcher.exact_match("buzios", entities) is entities[2]

    def test_ambiguous_returns_none(self):
        twins = [_entity("Loft A", aliases=("Loft",)), _entity("Loft B", aliases=("Loft",))]
        assert self.matcher.exact_match("Loft", twins) is None

    def test_blank_label(self, entities):
        assert self.matcher.exact_match("  ", entities) is None


class TestFuzzyMatch:
    def setup_method(self):
        self.matcher = EntityNameMatcher()

    def test_high_similarity_auto_learns(self, entities):
        result = self.matcher.match(label="Apartamento Leblon 20", entities=entities)
        assert result.decision == MatchDecision.AUTO_LEARN
        assert result.entity_id == entities[0].entity_id
        assert result.best.similarity == pytest.approx(0.9545, abs=1e-4)

    def test_mid_similarity_needs_confirmation(self, entities):
        result = self.matcher.match(label="Loft Centro SP", entities=entities)
        assert result.decision == MatchDecision.NEEDS_CONFIRMATION
        assert result.accepted
        assert result.entity_id == entities[1].entity_id
        assert result.best.similarity == pytest.approx(1 - 3 / 14)

    def test_low_similarity_rejected(self, entities):
        result = self.matcher.match(label="Chalé Serra", entities=entities)
        assert result.decision == MatchDecision.BELOW_THRESHOLD
        assert result.entity_id is None

    def test_tie_is_ambiguous(self):
        twins = [_entity("Loft Centro A"), _entity("Loft Centro B")]
        result = self.matcher.match(label="Loft Centro", entities=twins)
        assert result.decision == MatchDecision.AMBIGUOUS
        assert result.entity_id is None

    def test_no_candidates(self):
        result = self.matcher.match(label="Loft", entities=[])
        assert result.decision == MatchDecision.NO_CANDIDATES

    def test_policy_independent_of_strategy(self, entities):
        matcher = EntityNameMatcher(TokenSetSimilarity(), MatchPolicy())
        result = matcher.match(label="Centro Loft", entities=entities)
        assert result.decision == MatchDecision.AUTO_LEARN
        assert result.entity_id == entities[1].entity_id

    def test_emits_engine_trace(self, entities, captured_logs):
        self.matcher.match(label="Loft Centro SP", entities=entities)
        traces = [r for r in captured_logs() if r["message"] == "PORTFOLIO_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "entity_name_match"
        assert len(traces[-1]["input_fingerprint"]) == 16
