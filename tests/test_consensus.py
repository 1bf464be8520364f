"""
Tests for weighted consensus across algorithm predictions
Run with: pytest tests/test_consensus.py -v
"""

import pytest

from betsmart.core.errors import EmptyPredictionSet, InvalidProbability
from betsmart.core.interfaces import AlgorithmWeight, PredictionResult, ProjectedScore
from betsmart.services.consensus import (
    UNWEIGHTED_ALGORITHM_WEIGHT,
    _round_half_up,
    agreement_level_for,
    normalize_weights,
    synthesize_consensus,
)


def make_prediction(algorithm_id, recommended="home", confidence=60.0,
                    true_probability=0.6, home=70, away=65, match_id="m1"):
    return PredictionResult(
        match_id=match_id,
        algorithm_id=algorithm_id,
        algorithm_name=algorithm_id.upper(),
        recommended=recommended,
        confidence=confidence,
        true_probability=true_probability,
        projected_score=ProjectedScore(home=home, away=away),
    )


def weight(algorithm_id, value):
    return AlgorithmWeight(algorithm_id=algorithm_id, algorithm_name=algorithm_id, weight=value)


class TestSinglePrediction:

    def test_passes_through_exactly(self):
        pred = make_prediction("a", "away", confidence=72.0, true_probability=0.64, home=101, away=108)
        result = synthesize_consensus([pred], [weight("a", 0.4)])

        assert result.recommended == "away"
        assert result.confidence == 72.0
        assert result.true_probability == 0.64
        assert result.projected_score.home == 101
        assert result.projected_score.away == 108
        assert result.agreement == 1.0
        assert result.is_unanimous

    def test_match_id_defaults_to_prediction(self):
        result = synthesize_consensus([make_prediction("a", match_id="game-9")], [])
        assert result.match_id == "game-9"

    def test_explicit_match_id_wins(self):
        result = synthesize_consensus([make_prediction("a")], [], match_id="override")
        assert result.match_id == "override"


class TestWeightedVote:

    def test_heavier_algorithm_wins(self):
        preds = [make_prediction("a", "home"), make_prediction("b", "away")]
        result = synthesize_consensus(preds, [weight("a", 1.0), weight("b", 3.0)])

        assert result.recommended == "away"
        assert result.agreement == pytest.approx(0.75)
        assert result.agreement_level == "strong"

    def test_exact_tie_goes_to_first_seen_side(self):
        preds = [make_prediction("a", "away"), make_prediction("b", "home")]
        result = synthesize_consensus(preds, [weight("a", 1.0), weight("b", 1.0)])

        assert result.recommended == "away"
        assert result.agreement == pytest.approx(0.5)
        assert result.agreement_level == "split"

    def test_confidence_uses_agreeing_predictions_only(self):
        preds = [
            make_prediction("a", "home", confidence=70.0, true_probability=0.70),
            make_prediction("b", "home", confidence=60.0, true_probability=0.58),
            make_prediction("c", "away", confidence=90.0, true_probability=0.90),
        ]
        result = synthesize_consensus(
            preds, [weight("a", 3.0), weight("b", 1.0), weight("c", 1.0)]
        )

        assert result.recommended == "home"
        assert result.confidence == pytest.approx(67.5)
        assert result.true_probability == pytest.approx((3 * 0.70 + 0.58) / 4)
        assert result.agreement == pytest.approx(0.8)

    def test_vote_totals_and_weights_are_normalised(self):
        preds = [make_prediction("a", "home"), make_prediction("b", "away"), make_prediction("c", "draw")]
        result = synthesize_consensus(
            preds, [weight("a", 2.0), weight("b", 1.0), weight("c", 1.0)]
        )

        assert sum(result.vote_totals.values()) == pytest.approx(1.0)
        assert sum(result.weights.values()) == pytest.approx(1.0)
        assert result.weights["a"] == pytest.approx(0.5)
        assert list(result.vote_totals) == ["home", "away", "draw"]

    def test_three_way_even_split_is_contested(self):
        preds = [make_prediction("a", "home"), make_prediction("b", "away"), make_prediction("c", "draw")]
        result = synthesize_consensus(preds, [])

        assert result.recommended == "home"
        assert result.agreement_level == "contested"

    def test_mapping_input_preserves_order(self):
        preds = {
            "b": make_prediction("b", "away"),
            "a": make_prediction("a", "home"),
        }
        result = synthesize_consensus(preds, [])

        assert result.algorithm_ids == ("b", "a")
        assert result.recommended == "away"


class TestProjectedScore:

    def test_rounds_half_up(self):
        preds = [make_prediction("a", home=70, away=65), make_prediction("b", home=71, away=66)]
        result = synthesize_consensus(preds, [weight("a", 1.0), weight("b", 1.0)])

        assert result.projected_score_exact.home == pytest.approx(70.5)
        assert result.projected_score_exact.away == pytest.approx(65.5)
        assert result.projected_score.home == 71
        assert result.projected_score.away == 66

    def test_includes_dissenting_predictions(self):
        preds = [
            make_prediction("a", "home", home=80, away=70),
            make_prediction("b", "away", home=60, away=70),
        ]
        result = synthesize_consensus(preds, [weight("a", 3.0), weight("b", 1.0)])

        assert result.projected_score.home == 75

    @pytest.mark.parametrize("value,ndigits,expected", [
        (2.5, 0, 3.0),
        (3.5, 0, 4.0),
        (-2.5, 0, -3.0),
        (70.46, 1, 70.5),
        (1.24, 1, 1.2),
    ])
    def test_round_half_up_helper(self, value, ndigits, expected):
        assert _round_half_up(value, ndigits) == pytest.approx(expected)


class TestNormalizeWeights:

    def test_missing_algorithm_gets_default_weight(self):
        preds = [make_prediction("a"), make_prediction("b")]
        normalized = normalize_weights(preds, [weight("a", 0.95)])

        expected_b = UNWEIGHTED_ALGORITHM_WEIGHT / (0.95 + UNWEIGHTED_ALGORITHM_WEIGHT)
        assert normalized[1] == pytest.approx(expected_b)
        assert sum(normalized) == pytest.approx(1.0)

    def test_weights_for_absent_algorithms_ignored(self):
        preds = [make_prediction("a")]
        assert normalize_weights(preds, [weight("a", 0.2), weight("zz", 5.0)]) == [1.0]

    def test_all_zero_weights_are_equal(self):
        preds = [make_prediction("a"), make_prediction("b"), make_prediction("c")]
        normalized = normalize_weights(preds, [weight("a", 0), weight("b", 0), weight("c", 0)])

        assert normalized == [pytest.approx(1 / 3)] * 3

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            normalize_weights([make_prediction("a")], [weight("a", -0.1)])


class TestAgreementLevel:

    @pytest.mark.parametrize("share,all_agree,level", [
        (1.0, True, "unanimous"),
        (1.0, False, "strong"),
        (0.75, False, "strong"),
        (0.74, False, "split"),
        (0.5, False, "split"),
        (0.49, False, "contested"),
    ])
    def test_levels(self, share, all_agree, level):
        assert agreement_level_for(share, all_agree) == level


class TestValidation:

    def test_empty_raises(self):
        with pytest.raises(EmptyPredictionSet):
            synthesize_consensus([], [])

    def test_empty_mapping_raises(self):
        with pytest.raises(EmptyPredictionSet):
            synthesize_consensus({}, [weight("a", 1.0)])

    def test_empty_is_a_value_error(self):
        with pytest.raises(ValueError):
            synthesize_consensus([], [])

    def test_bad_probability_rejected(self):
        with pytest.raises(InvalidProbability):
            synthesize_consensus([make_prediction("a", true_probability=1.0)], [])

    def test_bad_side_rejected(self):
        with pytest.raises(ValueError):
            synthesize_consensus([make_prediction("a", recommended="over")], [])
