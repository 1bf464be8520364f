"""
Tests for the end-to-end recommendation pipeline
Run with: pytest tests/test_recommendation.py -v
"""

import asyncio
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from betsmart.core.errors import EmptyPredictionSet, InvalidBankroll, SynthesisError, WeightFetchError
from betsmart.core.interfaces import (
    AlgorithmWeight,
    MatchAttributes,
    MatchContext,
    OddsQuote,
    PredictionResult,
    ProjectedScore,
    SynthesisClient,
    SynthesisResult,
    WeightProvider,
)
from betsmart.models import ConsensusRecord
from betsmart.services.recommendation import (
    RecommendationService,
    StakingParams,
    record_recommendation,
)
from betsmart.services.weights import HOUSE_ALGORITHMS, StaticWeightProvider, WeightCache


def make_prediction(algorithm_id, recommended="home", true_probability=0.6):
    return PredictionResult(
        match_id="m1",
        algorithm_id=algorithm_id,
        algorithm_name=f"Algo {algorithm_id}",
        recommended=recommended,
        confidence=60.0,
        true_probability=true_probability,
        projected_score=ProjectedScore(home=78, away=71),
    )


PREDICTIONS = [make_prediction("a"), make_prediction("b")]

QUOTES = [
    OddsQuote("book_a", home_win=2.0, away_win=1.85),
    OddsQuote("book_b", home_win=1.9, away_win=2.0),
]


class FailingClient(SynthesisClient):
    client_name = "failing"

    async def synthesize(self, payload):
        raise SynthesisError("HTTP 503")


class EchoClient(SynthesisClient):
    client_name = "echo"

    async def synthesize(self, payload):
        return SynthesisResult(
            final_pick="home", adjusted_confidence=66.0, reasoning=f"{len(payload['predictions'])} models",
        )


class BrokenProvider(WeightProvider):
    provider_name = "broken"

    async def fetch_algorithm_weights(self):
        raise WeightFetchError("table missing")


def make_service(client=None, provider=None):
    provider = provider or StaticWeightProvider([
        AlgorithmWeight("a", "Algo a", 0.5),
        AlgorithmWeight("b", "Algo b", 0.5),
    ])
    return RecommendationService(
        weight_cache=WeightCache(provider, ttl_seconds=600),
        synthesis_client=client,
        synthesis_timeout=1.0,
    )


def build(service, predictions=PREDICTIONS, staking=None, **kwargs):
    staking = staking or StakingParams(bankroll=1000, kelly_fraction=0.25)
    return asyncio.run(service.build_recommendation(predictions, staking, **kwargs))


class TestPipeline:

    def test_full_pipeline(self):
        rec = build(make_service(), quotes=QUOTES)

        assert rec.match_id == "m1"
        assert rec.recommended == "home"
        assert rec.consensus.true_probability == pytest.approx(0.6)
        assert rec.bookmaker_odds == 2.0
        assert rec.kelly.full_kelly == pytest.approx(0.2)
        assert rec.kelly.recommended_stake == pytest.approx(50.0)
        assert rec.arbitrage_percentage == pytest.approx(100.0)
        assert rec.arbitrage is not None
        assert not rec.arbitrage.is_guaranteed
        assert rec.final_confidence == pytest.approx(62.0)

    def test_attributes_filled_from_pipeline(self):
        rec = build(make_service(), quotes=QUOTES)

        assert rec.attributes.home_odds == 2.0
        assert rec.attributes.away_odds == 2.0
        assert rec.attributes.ev_percentage == pytest.approx(20.0)
        assert [d.scenario.id for d in rec.scenarios] == ["positive-ev"]
        assert rec.scenario_recommendation.should_bet
        assert rec.scenario_recommendation.confidence == "high"

    def test_caller_attributes_are_kept(self):
        attrs = MatchAttributes(is_live=True, ev_percentage=-1.0)
        rec = build(make_service(), quotes=QUOTES, attributes=attrs)

        assert rec.attributes.ev_percentage == -1.0
        assert rec.attributes.home_odds == 2.0
        assert [d.scenario.id for d in rec.scenarios] == ["live-betting"]
        assert not rec.scenario_recommendation.should_bet

    def test_without_quotes(self):
        rec = build(make_service())

        assert rec.kelly is None
        assert rec.bookmaker_odds is None
        assert rec.arbitrage_percentage is None
        assert rec.arbitrage is None

    def test_draw_pick_without_draw_price(self):
        predictions = [make_prediction("a", "draw", 0.3)]
        rec = build(make_service(), predictions=predictions, quotes=QUOTES)

        assert rec.recommended == "draw"
        assert rec.kelly is None

    def test_unpriced_draw_quotes_still_recommend(self):
        quotes = [
            OddsQuote("book_a", home_win=2.0, away_win=2.1, draw=0.0),
            OddsQuote("book_b", home_win=2.05, away_win=2.0, draw=-1.0),
        ]
        rec = build(make_service(), quotes=quotes)

        assert rec.recommended == "home"
        assert rec.bookmaker_odds == 2.05
        assert rec.kelly is not None
        assert rec.arbitrage_percentage == 100.0
        assert rec.arbitrage is None

    def test_draw_pick_with_unpriced_draw(self):
        quotes = [
            OddsQuote("book_a", home_win=2.0, away_win=2.1, draw=0.0),
            OddsQuote("book_b", home_win=2.05, away_win=2.0, draw=-1.0),
        ]
        rec = build(make_service(), predictions=[make_prediction("a", "draw", 0.3)], quotes=quotes)

        assert rec.recommended == "draw"
        assert rec.kelly is None
        assert rec.arbitrage is None

    def test_context_supplies_match_id(self):
        context = MatchContext("game-42", home_team="Duke", away_team="UNC")
        rec = build(make_service(), context=context)

        assert rec.match_id == "game-42"

    def test_negative_ev_is_not_staked(self):
        predictions = [make_prediction("a", true_probability=0.45)]
        rec = build(make_service(), predictions=predictions, quotes=QUOTES)

        assert not rec.kelly.is_positive_ev
        assert rec.kelly.recommended_stake == 0.0


class TestDegradation:

    def test_synthesis_failure_still_recommends(self):
        rec = build(make_service(client=FailingClient()), quotes=QUOTES)

        assert rec.ensemble.synthesis is None
        assert rec.ensemble.synthesis_error == "HTTP 503"
        assert rec.kelly is not None

    def test_synthesis_success_attached(self):
        rec = build(make_service(client=EchoClient()))

        assert rec.ensemble.has_synthesis
        assert rec.ensemble.synthesis.reasoning == "2 models"

    def test_weight_store_failure_uses_defaults(self):
        rec = build(make_service(provider=BrokenProvider()))

        assert {w.algorithm_id for w in rec.weights} == set(HOUSE_ALGORITHMS)
        assert rec.consensus.weights == {"a": pytest.approx(0.5), "b": pytest.approx(0.5)}


class TestValidation:

    @pytest.mark.parametrize("bankroll", [0, -50])
    def test_bankroll_must_be_positive(self, bankroll):
        with pytest.raises(InvalidBankroll):
            build(make_service(), staking=StakingParams(bankroll=bankroll))

    def test_empty_predictions(self):
        with pytest.raises(EmptyPredictionSet):
            build(make_service(), predictions=[])

    def test_bad_kelly_fraction(self):
        with pytest.raises(ValueError):
            build(make_service(), staking=StakingParams(bankroll=1000, kelly_fraction=2.0), quotes=QUOTES)


class TestRecordRecommendation:

    def test_persists_audit_row(self):
        rec = build(make_service(client=FailingClient()), quotes=QUOTES)
        db = MagicMock()

        row = record_recommendation(db, rec)

        assert isinstance(row, ConsensusRecord)
        assert row.match_id == "m1"
        assert row.recommended == "home"
        assert row.projected_home == 78
        assert row.recommended_stake == pytest.approx(50.0)
        assert row.scenario_ids == ["positive-ev"]
        assert row.synthesis_error == "HTTP 503"
        assert row.synthesis_reasoning is None
        db.add.assert_called_once_with(row)
        db.commit.assert_called_once()
        db.refresh.assert_called_once_with(row)

    def test_without_stake(self):
        rec = build(make_service())
        row = record_recommendation(MagicMock(), replace(rec, kelly=None))

        assert row.recommended_stake is None
        assert row.recommended_stake_units is None
