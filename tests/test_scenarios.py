"""
Tests for the scenario catalog and scenario classifier
Run with: pytest tests/test_scenarios.py -v
"""

import pytest

from betsmart.core.interfaces import MatchAttributes
from betsmart.core.scenario_catalog import (
    BETTING_SCENARIOS,
    BettingScenario,
    DetectionCriteria,
    NumericRange,
    get_high_roi_scenarios,
    get_low_risk_scenarios,
    get_scenario_by_id,
    get_scenarios_by_category,
    get_scenarios_by_risk,
)
from betsmart.services.scenarios import (
    detect_scenarios,
    evaluate_scenario,
    get_scenario_recommendation,
    get_top_scenarios,
    has_high_risk_scenarios,
    recommend_from_detections,
)


def ids(detections):
    return [d.scenario.id for d in detections]


class TestCatalog:

    def test_sixteen_unique_scenarios(self):
        assert len(BETTING_SCENARIOS) == 16
        assert len({s.id for s in BETTING_SCENARIOS}) == 16

    def test_lookup_by_id(self):
        scenario = get_scenario_by_id("heavy-favorite")

        assert scenario.max_bankroll_percentage == 3.0
        assert scenario.recommended_kelly_fraction == 0.25
        assert get_scenario_by_id("no-such-scenario") is None

    def test_by_category(self):
        assert [s.id for s in get_scenarios_by_category("parlay")] == ["parlay-2leg", "parlay-3plus"]

    def test_by_risk(self):
        assert [s.id for s in get_scenarios_by_risk("very-low")] == ["arbitrage"]

    def test_low_risk(self):
        assert {s.id for s in get_low_risk_scenarios()} == {
            "small-favorite", "key-numbers", "positive-ev", "closing-line-value", "arbitrage",
        }

    def test_high_roi_sorted(self):
        assert [s.id for s in get_high_roi_scenarios()] == [
            "closing-line-value", "positive-ev", "heavy-underdog", "key-numbers", "weather-impact",
        ]

    def test_parlays_have_no_criteria(self):
        for scenario in get_scenarios_by_category("parlay"):
            assert scenario.detection_criteria.is_empty

    @pytest.mark.parametrize("rng,value,expected", [
        (NumericRange(max=-300), -400, True),
        (NumericRange(max=-300), -300, True),
        (NumericRange(max=-300), -250, False),
        (NumericRange(min=-200, max=-150), -167, True),
        (NumericRange(min=7), 6.5, False),
        (NumericRange(), 0, True),
    ])
    def test_numeric_range(self, rng, value, expected):
        assert rng.contains(value) is expected


class TestDetection:

    def test_heavy_favourite_and_underdog(self):
        attrs = MatchAttributes(home_odds=1.25, away_odds=4.5)
        detections = detect_scenarios(attrs)

        assert ids(detections) == ["heavy-favorite", "heavy-underdog"]
        assert detections[0].match_factors == ("Home priced at -400",)
        assert detections[1].match_factors == ("Away priced at +350",)

    def test_small_favourite(self):
        attrs = MatchAttributes(home_odds=1.6, away_odds=2.4)
        assert ids(detect_scenarios(attrs)) == ["small-favorite"]

    def test_large_spread_only(self):
        assert ids(detect_scenarios(MatchAttributes(spread=-8.5))) == ["large-spread"]

    def test_key_number_spread(self):
        detections = detect_scenarios(MatchAttributes(spread=-3))

        assert ids(detections) == ["key-numbers"]
        assert detections[0].match_factors == ("Spread of 3 points",)

    def test_spread_of_seven_hits_both(self):
        assert ids(detect_scenarios(MatchAttributes(spread=7))) == ["large-spread", "key-numbers"]

    def test_live(self):
        assert ids(detect_scenarios(MatchAttributes(is_live=True))) == ["live-betting"]

    def test_not_live(self):
        assert detect_scenarios(MatchAttributes(is_live=False)) == []

    def test_situational_tags_case_insensitive(self):
        attrs = MatchAttributes(situational=frozenset({"Back_To_Back", "playoffs"}))
        detections = detect_scenarios(attrs)

        assert ids(detections) == ["back-to-back", "playoffs"]
        assert detections[0].match_factors == ("Situational: back_to_back",)

    def test_positive_ev(self):
        detections = detect_scenarios(MatchAttributes(ev_percentage=4.2))

        assert ids(detections) == ["positive-ev"]
        assert detections[0].match_factors == ("Positive EV: +4.2%",)

    def test_zero_ev_is_not_positive(self):
        assert detect_scenarios(MatchAttributes(ev_percentage=0.0)) == []

    def test_closing_line_value(self):
        assert ids(detect_scenarios(MatchAttributes(clv_percentage=1.5))) == ["closing-line-value"]

    def test_arbitrage(self):
        assert ids(detect_scenarios(MatchAttributes(arbitrage_percentage=98.5))) == ["arbitrage"]

    def test_no_arbitrage_at_one_hundred(self):
        assert detect_scenarios(MatchAttributes(arbitrage_percentage=100.0)) == []

    def test_empty_attributes(self):
        assert detect_scenarios(MatchAttributes()) == []

    def test_parlays_never_detected(self):
        attrs = MatchAttributes(
            home_odds=1.25, away_odds=4.5, spread=7, is_live=True,
            situational=frozenset({"revenge", "rain"}),
            ev_percentage=3.0, clv_percentage=2.0, arbitrage_percentage=97.0,
        )
        detected = set(ids(detect_scenarios(attrs)))

        assert "parlay-2leg" not in detected
        assert "parlay-3plus" not in detected
        assert len(detected) == 10

    def test_all_criteria_must_hold(self):
        scenario = BettingScenario(
            id="live-favourite", name="Live Favourite", category="live", risk_level="high",
            description="", historical_win_rate=50.0, expected_roi=0.0,
            recommended_kelly_fraction=0.1, max_bankroll_percentage=1.0,
            detection_criteria=DetectionCriteria(odds_range=NumericRange(max=-300), is_live=True),
        )
        attrs = MatchAttributes(home_odds=1.25, away_odds=4.5, is_live=False)

        result = evaluate_scenario(scenario, attrs)

        assert result.confidence == 0.5
        assert not result.applies
        assert detect_scenarios(attrs, catalog=[scenario]) == []

    def test_top_scenarios_limited(self):
        attrs = MatchAttributes(home_odds=1.25, away_odds=4.5, spread=7, is_live=True)

        assert ids(get_top_scenarios(attrs)) == ["heavy-favorite", "heavy-underdog", "large-spread"]
        assert len(get_top_scenarios(attrs, count=1)) == 1

    def test_high_risk(self):
        assert has_high_risk_scenarios(MatchAttributes(is_live=True))
        assert not has_high_risk_scenarios(MatchAttributes(spread=3))


class TestRecommendation:

    def test_nothing_detected(self):
        rec = get_scenario_recommendation(MatchAttributes())

        assert not rec.should_bet
        assert rec.confidence == "low"
        assert rec.reasoning == "No clear betting scenarios detected for this match."
        assert rec.top_scenarios == ()

    def test_positive_roi_low_risk(self):
        rec = get_scenario_recommendation(MatchAttributes(spread=3))

        assert rec.should_bet
        assert rec.confidence == "medium"
        assert rec.reasoning == (
            "Primary scenario: Key Numbers (3, 7 in NFL). Historical ROI: +2.8%. Risk level: low."
        )

    def test_half_high_risk_blocks_bet(self):
        rec = get_scenario_recommendation(MatchAttributes(home_odds=1.25, away_odds=4.5))

        assert not rec.should_bet
        assert rec.confidence == "medium"
        assert "1 additional scenario(s) detected" in rec.reasoning

    def test_negative_roi(self):
        rec = get_scenario_recommendation(MatchAttributes(spread=9))

        assert not rec.should_bet
        assert rec.confidence == "low"
        assert "Warning: negative expected ROI (-1.8%)" in rec.reasoning

    def test_edge_scenario_overrides(self):
        rec = get_scenario_recommendation(MatchAttributes(is_live=True, ev_percentage=2.0))

        assert rec.should_bet
        assert rec.confidence == "high"

    def test_moderate_roi_is_medium(self):
        detections = detect_scenarios(MatchAttributes(arbitrage_percentage=98.0, spread=3))
        rec = recommend_from_detections(detections)

        # avg ROI (2.8 + 1.5) / 2 is positive but not above 3
        assert rec.should_bet
        assert rec.confidence == "medium"

    def test_top_scenarios_capped_at_three(self):
        attrs = MatchAttributes(
            spread=3, ev_percentage=3.0, clv_percentage=2.0, arbitrage_percentage=97.0,
        )
        rec = get_scenario_recommendation(attrs)

        assert len(rec.top_scenarios) == 3
        assert rec.confidence == "high"
