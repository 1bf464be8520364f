"""Betting-scenario catalog — every named risk scenario in one place.

This module is the **registry** for the scenario labels the classifier
attaches to a recommendation.  Nowhere else in the codebase should
historical win rates, ROI figures or scenario Kelly fractions be
hard-coded.

Architecture
------------
:class:`BettingScenario` is a frozen dataclass; :data:`BETTING_SCENARIOS`
is an immutable tuple of all entries in display order.  The classifier in
:mod:`betsmart.services.scenarios` only reads from it.  To add a scenario:

1. Append a :class:`BettingScenario` to :data:`BETTING_SCENARIOS`.
2. Give it at least one :class:`DetectionCriteria` field; a scenario
   without criteria is listed but never detected.
3. Add a detection case to ``tests/test_scenarios.py``.

Odds ranges are in **American** odds because that is how the thresholds
are quoted in the market (``-300`` heavy favourite, ``+300`` heavy
underdog).  Spread ranges are on the absolute spread.

Typical usage::

    from betsmart.core.scenario_catalog import get_scenario_by_id

    scenario = get_scenario_by_id("heavy-favorite")
    scenario.max_bankroll_percentage   # 3.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

ScenarioCategory = Literal["moneyline", "spread", "parlay", "live", "strategic", "situational"]
ScenarioRisk = Literal["very-low", "low", "medium", "high", "very-high"]

#: Risk levels that make a recommendation "high risk".
HIGH_RISK_LEVELS: Final[frozenset[str]] = frozenset({"high", "very-high"})


@dataclass(frozen=True)
class NumericRange:
    """Closed interval; either bound may be open-ended (``None``)."""

    min: float | None = None
    max: float | None = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(frozen=True)
class DetectionCriteria:
    """Conditions under which a scenario applies.

    Every field is optional; ``None`` (or an empty tuple for
    ``situational``) means "don't care" for that dimension.

    Attributes:
        odds_range: American-odds interval.  Satisfied when either side's
            moneyline falls inside it.
        spread_range: Interval on ``|spread|``.
        is_live: Required live state.
        situational: Tags of which at least one must be present.
        min_ev_percentage: EV must be strictly greater than this.
        min_clv_percentage: CLV must be strictly greater than this.
        max_arbitrage_percentage: Arbitrage percentage must be strictly
            below this.
    """

    odds_range: NumericRange | None = None
    spread_range: NumericRange | None = None
    is_live: bool | None = None
    situational: tuple[str, ...] = ()
    min_ev_percentage: float | None = None
    min_clv_percentage: float | None = None
    max_arbitrage_percentage: float | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.odds_range is None
            and self.spread_range is None
            and self.is_live is None
            and not self.situational
            and self.min_ev_percentage is None
            and self.min_clv_percentage is None
            and self.max_arbitrage_percentage is None
        )


@dataclass(frozen=True)
class BettingScenario:
    """Immutable catalog entry.

    Attributes:
        id: Stable kebab-case identifier.
        name: Display name.
        category: Market family the scenario belongs to.
        risk_level: Qualitative risk, ``"very-low"`` to ``"very-high"``.
        description: One-line explanation.
        historical_win_rate: Long-run hit rate, percent.
        expected_roi: Long-run ROI, percent.  Negative for structurally
            losing bet types.
        recommended_kelly_fraction: Kelly multiplier suited to the scenario.
        max_bankroll_percentage: Hard stake cap for the scenario.
        detection_criteria: See :class:`DetectionCriteria`.
    """

    id: str
    name: str
    category: ScenarioCategory
    risk_level: ScenarioRisk
    description: str
    historical_win_rate: float
    expected_roi: float
    recommended_kelly_fraction: float
    max_bankroll_percentage: float
    detection_criteria: DetectionCriteria


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

BETTING_SCENARIOS: Final[tuple[BettingScenario, ...]] = (
    # --- Moneyline ---
    BettingScenario(
        id="heavy-favorite",
        name="Heavy Favorites (-300+)",
        category="moneyline",
        risk_level="medium",
        description="Teams priced at -300 or shorter (implied probability 75%+).",
        historical_win_rate=76.0,
        expected_roi=-2.1,
        recommended_kelly_fraction=0.25,
        max_bankroll_percentage=3.0,
        detection_criteria=DetectionCriteria(odds_range=NumericRange(max=-300)),
    ),
    BettingScenario(
        id="heavy-underdog",
        name="Heavy Underdogs (+300+)",
        category="moneyline",
        risk_level="high",
        description="Teams priced at +300 or longer (implied probability 25% or less).",
        historical_win_rate=22.0,
        expected_roi=3.5,
        recommended_kelly_fraction=0.15,
        max_bankroll_percentage=1.5,
        detection_criteria=DetectionCriteria(odds_range=NumericRange(min=300)),
    ),
    BettingScenario(
        id="small-favorite",
        name="Small Favorites (-150 to -200)",
        category="moneyline",
        risk_level="low",
        description="Moderate favourites, where lines are least obvious.",
        historical_win_rate=62.0,
        expected_roi=1.2,
        recommended_kelly_fraction=0.35,
        max_bankroll_percentage=4.0,
        detection_criteria=DetectionCriteria(odds_range=NumericRange(min=-200, max=-150)),
    ),
    # --- Spread ---
    BettingScenario(
        id="large-spread",
        name="Large Spreads (7+ Points)",
        category="spread",
        risk_level="high",
        description="One side favoured by seven or more points.",
        historical_win_rate=50.0,
        expected_roi=-1.8,
        recommended_kelly_fraction=0.2,
        max_bankroll_percentage=2.0,
        detection_criteria=DetectionCriteria(spread_range=NumericRange(min=7)),
    ),
    BettingScenario(
        id="key-numbers",
        name="Key Numbers (3, 7 in NFL)",
        category="spread",
        risk_level="low",
        description="Spreads around the most common final margins.",
        historical_win_rate=52.0,
        expected_roi=2.8,
        recommended_kelly_fraction=0.4,
        max_bankroll_percentage=5.0,
        detection_criteria=DetectionCriteria(spread_range=NumericRange(min=2.5, max=7.5)),
    ),
    # --- Parlay ---
    BettingScenario(
        id="parlay-2leg",
        name="Two-Leg Parlays",
        category="parlay",
        risk_level="high",
        description="Two bets combined into one wager with multiplied odds.",
        historical_win_rate=27.0,
        expected_roi=-8.5,
        recommended_kelly_fraction=0.1,
        max_bankroll_percentage=1.0,
        detection_criteria=DetectionCriteria(),
    ),
    BettingScenario(
        id="parlay-3plus",
        name="Multi-Leg Parlays (3+ Legs)",
        category="parlay",
        risk_level="very-high",
        description="Three or more bets combined; the house edge compounds per leg.",
        historical_win_rate=8.0,
        expected_roi=-22.5,
        recommended_kelly_fraction=0.02,
        max_bankroll_percentage=0.25,
        detection_criteria=DetectionCriteria(),
    ),
    # --- Live ---
    BettingScenario(
        id="live-betting",
        name="Live/In-Game Betting",
        category="live",
        risk_level="high",
        description="Bets placed while the game is in progress.",
        historical_win_rate=48.0,
        expected_roi=-5.2,
        recommended_kelly_fraction=0.15,
        max_bankroll_percentage=2.0,
        detection_criteria=DetectionCriteria(is_live=True),
    ),
    # --- Strategic ---
    BettingScenario(
        id="positive-ev",
        name="Positive Expected Value Bets",
        category="strategic",
        risk_level="low",
        description="Model probability exceeds the market-implied probability.",
        historical_win_rate=54.0,
        expected_roi=5.8,
        recommended_kelly_fraction=0.25,
        max_bankroll_percentage=5.0,
        detection_criteria=DetectionCriteria(min_ev_percentage=0.0),
    ),
    BettingScenario(
        id="closing-line-value",
        name="Closing Line Value Plays",
        category="strategic",
        risk_level="low",
        description="The price taken beats the eventual closing line.",
        historical_win_rate=55.0,
        expected_roi=6.2,
        recommended_kelly_fraction=0.3,
        max_bankroll_percentage=5.0,
        detection_criteria=DetectionCriteria(min_clv_percentage=0.0),
    ),
    BettingScenario(
        id="arbitrage",
        name="Arbitrage Opportunities",
        category="strategic",
        risk_level="very-low",
        description="Every outcome backed across books for a guaranteed profit.",
        historical_win_rate=100.0,
        expected_roi=1.5,
        recommended_kelly_fraction=1.0,
        max_bankroll_percentage=100.0,
        detection_criteria=DetectionCriteria(max_arbitrage_percentage=100.0),
    ),
    # --- Situational ---
    BettingScenario(
        id="revenge-game",
        name="Revenge Games",
        category="situational",
        risk_level="medium",
        description="A team facing an opponent that recently beat it, or a former team.",
        historical_win_rate=54.0,
        expected_roi=1.2,
        recommended_kelly_fraction=0.2,
        max_bankroll_percentage=2.0,
        detection_criteria=DetectionCriteria(situational=("revenge", "former_team", "rematch")),
    ),
    BettingScenario(
        id="back-to-back",
        name="Back-to-Back Games",
        category="situational",
        risk_level="medium",
        description="A team playing its second game on consecutive days.",
        historical_win_rate=43.0,
        expected_roi=-3.5,
        recommended_kelly_fraction=0.25,
        max_bankroll_percentage=3.0,
        detection_criteria=DetectionCriteria(situational=("back_to_back", "rest_disadvantage")),
    ),
    BettingScenario(
        id="weather-impact",
        name="Weather-Affected Games",
        category="situational",
        risk_level="medium",
        description="Outdoor games with significant wind, rain or cold.",
        historical_win_rate=51.0,
        expected_roi=2.1,
        recommended_kelly_fraction=0.25,
        max_bankroll_percentage=3.0,
        detection_criteria=DetectionCriteria(
            situational=("wind", "rain", "snow", "cold", "extreme_weather"),
        ),
    ),
    BettingScenario(
        id="early-season",
        name="Early Season Betting",
        category="situational",
        risk_level="high",
        description="The first weeks of a season, before ratings stabilise.",
        historical_win_rate=48.0,
        expected_roi=-2.5,
        recommended_kelly_fraction=0.1,
        max_bankroll_percentage=1.0,
        detection_criteria=DetectionCriteria(
            situational=("early_season", "week_1", "week_2", "opening_week"),
        ),
    ),
    BettingScenario(
        id="playoffs",
        name="Playoff/Tournament Games",
        category="situational",
        risk_level="medium",
        description="High-stakes elimination or championship games.",
        historical_win_rate=50.0,
        expected_roi=-1.2,
        recommended_kelly_fraction=0.2,
        max_bankroll_percentage=3.0,
        detection_criteria=DetectionCriteria(
            situational=("playoffs", "elimination", "championship", "finals"),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_scenario_by_id(scenario_id: str) -> BettingScenario | None:
    for scenario in BETTING_SCENARIOS:
        if scenario.id == scenario_id:
            return scenario
    return None


def get_scenarios_by_category(category: str) -> list[BettingScenario]:
    return [s for s in BETTING_SCENARIOS if s.category == category]


def get_scenarios_by_risk(risk_level: str) -> list[BettingScenario]:
    return [s for s in BETTING_SCENARIOS if s.risk_level == risk_level]


def get_low_risk_scenarios() -> list[BettingScenario]:
    """Scenarios rated ``very-low`` or ``low``."""
    return [s for s in BETTING_SCENARIOS if s.risk_level in ("very-low", "low")]


def get_high_roi_scenarios(min_roi: float = 2.0) -> list[BettingScenario]:
    """Scenarios with ``expected_roi > min_roi``, best first."""
    return sorted(
        (s for s in BETTING_SCENARIOS if s.expected_roi > min_roi),
        key=lambda s: s.expected_roi,
        reverse=True,
    )
