"""
Scenario classification for a match or bet.

Matches the numeric shape of a bet (:class:`MatchAttributes`) against the
detection criteria in :mod:`betsmart.core.scenario_catalog`.  A scenario
applies only when *every* criterion it specifies is satisfied; criteria
it leaves unset are ignored, and a scenario with no criteria never
applies.  Several scenarios may apply at once.

Detection is a read-only filter over the catalog; nothing here mutates
shared state.
"""

from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence, Tuple

from betsmart.core.interfaces import MatchAttributes
from betsmart.core.odds_math import decimal_to_american
from betsmart.core.scenario_catalog import (
    BETTING_SCENARIOS,
    HIGH_RISK_LEVELS,
    BettingScenario,
    DetectionCriteria,
)

#: Scenarios that signal a genuine edge and override the ROI vote.
EDGE_SCENARIO_IDS = frozenset({"positive-ev", "closing-line-value"})


@dataclass(frozen=True)
class ScenarioDetectionResult:
    """One scenario evaluated against one match.

    ``confidence`` is the fraction of the scenario's criteria that hold,
    so an applying scenario always reports 1.0.
    """

    scenario: BettingScenario
    confidence: float
    match_factors: Tuple[str, ...]

    @property
    def applies(self) -> bool:
        return self.confidence >= 1.0


@dataclass(frozen=True)
class ScenarioRecommendation:
    should_bet: bool
    confidence: Literal["high", "medium", "low"]
    reasoning: str
    top_scenarios: Tuple[ScenarioDetectionResult, ...]


# ---------------------------------------------------------------------------
# Criterion checks
# ---------------------------------------------------------------------------

def _american(decimal_odds: Optional[float]) -> Optional[int]:
    if decimal_odds is None or decimal_odds <= 1.0:
        return None
    return decimal_to_american(decimal_odds)


def _format_american(american: int) -> str:
    return f"+{american}" if american > 0 else str(american)


def _check_criteria(
    criteria: DetectionCriteria,
    attrs: MatchAttributes,
) -> Tuple[int, int, List[str]]:
    """Return ``(specified, satisfied, factors)`` for one criteria set."""
    specified = 0
    satisfied = 0
    factors: List[str] = []

    if criteria.odds_range is not None:
        specified += 1
        hits = []
        for side, decimal_odds in (("Home", attrs.home_odds), ("Away", attrs.away_odds)):
            american = _american(decimal_odds)
            if american is not None and criteria.odds_range.contains(american):
                hits.append(f"{side} priced at {_format_american(american)}")
        if hits:
            satisfied += 1
            factors.extend(hits)

    if criteria.spread_range is not None:
        specified += 1
        if attrs.spread is not None and criteria.spread_range.contains(abs(attrs.spread)):
            satisfied += 1
            factors.append(f"Spread of {abs(attrs.spread):g} points")

    if criteria.is_live is not None:
        specified += 1
        if attrs.is_live == criteria.is_live:
            satisfied += 1
            factors.append("Live game in progress" if attrs.is_live else "Pre-game market")

    if criteria.situational:
        specified += 1
        tags = {t.lower() for t in attrs.situational}
        overlap = [tag for tag in criteria.situational if tag in tags]
        if overlap:
            satisfied += 1
            factors.extend(f"Situational: {tag}" for tag in overlap)

    if criteria.min_ev_percentage is not None:
        specified += 1
        if attrs.ev_percentage is not None and attrs.ev_percentage > criteria.min_ev_percentage:
            satisfied += 1
            factors.append(f"Positive EV: {attrs.ev_percentage:+.1f}%")

    if criteria.min_clv_percentage is not None:
        specified += 1
        if attrs.clv_percentage is not None and attrs.clv_percentage > criteria.min_clv_percentage:
            satisfied += 1
            factors.append(f"CLV: {attrs.clv_percentage:+.1f}%")

    if criteria.max_arbitrage_percentage is not None:
        specified += 1
        if (
            attrs.arbitrage_percentage is not None
            and attrs.arbitrage_percentage < criteria.max_arbitrage_percentage
        ):
            satisfied += 1
            factors.append(f"Arbitrage at {attrs.arbitrage_percentage:.2f}%")

    return specified, satisfied, factors


def evaluate_scenario(
    scenario: BettingScenario,
    attrs: MatchAttributes,
) -> ScenarioDetectionResult:
    """Score one scenario, whether or not it applies."""
    specified, satisfied, factors = _check_criteria(scenario.detection_criteria, attrs)
    confidence = satisfied / specified if specified else 0.0
    return ScenarioDetectionResult(
        scenario=scenario, confidence=confidence, match_factors=tuple(factors)
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_scenarios(
    attrs: MatchAttributes,
    catalog: Sequence[BettingScenario] = BETTING_SCENARIOS,
) -> List[ScenarioDetectionResult]:
    """
    All scenarios that apply to ``attrs``, highest confidence first.

    Ties keep catalog order.
    """
    results = [evaluate_scenario(s, attrs) for s in catalog]
    applying = [r for r in results if r.applies]
    return sorted(applying, key=lambda r: r.confidence, reverse=True)


def get_top_scenarios(attrs: MatchAttributes, count: int = 3) -> List[ScenarioDetectionResult]:
    return detect_scenarios(attrs)[:count]


def has_high_risk_scenarios(attrs: MatchAttributes) -> bool:
    return any(r.scenario.risk_level in HIGH_RISK_LEVELS for r in detect_scenarios(attrs))


def recommend_from_detections(
    detections: Sequence[ScenarioDetectionResult],
) -> ScenarioRecommendation:
    """
    Bet / no-bet advice from already-detected scenarios.

    Bet when the average expected ROI is positive and fewer than half the
    scenarios are high risk.  A positive-EV or closing-line-value scenario
    always means bet, with high confidence.
    """
    if not detections:
        return ScenarioRecommendation(
            should_bet=False,
            confidence="low",
            reasoning="No clear betting scenarios detected for this match.",
            top_scenarios=(),
        )

    top = detections[0]
    avg_roi = sum(d.scenario.expected_roi for d in detections) / len(detections)
    high_risk_share = sum(
        1 for d in detections if d.scenario.risk_level in HIGH_RISK_LEVELS
    ) / len(detections)

    should_bet = avg_roi > 0 and high_risk_share < 0.5
    confidence = "low"
    if top.confidence > 0.8 and avg_roi > 3:
        confidence = "high"
    elif top.confidence > 0.6 and avg_roi > 0:
        confidence = "medium"

    if any(d.scenario.id in EDGE_SCENARIO_IDS for d in detections):
        should_bet = True
        confidence = "high"

    return ScenarioRecommendation(
        should_bet=should_bet,
        confidence=confidence,
        reasoning=_reasoning_text(detections),
        top_scenarios=tuple(detections[:3]),
    )


def get_scenario_recommendation(attrs: MatchAttributes) -> ScenarioRecommendation:
    return recommend_from_detections(detect_scenarios(attrs))


def _reasoning_text(detections: Sequence[ScenarioDetectionResult]) -> str:
    top = detections[0].scenario
    parts = [f"Primary scenario: {top.name}"]
    if top.expected_roi > 0:
        parts.append(f"Historical ROI: +{top.expected_roi:.1f}%")
    else:
        parts.append(f"Warning: negative expected ROI ({top.expected_roi:.1f}%)")
    parts.append(f"Risk level: {top.risk_level}")
    if len(detections) > 1:
        parts.append(f"{len(detections) - 1} additional scenario(s) detected")
    return ". ".join(parts) + "."
