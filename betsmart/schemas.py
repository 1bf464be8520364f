"""
Pydantic request/response schemas for the BetSmart API.

Request models convert to the engine's frozen dataclasses via
``to_domain()``; response models are built from engine results with
``from_domain()``.  Field ranges here mirror the engine's validation so
bad input is rejected with a 422 before it reaches the math.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from betsmart.core.arbitrage import ArbitrageOpportunity
from betsmart.core.interfaces import (
    AlgorithmWeight,
    ConsensusResult,
    MatchAttributes,
    MatchContext,
    OddsQuote,
    PredictionResult,
    ProjectedScore,
)
from betsmart.core.kelly import KellyResult
from betsmart.core.scenario_catalog import BettingScenario
from betsmart.services.recommendation import Recommendation
from betsmart.services.scenarios import ScenarioDetectionResult


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------

class OddsConvertRequest(BaseModel):
    """Payload for POST /api/odds/convert.  Supply exactly one format."""

    american: Optional[float] = Field(None, description="American odds, e.g. -110")
    decimal_odds: Optional[float] = Field(None, gt=1.0, description="Decimal odds, e.g. 1.91")

    @model_validator(mode="after")
    def exactly_one_format(self) -> "OddsConvertRequest":
        if (self.american is None) == (self.decimal_odds is None):
            raise ValueError("Provide exactly one of 'american' or 'decimal_odds'")
        return self

    @field_validator("american")
    @classmethod
    def validate_american_odds(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and -100 < v < 100:
            raise ValueError(
                f"american={v} is not valid American odds. Must be >= +100 or <= -100."
            )
        return v

    model_config = {"json_schema_extra": {"example": {"american": -110}}}


class OddsConvertResponse(BaseModel):
    decimal_odds: float
    american_odds: int
    implied_probability: float


# ---------------------------------------------------------------------------
# Kelly
# ---------------------------------------------------------------------------

class KellyRequest(BaseModel):
    """Payload for POST /api/kelly."""

    true_probability: float = Field(..., gt=0.0, lt=1.0)
    bookmaker_odds: float = Field(..., gt=1.0, description="Decimal odds")
    bankroll: float = Field(..., gt=0.0)
    kelly_fraction: float = Field(1.0, gt=0.0, le=1.0)
    max_bet_percentage: Optional[float] = Field(None, ge=0.0, le=100.0)
    min_ev_threshold: float = Field(0.0)
    unit_size: float = Field(10.0, gt=0.0)

    model_config = {
        "json_schema_extra": {
            "example": {
                "true_probability": 0.55,
                "bookmaker_odds": 2.0,
                "bankroll": 1000.0,
                "kelly_fraction": 0.25,
                "max_bet_percentage": 5.0,
            }
        }
    }


class KellyResponse(BaseModel):
    is_positive_ev: bool
    expected_value: float
    ev_percentage: float
    full_kelly: float
    adjusted_kelly: float
    recommended_stake: float
    recommended_stake_percentage: float
    recommended_stake_units: float
    expected_growth: float
    risk_level: Literal["low", "medium", "high"]

    @classmethod
    def from_domain(cls, result: KellyResult) -> KellyResponse:
        return cls(
            is_positive_ev=result.is_positive_ev,
            expected_value=result.expected_value,
            ev_percentage=result.ev_percentage,
            full_kelly=result.full_kelly,
            adjusted_kelly=result.adjusted_kelly,
            recommended_stake=result.recommended_stake,
            recommended_stake_percentage=result.recommended_stake_percentage,
            recommended_stake_units=result.recommended_stake_units,
            expected_growth=result.expected_growth,
            risk_level=result.risk_level,
        )


# ---------------------------------------------------------------------------
# Arbitrage
# ---------------------------------------------------------------------------

class OddsQuoteIn(BaseModel):
    """
    One bookmaker's decimal prices for a match

    A price <= 0 marks the outcome as not offered by that book.  Books
    without positive home and away prices are left out of arbitrage legs,
    and a market whose best draw price is <= 0 reports the neutral
    arbitrage percentage of 100 with no opportunity.
    """
    sportsbook_id: str = Field(..., min_length=1)
    home_win: float = Field(..., description="Decimal home price; <= 0 means not offered")
    away_win: float = Field(..., description="Decimal away price; <= 0 means not offered")
    draw: Optional[float] = Field(
        None, description="Decimal draw price for three-way markets; <= 0 means not offered"
    )

    def to_domain(self) -> OddsQuote:
        return OddsQuote(
            sportsbook_id=self.sportsbook_id,
            home_win=self.home_win,
            away_win=self.away_win,
            draw=self.draw,
        )


class ArbitrageRequest(BaseModel):
    """Payload for POST /api/arbitrage."""

    quotes: List[OddsQuoteIn] = Field(default_factory=list)
    total_stake: Optional[float] = Field(None, gt=0.0)


class ArbitrageLegOut(BaseModel):
    sportsbook_id: str
    outcome: str
    odds: float
    stake_percentage: float


class ArbitrageResponse(BaseModel):
    arbitrage_percentage: float
    is_arbitrage: bool
    guaranteed_profit_percentage: float
    guaranteed_profit: Optional[float] = None
    stake_split: Optional[Dict[str, float]] = None
    legs: List[ArbitrageLegOut] = Field(default_factory=list)
    is_premium: bool = False

    @classmethod
    def from_domain(
        cls,
        arbitrage_percentage: float,
        opportunity: Optional[ArbitrageOpportunity],
        guaranteed_profit: Optional[float] = None,
    ) -> ArbitrageResponse:
        return cls(
            arbitrage_percentage=arbitrage_percentage,
            is_arbitrage=arbitrage_percentage < 100.0,
            guaranteed_profit_percentage=max(0.0, 100.0 - arbitrage_percentage),
            guaranteed_profit=guaranteed_profit,
            stake_split=opportunity.stake_split.as_dict() if opportunity else None,
            legs=[
                ArbitrageLegOut(
                    sportsbook_id=leg.sportsbook_id,
                    outcome=leg.outcome,
                    odds=leg.odds,
                    stake_percentage=leg.stake_percentage,
                )
                for leg in (opportunity.legs if opportunity else ())
            ],
            is_premium=opportunity.is_premium if opportunity else False,
        )


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------

class ScoreIn(BaseModel):
    home: float = Field(..., ge=0)
    away: float = Field(..., ge=0)


class PredictionIn(BaseModel):
    match_id: str
    algorithm_id: str
    algorithm_name: str
    recommended: Literal["home", "away", "draw"]
    confidence: float = Field(..., ge=0.0, le=100.0)
    true_probability: float = Field(..., gt=0.0, lt=1.0)
    projected_score: ScoreIn
    ev_percentage: float = 0.0
    kelly_fraction: float = 0.0
    kelly_stake_units: float = 0.0

    def to_domain(self) -> PredictionResult:
        return PredictionResult(
            match_id=self.match_id,
            algorithm_id=self.algorithm_id,
            algorithm_name=self.algorithm_name,
            recommended=self.recommended,
            confidence=self.confidence,
            true_probability=self.true_probability,
            projected_score=ProjectedScore(
                home=self.projected_score.home, away=self.projected_score.away
            ),
            ev_percentage=self.ev_percentage,
            kelly_fraction=self.kelly_fraction,
            kelly_stake_units=self.kelly_stake_units,
        )


class AlgorithmWeightIn(BaseModel):
    algorithm_id: str
    algorithm_name: str = "Unknown"
    weight: float = Field(..., ge=0.0)
    win_rate: float = Field(50.0, ge=0.0, le=100.0)

    def to_domain(self) -> AlgorithmWeight:
        return AlgorithmWeight(
            algorithm_id=self.algorithm_id,
            algorithm_name=self.algorithm_name,
            weight=self.weight,
            win_rate=self.win_rate,
        )


class ConsensusRequest(BaseModel):
    """
    Payload for POST /api/consensus.

    When ``weights`` is omitted the service's cached historical weights
    are used.
    """

    match_id: Optional[str] = None
    predictions: List[PredictionIn] = Field(default_factory=list)
    weights: Optional[List[AlgorithmWeightIn]] = None


class ConsensusResponse(BaseModel):
    match_id: str
    recommended: str
    confidence: float
    true_probability: float
    projected_score: Dict[str, int]
    projected_score_exact: Dict[str, float]
    agreement: float
    agreement_level: str
    vote_totals: Dict[str, float]
    weights: Dict[str, float]
    algorithm_ids: List[str]

    @classmethod
    def from_domain(cls, c: ConsensusResult) -> ConsensusResponse:
        return cls(
            match_id=c.match_id,
            recommended=c.recommended,
            confidence=c.confidence,
            true_probability=c.true_probability,
            projected_score={
                "home": int(c.projected_score.home), "away": int(c.projected_score.away)
            },
            projected_score_exact={
                "home": c.projected_score_exact.home, "away": c.projected_score_exact.away
            },
            agreement=c.agreement,
            agreement_level=c.agreement_level,
            vote_totals=dict(c.vote_totals),
            weights=dict(c.weights),
            algorithm_ids=list(c.algorithm_ids),
        )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

class ScenarioOut(BaseModel):
    id: str
    name: str
    category: str
    risk_level: str
    description: str
    historical_win_rate: float
    expected_roi: float
    recommended_kelly_fraction: float
    max_bankroll_percentage: float

    @classmethod
    def from_domain(cls, s: BettingScenario) -> ScenarioOut:
        return cls(
            id=s.id,
            name=s.name,
            category=s.category,
            risk_level=s.risk_level,
            description=s.description,
            historical_win_rate=s.historical_win_rate,
            expected_roi=s.expected_roi,
            recommended_kelly_fraction=s.recommended_kelly_fraction,
            max_bankroll_percentage=s.max_bankroll_percentage,
        )


class ScenarioDetectionOut(BaseModel):
    scenario: ScenarioOut
    confidence: float
    match_factors: List[str]

    @classmethod
    def from_domain(cls, d: ScenarioDetectionResult) -> ScenarioDetectionOut:
        return cls(
            scenario=ScenarioOut.from_domain(d.scenario),
            confidence=d.confidence,
            match_factors=list(d.match_factors),
        )


class ScenarioDetectRequest(BaseModel):
    """Payload for POST /api/scenarios/detect.  Odds are decimal."""

    home_odds: Optional[float] = Field(None, gt=1.0)
    away_odds: Optional[float] = Field(None, gt=1.0)
    spread: Optional[float] = None
    is_live: bool = False
    situational: List[str] = Field(default_factory=list)
    ev_percentage: Optional[float] = None
    clv_percentage: Optional[float] = None
    arbitrage_percentage: Optional[float] = None

    def to_domain(self) -> MatchAttributes:
        return MatchAttributes(
            home_odds=self.home_odds,
            away_odds=self.away_odds,
            spread=self.spread,
            is_live=self.is_live,
            situational=frozenset(t.lower() for t in self.situational),
            ev_percentage=self.ev_percentage,
            clv_percentage=self.clv_percentage,
            arbitrage_percentage=self.arbitrage_percentage,
        )


# ---------------------------------------------------------------------------
# Full recommendation
# ---------------------------------------------------------------------------

class RecommendationRequest(BaseModel):
    """Payload for POST /api/recommendation."""

    match_id: str
    predictions: List[PredictionIn] = Field(default_factory=list)
    quotes: List[OddsQuoteIn] = Field(default_factory=list)

    # Staking
    bankroll: float = Field(..., gt=0.0)
    kelly_fraction: float = Field(0.25, gt=0.0, le=1.0)
    max_bet_percentage: Optional[float] = Field(None, ge=0.0, le=100.0)
    min_ev_threshold: float = 0.0
    unit_size: float = Field(10.0, gt=0.0)

    # Context
    home_team: str = ""
    away_team: str = ""
    league: str = ""
    home_recent_form: List[Literal["W", "L", "D"]] = Field(default_factory=list)
    away_recent_form: List[Literal["W", "L", "D"]] = Field(default_factory=list)
    temporal: Optional[Dict[str, Any]] = None

    # Scenario attributes not derivable from quotes
    spread: Optional[float] = None
    is_live: bool = False
    situational: List[str] = Field(default_factory=list)
    clv_percentage: Optional[float] = None

    def to_context(self) -> MatchContext:
        return MatchContext(
            match_id=self.match_id,
            home_team=self.home_team,
            away_team=self.away_team,
            league=self.league,
            home_recent_form=tuple(self.home_recent_form),
            away_recent_form=tuple(self.away_recent_form),
            temporal=self.temporal,
        )

    def to_attributes(self) -> MatchAttributes:
        return MatchAttributes(
            spread=self.spread,
            is_live=self.is_live,
            situational=frozenset(t.lower() for t in self.situational),
            clv_percentage=self.clv_percentage,
        )


class SynthesisOut(BaseModel):
    final_pick: str
    adjusted_confidence: float
    reasoning: str
    biases_identified: List[str]
    agreement_level: Optional[str] = None
    risk_flag: Optional[str] = None


class EnsembleOut(BaseModel):
    confidence: float
    layer_contributions: Dict[str, float]
    diversity_score: float
    home_pattern: str
    away_pattern: str
    synthesis: Optional[SynthesisOut] = None
    synthesis_error: Optional[str] = None


class ScenarioAdviceOut(BaseModel):
    should_bet: bool
    confidence: str
    reasoning: str


class RecommendationResponse(BaseModel):
    match_id: str
    record_id: Optional[int] = None
    consensus: ConsensusResponse
    ensemble: EnsembleOut
    bookmaker_odds: Optional[float] = None
    kelly: Optional[KellyResponse] = None
    arbitrage: Optional[ArbitrageResponse] = None
    scenarios: List[ScenarioDetectionOut] = Field(default_factory=list)
    scenario_advice: Optional[ScenarioAdviceOut] = None

    @classmethod
    def from_domain(cls, rec: Recommendation, record_id: Optional[int] = None) -> RecommendationResponse:
        local = rec.ensemble.local
        synthesis = rec.ensemble.synthesis
        arbitrage = None
        if rec.arbitrage_percentage is not None:
            arbitrage = ArbitrageResponse.from_domain(rec.arbitrage_percentage, rec.arbitrage)
        advice = rec.scenario_recommendation
        return cls(
            match_id=rec.match_id,
            record_id=record_id,
            consensus=ConsensusResponse.from_domain(rec.consensus),
            ensemble=EnsembleOut(
                confidence=local.confidence,
                layer_contributions=local.layer_contributions,
                diversity_score=local.diversity_score,
                home_pattern=local.home_pattern.type,
                away_pattern=local.away_pattern.type,
                synthesis=SynthesisOut(
                    final_pick=synthesis.final_pick,
                    adjusted_confidence=synthesis.adjusted_confidence,
                    reasoning=synthesis.reasoning,
                    biases_identified=list(synthesis.biases_identified),
                    agreement_level=synthesis.agreement_level,
                    risk_flag=synthesis.risk_flag,
                ) if synthesis else None,
                synthesis_error=rec.ensemble.synthesis_error,
            ),
            bookmaker_odds=rec.bookmaker_odds,
            kelly=KellyResponse.from_domain(rec.kelly) if rec.kelly else None,
            arbitrage=arbitrage,
            scenarios=[ScenarioDetectionOut.from_domain(d) for d in rec.scenarios],
            scenario_advice=ScenarioAdviceOut(
                should_bet=advice.should_bet,
                confidence=advice.confidence,
                reasoning=advice.reasoning,
            ) if advice else None,
        )
