"""
End-to-end recommendation pipeline.

Composes every stage for one match:

    1. Weights: from the service's :class:`WeightCache` (15-minute TTL,
       defaults on failure).
    2. Consensus: :func:`synthesize_consensus`.
    3. Staking: Kelly sizing against the best available price for the
       consensus side.
    4. Arbitrage: cross-book percentage and, when close enough, an
       opportunity with bookmaker legs.
    5. Ensemble: local refinement plus optional remote synthesis.
    6. Scenarios: catalog detection and scenario-based advice.

Only invalid inputs raise (bad predictions, bankroll, Kelly parameters).
Weight-store and synthesis failures degrade to defaults / local-only
results, so a recommendation is always produced once at least one valid
prediction exists.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from betsmart.core.arbitrage import (
    ArbitrageOpportunity,
    best_odds,
    calculate_arbitrage_percentage,
    find_arbitrage_opportunity,
)
from betsmart.core.errors import InvalidBankroll
from betsmart.core.interfaces import (
    AlgorithmWeight,
    ConsensusResult,
    MatchAttributes,
    MatchContext,
    OddsQuote,
    SynthesisClient,
)
from betsmart.core.kelly import KellyConfig, KellyResult, calculate_kelly_stake
from betsmart.models import ConsensusRecord
from betsmart.services.consensus import Predictions, synthesize_consensus
from betsmart.services.ensemble import (
    DEFAULT_ENSEMBLE_CONFIG,
    DEFAULT_SYNTHESIS_TIMEOUT_SECONDS,
    EnsembleConfig,
    FullEnsembleResult,
    run_full_ensemble,
)
from betsmart.services.scenarios import (
    ScenarioDetectionResult,
    ScenarioRecommendation,
    detect_scenarios,
    recommend_from_detections,
)
from betsmart.services.weights import DatabaseWeightProvider, WeightCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StakingParams:
    """Per-call Kelly settings."""

    bankroll: float
    kelly_fraction: float = 0.25
    max_bet_percentage: Optional[float] = None
    min_ev_threshold: float = 0.0
    unit_size: float = float(os.getenv("DEFAULT_UNIT_SIZE", "10"))


@dataclass(frozen=True)
class Recommendation:
    """Everything known about one match after the full pipeline."""

    match_id: str
    consensus: ConsensusResult
    ensemble: FullEnsembleResult
    weights: List[AlgorithmWeight]
    bookmaker_odds: Optional[float] = None
    kelly: Optional[KellyResult] = None
    arbitrage_percentage: Optional[float] = None
    arbitrage: Optional[ArbitrageOpportunity] = None
    attributes: MatchAttributes = field(default_factory=MatchAttributes)
    scenarios: List[ScenarioDetectionResult] = field(default_factory=list)
    scenario_recommendation: Optional[ScenarioRecommendation] = None

    @property
    def recommended(self) -> str:
        return self.consensus.recommended

    @property
    def final_confidence(self) -> float:
        return self.ensemble.confidence


def _side_price(best: OddsQuote, side: str) -> Optional[float]:
    if side == "home":
        return best.home_win
    if side == "away":
        return best.away_win
    return best.draw


class RecommendationService:
    """
    Owns the weight cache and synthesis client for a process.

    Construct one per application (or per test) and share it; the cache
    lives on the instance, never at module level.
    """

    def __init__(
        self,
        weight_cache: Optional[WeightCache] = None,
        synthesis_client: Optional[SynthesisClient] = None,
        synthesis_timeout: Optional[float] = None,
        ensemble_config: EnsembleConfig = DEFAULT_ENSEMBLE_CONFIG,
    ):
        self.weight_cache = weight_cache or WeightCache(DatabaseWeightProvider())
        self.synthesis_client = synthesis_client
        self.synthesis_timeout = synthesis_timeout if synthesis_timeout is not None else float(
            os.getenv("SYNTHESIS_TIMEOUT_SECONDS", str(DEFAULT_SYNTHESIS_TIMEOUT_SECONDS))
        )
        self.ensemble_config = ensemble_config

    def _size_stake(
        self,
        consensus: ConsensusResult,
        quotes: Sequence[OddsQuote],
        staking: StakingParams,
    ):
        """Kelly result against the best price for the consensus side."""
        if not quotes:
            return None, None
        price = _side_price(best_odds(quotes), consensus.recommended)
        if price is None or price <= 1.0:
            logger.info(
                "No usable %s price for %s, skipping stake sizing",
                consensus.recommended, consensus.match_id,
            )
            return None, None

        kelly = calculate_kelly_stake(
            KellyConfig(
                true_probability=consensus.true_probability,
                bookmaker_odds=price,
                bankroll=staking.bankroll,
                kelly_fraction=staking.kelly_fraction,
                max_bet_percentage=staking.max_bet_percentage,
                min_ev_threshold=staking.min_ev_threshold,
                unit_size=staking.unit_size,
            )
        )
        return price, kelly

    async def build_recommendation(
        self,
        predictions: Predictions,
        staking: StakingParams,
        quotes: Sequence[OddsQuote] = (),
        context: Optional[MatchContext] = None,
        attributes: Optional[MatchAttributes] = None,
        match_id: Optional[str] = None,
    ) -> Recommendation:
        """
        Run the full pipeline for one match.

        Args:
            predictions: Per-algorithm predictions (mapping or sequence).
            staking: Bankroll and Kelly settings.
            quotes: One decimal-odds quote per bookmaker.  Without quotes
                there is no stake sizing and no arbitrage check.
            context: Teams, league and recent form for the ensemble layer.
            attributes: Scenario attributes.  Odds, EV and arbitrage
                fields left unset are filled from this pipeline's results.
            match_id: Overrides the match id taken from ``context`` or the
                predictions.

        Raises:
            EmptyPredictionSet, InvalidProbability, InvalidBankroll,
            ValueError: Invalid inputs.
        """
        if not (staking.bankroll > 0):
            raise InvalidBankroll(f"bankroll must be > 0, got {staking.bankroll!r}.")
        if match_id is None and context is not None:
            match_id = context.match_id

        weights = await self.weight_cache.get_weights()
        consensus = synthesize_consensus(predictions, weights, match_id)

        price, kelly = self._size_stake(consensus, quotes, staking)

        arbitrage_pct = calculate_arbitrage_percentage(quotes) if quotes else None
        arbitrage = find_arbitrage_opportunity(quotes) if quotes else None

        ensemble = await run_full_ensemble(
            consensus,
            context,
            client=self.synthesis_client,
            timeout=self.synthesis_timeout,
            config=self.ensemble_config,
            algorithm_weights=weights,
        )

        attrs = attributes or MatchAttributes()
        fill = {}
        if quotes:
            best = best_odds(quotes)
            if attrs.home_odds is None:
                fill["home_odds"] = best.home_win
            if attrs.away_odds is None:
                fill["away_odds"] = best.away_win
        if attrs.ev_percentage is None and kelly is not None:
            fill["ev_percentage"] = kelly.ev_percentage
        if attrs.arbitrage_percentage is None and arbitrage_pct is not None:
            fill["arbitrage_percentage"] = arbitrage_pct
        if fill:
            attrs = dataclasses.replace(attrs, **fill)

        scenarios = detect_scenarios(attrs)
        scenario_recommendation = recommend_from_detections(scenarios)

        logger.info(
            "Recommendation %s: %s conf=%.1f (%s) stake=%s arb=%s scenarios=%d synthesis=%s",
            consensus.match_id,
            consensus.recommended,
            ensemble.confidence,
            consensus.agreement_level,
            f"{kelly.recommended_stake:.2f}" if kelly else "n/a",
            f"{arbitrage_pct:.2f}" if arbitrage_pct is not None else "n/a",
            len(scenarios),
            "yes" if ensemble.has_synthesis else "no",
        )

        return Recommendation(
            match_id=consensus.match_id,
            consensus=consensus,
            ensemble=ensemble,
            weights=list(weights),
            bookmaker_odds=price,
            kelly=kelly,
            arbitrage_percentage=arbitrage_pct,
            arbitrage=arbitrage,
            attributes=attrs,
            scenarios=scenarios,
            scenario_recommendation=scenario_recommendation,
        )


def record_recommendation(db: Session, rec: Recommendation) -> ConsensusRecord:
    """Persist an audit row for ``rec`` and return it."""
    consensus = rec.consensus
    synthesis = rec.ensemble.synthesis
    row = ConsensusRecord(
        match_id=rec.match_id,
        recommended=consensus.recommended,
        confidence=consensus.confidence,
        true_probability=consensus.true_probability,
        agreement=consensus.agreement,
        agreement_level=consensus.agreement_level,
        projected_home=int(consensus.projected_score.home),
        projected_away=int(consensus.projected_score.away),
        weights=dict(consensus.weights),
        final_confidence=rec.final_confidence,
        recommended_stake=rec.kelly.recommended_stake if rec.kelly else None,
        recommended_stake_units=rec.kelly.recommended_stake_units if rec.kelly else None,
        arbitrage_percentage=rec.arbitrage_percentage,
        scenario_ids=[s.scenario.id for s in rec.scenarios],
        synthesis_reasoning=synthesis.reasoning if synthesis else None,
        synthesis_error=rec.ensemble.synthesis_error,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
