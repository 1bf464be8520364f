"""
Rule-based ensemble refinement on top of a weighted consensus.

The local pass (:func:`run_advanced_ensemble`) is deterministic and always
succeeds.  It applies, in order:

    1. Family correlation penalty — agreeing algorithms that share a
       methodology family are not independent votes, so each duplicate
       family member trims confidence a little.
    2. Sequential form patterns — streak / alternating / regression /
       breakout signals in each team's recent results, signed toward the
       recommended side.
    3. Diversity bonus — dispersion of confidence, picks and EV across
       the component predictions.
    4. Agreement damping — contested results are pulled toward 50,
       unanimous results get a small boost.

Confidence is clamped to [0, 100] at the end.

:func:`run_full_ensemble` adds the optional remote synthesis.  The remote
step is additive: on timeout, transport error or a malformed body the
local result is returned with the error recorded, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Final, List, Optional, Sequence

import numpy as np

from betsmart.core.errors import SynthesisError
from betsmart.core.interfaces import (
    AlgorithmWeight,
    ConsensusResult,
    MatchContext,
    PredictionResult,
    SynthesisClient,
    SynthesisResult,
)
from betsmart.services.weights import (
    ML_POWER_INDEX_ID,
    STATISTICAL_EDGE_ID,
    VALUE_PICK_FINDER_ID,
)

logger = logging.getLogger(__name__)

SHARP_MONEY_ID: Final[str] = "d7f3e8a2-9b4c-4e1a-8f5d-6c2b1a0e9d8f"

# Methodology family per algorithm.  Unknown algorithms form their own
# single-member family.
ALGORITHM_FAMILIES: Final[Dict[str, str]] = {
    ML_POWER_INDEX_ID: "momentum",
    VALUE_PICK_FINDER_ID: "market",
    SHARP_MONEY_ID: "market",
    STATISTICAL_EDGE_ID: "historical",
}

DEFAULT_SYNTHESIS_TIMEOUT_SECONDS: Final[float] = 8.0


@dataclass(frozen=True)
class EnsembleConfig:
    """Tuning knobs for the local ensemble pass."""

    sequential_decay_rate: float = 0.9
    pattern_weight: float = 0.4
    diversity_weight: float = 0.12
    correlation_penalty: float = 1.5       # confidence points per duplicate family member
    max_correlation_penalty: float = 5.0
    contested_damping: float = 0.5         # share of distance to 50 removed
    unanimous_boost: float = 2.0


DEFAULT_ENSEMBLE_CONFIG = EnsembleConfig()


@dataclass(frozen=True)
class SequentialPattern:
    """Form pattern detected in one team's recent results."""

    type: str  # streak, alternating, regression, breakout, none
    strength: float
    adjustment: float
    description: str


NO_PATTERN = SequentialPattern("none", 0.0, 0.0, "Insufficient data")


@dataclass(frozen=True)
class EnsembleResult:
    """Local ensemble output.  ``confidence`` is the refined value."""

    consensus: ConsensusResult
    confidence: float
    base_confidence: float
    correlation_penalty: float
    home_pattern: SequentialPattern
    away_pattern: SequentialPattern
    pattern_impact: float
    diversity_score: float
    diversity_bonus: float
    agreement_adjustment: float

    @property
    def recommended(self) -> str:
        return self.consensus.recommended

    @property
    def layer_contributions(self) -> Dict[str, float]:
        return {
            "base": round(self.base_confidence, 2),
            "correlation": round(-self.correlation_penalty, 2),
            "sequential_pattern": round(self.pattern_impact, 2),
            "diversity": round(self.diversity_bonus, 2),
            "agreement": round(self.agreement_adjustment, 2),
        }


@dataclass(frozen=True)
class FullEnsembleResult:
    """Local result plus the optional remote synthesis."""

    local: EnsembleResult
    synthesis: Optional[SynthesisResult] = None
    synthesis_error: Optional[str] = None

    @property
    def confidence(self) -> float:
        return self.local.confidence

    @property
    def has_synthesis(self) -> bool:
        return self.synthesis is not None


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

def _encode_form(recent_form: Sequence[str]) -> List[int]:
    return [1 if r == "W" else -1 if r == "L" else 0 for r in recent_form]


def detect_sequential_pattern(
    recent_form: Optional[Sequence[str]],
    decay_rate: float = 0.9,
) -> SequentialPattern:
    """
    Classify a team's recent results, most recent first.

    Checks run in priority order and the first hit wins:

    * streak — four or more identical leading results.  Streaks tend to
      regress, so the adjustment is damped by ``decay_rate`` and capped at
      ±8 points.
    * alternating — more than 70% of consecutive decided results flip.
      The next result is expected to flip again.
    * regression — first and second halves average on opposite sides of
      zero and differ by more than 0.6.
    * breakout — the last three results differ from the older baseline by
      more than 0.5 (needs at least two older results).

    Fewer than three results yield ``type="none"``.
    """
    if not recent_form or len(recent_form) < 3:
        return NO_PATTERN

    encoded = _encode_form(recent_form)
    n = len(encoded)

    streak_len = 1
    for value in encoded[1:]:
        if value != encoded[0]:
            break
        streak_len += 1
    streak_strength = min(1.0, streak_len / 6)

    alternating = sum(
        1
        for prev, cur in zip(encoded, encoded[1:])
        if cur != prev and cur != 0 and prev != 0
    )
    alternating_ratio = alternating / (n - 1)

    half = n // 2
    first_avg = sum(encoded[:half]) / half
    second_avg = sum(encoded[half:]) / (n - half)
    regression_signal = abs(first_avg - second_avg)

    recent = encoded[:3]
    older = encoded[3:]
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older) if older else 0.0
    breakout_signal = recent_avg - older_avg

    if streak_len >= 4 and streak_strength > 0.5:
        adjustment = encoded[0] * streak_strength * 3 * decay_rate
        kind = {1: "win", -1: "loss", 0: "draw"}[encoded[0]]
        return SequentialPattern(
            type="streak",
            strength=streak_strength,
            adjustment=max(-8.0, min(8.0, adjustment)),
            description=f"{streak_len}-game {kind} streak (damped for regression)",
        )

    if alternating_ratio > 0.7:
        return SequentialPattern(
            type="alternating",
            strength=alternating_ratio,
            adjustment=-encoded[0] * 2.0,
            description=f"Alternating pattern ({round(alternating_ratio * 100)}% alternation)",
        )

    if regression_signal > 0.6 and first_avg * second_avg < 0:
        return SequentialPattern(
            type="regression",
            strength=regression_signal,
            adjustment=-second_avg * 3,
            description="Regression to mean: reversing from a {} run".format(
                "hot" if second_avg > 0 else "cold"
            ),
        )

    if abs(breakout_signal) > 0.5 and len(older) >= 2:
        return SequentialPattern(
            type="breakout",
            strength=abs(breakout_signal),
            adjustment=breakout_signal * 4,
            description="Breakout {}: recent form diverging from baseline".format(
                "upward" if breakout_signal > 0 else "downward"
            ),
        )

    return SequentialPattern("none", 0.0, 0.0, "No strong sequential pattern")


def calculate_diversity_score(predictions: Sequence[PredictionResult]) -> float:
    """
    Dispersion of the component predictions, in [0, 1].

    ``0.4 * min(1, std(confidence) / 15) + 0.35 * pick disagreement
    + 0.25 * min(1, std(ev) / 10)``.  Fewer than two predictions score 0.
    """
    if len(predictions) < 2:
        return 0.0

    confidences = np.array([p.confidence for p in predictions], dtype=float)
    evs = np.array([p.ev_percentage for p in predictions], dtype=float)
    unique_picks = len({p.recommended for p in predictions})

    confidence_diversity = min(1.0, float(np.std(confidences)) / 15)
    pick_diversity = (unique_picks - 1) / max(1, len(predictions) - 1)
    ev_diversity = min(1.0, float(np.std(evs)) / 10)

    return confidence_diversity * 0.4 + pick_diversity * 0.35 + ev_diversity * 0.25


def family_correlation_penalty(
    consensus: ConsensusResult,
    config: EnsembleConfig = DEFAULT_ENSEMBLE_CONFIG,
) -> float:
    """Confidence points to remove for agreeing algorithms in the same family."""
    seen = set()
    duplicates = 0
    for p in consensus.component_predictions:
        if p.recommended != consensus.recommended:
            continue
        family = ALGORITHM_FAMILIES.get(p.algorithm_id, p.algorithm_id)
        if family in seen:
            duplicates += 1
        seen.add(family)
    return min(config.max_correlation_penalty, duplicates * config.correlation_penalty)


def _side_direction(recommended: str) -> int:
    if recommended == "home":
        return 1
    if recommended == "away":
        return -1
    return 0


# ---------------------------------------------------------------------------
# Local ensemble
# ---------------------------------------------------------------------------

def run_advanced_ensemble(
    consensus: ConsensusResult,
    match_context: Optional[MatchContext] = None,
    config: EnsembleConfig = DEFAULT_ENSEMBLE_CONFIG,
) -> EnsembleResult:
    """
    Refine consensus confidence with deterministic rule-based adjustments.

    Pure and synchronous; never raises for a valid ``ConsensusResult``.
    """
    base = consensus.confidence
    confidence = base

    penalty = family_correlation_penalty(consensus, config)
    confidence -= penalty

    if match_context is not None:
        home_pattern = detect_sequential_pattern(
            match_context.home_recent_form, config.sequential_decay_rate
        )
        away_pattern = detect_sequential_pattern(
            match_context.away_recent_form, config.sequential_decay_rate
        )
    else:
        home_pattern = away_pattern = NO_PATTERN

    # A hot home side supports a home pick and undermines an away pick.
    pattern_impact = (
        (home_pattern.adjustment - away_pattern.adjustment)
        * config.pattern_weight
        * _side_direction(consensus.recommended)
    )
    confidence += pattern_impact

    diversity = calculate_diversity_score(consensus.component_predictions)
    diversity_bonus = diversity * config.diversity_weight * 10
    confidence += diversity_bonus

    before_agreement = confidence
    if consensus.agreement_level == "contested":
        confidence = 50.0 + (confidence - 50.0) * (1.0 - config.contested_damping)
    elif consensus.agreement_level == "unanimous" and len(consensus.component_predictions) > 1:
        confidence += config.unanimous_boost
    agreement_adjustment = confidence - before_agreement

    confidence = max(0.0, min(100.0, confidence))

    return EnsembleResult(
        consensus=consensus,
        confidence=confidence,
        base_confidence=base,
        correlation_penalty=penalty,
        home_pattern=home_pattern,
        away_pattern=away_pattern,
        pattern_impact=pattern_impact,
        diversity_score=diversity,
        diversity_bonus=diversity_bonus,
        agreement_adjustment=agreement_adjustment,
    )


# ---------------------------------------------------------------------------
# Remote synthesis
# ---------------------------------------------------------------------------

def build_synthesis_payload(
    consensus: ConsensusResult,
    match_context: Optional[MatchContext] = None,
    algorithm_weights: Optional[Sequence[AlgorithmWeight]] = None,
) -> Dict[str, Any]:
    """JSON body for the synthesis endpoint."""
    win_rates = {w.algorithm_id: w.win_rate for w in (algorithm_weights or [])}
    ctx = match_context or MatchContext(match_id=consensus.match_id)

    payload: Dict[str, Any] = {
        "matchId": consensus.match_id,
        "matchTitle": ctx.match_title,
        "league": ctx.league,
        "homeTeam": ctx.home_team,
        "awayTeam": ctx.away_team,
        "predictions": [
            {
                "algorithmName": p.algorithm_name,
                "recommended": p.recommended,
                "confidence": p.confidence,
                "projectedScore": {"home": p.projected_score.home, "away": p.projected_score.away},
                "evPercentage": p.ev_percentage,
                "kellyStakeUnits": p.kelly_stake_units,
                "trueProbability": p.true_probability,
            }
            for p in consensus.component_predictions
        ],
        "weights": [
            {
                "algorithmName": p.algorithm_name,
                "weight": consensus.weights.get(p.algorithm_id, 0.0),
                "winRate": win_rates.get(p.algorithm_id),
            }
            for p in consensus.component_predictions
        ],
    }
    if ctx.temporal:
        payload["temporal"] = dict(ctx.temporal)
    return payload


async def run_full_ensemble(
    consensus: ConsensusResult,
    match_context: Optional[MatchContext] = None,
    client: Optional[SynthesisClient] = None,
    timeout: float = DEFAULT_SYNTHESIS_TIMEOUT_SECONDS,
    config: EnsembleConfig = DEFAULT_ENSEMBLE_CONFIG,
    algorithm_weights: Optional[Sequence[AlgorithmWeight]] = None,
) -> FullEnsembleResult:
    """
    Local ensemble plus optional remote synthesis.  Never raises.

    The local result is computed first.  With no ``client`` it is returned
    as-is.  Otherwise one synthesis request is made, bounded by
    ``timeout`` seconds; any failure is logged and recorded in
    ``synthesis_error``.
    """
    local = run_advanced_ensemble(consensus, match_context, config)
    if client is None:
        return FullEnsembleResult(local=local)

    payload = build_synthesis_payload(consensus, match_context, algorithm_weights)
    try:
        synthesis = await asyncio.wait_for(client.synthesize(payload), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Synthesis via %s timed out after %.1fs for %s",
            client.client_name, timeout, consensus.match_id,
        )
        return FullEnsembleResult(local=local, synthesis_error=f"timeout after {timeout:.1f}s")
    except SynthesisError as e:
        logger.warning("Synthesis failed for %s: %s", consensus.match_id, e)
        return FullEnsembleResult(local=local, synthesis_error=str(e))
    except Exception as e:
        logger.error(
            "Unexpected synthesis error for %s: %s", consensus.match_id, e, exc_info=True
        )
        return FullEnsembleResult(local=local, synthesis_error=f"{type(e).__name__}: {e}")

    if not isinstance(synthesis, SynthesisResult):
        logger.warning(
            "Synthesis client %s returned %s, ignoring",
            client.client_name, type(synthesis).__name__,
        )
        return FullEnsembleResult(local=local, synthesis_error="malformed synthesis result")

    return FullEnsembleResult(local=local, synthesis=synthesis)
