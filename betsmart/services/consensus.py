"""
Weighted consensus across per-algorithm predictions.

Reconciles the independent picks of every prediction algorithm for one
match into a single recommendation:

    1. Weight normalisation — historical-accuracy weights are rescaled to
       sum to 1 over the algorithms actually present.  Algorithms with no
       weight on record still vote, at a small default weight.
    2. Weighted vote — the side with the largest weight share wins.  Exact
       ties go to the side that appears first in input order.
    3. Confidence — weighted mean of the *agreeing* predictions only.
       Dissent lowers ``agreement``, never ``confidence``.
    4. Projected score — weighted mean of *all* predictions.

The function is deterministic and performs no I/O.  Weight retrieval
lives in :mod:`betsmart.services.weights`.
"""

import math
from typing import Dict, Final, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from betsmart.core.errors import EmptyPredictionSet
from betsmart.core.interfaces import (
    AgreementLevel,
    AlgorithmWeight,
    ConsensusResult,
    PredictionResult,
    ProjectedScore,
)

#: Raw weight for an algorithm with no entry in the weight set.
UNWEIGHTED_ALGORITHM_WEIGHT: Final[float] = 0.05

#: Winning share at or above which agreement is "strong".
STRONG_AGREEMENT_SHARE: Final[float] = 0.75

#: Winning share at or above which agreement is "split".
SPLIT_AGREEMENT_SHARE: Final[float] = 0.5

Predictions = Union[Mapping[str, PredictionResult], Sequence[PredictionResult]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from zero (2.5 → 3), unlike Python's banker's ``round``."""
    factor = 10 ** ndigits
    scaled = abs(value) * factor
    return math.copysign(math.floor(scaled + 0.5) / factor, value)


def _as_list(predictions: Predictions) -> List[PredictionResult]:
    if isinstance(predictions, Mapping):
        return list(predictions.values())
    return list(predictions)


def normalize_weights(
    predictions: Sequence[PredictionResult],
    weights: Iterable[AlgorithmWeight],
) -> List[float]:
    """Normalised weight for each prediction, aligned with ``predictions``.

    Weights for algorithms that did not predict are ignored, so the
    returned values always sum to 1 over the predictions supplied.  If
    every raw weight is zero the predictions are weighted equally.

    Raises:
        ValueError: If a supplied weight is negative.
    """
    by_id: Dict[str, float] = {}
    for w in weights:
        if w.weight < 0:
            raise ValueError(
                f"Algorithm weight must be ≥ 0, got {w.weight!r} for {w.algorithm_id!r}."
            )
        by_id[w.algorithm_id] = w.weight

    raw = [by_id.get(p.algorithm_id, UNWEIGHTED_ALGORITHM_WEIGHT) for p in predictions]
    total = sum(raw)
    if total <= 0:
        return [1.0 / len(predictions)] * len(predictions)
    return [r / total for r in raw]


def agreement_level_for(share: float, all_agree: bool) -> AgreementLevel:
    """Categorise the winning side's weight share."""
    if all_agree:
        return "unanimous"
    if share >= STRONG_AGREEMENT_SHARE:
        return "strong"
    if share >= SPLIT_AGREEMENT_SHARE:
        return "split"
    return "contested"


def _weighted_mean(pairs: Iterable[Tuple[float, float]]) -> float:
    total_weight = 0.0
    acc = 0.0
    for weight, value in pairs:
        total_weight += weight
        acc += weight * value
    if total_weight <= 0:
        return 0.0
    return acc / total_weight


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------

def synthesize_consensus(
    predictions: Predictions,
    weights: Iterable[AlgorithmWeight],
    match_id: Optional[str] = None,
) -> ConsensusResult:
    """
    Reconcile per-algorithm predictions into one weighted recommendation.

    Args:
        predictions: Predictions keyed by algorithm id, or a plain sequence.
            Input order is preserved in ``component_predictions`` and used
            for tie-breaking.
        weights: Historical-accuracy weights.  Need not be normalised and
            may include algorithms that did not predict this match.
        match_id: Identifier for the result.  Defaults to the first
            prediction's ``match_id``.

    Returns:
        :class:`ConsensusResult`.  A ``contested`` result is still a
        definite pick; treat it as lower-trust.

    Raises:
        EmptyPredictionSet: If no predictions are supplied.
        ValueError, InvalidProbability: If a prediction or weight is out of
            range.
    """
    items = _as_list(predictions)
    if not items:
        raise EmptyPredictionSet(
            f"No predictions supplied for match {match_id!r}; nothing to reconcile."
        )
    for p in items:
        p.validate()

    resolved_match_id = match_id if match_id is not None else items[0].match_id
    normalized = normalize_weights(items, weights)

    # Dicts keep insertion order, so iteration below is first-seen order.
    vote_totals: Dict[str, float] = {}
    for p, w in zip(items, normalized):
        vote_totals[p.recommended] = vote_totals.get(p.recommended, 0.0) + w

    recommended = None
    best_total = -1.0
    for side, total in vote_totals.items():
        if total > best_total:
            recommended, best_total = side, total

    total_vote = sum(vote_totals.values())
    share = best_total / total_vote if total_vote > 0 else 0.0
    all_agree = len(vote_totals) == 1

    agreeing = [(w, p) for p, w in zip(items, normalized) if p.recommended == recommended]
    confidence = _weighted_mean((w, p.confidence) for w, p in agreeing)
    true_probability = _weighted_mean((w, p.true_probability) for w, p in agreeing)

    home_exact = _round_half_up(
        _weighted_mean((w, p.projected_score.home) for p, w in zip(items, normalized)), 1
    )
    away_exact = _round_half_up(
        _weighted_mean((w, p.projected_score.away) for p, w in zip(items, normalized)), 1
    )

    return ConsensusResult(
        match_id=resolved_match_id,
        recommended=recommended,
        confidence=confidence,
        true_probability=true_probability,
        projected_score=ProjectedScore(
            home=int(_round_half_up(home_exact)),
            away=int(_round_half_up(away_exact)),
        ),
        projected_score_exact=ProjectedScore(home=home_exact, away=away_exact),
        agreement=share,
        agreement_level=agreement_level_for(share, all_agree),
        vote_totals=vote_totals,
        weights={p.algorithm_id: w for p, w in zip(items, normalized)},
        component_predictions=tuple(items),
    )
