"""Data-transfer objects and collaborator contracts for the engine.

The engine consumes a narrow, explicitly typed input contract
(:class:`PredictionResult`, :class:`OddsQuote`, :class:`MatchContext`,
:class:`MatchAttributes`) rather than loosely typed match blobs, so it
stays decoupled from presentation data shapes.

Collaborators that touch I/O are injected through the abstract base
classes at the bottom of this module:

* :class:`WeightProvider` — supplies historical-accuracy weights.
* :class:`SynthesisClient` — requests the optional qualitative synthesis.

Design choices
--------------
* DTOs are frozen and slotted so they can be cached safely and shared
  across asyncio tasks without defensive copies.
* Collaborators are ABCs rather than ``typing.Protocol`` so that
  ``isinstance`` checks work at construction time and implementers have to
  read the contract.

Run tests with::

    pytest tests/test_interfaces.py -v
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Final, Literal

from betsmart.core.errors import InvalidProbability

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

Side = Literal["home", "away", "draw"]
AgreementLevel = Literal["unanimous", "strong", "split", "contested"]
RiskLevel = Literal["low", "medium", "high"]

#: Valid values for ``PredictionResult.recommended``.
SIDES: Final[tuple[str, ...]] = ("home", "away", "draw")


# ---------------------------------------------------------------------------
# Per-algorithm predictions
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ProjectedScore:
    """Projected final score.  Integers for display, floats while averaging."""

    home: float
    away: float


@dataclass(slots=True, frozen=True)
class PredictionResult:
    """One algorithm's opinion on one match.

    Attributes:
        match_id: Identifier of the match being predicted.
        algorithm_id: Stable identifier of the producing algorithm.  Used as
            the join key against :class:`AlgorithmWeight`.
        algorithm_name: Human-readable algorithm name.
        recommended: ``"home"``, ``"away"`` or ``"draw"``.
        confidence: Self-reported probability of being correct, 0–100.
        true_probability: Calibrated win probability for the recommended
            side, in ``(0, 1)``.  Related to ``confidence / 100`` but not
            interchangeable with it.
        projected_score: Projected final score.
        ev_percentage: Algorithm's own EV estimate, as a percent.
        kelly_fraction: Algorithm's own Kelly fraction.
        kelly_stake_units: Algorithm's own stake suggestion in units.
    """

    match_id: str
    algorithm_id: str
    algorithm_name: str
    recommended: Side
    confidence: float
    true_probability: float
    projected_score: ProjectedScore
    ev_percentage: float = 0.0
    kelly_fraction: float = 0.0
    kelly_stake_units: float = 0.0

    def validate(self) -> None:
        """Check the field ranges the engine relies on.

        Raises:
            ValueError: If ``recommended`` is not a known side.
            InvalidProbability: If ``confidence`` is outside ``[0, 100]`` or
                ``true_probability`` is outside ``(0, 1)``.
        """
        if self.recommended not in SIDES:
            raise ValueError(
                f"recommended must be one of {SIDES}, got {self.recommended!r} "
                f"(algorithm={self.algorithm_id!r})."
            )
        if not (0.0 <= self.confidence <= 100.0):
            raise InvalidProbability(
                f"confidence must be in [0, 100], got {self.confidence!r} "
                f"(algorithm={self.algorithm_id!r})."
            )
        if not (0.0 < self.true_probability < 1.0):
            raise InvalidProbability(
                f"true_probability must be in (0, 1), got {self.true_probability!r} "
                f"(algorithm={self.algorithm_id!r})."
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class AlgorithmWeight:
    """Historical-accuracy weight for one algorithm.

    ``weight`` is non-negative; a weight set is normalised to sum to 1
    before use.  ``win_rate`` (0–100) is the trailing accuracy the weight
    was derived from.  ``reliability`` expresses how much the weight itself
    can be trusted given the sample size behind it.
    """

    algorithm_id: str
    algorithm_name: str
    weight: float
    win_rate: float = 50.0
    total_predictions: int = 0
    avg_confidence: float = 50.0
    reliability: float = 0.0


# ---------------------------------------------------------------------------
# Consensus output
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ConsensusResult:
    """Reconciled recommendation for a single match.

    Attributes:
        match_id: Identifier of the match.
        recommended: Side with the highest weighted vote.
        confidence: Weighted mean confidence of the predictions that agree
            with ``recommended`` (0–100).
        true_probability: Weighted mean calibrated probability of the
            agreeing predictions.  This is what staking consumes.
        projected_score: Weighted mean score of all predictions, rounded to
            integers.
        projected_score_exact: The same average rounded to one decimal.
        agreement: Winning side's share of total weight, in ``[0, 1]``.
        agreement_level: Categorical reading of ``agreement``.
        vote_totals: Normalised weighted vote per side.
        weights: Normalised weight applied to each algorithm, keyed by id.
        component_predictions: Inputs in their original order.
    """

    match_id: str
    recommended: Side
    confidence: float
    true_probability: float
    projected_score: ProjectedScore
    projected_score_exact: ProjectedScore
    agreement: float
    agreement_level: AgreementLevel
    vote_totals: dict[str, float]
    weights: dict[str, float]
    component_predictions: tuple[PredictionResult, ...]

    @property
    def is_unanimous(self) -> bool:
        return self.agreement_level == "unanimous"

    @property
    def algorithm_ids(self) -> tuple[str, ...]:
        return tuple(p.algorithm_id for p in self.component_predictions)


# ---------------------------------------------------------------------------
# Market data and match context
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OddsQuote:
    """Decimal odds from one bookmaker for a match-winner market."""

    sportsbook_id: str
    home_win: float
    away_win: float
    draw: float | None = None


@dataclass(slots=True, frozen=True)
class MatchContext:
    """Auxiliary signals the ensemble layer may use.

    ``*_recent_form`` lists results most-recent-first using ``"W"``,
    ``"L"`` and ``"D"``.  ``temporal`` carries optional form signals that
    are forwarded to the remote synthesis untouched.
    """

    match_id: str
    home_team: str = ""
    away_team: str = ""
    league: str = ""
    home_recent_form: tuple[str, ...] = ()
    away_recent_form: tuple[str, ...] = ()
    temporal: dict[str, Any] | None = None

    @property
    def match_title(self) -> str:
        if self.home_team and self.away_team:
            return f"{self.away_team} @ {self.home_team}"
        return self.match_id


@dataclass(slots=True, frozen=True)
class MatchAttributes:
    """Numeric shape of a match or bet, used for scenario detection.

    All fields are optional: a scenario criterion whose attribute is
    missing is treated as not satisfied.

    Attributes:
        home_odds: Decimal moneyline odds for the home side.
        away_odds: Decimal moneyline odds for the away side.
        spread: Point spread from the home side's perspective.  Only the
            magnitude is used.
        is_live: True when the match is in progress.
        situational: Lower-case situational tags (``"back_to_back"``…).
        ev_percentage: Model EV for the recommended bet, as a percent.
        clv_percentage: Closing-line value captured, as a percent.
        arbitrage_percentage: Output of the arbitrage detector.
    """

    home_odds: float | None = None
    away_odds: float | None = None
    spread: float | None = None
    is_live: bool = False
    situational: frozenset[str] = field(default_factory=frozenset)
    ev_percentage: float | None = None
    clv_percentage: float | None = None
    arbitrage_percentage: float | None = None


# ---------------------------------------------------------------------------
# Remote synthesis output
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class SynthesisResult:
    """Qualitative commentary returned by the remote synthesis endpoint."""

    final_pick: str
    adjusted_confidence: float
    reasoning: str
    biases_identified: tuple[str, ...] = ()
    agreement_level: str | None = None
    risk_flag: str | None = None


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


class WeightProvider(ABC):
    """Source of per-algorithm historical-accuracy weights.

    Implementations may perform I/O.  They should raise
    :class:`~betsmart.core.errors.WeightFetchError` on failure; the
    :class:`~betsmart.services.weights.WeightCache` in front of them turns
    that into a logged fallback.
    """

    #: Short identifier included in log lines.
    provider_name: str = "WeightProvider"

    @abstractmethod
    async def fetch_algorithm_weights(self) -> list[AlgorithmWeight]:
        """Return the current weight set (not necessarily normalised)."""


class SynthesisClient(ABC):
    """Remote collaborator that returns qualitative commentary.

    ``synthesize`` must raise :class:`~betsmart.core.errors.SynthesisError`
    for transport failures and malformed bodies.  It must not retry.
    """

    client_name: str = "SynthesisClient"

    @abstractmethod
    async def synthesize(self, payload: dict[str, Any]) -> SynthesisResult:
        """Send ``payload`` and return the parsed synthesis."""
