"""Kelly stake sizing, expected-value screening and bankroll simulation.

Sizing and EV are **pure**; the simulation touches only its own seeded RNG.
Import from this module; never reimplement Kelly locally in services.

The functions cover three sizing contexts:

1. :func:`calculate_kelly_stake` — full staking recommendation (EV, Kelly
   fraction, capped stake, units, risk level) from a :class:`KellyConfig`.
2. :func:`calculate_expected_value` — quick EV screen without sizing.
3. :func:`simulate_kelly_betting` — Monte Carlo bankroll paths at the
   recommended fraction, for illustrating variance.

Design decisions
----------------
* **Fail fast.**  Probabilities outside ``(0, 1)``, decimal odds ``≤ 1``
  and non-positive bankrolls raise typed errors.  Nothing is clamped
  silently: a bad input here is always a calling-code defect.
* **Minimum-edge gate.**  A bet whose EV is below ``min_ev_threshold`` is
  never recommended, even if it is technically +EV.  ``full_kelly`` is still
  reported so callers can see what the raw formula said.
* **Three-way markets.**  A stake on one outcome of a home/draw/away market
  still either wins or loses, so the binary formula applies unchanged as
  long as ``true_probability`` is the probability of *that* outcome.
* **Fractional Kelly** is a multiplier (``kelly_fraction=0.25`` is
  quarter-Kelly), applied before the percentage cap.

Run tests with::

    pytest tests/test_kelly.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

import numpy as np

from betsmart.core.errors import InvalidBankroll, InvalidOdds, InvalidProbability
from betsmart.core.interfaces import RiskLevel

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default currency value of one betting unit.
DEFAULT_UNIT_SIZE: Final[float] = 10.0

#: Stake percentage below which a recommendation is considered low risk.
LOW_RISK_CEILING_PCT: Final[float] = 2.0

#: Stake percentage at or above which a recommendation is high risk.
HIGH_RISK_FLOOR_PCT: Final[float] = 5.0

#: Fraction of the starting bankroll below which a simulated path is ruined.
RUIN_THRESHOLD: Final[float] = 0.10


# ---------------------------------------------------------------------------
# Data transfer objects
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class KellyConfig:
    """Inputs to :func:`calculate_kelly_stake`.

    Attributes:
        true_probability: Model probability that the bet wins, in ``(0, 1)``.
        bookmaker_odds: Decimal odds offered, ``> 1``.
        bankroll: Current bankroll in currency, ``> 0``.
        kelly_fraction: Multiplier on full Kelly, in ``(0, 1]``.  1.0 is full
            Kelly, 0.25 quarter-Kelly.
        max_bet_percentage: Cap on the stake as a percent of bankroll.
            ``None`` means unbounded.
        min_ev_threshold: Minimum EV percent for a bet to be recommended.
        unit_size: Currency value of one unit, for unit-denominated display.
    """

    true_probability: float
    bookmaker_odds: float
    bankroll: float
    kelly_fraction: float = 1.0
    max_bet_percentage: float | None = None
    min_ev_threshold: float = 0.0
    unit_size: float = DEFAULT_UNIT_SIZE


@dataclass(slots=True, frozen=True)
class KellyResult:
    """Output of :func:`calculate_kelly_stake`.

    ``full_kelly`` is the uncapped formula output and may be negative.
    ``adjusted_kelly`` is the fraction of bankroll actually recommended
    after the multiplier, the cap and the EV gate.
    """

    is_positive_ev: bool
    expected_value: float
    ev_percentage: float
    full_kelly: float
    adjusted_kelly: float
    recommended_stake: float
    recommended_stake_percentage: float
    recommended_stake_units: float
    expected_growth: float
    risk_level: RiskLevel


@dataclass(slots=True, frozen=True)
class SimulationSummary:
    """Distribution of final bankrolls across simulated betting paths."""

    average_final_bankroll: float
    median_final_bankroll: float
    best_case: float
    worst_case: float
    probability_of_profit: float
    probability_of_ruin: float


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_probability_and_odds(true_probability: float, bookmaker_odds: float) -> None:
    if not (0.0 < true_probability < 1.0):
        raise InvalidProbability(
            f"true_probability must be in (0, 1), got {true_probability!r}. "
            "Check upstream probability calibration."
        )
    if not (bookmaker_odds > 1.0):
        raise InvalidOdds(
            f"bookmaker_odds must be > 1.0 (decimal), got {bookmaker_odds!r}."
        )


def _validate_config(config: KellyConfig) -> None:
    _validate_probability_and_odds(config.true_probability, config.bookmaker_odds)
    if not (config.bankroll > 0.0):
        raise InvalidBankroll(f"bankroll must be > 0, got {config.bankroll!r}.")
    if not (0.0 < config.kelly_fraction <= 1.0):
        raise ValueError(
            f"kelly_fraction must be in (0, 1], got {config.kelly_fraction!r}."
        )
    if config.max_bet_percentage is not None and config.max_bet_percentage < 0.0:
        raise ValueError(
            f"max_bet_percentage must be ≥ 0, got {config.max_bet_percentage!r}."
        )
    if not (config.unit_size > 0.0):
        raise ValueError(f"unit_size must be > 0, got {config.unit_size!r}.")


# ---------------------------------------------------------------------------
# Standard Kelly
# ---------------------------------------------------------------------------


def risk_level_for(stake_percentage: float) -> RiskLevel:
    """Bucket a stake percentage: ``<2`` low, ``2–5`` medium, ``≥5`` high."""
    if stake_percentage < LOW_RISK_CEILING_PCT:
        return "low"
    if stake_percentage < HIGH_RISK_FLOOR_PCT:
        return "medium"
    return "high"


def calculate_kelly_stake(config: KellyConfig) -> KellyResult:
    """Compute EV and a risk-capped Kelly stake for a single bet.

    The Kelly criterion maximises expected log-wealth.  For a bet paying
    ``b`` per unit (``b = decimal_odds − 1``) with win probability ``p`` and
    loss probability ``q = 1 − p``, the closed form (Kelly 1956) is::

        f*  =  (p · b − q) / b                                  (1)

    and the expected value per unit staked is::

        EV  =  p · b − q                                        (2)

    Equation (2) equals ``o · (p − 1/o)``, i.e. the edge from
    :func:`~betsmart.core.odds_math.calculate_edge` scaled by the decimal
    odds, so the two agree on sign for every valid input.

    Sizing then proceeds as:

    * EV ≤ 0, or EV% below ``min_ev_threshold`` → stake 0.
    * otherwise ``adjusted = max(0, f*) · kelly_fraction``, the stake
      percentage is ``min(adjusted · 100, max_bet_percentage)``.

    Args:
        config: Staking inputs.  See :class:`KellyConfig`.

    Returns:
        :class:`KellyResult`.  Values are unrounded; round for display only.

    Raises:
        InvalidProbability: ``true_probability`` not in ``(0, 1)``.
        InvalidOdds: ``bookmaker_odds ≤ 1``.
        InvalidBankroll: ``bankroll ≤ 0``.
        ValueError: Invalid ``kelly_fraction``, ``max_bet_percentage`` or
            ``unit_size``.

    Examples::

        calculate_kelly_stake(KellyConfig(0.55, 2.0, 1000)).full_kelly       → 0.10
        calculate_kelly_stake(KellyConfig(0.50, 2.0, 1000)).full_kelly       → 0.0
        calculate_kelly_stake(KellyConfig(0.55, 2.0, 1000, 0.25)).recommended_stake → 25.0
    """
    _validate_config(config)

    p = config.true_probability
    b = config.bookmaker_odds - 1.0
    q = 1.0 - p

    expected_value = p * b - q
    full_kelly = expected_value / b
    ev_percentage = expected_value * 100.0
    is_positive_ev = ev_percentage > 0.0

    if not is_positive_ev or ev_percentage < config.min_ev_threshold:
        return KellyResult(
            is_positive_ev=is_positive_ev,
            expected_value=expected_value,
            ev_percentage=ev_percentage,
            full_kelly=full_kelly,
            adjusted_kelly=0.0,
            recommended_stake=0.0,
            recommended_stake_percentage=0.0,
            recommended_stake_units=0.0,
            expected_growth=0.0,
            risk_level="low",
        )

    fractional = max(0.0, full_kelly) * config.kelly_fraction
    stake_pct = fractional * 100.0
    if config.max_bet_percentage is not None:
        stake_pct = min(stake_pct, config.max_bet_percentage)

    adjusted_kelly = stake_pct / 100.0
    stake = config.bankroll * stake_pct / 100.0

    # Expected log growth at the recommended fraction.  adjusted_kelly < 1
    # because full Kelly = p − q/b < p < 1 and kelly_fraction ≤ 1.
    expected_growth = p * math.log1p(b * adjusted_kelly) + q * math.log1p(-adjusted_kelly)

    return KellyResult(
        is_positive_ev=is_positive_ev,
        expected_value=expected_value,
        ev_percentage=ev_percentage,
        full_kelly=full_kelly,
        adjusted_kelly=adjusted_kelly,
        recommended_stake=stake,
        recommended_stake_percentage=stake_pct,
        recommended_stake_units=stake / config.unit_size,
        expected_growth=expected_growth,
        risk_level=risk_level_for(stake_pct),
    )


def calculate_expected_value(
    true_probability: float,
    bookmaker_odds: float,
) -> tuple[float, float, bool]:
    """Quick EV screen without sizing.

    Returns:
        ``(ev_per_unit, ev_percentage, is_positive_ev)``.

    Raises:
        InvalidProbability, InvalidOdds: Same contract as
            :func:`calculate_kelly_stake`.
    """
    _validate_probability_and_odds(true_probability, bookmaker_odds)
    ev = true_probability * (bookmaker_odds - 1.0) - (1.0 - true_probability)
    return ev, ev * 100.0, ev > 0.0


# ---------------------------------------------------------------------------
# Monte Carlo illustration
# ---------------------------------------------------------------------------


def simulate_kelly_betting(
    config: KellyConfig,
    n_bets: int = 1000,
    n_simulations: int = 100,
    *,
    seed: int | None = None,
) -> SimulationSummary:
    """Simulate repeated bets at the recommended Kelly fraction.

    Each path starts at ``config.bankroll`` and re-stakes
    ``adjusted_kelly`` of the *current* bankroll on every bet, which is how
    Kelly compounding works in practice.  A path is counted as ruined when
    it ends below :data:`RUIN_THRESHOLD` of the starting bankroll.

    Args:
        config: Staking inputs; the bet is assumed identical every time.
        n_bets: Bets per path.
        n_simulations: Number of independent paths.
        seed: RNG seed.  Pass an int for reproducible output.

    Raises:
        ValueError: If ``n_bets`` or ``n_simulations`` is not positive, or
            for any invalid ``config`` (see :func:`calculate_kelly_stake`).
    """
    if n_bets <= 0 or n_simulations <= 0:
        raise ValueError(
            f"n_bets and n_simulations must be positive, got {n_bets!r}, {n_simulations!r}."
        )

    kelly = calculate_kelly_stake(config)
    fraction = kelly.adjusted_kelly
    net_odds = config.bookmaker_odds - 1.0

    rng = np.random.default_rng(seed)
    wins = rng.random((n_simulations, n_bets)) < config.true_probability

    bankrolls = np.full(n_simulations, float(config.bankroll))
    for i in range(n_bets):
        stakes = bankrolls * fraction
        bankrolls = bankrolls + np.where(wins[:, i], stakes * net_odds, -stakes)

    return SimulationSummary(
        average_final_bankroll=float(np.mean(bankrolls)),
        median_final_bankroll=float(np.median(bankrolls)),
        best_case=float(np.max(bankrolls)),
        worst_case=float(np.min(bankrolls)),
        probability_of_profit=float(np.mean(bankrolls > config.bankroll)),
        probability_of_ruin=float(np.mean(bankrolls < config.bankroll * RUIN_THRESHOLD)),
    )
