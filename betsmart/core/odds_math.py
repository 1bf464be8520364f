"""Odds conversion, fair pricing and edge: the math every other module prices with.

Every function here is **pure**: no I/O, no logging, no side effects.
Kelly, arbitrage and the scenario classifier all convert through here.

The pillars exposed are:

1. **Odds conversion** — American ↔ decimal ↔ implied probability.
2. **Fair pricing** — converting a model probability into no-vig odds.
3. **Edge** — model probability minus market-implied probability.

Design decisions
----------------
* American odds are accepted as ``int`` or ``float`` because feeds disagree
  on the type.  Values strictly between -100 and +100 are not representable
  American odds and raise :class:`~betsmart.core.errors.InvalidOddsFormat`
  rather than being coerced.
* Decimal odds are the internal currency of the engine.  Everything past
  this module (Kelly, arbitrage, consensus) works in decimal odds only.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

from typing import Final

from betsmart.core.errors import InvalidOddsFormat, InvalidProbability

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: American-odds magnitude floor.  |odds| < 100 is a data error.
_MIN_ODDS_MAGNITUDE: Final[int] = 100

#: Decimal odds at or below this value carry no payout and cannot be priced.
_MIN_DECIMAL_ODDS: Final[float] = 1.0


# ---------------------------------------------------------------------------
# Odds conversion
# ---------------------------------------------------------------------------


def american_to_decimal(american: int | float) -> float:
    """Convert an American price to decimal odds.

    The decimal figure is the gross return on a 1-unit stake, stake
    included::

        american_to_decimal(-110) → 1.9091
        american_to_decimal(+150) → 2.5000
        american_to_decimal(+100) → 2.0000   (same as -100)

    Args:
        american: Signed American price.  Favourites are negative, underdogs
            positive.

    Returns:
        Decimal odds, above 2.0 for underdogs and in ``(1.0, 2.0]``
        otherwise.

    Raises:
        InvalidOddsFormat: If ``-100 < american < 100``.
    """
    if -_MIN_ODDS_MAGNITUDE < american < _MIN_ODDS_MAGNITUDE:
        raise InvalidOddsFormat(
            f"American odds {american!r} are inside (-100, +100); "
            "no such price exists"
        )
    if american > 0:
        return 1.0 + american / 100.0
    return 1.0 + 100.0 / -american


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to the nearest American integer.

    Inverse of :func:`american_to_decimal`.  Use the result for display,
    logging and scenario matching, not for further arithmetic.

    Raises:
        InvalidOddsFormat: If ``decimal_odds ≤ 1.0``.
    """
    if decimal_odds <= _MIN_DECIMAL_ODDS:
        raise InvalidOddsFormat(
            f"Decimal odds {decimal_odds!r} must be > 1.0 to convert to American."
        )
    if decimal_odds >= 2.0:
        return round((decimal_odds - 1.0) * 100)
    # Favourite: decimal < 2.0 → negative American
    return round(-100.0 / (decimal_odds - 1.0))


def odds_to_implied_probability(decimal_odds: float) -> float:
    """Market-implied probability from decimal odds (vig-inclusive).

    Examples::

        odds_to_implied_probability(2.0)   → 0.5000
        odds_to_implied_probability(1.909) → 0.5238

    Raises:
        InvalidOddsFormat: If ``decimal_odds ≤ 1.0``.
    """
    if decimal_odds <= _MIN_DECIMAL_ODDS:
        raise InvalidOddsFormat(
            f"Decimal odds {decimal_odds!r} must be > 1.0 (probability < 1)."
        )
    return 1.0 / decimal_odds


def implied_prob(american: int | float) -> float:
    """Raw implied probability from American odds (vig-inclusive)."""
    return odds_to_implied_probability(american_to_decimal(american))


# ---------------------------------------------------------------------------
# Fair pricing and edge
# ---------------------------------------------------------------------------


def probability_to_fair_odds(probability: float) -> float:
    """No-vig decimal odds for a probability.

    Raises:
        InvalidProbability: If ``probability`` is not in ``(0, 1)``.
    """
    if not (0.0 < probability < 1.0):
        raise InvalidProbability(
            f"probability must be in (0, 1), got {probability!r}."
        )
    return 1.0 / probability


def calculate_edge(true_probability: float, bookmaker_decimal_odds: float) -> float:
    """Model probability minus the bookmaker's implied probability.

    Positive means the bettor has an edge.  ``calculate_edge(p, o) > 0``
    holds exactly when Kelly EV is positive, since
    ``EV = p·o − 1 = o · (p − 1/o)`` and ``o > 1``.

    Examples::

        calculate_edge(0.55, 2.0)   →  0.05
        calculate_edge(0.50, 1.909) → -0.0238
    """
    return true_probability - odds_to_implied_probability(bookmaker_decimal_odds)
