"""Cross-book arbitrage detection and stake splitting.

All functions here are **pure**.  Quotes are decimal odds, one
:class:`~betsmart.core.interfaces.OddsQuote` per bookmaker.

Background
----------
For a market with outcomes ``i`` and best available decimal odds ``o_i``
(the maximum across books, regardless of source), the *arbitrage
percentage* is::

    A  =  100 · Σ 1 / o_i                                       (1)

``A < 100`` means a guaranteed profit exists: staking ``s_i ∝ 1 / o_i`` on
every outcome returns the same payout ``S · 100 / A`` whichever outcome
occurs, and that payout exceeds the total stake ``S``.  ``A ≥ 100`` means
the books' combined margin swallows any such split.

The neutral sentinel 100 is returned for empty input and for missing or
invalid best prices, so callers never see a misleadingly low percentage
produced by a zero or negative quote.

Run tests with::

    pytest tests/test_arbitrage.py -v
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Sequence

from betsmart.core.interfaces import OddsQuote

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Returned when no opportunity can be computed.
NEUTRAL_ARBITRAGE_PCT: Final[float] = 100.0

#: Opportunities up to this percentage are surfaced as "near-arbitrage".
NEAR_ARBITRAGE_THRESHOLD: Final[float] = 102.0

#: Guaranteed profit above which an opportunity is flagged premium.
PREMIUM_PROFIT_PCT: Final[float] = 1.5


# ---------------------------------------------------------------------------
# Data transfer objects
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class StakeSplit:
    """Percent of total stake per outcome.  Shares sum to 100."""

    home: float
    away: float
    draw: float | None = None

    def as_dict(self) -> dict[str, float]:
        shares = {"home": self.home, "away": self.away}
        if self.draw is not None:
            shares["draw"] = self.draw
        return shares


@dataclass(slots=True, frozen=True)
class ArbitrageLeg:
    """One bet of an arbitrage: which book, which outcome, at what price."""

    sportsbook_id: str
    outcome: str
    odds: float
    stake_percentage: float


@dataclass(slots=True, frozen=True)
class ArbitrageOpportunity:
    """A (near-)arbitrage across bookmakers for one market."""

    arbitrage_percentage: float
    stake_split: StakeSplit
    guaranteed_profit_percentage: float
    legs: tuple[ArbitrageLeg, ...]
    is_premium: bool

    @property
    def is_guaranteed(self) -> bool:
        return self.arbitrage_percentage < 100.0


# ---------------------------------------------------------------------------
# Core calculations
# ---------------------------------------------------------------------------


def _has_draw(quotes: Sequence[OddsQuote]) -> bool:
    return any(q.draw is not None for q in quotes)


def best_odds(quotes: Sequence[OddsQuote]) -> OddsQuote:
    """Best (maximum) price per outcome across all quotes.

    The returned quote's ``sportsbook_id`` is ``"best"`` because the
    prices may come from different books.  ``draw`` is ``None`` unless at
    least one quote supplies it.

    Raises:
        ValueError: If ``quotes`` is empty.
    """
    if not quotes:
        raise ValueError("best_odds requires at least one quote.")
    draw = None
    if _has_draw(quotes):
        draw = max(q.draw for q in quotes if q.draw is not None)
    return OddsQuote(
        sportsbook_id="best",
        home_win=max(q.home_win for q in quotes),
        away_win=max(q.away_win for q in quotes),
        draw=draw,
    )


def calculate_arbitrage_percentage(quotes: Sequence[OddsQuote]) -> float:
    """Sum of reciprocal best odds across outcomes, times 100.

    Examples::

        calculate_arbitrage_percentage([
            OddsQuote("a", 2.1, 1.9), OddsQuote("b", 1.95, 2.1),
        ])                                                    → 95.24
        calculate_arbitrage_percentage([OddsQuote("a", 1.91, 1.91)]) → 104.71
        calculate_arbitrage_percentage([])                    → 100.0

    Returns:
        The arbitrage percentage, or :data:`NEUTRAL_ARBITRAGE_PCT` when the
        input is empty or any required best price is ``≤ 0``.
    """
    if not quotes:
        return NEUTRAL_ARBITRAGE_PCT

    best = best_odds(quotes)
    prices = [best.home_win, best.away_win]
    if best.draw is not None:
        prices.append(best.draw)

    if any(price <= 0.0 for price in prices):
        return NEUTRAL_ARBITRAGE_PCT

    return sum(1.0 / price for price in prices) * 100.0


def calculate_stake_percentages(best: OddsQuote, has_draw: bool) -> StakeSplit:
    """Stake share per outcome that equalises payout.

    Each share is ``(1 / o_i) / Σ (1 / o_j) · 100``.  The payout for
    outcome ``i`` is ``share_i · o_i``, which is the same constant
    ``100 / Σ (1 / o_j)`` for every ``i``.

    Args:
        best: Best price per outcome (see :func:`best_odds`).
        has_draw: Whether the draw outcome is part of the market.  Ignored
            when ``best.draw`` is ``None``.

    Raises:
        ValueError: If any used price is ``≤ 0``.
    """
    include_draw = has_draw and best.draw is not None
    prices = {"home": best.home_win, "away": best.away_win}
    if include_draw:
        prices["draw"] = best.draw
    if any(price <= 0.0 for price in prices.values()):
        raise ValueError(f"All odds must be positive to split stakes, got {prices!r}.")

    inverse = {outcome: 1.0 / price for outcome, price in prices.items()}
    total = sum(inverse.values())
    shares = {outcome: inv / total * 100.0 for outcome, inv in inverse.items()}

    return StakeSplit(
        home=shares["home"],
        away=shares["away"],
        draw=shares.get("draw"),
    )


def calculate_arbitrage_profit(total_stake: float, arbitrage_percentage: float) -> float:
    """Guaranteed profit in currency for a given total stake.

    Returns ``(100 − A) / 100 · total_stake`` when ``A < 100``, else 0.
    """
    if arbitrage_percentage >= 100.0:
        return 0.0
    return (100.0 - arbitrage_percentage) / 100.0 * total_stake


# ---------------------------------------------------------------------------
# Opportunity builder
# ---------------------------------------------------------------------------


def find_arbitrage_opportunity(
    quotes: Sequence[OddsQuote],
    *,
    near_arbitrage_threshold: float = NEAR_ARBITRAGE_THRESHOLD,
) -> ArbitrageOpportunity | None:
    """Build an opportunity with per-outcome bookmaker legs.

    Only quotes with positive home and away prices are considered; at
    least two bookmakers are needed, since a single book never arbs
    against itself.

    Args:
        quotes: One quote per bookmaker.
        near_arbitrage_threshold: Largest arbitrage percentage still
            reported.  Values between 100 and this threshold are
            near-arbitrage: not risk-free, but close to a fair market.

    Returns:
        :class:`ArbitrageOpportunity`, or ``None`` when there are fewer
        than two usable quotes, a required best price is ``≤ 0`` (a draw
        market where no book prices the draw), or the market is above the
        threshold.
    """
    usable = [q for q in quotes if q.home_win > 0.0 and q.away_win > 0.0]
    if len(usable) < 2:
        return None

    has_draw = _has_draw(usable)
    best = best_odds(usable)
    if best.draw is not None and best.draw <= 0.0:
        return None

    arbitrage_pct = calculate_arbitrage_percentage(usable)
    if arbitrage_pct > near_arbitrage_threshold:
        return None

    split = calculate_stake_percentages(best, has_draw)

    # Ties go to the first quote offering the best price.
    home_book = max(usable, key=lambda q: q.home_win)
    away_book = max(usable, key=lambda q: q.away_win)
    legs = [
        ArbitrageLeg(home_book.sportsbook_id, "home", home_book.home_win, split.home),
        ArbitrageLeg(away_book.sportsbook_id, "away", away_book.away_win, split.away),
    ]
    if split.draw is not None:
        draw_book = max(
            (q for q in usable if q.draw is not None), key=lambda q: q.draw
        )
        legs.append(ArbitrageLeg(draw_book.sportsbook_id, "draw", draw_book.draw, split.draw))

    profit_pct = max(0.0, 100.0 - arbitrage_pct)
    return ArbitrageOpportunity(
        arbitrage_percentage=arbitrage_pct,
        stake_split=split,
        guaranteed_profit_percentage=profit_pct,
        legs=tuple(legs),
        is_premium=profit_pct > PREMIUM_PROFIT_PCT,
    )
