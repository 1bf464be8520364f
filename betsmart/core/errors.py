"""Typed errors raised by the consensus and staking engine.

Validation errors subclass :class:`ValueError` so callers that only guard
against ``ValueError`` keep working.  They indicate a calling-code defect
and are never retried.

Soft failures (:class:`SynthesisError`, :class:`WeightFetchError`) come from
external collaborators.  They are caught in the service layer and degraded
to a documented fallback; they never reach the caller of the top-level
pipeline.
"""

from __future__ import annotations


class BetSmartError(Exception):
    """Root of every error raised by this package."""


# ---------------------------------------------------------------------------
# Contract violations (hard failures)
# ---------------------------------------------------------------------------


class InvalidProbability(BetSmartError, ValueError):
    """A probability input fell outside the open interval ``(0, 1)``."""


class InvalidOdds(BetSmartError, ValueError):
    """Decimal odds were not strictly greater than 1.0."""


class InvalidOddsFormat(InvalidOdds):
    """Odds could not be interpreted in the stated format.

    Raised for American odds strictly between -100 and +100, and for decimal
    odds ``≤ 1`` passed to a probability conversion.
    """


class InvalidBankroll(BetSmartError, ValueError):
    """Bankroll was zero or negative."""


class EmptyPredictionSet(BetSmartError, ValueError):
    """Consensus was requested with no predictions to reconcile."""


# ---------------------------------------------------------------------------
# Soft external failures
# ---------------------------------------------------------------------------


class SynthesisError(BetSmartError):
    """The remote qualitative synthesis could not be obtained or parsed."""


class WeightFetchError(BetSmartError):
    """The algorithm-weight store could not be read."""
