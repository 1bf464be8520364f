"""
Algorithm weight derivation, providers and TTL cache.

Consensus weights come from each algorithm's trailing accuracy:

    1. Reliability: ``min(1, n / 30)``; a short track record is trusted
       less.
    2. Shrinkage: the win rate is pulled toward 50% in proportion to
       ``1 - reliability``.
    3. Calibration bonus: algorithms whose stated confidence matches
       their realised win rate earn up to 30% extra weight.

Providers fetch the raw stats (database, static list); :class:`WeightCache`
sits in front of a provider, keeps the result for 15 minutes, shares one
in-flight fetch between concurrent callers and degrades to equal house
weights when the provider fails.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, Final, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from betsmart.core.errors import WeightFetchError
from betsmart.core.interfaces import AlgorithmWeight, WeightProvider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# House algorithms
# ---------------------------------------------------------------------------

ML_POWER_INDEX_ID: Final[str] = "f4ce9fdc-c41a-4a5c-9f18-5d732674c5b8"
VALUE_PICK_FINDER_ID: Final[str] = "3a7e2d9b-8c5f-4b1f-9e17-7b31a4dce6c2"
STATISTICAL_EDGE_ID: Final[str] = "85c48bbe-5b1a-4c1e-a0d5-e284e9e952f1"

HOUSE_ALGORITHMS: Final[Dict[str, str]] = {
    ML_POWER_INDEX_ID: "ML Power Index",
    VALUE_PICK_FINDER_ID: "Value Pick Finder",
    STATISTICAL_EDGE_ID: "Statistical Edge",
}

#: Predictions needed before a track record is fully trusted.
MIN_SAMPLES_FOR_FULL_WEIGHT: Final[int] = 30

DEFAULT_WEIGHTS_TTL_SECONDS: Final[float] = 15 * 60

#: After a failed fetch, callers get default weights without hitting the
#: provider for this long.
DEFAULT_FAILURE_BACKOFF_SECONDS: Final[float] = 30.0


@dataclass(frozen=True)
class AlgorithmStats:
    """Raw trailing-accuracy row for one algorithm."""

    algorithm_id: str
    win_rate: float = 50.0
    total_predictions: int = 0
    correct_predictions: int = 0
    avg_confidence: float = 50.0
    algorithm_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Weight derivation
# ---------------------------------------------------------------------------

def compute_weights(stats: Sequence[AlgorithmStats]) -> List[AlgorithmWeight]:
    """
    Turn raw accuracy stats into normalised consensus weights.

    ``raw = shrunk_win_rate / 100 * (0.7 + 0.3 * calibration_bonus)``,
    then every raw weight is divided by the total.  If the total is zero
    all algorithms get ``1 / n``.
    """
    if not stats:
        return []

    rows = []
    for s in stats:
        reliability = min(1.0, s.total_predictions / MIN_SAMPLES_FOR_FULL_WEIGHT)
        shrunk_win_rate = reliability * s.win_rate + (1 - reliability) * 50.0
        calibration_error = abs(s.win_rate - s.avg_confidence)
        calibration_bonus = max(0.0, 1 - calibration_error / 50.0)
        raw = (shrunk_win_rate / 100.0) * (0.7 + 0.3 * calibration_bonus)
        rows.append((s, max(0.0, raw), reliability))

    total = sum(raw for _, raw, _ in rows)
    weights = []
    for s, raw, reliability in rows:
        weights.append(
            AlgorithmWeight(
                algorithm_id=s.algorithm_id,
                algorithm_name=s.algorithm_name
                or HOUSE_ALGORITHMS.get(s.algorithm_id, "Unknown"),
                weight=raw / total if total > 0 else 1.0 / len(rows),
                win_rate=s.win_rate,
                total_predictions=s.total_predictions,
                avg_confidence=s.avg_confidence,
                reliability=reliability,
            )
        )
    return weights


def default_weights() -> List[AlgorithmWeight]:
    """Equal weights for the house algorithms; used when no history exists."""
    share = 1.0 / len(HOUSE_ALGORITHMS)
    return [
        AlgorithmWeight(algorithm_id=algo_id, algorithm_name=name, weight=share)
        for algo_id, name in HOUSE_ALGORITHMS.items()
    ]


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class StaticWeightProvider(WeightProvider):
    """Serves a fixed weight list.  For tests and offline runs."""

    provider_name = "static"

    def __init__(self, weights: Optional[Sequence[AlgorithmWeight]] = None):
        self._weights = list(weights) if weights is not None else default_weights()

    async def fetch_algorithm_weights(self) -> List[AlgorithmWeight]:
        return list(self._weights)


class DatabaseWeightProvider(WeightProvider):
    """
    Reads ``algorithm_stats`` and derives weights with :func:`compute_weights`.

    The query is blocking, so it runs in a worker thread.  An empty table
    yields :func:`default_weights`; a database error raises
    :class:`WeightFetchError`.
    """

    provider_name = "database"

    def __init__(self, session_factory: Optional[Callable] = None):
        if session_factory is None:
            from betsmart.models import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    def _load_stats(self) -> List[AlgorithmStats]:
        from betsmart.models import AlgorithmStat

        db = self._session_factory()
        try:
            rows = db.query(AlgorithmStat).all()
            return [
                AlgorithmStats(
                    algorithm_id=row.algorithm_id,
                    algorithm_name=row.algorithm_name,
                    win_rate=row.win_rate if row.win_rate is not None else 50.0,
                    total_predictions=row.total_predictions or 0,
                    correct_predictions=row.correct_predictions or 0,
                    avg_confidence=row.avg_confidence if row.avg_confidence is not None else 50.0,
                )
                for row in rows
            ]
        finally:
            db.close()

    async def fetch_algorithm_weights(self) -> List[AlgorithmWeight]:
        try:
            stats = await asyncio.to_thread(self._load_stats)
        except SQLAlchemyError as exc:
            raise WeightFetchError(f"algorithm_stats query failed: {exc}") from exc

        if not stats:
            return default_weights()
        return compute_weights(stats)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class WeightCache:
    """
    TTL cache in front of a :class:`WeightProvider`.

    One instance is owned by each service; there is no module-level cache.
    On a miss, concurrent callers wait on a single fetch.  A failed fetch
    is logged and answered with :func:`default_weights`.  The fallback is
    never stored as the cached weights, but for ``failure_backoff_seconds``
    after a failure every caller, including those already queued on the
    lock, gets the defaults without another provider call.  The first call
    after the window retries the provider.
    """

    def __init__(
        self,
        provider: WeightProvider,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        failure_backoff_seconds: Optional[float] = None,
    ):
        self.provider = provider
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else float(
            os.getenv("WEIGHTS_TTL_SECONDS", str(DEFAULT_WEIGHTS_TTL_SECONDS))
        )
        self.failure_backoff_seconds = (
            failure_backoff_seconds if failure_backoff_seconds is not None else float(
                os.getenv("WEIGHTS_FAILURE_BACKOFF_SECONDS", str(DEFAULT_FAILURE_BACKOFF_SECONDS))
            )
        )
        self._clock = clock
        self._lock = asyncio.Lock()
        self._weights: Optional[List[AlgorithmWeight]] = None
        self._fetched_at: float = 0.0
        self._failed_at: Optional[float] = None

    @property
    def is_fresh(self) -> bool:
        return (
            self._weights is not None
            and self._clock() - self._fetched_at < self.ttl_seconds
        )

    def invalidate(self) -> None:
        """Drop the cached weights; the next call fetches again."""
        self._weights = None
        self._failed_at = None

    @property
    def in_failure_backoff(self) -> bool:
        return (
            self._failed_at is not None
            and self._clock() - self._failed_at < self.failure_backoff_seconds
        )

    def _fallback(self) -> List[AlgorithmWeight]:
        self._failed_at = self._clock()
        return default_weights()

    async def get_weights(self) -> List[AlgorithmWeight]:
        if self.is_fresh:
            return list(self._weights)

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if self.is_fresh:
                return list(self._weights)

            if self.in_failure_backoff:
                return default_weights()

            try:
                weights = await self.provider.fetch_algorithm_weights()
            except WeightFetchError as exc:
                logger.warning(
                    "Weight provider %s failed, using default weights: %s",
                    self.provider.provider_name, exc,
                )
                return self._fallback()
            except Exception as exc:
                logger.error(
                    "Unexpected error from weight provider %s, using default weights: %s",
                    self.provider.provider_name, exc, exc_info=True,
                )
                return self._fallback()

            if not weights:
                logger.info(
                    "Weight provider %s returned no weights, using defaults",
                    self.provider.provider_name,
                )
                weights = default_weights()

            self._weights = list(weights)
            self._fetched_at = self._clock()
            self._failed_at = None
            logger.debug(
                "Cached %d algorithm weights from %s",
                len(weights), self.provider.provider_name,
            )
            return list(weights)
