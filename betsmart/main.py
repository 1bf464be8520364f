"""
FastAPI application for the BetSmart engine
REST API over consensus, staking, arbitrage and scenario detection
"""

from fastapi import FastAPI, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
import logging
import os

from betsmart import __version__
from betsmart.auth import verify_api_key, verify_admin_api_key
from betsmart.core.arbitrage import (
    calculate_arbitrage_percentage,
    calculate_arbitrage_profit,
    find_arbitrage_opportunity,
)
from betsmart.core.errors import BetSmartError
from betsmart.core.kelly import KellyConfig, calculate_kelly_stake
from betsmart.core.odds_math import (
    american_to_decimal,
    decimal_to_american,
    odds_to_implied_probability,
)
from betsmart.core.scenario_catalog import BETTING_SCENARIOS
from betsmart.models import get_db
from betsmart.schemas import (
    ArbitrageRequest,
    ArbitrageResponse,
    ConsensusRequest,
    ConsensusResponse,
    KellyRequest,
    KellyResponse,
    OddsConvertRequest,
    OddsConvertResponse,
    RecommendationRequest,
    RecommendationResponse,
    ScenarioDetectRequest,
    ScenarioDetectionOut,
    ScenarioOut,
)
from betsmart.services.consensus import synthesize_consensus
from betsmart.services.recommendation import (
    RecommendationService,
    StakingParams,
    record_recommendation,
)
from betsmart.services.scenarios import detect_scenarios
from betsmart.services.synthesis import client_from_env
from betsmart.services.weights import DatabaseWeightProvider, WeightCache

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def build_service() -> RecommendationService:
    """Service wired to the database weight store and env-configured synthesis."""
    return RecommendationService(
        weight_cache=WeightCache(DatabaseWeightProvider()),
        synthesis_client=client_from_env(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting BetSmart engine v%s", __version__)
    app.state.service = build_service()

    refresh_seconds = int(os.getenv("WEIGHTS_TTL_SECONDS", "900"))
    scheduler.add_job(
        _refresh_weights_job,
        IntervalTrigger(seconds=refresh_seconds),
        args=[app.state.service],
        id="refresh_weights",
        name="Refresh Algorithm Weights",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started: weight refresh every %ds", refresh_seconds)

    yield

    logger.info("Shutting down BetSmart engine")
    scheduler.shutdown()


app = FastAPI(
    title="BetSmart Engine",
    description="Prediction consensus and staking engine",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BetSmartError)
async def betsmart_error_handler(request: Request, exc: BetSmartError):
    """Contract violations from the engine become 400s"""
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def get_service(request: Request) -> RecommendationService:
    """The app-owned service; built lazily when lifespan did not run."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = build_service()
        request.app.state.service = service
    return service


# ============================================================================
# SCHEDULED JOB
# ============================================================================

async def _refresh_weights_job(service: RecommendationService):
    """Re-read algorithm weights so requests rarely pay for a cache miss."""
    try:
        service.weight_cache.invalidate()
        weights = await service.weight_cache.get_weights()
        logger.info("Weight refresh: %d algorithms", len(weights))
    except Exception as exc:
        logger.error("Weight refresh job failed: %s", exc, exc_info=True)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Service banner with version"""
    return {
        "app": "BetSmart Engine",
        "version": __version__,
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Database and weight-refresh scheduler status"""
    health = {"status": "healthy", "database": "connected", "scheduler": "running"}

    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Health check database error: %s", exc)
        health["status"] = "degraded"
        health["database"] = f"error: {exc}"

    if not scheduler.running:
        health["status"] = "degraded"
        health["scheduler"] = "stopped"

    return health


# ============================================================================
# AUTHENTICATED ENDPOINTS - PRICING
# ============================================================================

@app.post("/api/odds/convert", response_model=OddsConvertResponse)
async def convert_odds(
    payload: OddsConvertRequest,
    user: str = Depends(verify_api_key),
):
    """Convert between American and decimal odds"""
    if payload.american is not None:
        decimal_odds = american_to_decimal(payload.american)
    else:
        decimal_odds = payload.decimal_odds
    return OddsConvertResponse(
        decimal_odds=decimal_odds,
        american_odds=decimal_to_american(decimal_odds),
        implied_probability=odds_to_implied_probability(decimal_odds),
    )


@app.post("/api/kelly", response_model=KellyResponse)
async def kelly_stake(
    payload: KellyRequest,
    user: str = Depends(verify_api_key),
):
    """Kelly stake for a single bet"""
    result = calculate_kelly_stake(
        KellyConfig(
            true_probability=payload.true_probability,
            bookmaker_odds=payload.bookmaker_odds,
            bankroll=payload.bankroll,
            kelly_fraction=payload.kelly_fraction,
            max_bet_percentage=payload.max_bet_percentage,
            min_ev_threshold=payload.min_ev_threshold,
            unit_size=payload.unit_size,
        )
    )
    return KellyResponse.from_domain(result)


@app.post("/api/arbitrage", response_model=ArbitrageResponse)
async def arbitrage(
    payload: ArbitrageRequest,
    user: str = Depends(verify_api_key),
):
    """Arbitrage percentage, stake split and bookmaker legs across quotes"""
    quotes = [q.to_domain() for q in payload.quotes]
    arb_pct = calculate_arbitrage_percentage(quotes)
    profit = None
    if payload.total_stake is not None:
        profit = calculate_arbitrage_profit(payload.total_stake, arb_pct)
    return ArbitrageResponse.from_domain(arb_pct, find_arbitrage_opportunity(quotes), profit)


# ============================================================================
# AUTHENTICATED ENDPOINTS - CONSENSUS
# ============================================================================

@app.post("/api/consensus", response_model=ConsensusResponse)
async def consensus(
    payload: ConsensusRequest,
    user: str = Depends(verify_api_key),
    service: RecommendationService = Depends(get_service),
):
    """Weighted consensus; uses cached historical weights unless given"""
    if payload.weights is not None:
        weights = [w.to_domain() for w in payload.weights]
    else:
        weights = await service.weight_cache.get_weights()
    result = synthesize_consensus(
        [p.to_domain() for p in payload.predictions], weights, payload.match_id
    )
    return ConsensusResponse.from_domain(result)


@app.post("/api/recommendation", response_model=RecommendationResponse)
async def recommendation(
    payload: RecommendationRequest,
    user: str = Depends(verify_api_key),
    service: RecommendationService = Depends(get_service),
    db: Session = Depends(get_db),
):
    """Full pipeline for one match; the result is recorded for auditing"""
    rec = await service.build_recommendation(
        [p.to_domain() for p in payload.predictions],
        StakingParams(
            bankroll=payload.bankroll,
            kelly_fraction=payload.kelly_fraction,
            max_bet_percentage=payload.max_bet_percentage,
            min_ev_threshold=payload.min_ev_threshold,
            unit_size=payload.unit_size,
        ),
        quotes=[q.to_domain() for q in payload.quotes],
        context=payload.to_context(),
        attributes=payload.to_attributes(),
    )

    record_id = None
    try:
        record_id = record_recommendation(db, rec).id
    except Exception as exc:
        db.rollback()
        logger.error("Failed to record recommendation %s: %s", rec.match_id, exc, exc_info=True)

    return RecommendationResponse.from_domain(rec, record_id)


# ============================================================================
# AUTHENTICATED ENDPOINTS - SCENARIOS
# ============================================================================

@app.get("/api/scenarios", response_model=List[ScenarioOut])
async def list_scenarios(
    category: Optional[str] = Query(None),
    risk_level: Optional[str] = Query(None),
    user: str = Depends(verify_api_key),
):
    """Scenario catalog, optionally filtered"""
    scenarios = [
        s for s in BETTING_SCENARIOS
        if (category is None or s.category == category)
        and (risk_level is None or s.risk_level == risk_level)
    ]
    return [ScenarioOut.from_domain(s) for s in scenarios]


@app.post("/api/scenarios/detect", response_model=List[ScenarioDetectionOut])
async def detect(
    payload: ScenarioDetectRequest,
    user: str = Depends(verify_api_key),
):
    """Scenarios that apply to the given match attributes"""
    return [ScenarioDetectionOut.from_domain(d) for d in detect_scenarios(payload.to_domain())]


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================

@app.post("/admin/weights/refresh")
async def refresh_weights(
    user: str = Depends(verify_admin_api_key),
    service: RecommendationService = Depends(get_service),
):
    """Drop cached weights and re-read them now"""
    service.weight_cache.invalidate()
    weights = await service.weight_cache.get_weights()
    return {
        "message": "Weights refreshed",
        "weights": {w.algorithm_id: w.weight for w in weights},
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
