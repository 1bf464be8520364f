"""
Database models for the BetSmart engine
SQLAlchemy ORM; SQLite by default, PostgreSQL in production
"""

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Float,
    DateTime,
    JSON,
    Text,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone
import os
from dotenv import load_dotenv

# Load .env before reading DATABASE_URL
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./betsmart.db")

# Weight lookups run in worker threads, so SQLite connections must be
# shareable across threads.
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class AlgorithmStat(Base):
    """Trailing accuracy of one prediction algorithm"""

    __tablename__ = "algorithm_stats"

    id = Column(Integer, primary_key=True, index=True)
    algorithm_id = Column(String, unique=True, nullable=False, index=True)
    algorithm_name = Column(String, nullable=False)

    # Performance
    win_rate = Column(Float)  # 0-100
    total_predictions = Column(Integer, default=0)
    correct_predictions = Column(Integer, default=0)
    avg_confidence = Column(Float)  # 0-100

    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class ConsensusRecord(Base):
    """Audit trail of every recommendation produced by the API"""

    __tablename__ = "consensus_records"

    id = Column(Integer, primary_key=True, index=True)
    match_id = Column(String, nullable=False, index=True)

    # Consensus
    recommended = Column(String, nullable=False)  # home, away, draw
    confidence = Column(Float, nullable=False)
    true_probability = Column(Float)
    agreement = Column(Float)
    agreement_level = Column(String)
    projected_home = Column(Integer)
    projected_away = Column(Integer)
    weights = Column(JSON)  # {algorithm_id: normalised weight}

    # Ensemble / staking
    final_confidence = Column(Float)
    recommended_stake = Column(Float)
    recommended_stake_units = Column(Float)
    arbitrage_percentage = Column(Float)
    scenario_ids = Column(JSON)

    # Remote synthesis (null when unavailable)
    synthesis_reasoning = Column(Text)
    synthesis_error = Column(Text)

    created_at = Column(DateTime, default=_utcnow, index=True)
