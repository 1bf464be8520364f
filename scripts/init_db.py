#!/usr/bin/env python3
"""
Database initialization script
Creates the BetSmart tables and seeds the house algorithms
"""

import sys
import os

# Allow running from a checkout without installing the package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

from betsmart.models import Base, engine, SessionLocal, AlgorithmStat
from betsmart.services.weights import HOUSE_ALGORITHMS
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(drop_existing: bool = False):
    """
    Create all tables

    Args:
        drop_existing: If True, drops all tables first (data loss!)
    """
    logger.info("Initializing BetSmart database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Drop every BetSmart table and its rows? Type yes to continue: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    logger.info("Tables: %s", ", ".join(inspector.get_table_names()))
    return True


def seed_algorithms():
    """Insert a neutral algorithm_stats row for each house algorithm that is missing one"""
    logger.info("Seeding house algorithms...")

    db = SessionLocal()
    try:
        existing = {row.algorithm_id for row in db.query(AlgorithmStat.algorithm_id).all()}
        rows = [
            AlgorithmStat(
                algorithm_id=algo_id,
                algorithm_name=name,
                win_rate=50.0,
                total_predictions=0,
                correct_predictions=0,
                avg_confidence=50.0,
            )
            for algo_id, name in HOUSE_ALGORITHMS.items()
            if algo_id not in existing
        ]
        db.add_all(rows)
        db.commit()
        logger.info("Seeded %d algorithms (%d already present)", len(rows), len(existing))

    except Exception as e:
        logger.error("Error seeding algorithms: %s", e)
        db.rollback()

    finally:
        db.close()


def check_connection() -> bool:
    """Run SELECT 1 against DATABASE_URL"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


def main(argv=None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Create and seed the BetSmart database")
    parser.add_argument("--drop", action="store_true", help="Drop every BetSmart table first (destroys data)")
    parser.add_argument("--seed", action="store_true", help="Insert neutral stats for the house algorithms")
    parser.add_argument("--check", action="store_true", help="Verify DATABASE_URL is reachable and exit")
    args = parser.parse_args(argv)

    if not check_connection():
        logger.error("DATABASE_URL unreachable; nothing created")
        return 1
    if args.check:
        return 0

    if init_database(drop_existing=args.drop) and args.seed:
        seed_algorithms()
    logger.info("BetSmart database ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
