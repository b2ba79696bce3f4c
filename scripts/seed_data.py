#!/usr/bin/env python3
# =============================================================================
# EA Builder Database Seeding Script
# Creates the schema and populates it with demo EA models for development
# =============================================================================

import asyncio
import logging
import random
import sys

from eabuilder.database.connection import close_database, get_db_context, init_database
from eabuilder.services.backtesting import run_backtest
from eabuilder.services.marketplace import MarketplaceService
from eabuilder.services.model_repository import ModelRepository
from eabuilder.services.ranking import RankingEngine

# =============================================================================
# CONFIGURATION
# =============================================================================
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# =============================================================================
# SEED DATA
# =============================================================================
EA_MODELS_DATA = [
    {"user_id": 1, "name": "SMA Crossover", "configuration": {"indicator": "SMA", "fast": 10, "slow": 50}},
    {"user_id": 1, "name": "RSI Reversal", "configuration": {"indicator": "RSI", "period": 14, "spread": 0.8}},
    {"user_id": 2, "name": "MACD Trend", "configuration": {"indicator": "MACD", "slippage": 0.5}},
    {"user_id": 2, "name": "Bollinger Squeeze", "configuration": {"indicator": "BB", "period": 20}},
    {"user_id": 3, "name": "Breakout Hunter", "configuration": {"indicator": "ATR", "commission": 0.3}},
]

# Models submitted and approved for the marketplace, by name
MARKETPLACE_LISTINGS = {"SMA Crossover": 49.99, "MACD Trend": 120}


async def seed_database(seed: int = 7) -> None:
    """Create tables, insert demo models with backtests, rank and list a few."""
    rng = random.Random(seed)
    await init_database()

    async with get_db_context() as db:
        repository = ModelRepository(db)
        marketplace = MarketplaceService(db)

        for data in EA_MODELS_DATA:
            model = await repository.create(data["user_id"], data["name"], data["configuration"])
            await repository.attach_backtest_result(model.id, run_backtest(model.configuration, rng=rng))
            logger.info(f"Seeded EA model {model.id}: {model.name}")

            price = MARKETPLACE_LISTINGS.get(model.name)
            if price is not None:
                await marketplace.share(model.id, price)
                await marketplace.approve(model.id)

        top = await RankingEngine(db).recompute()
        logger.info(f"Top models: {[m.name for m in top]}")

    await close_database()


if __name__ == "__main__":
    try:
        asyncio.run(seed_database())
    except KeyboardInterrupt:
        logger.info("Seeding interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        sys.exit(1)
