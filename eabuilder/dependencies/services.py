"""
EA Builder Service Dependencies
Per-request service construction for FastAPI endpoints.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.settings import settings
from ..database.connection import get_db_session
from ..services.cache import get_model_cache
from ..services.marketplace import MarketplaceService
from ..services.model_repository import ModelRepository
from ..services.ranking import RankingEngine
from ..services.version_store import VersionStore


def get_model_repository(db: AsyncSession = Depends(get_db_session)) -> ModelRepository:
    return ModelRepository(db, cache=get_model_cache())


def get_version_store(db: AsyncSession = Depends(get_db_session)) -> VersionStore:
    return VersionStore(db, cache=get_model_cache())


def get_ranking_engine(db: AsyncSession = Depends(get_db_session)) -> RankingEngine:
    return RankingEngine(db, cache=get_model_cache(), top_n=settings.ranking.top_n)


def get_marketplace_service(db: AsyncSession = Depends(get_db_session)) -> MarketplaceService:
    return MarketplaceService(
        db,
        cache=get_model_cache(),
        commission_rate=settings.marketplace.commission_rate,
        exclusive_sales=settings.marketplace.exclusive_sales,
        order_id_prefix=settings.marketplace.order_id_prefix,
    )
