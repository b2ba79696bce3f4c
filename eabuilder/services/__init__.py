"""
EA Builder Services

Domain logic behind the API routers.
"""

from .backtesting import run_and_attach, run_backtest
from .cache import (
    MemoryModelListCache,
    ModelListCache,
    RedisModelListCache,
    close_model_cache,
    get_model_cache,
    reset_model_cache,
)
from .marketplace import MarketplaceService, PurchaseResult, compute_split
from .model_repository import ModelRepository
from .ranking import RankingEngine, score, select_top
from .version_store import VersionStore

__all__ = [
    "run_and_attach",
    "run_backtest",
    "MemoryModelListCache",
    "ModelListCache",
    "RedisModelListCache",
    "close_model_cache",
    "get_model_cache",
    "reset_model_cache",
    "MarketplaceService",
    "PurchaseResult",
    "compute_split",
    "ModelRepository",
    "RankingEngine",
    "score",
    "select_top",
    "VersionStore",
]
