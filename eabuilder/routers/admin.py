"""
Admin Router

Read-only views for the admin dashboard.
"""

from typing import List

from fastapi import APIRouter, Depends

from ..dependencies.services import get_ranking_engine
from ..services.cache import get_model_cache
from ..services.ranking import RankingEngine
from .models import EAModelResponse

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/top-models", response_model=List[EAModelResponse])
async def get_top_models(engine: RankingEngine = Depends(get_ranking_engine)):
    """Models currently flagged as top, best score first."""
    return [m.to_dict() for m in await engine.list_top()]


@router.get("/cache-stats")
async def get_cache_stats() -> dict:
    """Model list cache statistics."""
    cache = get_model_cache()
    return {
        "backend": cache.backend,
        "enabled": cache.enabled,
        "entries": await cache.size(),
        **cache.stats.to_dict(),
    }
