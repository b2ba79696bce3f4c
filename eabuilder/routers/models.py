"""
EA Models Router

Handles EA model storage, backtest results, ranking and code versions.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ..dependencies.services import (
    get_marketplace_service,
    get_model_repository,
    get_ranking_engine,
    get_version_store,
)
from ..services.backtesting import run_and_attach
from ..services.marketplace import MarketplaceService
from ..services.model_repository import ModelRepository
from ..services.ranking import RankingEngine
from ..services.version_store import VersionStore

router = APIRouter(prefix="/models", tags=["EA Models"])


# Request/Response Models
class CreateModelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_id: int = Field(..., alias="ownerId")
    name: str
    configuration: Dict[str, Any]


class UpdateModelRequest(BaseModel):
    name: str
    configuration: Dict[str, Any]


class BacktestUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profit: Optional[float] = None
    drawdown: Optional[float] = None
    win_ratio: Optional[float] = Field(default=None, alias="winRatio")

    def metrics(self) -> Dict[str, Optional[float]]:
        return {"profit": self.profit, "drawdown": self.drawdown, "winRatio": self.win_ratio}


class SaveVersionRequest(BaseModel):
    code: str


class RollbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version_id: int = Field(..., alias="versionId")


class ShareRequest(BaseModel):
    price: float


class EAModelResponse(BaseModel):
    id: int
    user_id: int
    name: str
    configuration: Dict[str, Any]
    code: Optional[str]
    backtest_results: Optional[Dict[str, Any]]
    is_top: bool
    approval_status: str
    price: Optional[float]
    created_at: datetime
    updated_at: datetime


class VersionResponse(BaseModel):
    id: int
    ea_model_id: int
    code: str
    created_at: datetime


class MessageResponse(BaseModel):
    message: str
    id: int


class BacktestRunResponse(BaseModel):
    backtest: Dict[str, Any]
    model: EAModelResponse


# ============================================================================
# Model Repository
# ============================================================================

@router.post("", response_model=EAModelResponse, status_code=status.HTTP_201_CREATED)
async def create_model(
    request: CreateModelRequest,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Create a new EA model."""
    model = await repository.create(request.owner_id, request.name, request.configuration)
    return model.to_dict()


@router.post("/rank", response_model=List[EAModelResponse])
async def rank_models(engine: RankingEngine = Depends(get_ranking_engine)):
    """Recompute the top-model flags and return the flagged models, best first."""
    top_models = await engine.recompute()
    return [m.to_dict() for m in top_models]


@router.get("/{owner_id}", response_model=List[EAModelResponse])
async def list_models(
    owner_id: int,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Get all EA models of a user."""
    return await repository.list_for_owner(owner_id)


@router.put("/{model_id}", response_model=EAModelResponse)
async def update_model(
    model_id: int,
    request: UpdateModelRequest,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Replace the name and configuration of an EA model."""
    model = await repository.update(model_id, request.name, request.configuration)
    return model.to_dict()


@router.delete("/{model_id}", response_model=MessageResponse)
async def delete_model(
    model_id: int,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Delete an EA model and its version history."""
    await repository.delete(model_id)
    return {"message": "EA model deleted", "id": model_id}


@router.post("/{model_id}/backtest-update", response_model=EAModelResponse)
async def update_backtest_result(
    model_id: int,
    request: BacktestUpdateRequest,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Record backtest metrics on an EA model."""
    model = await repository.attach_backtest_result(model_id, request.metrics())
    return model.to_dict()


@router.post("/{model_id}/backtest", response_model=BacktestRunResponse)
async def run_model_backtest(
    model_id: int,
    repository: ModelRepository = Depends(get_model_repository)
):
    """Run a simulated backtest on a stored model and record the result."""
    return await run_and_attach(repository, model_id)


# ============================================================================
# Versions
# ============================================================================

@router.post("/{model_id}/version", response_model=VersionResponse, status_code=status.HTTP_201_CREATED)
async def save_version(
    model_id: int,
    request: SaveVersionRequest,
    versions: VersionStore = Depends(get_version_store)
):
    """Save the current code of an EA model as a new version."""
    version = await versions.save_version(model_id, request.code)
    return version.to_dict()


@router.get("/{model_id}/versions", response_model=List[VersionResponse])
async def list_versions(
    model_id: int,
    versions: VersionStore = Depends(get_version_store)
):
    """List the versions of an EA model, newest first."""
    return [v.to_dict() for v in await versions.list_versions(model_id)]


@router.get("/{model_id}/versions/{version_id}", response_model=VersionResponse)
async def get_version(
    model_id: int,
    version_id: int,
    versions: VersionStore = Depends(get_version_store)
):
    """Get a single version of an EA model."""
    version = await versions.get_version(model_id, version_id)
    return version.to_dict()


@router.post("/{model_id}/rollback", response_model=EAModelResponse)
async def rollback_model(
    model_id: int,
    request: RollbackRequest,
    versions: VersionStore = Depends(get_version_store)
):
    """Restore the code of an EA model from one of its versions."""
    model = await versions.rollback(model_id, request.version_id)
    return model.to_dict()


# ============================================================================
# Marketplace submission
# ============================================================================

@router.post("/{model_id}/share", response_model=EAModelResponse)
async def share_model(
    model_id: int,
    request: ShareRequest,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Submit an EA model to the marketplace for approval."""
    model = await marketplace.share(model_id, request.price)
    return model.to_dict()


@router.post("/{model_id}/approve", response_model=EAModelResponse)
async def approve_model(
    model_id: int,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Approve a pending EA model for sale."""
    model = await marketplace.approve(model_id)
    return model.to_dict()
