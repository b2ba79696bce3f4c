"""
Marketplace Router

Handles the marketplace listing, purchases and settlement history.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..dependencies.services import get_marketplace_service
from ..services.marketplace import MarketplaceService
from .models import EAModelResponse

router = APIRouter(prefix="/marketplace", tags=["Marketplace"])


# Request/Response Models
class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: int = Field(..., alias="modelId")
    buyer_id: int = Field(..., alias="buyerId")


class PaymentOrderResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: int
    user_id: int
    order_id: str
    amount: float
    status: str
    ea_model_id: Optional[int]
    created_at: datetime


class LedgerEntryResponse(BaseModel):
    id: int
    payment_order_id: int
    ea_model_id: int
    user_id: Optional[int]
    entry_type: str
    amount: float
    created_at: datetime


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    order: PaymentOrderResponse
    commission: float
    developer_share: float = Field(..., alias="developerShare")
    ledger: List[LedgerEntryResponse]


@router.get("", response_model=List[EAModelResponse])
async def list_marketplace(marketplace: MarketplaceService = Depends(get_marketplace_service)):
    """List approved EA models that have a price."""
    return [m.to_dict() for m in await marketplace.list_marketplace()]


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase_model(
    request: PurchaseRequest,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Buy an approved EA model."""
    result = await marketplace.purchase(request.model_id, request.buyer_id)
    return result.to_dict()


@router.get("/orders/{user_id}", response_model=List[PaymentOrderResponse])
async def list_orders(
    user_id: int,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Payment orders placed by a user."""
    return [o.to_dict() for o in await marketplace.list_orders(user_id)]


@router.get("/ledger/{user_id}", response_model=List[LedgerEntryResponse])
async def list_ledger(
    user_id: int,
    marketplace: MarketplaceService = Depends(get_marketplace_service)
):
    """Settlement ledger rows of a user, debits negative."""
    return [e.to_dict() for e in await marketplace.list_ledger(user_id)]
