"""
EA Builder Marketplace Settlement
=================================
Sharing, approval and purchase of EA models.

Approval flow: none -> pending (share, positive price) -> approved (admin)
-> sold (first purchase, when sales are exclusive). A purchase writes one
completed payment order for the buyer plus a balanced set of ledger rows:
the buyer debit, the developer credit and the platform commission.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import (
    ApprovalStatus,
    EAModel,
    LedgerEntry,
    LedgerEntryType,
    PaymentOrder,
    PaymentStatus,
    utcnow,
)
from ..exceptions import NotFoundError, ValidationError
from .cache import ModelListCache
from .store import store_operation

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Largest value a Numeric(12, 2) price column holds
MAX_PRICE = Decimal("9999999999.99")
DEFAULT_COMMISSION_RATE = 0.20


def to_money(value: Any) -> Decimal:
    """Round a price to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_split(price: Decimal, commission_rate: float = DEFAULT_COMMISSION_RATE) -> Tuple[Decimal, Decimal]:
    """
    Split a sale price into (commission, developer_share).

    The commission is rounded to cents and the developer gets the remainder,
    so the two parts always add up to the price exactly.
    """
    price = to_money(price)
    commission = (price * Decimal(str(commission_rate))).quantize(CENT, rounding=ROUND_HALF_UP)
    return commission, price - commission


def validate_price(price: Any) -> Decimal:
    if isinstance(price, bool) or not isinstance(price, (int, float, Decimal)):
        raise ValidationError("price", "Price must be a number")
    raw = Decimal(str(price))
    if not raw.is_finite():
        raise ValidationError("price", "Price must be a finite number")

    too_large = ValidationError("price", f"Price must not exceed {MAX_PRICE}")
    if raw > MAX_PRICE + CENT:
        raise too_large
    amount = raw.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount > MAX_PRICE:
        raise too_large
    if amount < CENT:
        raise ValidationError("price", "Price must be at least 0.01")
    return amount


@dataclass
class PurchaseResult:
    """Outcome of a settled purchase."""
    order: PaymentOrder
    model: EAModel
    commission: Decimal
    developer_share: Decimal
    ledger: List[LedgerEntry] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Purchase successful. Commission: {self.commission:.2f}, "
            f"Developer share: {self.developer_share:.2f}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "order": self.order.to_dict(),
            "commission": float(self.commission),
            "developerShare": float(self.developer_share),
            "ledger": [entry.to_dict() for entry in self.ledger],
        }


class MarketplaceService:
    """Marketplace state transitions and settlement."""

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[ModelListCache] = None,
        commission_rate: float = DEFAULT_COMMISSION_RATE,
        exclusive_sales: bool = True,
        order_id_prefix: str = "order_",
    ):
        self.session = session
        self.cache = cache
        self.commission_rate = commission_rate
        self.exclusive_sales = exclusive_sales
        self.order_id_prefix = order_id_prefix

    async def _invalidate(self, owner_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate(owner_id)

    async def _get_model(self, model_id: int) -> EAModel:
        async with store_operation("load EA model"):
            model = await self.session.get(EAModel, model_id)
        if model is None:
            raise NotFoundError(f"EA model {model_id} not found")
        return model

    async def share(self, model_id: int, price: Any) -> EAModel:
        """Submit a model to the marketplace at the given price."""
        amount = validate_price(price)
        model = await self._get_model(model_id)
        if model.approval_status not in (ApprovalStatus.NONE, ApprovalStatus.PENDING):
            raise NotFoundError(f"EA model {model_id} is not available for sharing")

        async with store_operation("share EA model"):
            model.price = amount
            model.approval_status = ApprovalStatus.PENDING
            model.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(model.user_id)
        logger.info(f"EA model {model_id} submitted to marketplace at {amount}")
        return model

    async def approve(self, model_id: int) -> EAModel:
        """Approve a pending model for sale."""
        model = await self._get_model(model_id)
        if model.approval_status != ApprovalStatus.PENDING:
            raise NotFoundError(f"EA model {model_id} is not pending approval")

        async with store_operation("approve EA model"):
            model.approval_status = ApprovalStatus.APPROVED
            model.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(model.user_id)
        logger.info(f"EA model {model_id} approved for marketplace")
        return model

    async def list_marketplace(self) -> List[EAModel]:
        """Approved models with a price, newest first."""
        async with store_operation("list marketplace"):
            result = await self.session.execute(
                select(EAModel)
                .where(
                    EAModel.approval_status == ApprovalStatus.APPROVED,
                    EAModel.price.is_not(None),
                )
                .order_by(EAModel.created_at.desc(), EAModel.id.desc())
            )
            return list(result.scalars().all())

    async def _claim(self, model_id: int) -> bool:
        """Atomically move an approved model to sold. False if another buyer won."""
        result = await self.session.execute(
            update(EAModel)
            .where(
                EAModel.id == model_id,
                EAModel.approval_status == ApprovalStatus.APPROVED,
            )
            .values(approval_status=ApprovalStatus.SOLD, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def purchase(self, model_id: int, buyer_id: int) -> PurchaseResult:
        """Sell an approved model to buyer_id and record the settlement."""
        model = await self._get_model(model_id)
        if model.approval_status != ApprovalStatus.APPROVED or model.price is None:
            raise NotFoundError(f"EA model {model_id} is not available for purchase")

        price = to_money(model.price)
        commission, developer_share = compute_split(price, self.commission_rate)
        now = utcnow()

        async with store_operation("purchase EA model"):
            if self.exclusive_sales and not await self._claim(model_id):
                await self.session.rollback()
                raise NotFoundError(f"EA model {model_id} is not available for purchase")

            order = PaymentOrder(
                user_id=buyer_id,
                order_id=f"{self.order_id_prefix}{uuid.uuid4().hex}",
                amount=price,
                status=PaymentStatus.COMPLETED,
                ea_model_id=model_id,
                created_at=now,
            )
            self.session.add(order)
            await self.session.flush()

            ledger = [
                LedgerEntry(
                    payment_order_id=order.id,
                    ea_model_id=model_id,
                    user_id=buyer_id,
                    entry_type=LedgerEntryType.BUYER_DEBIT,
                    amount=-price,
                    created_at=now,
                ),
                LedgerEntry(
                    payment_order_id=order.id,
                    ea_model_id=model_id,
                    user_id=model.user_id,
                    entry_type=LedgerEntryType.SELLER_CREDIT,
                    amount=developer_share,
                    created_at=now,
                ),
                LedgerEntry(
                    payment_order_id=order.id,
                    ea_model_id=model_id,
                    user_id=None,
                    entry_type=LedgerEntryType.PLATFORM_COMMISSION,
                    amount=commission,
                    created_at=now,
                ),
            ]
            self.session.add_all(ledger)
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(model.user_id)
        logger.info(
            f"EA model {model_id} sold to {buyer_id} for {price} "
            f"(commission {commission}, developer {developer_share})"
        )
        return PurchaseResult(
            order=order,
            model=model,
            commission=commission,
            developer_share=developer_share,
            ledger=ledger,
        )

    async def list_orders(self, user_id: int) -> List[PaymentOrder]:
        async with store_operation("list payment orders"):
            result = await self.session.execute(
                select(PaymentOrder)
                .where(PaymentOrder.user_id == user_id)
                .order_by(PaymentOrder.created_at.desc(), PaymentOrder.id.desc())
            )
            return list(result.scalars().all())

    async def list_ledger(self, user_id: int) -> List[LedgerEntry]:
        async with store_operation("list ledger entries"):
            result = await self.session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.user_id == user_id)
                .order_by(LedgerEntry.id)
            )
            return list(result.scalars().all())
