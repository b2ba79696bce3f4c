"""
EA Builder Database Models
All SQLAlchemy 2.0 async models for the EA Builder platform.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .connection import Base

# JSONB on PostgreSQL, plain JSON elsewhere; SQL NULL for Python None
JSONDocument = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def utcnow() -> datetime:
    return datetime.utcnow()


# ============================================================================
# Enums
# ============================================================================

class ApprovalStatus(str, enum.Enum):
    """Marketplace approval state of an EA model."""
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    SOLD = "sold"


class PaymentStatus(str, enum.Enum):
    """Payment order status."""
    PENDING = "pending"
    COMPLETED = "completed"


class LedgerEntryType(str, enum.Enum):
    """Settlement ledger entry type."""
    BUYER_DEBIT = "buyer_debit"
    SELLER_CREDIT = "seller_credit"
    PLATFORM_COMMISSION = "platform_commission"


# ============================================================================
# Models
# ============================================================================

class EAModel(Base):
    """
    EA model configuration record.
    """
    __tablename__ = "ea_models"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Builder output
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    configuration: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, default=dict, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Last recorded backtest: {"profit", "drawdown", "winRatio"}
    backtest_results: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONDocument, nullable=True)
    is_top: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Marketplace
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approval_status", values_callable=lambda e: [m.value for m in e]),
        default=ApprovalStatus.NONE,
        nullable=False
    )
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Relationships
    versions: Mapped[List["EAModelVersion"]] = relationship(
        "EAModelVersion",
        back_populates="ea_model",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_ea_models_marketplace", "approval_status", "price"),
        Index("ix_ea_models_is_top", "is_top"),
    )

    def __repr__(self) -> str:
        return f"<EAModel(id={self.id}, name={self.name}, status={self.approval_status})>"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape returned by the API."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "configuration": self.configuration,
            "code": self.code,
            "backtest_results": self.backtest_results,
            "is_top": self.is_top,
            "approval_status": ApprovalStatus(self.approval_status).value,
            "price": float(self.price) if self.price is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class EAModelVersion(Base):
    """
    Immutable code snapshot of an EA model.
    """
    __tablename__ = "ea_model_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ea_model_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("ea_models.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    code: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ea_model: Mapped["EAModel"] = relationship("EAModel", back_populates="versions")

    __table_args__ = (
        Index("ix_ea_model_versions_model_created", "ea_model_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EAModelVersion(id={self.id}, ea_model_id={self.ea_model_id})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ea_model_id": self.ea_model_id,
            "code": self.code,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PaymentOrder(Base):
    """
    Payment order recorded for a marketplace purchase.
    """
    __tablename__ = "payment_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [m.value for m in e]),
        default=PaymentStatus.PENDING,
        nullable=False
    )
    # Plain reference: orders outlive deleted models
    ea_model_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    ledger_entries: Mapped[List["LedgerEntry"]] = relationship(
        "LedgerEntry",
        back_populates="payment_order"
    )

    def __repr__(self) -> str:
        return f"<PaymentOrder(order_id={self.order_id}, amount={self.amount}, status={self.status})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "amount": float(self.amount),
            "status": PaymentStatus(self.status).value,
            "ea_model_id": self.ea_model_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LedgerEntry(Base):
    """
    Append-only settlement row. Debits are negative, credits positive;
    the entries of one order sum to zero.
    """
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payment_orders.id"),
        nullable=False,
        index=True
    )
    ea_model_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL for the platform account
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    entry_type: Mapped[LedgerEntryType] = mapped_column(
        Enum(LedgerEntryType, name="ledger_entry_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    payment_order: Mapped["PaymentOrder"] = relationship("PaymentOrder", back_populates="ledger_entries")

    def __repr__(self) -> str:
        return f"<LedgerEntry(type={self.entry_type}, amount={self.amount})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "payment_order_id": self.payment_order_id,
            "ea_model_id": self.ea_model_id,
            "user_id": self.user_id,
            "entry_type": LedgerEntryType(self.entry_type).value,
            "amount": float(self.amount),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
