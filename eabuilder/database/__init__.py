"""
EA Builder Database Package
"""

from .connection import (
    Base,
    check_database_health,
    close_database,
    get_db_context,
    get_db_session,
    get_engine,
    init_database,
)
from .models import (
    ApprovalStatus,
    EAModel,
    EAModelVersion,
    LedgerEntry,
    LedgerEntryType,
    PaymentOrder,
    PaymentStatus,
)

__all__ = [
    "Base",
    "check_database_health",
    "close_database",
    "get_db_context",
    "get_db_session",
    "get_engine",
    "init_database",
    "ApprovalStatus",
    "EAModel",
    "EAModelVersion",
    "LedgerEntry",
    "LedgerEntryType",
    "PaymentOrder",
    "PaymentStatus",
]
