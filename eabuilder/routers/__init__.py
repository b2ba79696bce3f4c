"""
EA Builder API Routers

All API route handlers for the EA Builder platform.
"""

from .admin import router as admin_router
from .backtest import router as backtest_router
from .marketplace import router as marketplace_router
from .models import router as models_router

__all__ = [
    "admin_router",
    "backtest_router",
    "marketplace_router",
    "models_router",
]
