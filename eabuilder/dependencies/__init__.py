"""
EA Builder Dependencies Package
"""

from .services import (
    get_marketplace_service,
    get_model_repository,
    get_ranking_engine,
    get_version_store,
)

__all__ = [
    "get_marketplace_service",
    "get_model_repository",
    "get_ranking_engine",
    "get_version_store",
]
