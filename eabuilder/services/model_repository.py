"""
EA Builder Model Repository
===========================
CRUD over EA model configuration records.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import EAModel, EAModelVersion, utcnow
from ..exceptions import NotFoundError, ValidationError
from .cache import ModelListCache
from .store import store_operation

logger = logging.getLogger(__name__)

BACKTEST_METRICS = ("profit", "drawdown", "winRatio")


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name", "EA model name must be a non-empty string")
    return name


def validate_configuration(configuration: Any) -> Dict[str, Any]:
    if not isinstance(configuration, dict):
        raise ValidationError("configuration", "EA model configuration must be a JSON object")
    return configuration


def validate_backtest_results(results: Mapping[str, Any]) -> Dict[str, float]:
    """Check that profit, drawdown and winRatio are all present and numeric."""
    validated = {}
    for metric in BACKTEST_METRICS:
        value = results.get(metric)
        if value is None:
            raise ValidationError(metric, f"Backtest metric '{metric}' is required")
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(metric, f"Backtest metric '{metric}' must be a finite number")
        validated[metric] = float(value)
    return validated


class ModelRepository:
    """
    Stores EA models and keeps the per-owner list cache coherent.

    Every write invalidates the owner's cached list before returning.
    """

    def __init__(self, session: AsyncSession, cache: Optional[ModelListCache] = None):
        self.session = session
        self.cache = cache

    async def _invalidate(self, owner_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate(owner_id)

    async def create(self, owner_id: int, name: Any, configuration: Any) -> EAModel:
        """Store a new model with no backtest results and is_top unset."""
        model = EAModel(
            user_id=owner_id,
            name=validate_name(name),
            configuration=validate_configuration(configuration),
            backtest_results=None,
            is_top=False,
        )
        async with store_operation("create EA model"):
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(owner_id)
        logger.info(f"Created EA model {model.id} for owner {owner_id}")
        return model

    async def list_for_owner(self, owner_id: int) -> List[Dict[str, Any]]:
        """
        All models owned by owner_id in insertion order, read through the cache.

        The generation is taken before the SELECT; a write that commits in
        between bumps it and the snapshot is not cached.
        """
        generation = None
        if self.cache is not None:
            cached = await self.cache.get(owner_id)
            if cached is not None:
                return cached
            generation = await self.cache.generation(owner_id)

        async with store_operation("list EA models"):
            result = await self.session.execute(
                select(EAModel).where(EAModel.user_id == owner_id).order_by(EAModel.id)
            )
            models = [m.to_dict() for m in result.scalars().all()]

        if self.cache is not None:
            await self.cache.set(owner_id, models, generation)
        return models

    async def get(self, model_id: int) -> EAModel:
        async with store_operation("load EA model"):
            model = await self.session.get(EAModel, model_id)
        if model is None:
            raise NotFoundError(f"EA model {model_id} not found")
        return model

    async def update(self, model_id: int, name: Any, configuration: Any) -> EAModel:
        """Replace name and configuration."""
        name = validate_name(name)
        configuration = validate_configuration(configuration)

        model = await self.get(model_id)
        async with store_operation("update EA model"):
            model.name = name
            model.configuration = configuration
            model.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(model.user_id)
        return model

    async def delete(self, model_id: int) -> None:
        """Delete the model together with its version history."""
        model = await self.get(model_id)
        owner_id = model.user_id
        async with store_operation("delete EA model"):
            await self.session.execute(
                delete(EAModelVersion).where(EAModelVersion.ea_model_id == model_id)
            )
            await self.session.delete(model)
            await self.session.commit()

        await self._invalidate(owner_id)
        logger.info(f"Deleted EA model {model_id}")

    async def attach_backtest_result(self, model_id: int, results: Mapping[str, Any]) -> EAModel:
        """Overwrite the backtest snapshot with profit, drawdown and winRatio."""
        model = await self.get(model_id)
        snapshot = validate_backtest_results(results)

        async with store_operation("attach backtest result"):
            model.backtest_results = snapshot
            model.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(model)

        await self._invalidate(model.user_id)
        return model
