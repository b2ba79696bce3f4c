"""
EA Builder Version Store
========================
Append-only code history per EA model with rollback.

Rollback rewrites the model's current code from a stored version and does
not record the pre-rollback code as a new version.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import EAModel, EAModelVersion, utcnow
from ..exceptions import NotFoundError, ValidationError
from .cache import ModelListCache
from .store import store_operation

logger = logging.getLogger(__name__)


class VersionStore:
    """Version history of EA model code."""

    def __init__(self, session: AsyncSession, cache: Optional[ModelListCache] = None):
        self.session = session
        self.cache = cache

    async def _get_model(self, model_id: int) -> EAModel:
        async with store_operation("load EA model"):
            model = await self.session.get(EAModel, model_id)
        if model is None:
            raise NotFoundError(f"EA model {model_id} not found")
        return model

    async def save_version(self, model_id: int, code: Any) -> EAModelVersion:
        """Append a snapshot of code and make it the model's current code."""
        if not isinstance(code, str):
            raise ValidationError("code", "Version code must be a string")

        model = await self._get_model(model_id)
        now = utcnow()
        version = EAModelVersion(ea_model_id=model_id, code=code, created_at=now)

        async with store_operation("save EA model version"):
            self.session.add(version)
            model.code = code
            model.updated_at = now
            await self.session.commit()
            await self.session.refresh(version)

        if self.cache is not None:
            await self.cache.invalidate(model.user_id)
        logger.info(f"Saved version {version.id} of EA model {model_id}")
        return version

    async def list_versions(self, model_id: int) -> List[EAModelVersion]:
        """Versions newest first; empty when the model has none."""
        async with store_operation("list EA model versions"):
            result = await self.session.execute(
                select(EAModelVersion)
                .where(EAModelVersion.ea_model_id == model_id)
                .order_by(EAModelVersion.created_at.desc(), EAModelVersion.id.desc())
            )
            return list(result.scalars().all())

    async def get_version(self, model_id: int, version_id: int) -> EAModelVersion:
        async with store_operation("load EA model version"):
            version = await self.session.get(EAModelVersion, version_id)
        if version is None or version.ea_model_id != model_id:
            raise NotFoundError(f"Version {version_id} not found for EA model {model_id}")
        return version

    async def rollback(self, model_id: int, version_id: int) -> EAModel:
        """Restore the model's code from one of its own versions."""
        version = await self.get_version(model_id, version_id)
        model = await self._get_model(model_id)

        async with store_operation("rollback EA model"):
            model.code = version.code
            model.updated_at = utcnow()
            await self.session.commit()
            await self.session.refresh(model)

        if self.cache is not None:
            await self.cache.invalidate(model.user_id)
        logger.info(f"Rolled back EA model {model_id} to version {version_id}")
        return model
