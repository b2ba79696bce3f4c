"""
Store helpers shared by the services.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StoreError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def store_operation(operation: str) -> AsyncIterator[None]:
    """Translate persistence failures raised inside the block into StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store failure during {operation}: {e}")
        raise StoreError(f"Store failure during {operation}", details=str(e)) from e
