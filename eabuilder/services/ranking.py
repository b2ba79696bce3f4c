"""
EA Builder Ranking Engine
=========================
Flags the top-N EA models by backtest score.

score = profit - drawdown, missing metrics count as 0. The flag update is a
single UPDATE statement setting is_top = (id IN selected) so concurrent
recomputations never observe a cleared-but-not-yet-set table.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import EAModel
from .cache import ModelListCache
from .store import store_operation

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20


def _metric(results: Mapping[str, Any], key: str) -> float:
    value = results.get(key)
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def score(results: Optional[Mapping[str, Any]]) -> float:
    """profit - drawdown of a backtest snapshot."""
    if not results:
        return 0.0
    return _metric(results, "profit") - _metric(results, "drawdown")


def select_top(candidates: Iterable[Tuple[int, Mapping[str, Any]]], top_n: int = DEFAULT_TOP_N) -> List[int]:
    """
    Rank (id, backtest_results) pairs by score and return the best ids.

    The sort is stable, so equal scores keep their input order.
    """
    ranked = sorted(candidates, key=lambda item: score(item[1]), reverse=True)
    return [model_id for model_id, _ in ranked[:max(top_n, 0)]]


class RankingEngine:
    """Caller-triggered recomputation of the is_top flag."""

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[ModelListCache] = None,
        top_n: int = DEFAULT_TOP_N,
    ):
        self.session = session
        self.cache = cache
        self.top_n = top_n

    async def _load_ranked(self) -> Sequence[EAModel]:
        result = await self.session.execute(
            select(EAModel)
            .where(EAModel.backtest_results.is_not(None))
            .order_by(EAModel.id)
        )
        return result.scalars().all()

    async def recompute(self) -> List[EAModel]:
        """
        Re-flag the top models.

        Returns:
            The newly flagged models ordered by score, best first.
        """
        async with store_operation("rank EA models"):
            models = await self._load_ranked()
            selected = select_top(((m.id, m.backtest_results) for m in models), self.top_n)

            await self.session.execute(
                update(EAModel)
                .values(is_top=case((EAModel.id.in_(selected), True), else_=False))
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

            top_models = await self._reload(selected)

        if self.cache is not None:
            await self.cache.clear()
        logger.info(f"Ranked {len(models)} EA models, flagged {len(top_models)} as top")
        return top_models

    async def _reload(self, selected: List[int]) -> List[EAModel]:
        if not selected:
            return []
        result = await self.session.execute(
            select(EAModel)
            .where(EAModel.id.in_(selected))
            .execution_options(populate_existing=True)
        )
        by_id = {m.id: m for m in result.scalars().all()}
        return [by_id[model_id] for model_id in selected if model_id in by_id]

    async def list_top(self) -> List[EAModel]:
        """Currently flagged models, best score first."""
        async with store_operation("list top EA models"):
            result = await self.session.execute(
                select(EAModel).where(EAModel.is_top == True).order_by(EAModel.id)  # noqa: E712
            )
            models = list(result.scalars().all())
        return sorted(models, key=lambda m: score(m.backtest_results), reverse=True)
