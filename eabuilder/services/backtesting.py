"""
EA Builder Backtest Simulator

Produces placeholder performance metrics for an EA configuration. There is
no market data behind these numbers: they are random draws shifted by the
configuration's trading costs (spread, slippage, commission).
"""

import logging
import math
import random
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ..exceptions import ValidationError
from .model_repository import ModelRepository, validate_configuration

logger = logging.getLogger(__name__)

DEFAULT_SPREAD = 0.5
DEFAULT_SLIPPAGE = 0.2
DEFAULT_COMMISSION = 0.1


def _cost(configuration: Mapping[str, Any], key: str, default: float) -> float:
    value = configuration.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(key, f"Configuration '{key}' must be a finite number")
    return float(value)


def run_backtest(configuration: Any, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """
    Simulate a backtest run.

    Args:
        configuration: EA configuration; spread, slippage and commission are
            read from it when present.
        rng: Random source, pass a seeded instance for reproducible results.

    Returns:
        dict with profit, drawdown, winRatio, sharpeRatio, configuration and
        backtestDate.
    """
    configuration = validate_configuration(configuration)
    rng = rng or random.Random()

    spread = _cost(configuration, "spread", DEFAULT_SPREAD)
    slippage = _cost(configuration, "slippage", DEFAULT_SLIPPAGE)
    commission = _cost(configuration, "commission", DEFAULT_COMMISSION)

    base_profit = rng.random() * 1000
    profit = round(base_profit - spread * 10 - commission * 5, 2)
    drawdown = round(rng.random() * 200 + slippage * 10, 2)
    win_ratio = round(rng.random() * 100, 2)
    sharpe_ratio = round((profit - drawdown) / (rng.random() * 50 + 1), 2)

    return {
        "profit": profit,
        "drawdown": drawdown,
        "winRatio": win_ratio,
        "sharpeRatio": sharpe_ratio,
        "configuration": configuration,
        "backtestDate": datetime.utcnow().isoformat(),
    }


async def run_and_attach(
    repository: ModelRepository,
    model_id: int,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Simulate a backtest on a stored model and record the result on it."""
    model = await repository.get(model_id)
    result = run_backtest(model.configuration, rng=rng)
    model = await repository.attach_backtest_result(model_id, result)
    logger.info(f"Backtest attached to EA model {model_id}: profit={result['profit']} drawdown={result['drawdown']}")
    return {"backtest": result, "model": model.to_dict()}
