"""
Backtest Router

Simulated backtests of EA configurations.
"""

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from ..services.backtesting import run_backtest

router = APIRouter(prefix="/backtest", tags=["Backtest"])


class BacktestRequest(BaseModel):
    configuration: Dict[str, Any]


class BacktestResponse(BaseModel):
    profit: float
    drawdown: float
    winRatio: float
    sharpeRatio: float
    configuration: Dict[str, Any]
    backtestDate: str


@router.post("", response_model=BacktestResponse)
async def simulate_backtest(request: BacktestRequest):
    """Run a simulated backtest without storing anything."""
    return run_backtest(request.configuration)
