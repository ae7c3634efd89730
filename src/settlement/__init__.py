"""
Settlement core: order lifecycle, position accounting, price-driven sweep.
"""

from settlement.engine import OrderSpec, SettlementEngine, evaluate_execution_condition
from settlement.errors import (
    InsufficientFunds,
    InsufficientPosition,
    InvalidOrderSpec,
    OrderNotFound,
    SettlementError,
    UnknownInstrument,
)
from settlement.portfolio import PortfolioSummary, PositionView
from settlement.sweep import SweepReport, Sweeper, SweepScheduler

__all__ = [
    "InsufficientFunds",
    "InsufficientPosition",
    "InvalidOrderSpec",
    "OrderNotFound",
    "OrderSpec",
    "PortfolioSummary",
    "PositionView",
    "SettlementEngine",
    "SettlementError",
    "SweepReport",
    "SweepScheduler",
    "Sweeper",
    "UnknownInstrument",
    "evaluate_execution_condition",
]
