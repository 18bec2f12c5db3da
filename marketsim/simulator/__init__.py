"""Price generation, tick evolution, order execution and P&L."""

from marketsim.simulator.events import EventType, MarketEvent
from marketsim.simulator.market_simulator import (
    MarketSimulator,
    RunSummary,
    SimulationStatus,
    TickResult,
)
from marketsim.simulator.order_engine import OrderEngine
from marketsim.simulator.pnl_calculator import PnLCalculator, create_initial_portfolio

__all__ = [
    "EventType",
    "MarketEvent",
    "MarketSimulator",
    "OrderEngine",
    "PnLCalculator",
    "RunSummary",
    "SimulationStatus",
    "TickResult",
    "create_initial_portfolio",
]
