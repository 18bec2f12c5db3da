"""System-wide shared types. All data structures are defined here.

Every state object is a frozen dataclass.  Updates build a new object with
:func:`dataclasses.replace` so a consumer holding an older reference never
observes a partially applied change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType


# ── Enums ────────────────────────────────────────────────────────

class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    PENDING = "pending"
    FILLED = "filled"
    CANCELED = "canceled"


class ExecutionFailure(str, Enum):
    """Why a fill attempt did not go through."""

    INSTRUMENT_NOT_FOUND = "instrument_not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_SHARES = "insufficient_shares"


# ── Market Data Types ────────────────────────────────────────────

@dataclass(frozen=True)
class PricePoint:
    """One OHLCV bar in an instrument's price history."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int


@dataclass(frozen=True)
class IndexValuePoint:
    """One value sample in a composite index's history."""

    timestamp: datetime
    value: float


@dataclass(frozen=True)
class Instrument:
    """A simulated listed stock.

    ``volatility`` and ``trend`` drive every price step; ``price_history`` is
    ascending by timestamp and bounded to the most recent points.
    """

    instrument_id: str
    ticker: str
    name: str
    sector: str
    initial_price: float
    current_price: float
    previous_price: float
    day_open: float
    day_high: float
    day_low: float
    market_cap: float
    volume: int
    volatility: float
    trend: float
    price_history: tuple[PricePoint, ...] = ()

    @property
    def change(self) -> float:
        """Absolute move since the previous tick."""
        return self.current_price - self.previous_price

    @property
    def change_percent(self) -> float:
        if not self.previous_price:
            return 0.0
        return self.change / self.previous_price * 100

    @property
    def day_change(self) -> float:
        """Absolute move since the day open."""
        return self.current_price - self.day_open

    @property
    def day_change_percent(self) -> float:
        if not self.day_open:
            return 0.0
        return self.day_change / self.day_open * 100


@dataclass(frozen=True)
class CompositeIndex:
    """Unweighted average of a fixed set of constituent instruments."""

    index_id: str
    ticker: str
    name: str
    components: tuple[str, ...]  # instrument ids, fixed at creation
    current_value: float
    previous_value: float
    day_open: float
    day_high: float
    day_low: float
    value_history: tuple[IndexValuePoint, ...] = ()

    @property
    def change(self) -> float:
        return self.current_value - self.previous_value

    @property
    def change_percent(self) -> float:
        if not self.previous_value:
            return 0.0
        return self.change / self.previous_value * 100


# ── Order Types ──────────────────────────────────────────────────

@dataclass(frozen=True, kw_only=True)
class Order(ABC):
    """Fields shared by every order variant.

    Use :class:`MarketOrder` or :class:`LimitOrder`; the variant determines
    ``type``.  ``executed_at`` and ``executed_price`` are set only once the
    order is filled.
    """

    order_id: str
    user_id: str
    instrument_id: str
    ticker: str
    side: OrderSide
    quantity: int
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    executed_at: datetime | None = None
    executed_price: float | None = None

    @property
    @abstractmethod
    def type(self) -> OrderType: ...

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.FILLED, OrderStatus.CANCELED)


@dataclass(frozen=True, kw_only=True)
class MarketOrder(Order):
    """Executes immediately at the current quote."""

    @property
    def type(self) -> OrderType:
        return OrderType.MARKET


@dataclass(frozen=True, kw_only=True)
class LimitOrder(Order):
    """Executes once the quote crosses ``limit_price`` in the order's favour."""

    limit_price: float

    @property
    def type(self) -> OrderType:
        return OrderType.LIMIT


# ── Portfolio Types ──────────────────────────────────────────────

@dataclass(frozen=True)
class Position:
    """Holding in a single instrument.  Removed, never zeroed, when closed."""

    instrument_id: str
    ticker: str
    quantity: int
    average_cost: float
    current_value: float = 0.0
    profit_loss: float = 0.0
    profit_loss_percentage: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.average_cost * self.quantity


@dataclass(frozen=True)
class Portfolio:
    """Cash plus positions keyed by instrument id, with derived aggregates.

    The ``total_*`` fields are recomputed by
    :class:`~marketsim.simulator.pnl_calculator.PnLCalculator`; they are
    stored rather than derived so a snapshot reflects the prices it was
    valued against.

    ``positions`` is a read-only view over a private copy of whatever
    mapping was passed in.
    """

    cash: float
    positions: Mapping[str, Position] = field(default_factory=dict)
    total_value: float = 0.0
    total_investment: float = 0.0
    total_profit_loss: float = 0.0
    total_profit_loss_percentage: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", MappingProxyType(dict(self.positions)))

    def get_position(self, instrument_id: str) -> Position | None:
        return self.positions.get(instrument_id)


# ── Execution Types ──────────────────────────────────────────────

@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one fill attempt.  ``failure`` is ``None`` on success."""

    order: Order
    portfolio: Portfolio
    failure: ExecutionFailure | None = None

    @property
    def filled(self) -> bool:
        return self.order.status == OrderStatus.FILLED


@dataclass(frozen=True)
class LimitSweepResult:
    """Outcome of evaluating pending limit orders against current quotes."""

    orders: tuple[Order, ...]
    portfolio: Portfolio
    executed_orders: tuple[Order, ...] = ()


# ── Simulation State ─────────────────────────────────────────────

@dataclass(frozen=True)
class MarketState:
    """Everything the simulator publishes, replaced as a unit."""

    instruments: tuple[Instrument, ...]
    indices: tuple[CompositeIndex, ...]
    orders: tuple[Order, ...]
    portfolio: Portfolio
    tick_count: int = 0
