"""Market simulator — owns the simulation state and drives the periodic tick.

One tick, in order:

1. advance every instrument price
2. recompute every composite index
3. revalue the portfolio at the new prices
4. sweep pending limit orders against the new prices

The four results are published together as a single new ``MarketState``.
Commands (order placement, cancellation) also replace the state wholesale,
so a reader always sees a complete tick or a complete command, never a mix.

Supports:
- Synchronous ``tick()`` for callers that drive their own clock
- ``run()`` loop at ``tick_interval_seconds`` with pause / resume / stop
- Per-tick async callbacks and synchronous event listeners
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from config.settings import Settings, get_settings
from marketsim.core.exceptions import (
    InstrumentNotFoundError,
    InvalidOrderError,
    OrderNotFoundError,
    SimulatorNotInitializedError,
)
from marketsim.core.logging import get_logger
from marketsim.core.types import (
    CompositeIndex,
    ExecutionFailure,
    ExecutionResult,
    Instrument,
    MarketState,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Portfolio,
)
from marketsim.simulator.events import EventType, MarketEvent
from marketsim.simulator.order_engine import OrderEngine
from marketsim.simulator.pnl_calculator import PnLCalculator, create_initial_portfolio
from marketsim.simulator.price_engine import advance_prices, recompute_indices
from marketsim.simulator.universe import generate_market_data

log = get_logger(__name__)

_FAILURE_MESSAGES: dict[ExecutionFailure, str] = {
    ExecutionFailure.INSTRUMENT_NOT_FOUND: "Instrument not found",
    ExecutionFailure.INSUFFICIENT_FUNDS: "Insufficient funds to execute this order",
    ExecutionFailure.INSUFFICIENT_SHARES: "Not enough shares to execute this sell order",
}


class SimulationStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass(frozen=True)
class TickResult:
    """What a single tick changed beyond prices."""

    tick: int
    timestamp: datetime
    executed_orders: tuple[Order, ...] = ()


@dataclass
class RunSummary:
    """Result summary after ``run()`` returns."""

    status: SimulationStatus
    ticks: int = 0
    executed_orders: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    error_message: str | None = None


TickCallback = Callable[[MarketState, TickResult], Awaitable[None]]
EventListener = Callable[[MarketEvent], None]


class MarketSimulator:
    """Single-user market simulation with a command/query surface.

    Typical lifecycle::

        sim = MarketSimulator()
        sim.initialize()

        order = sim.place_market_order(sim.instruments[0].instrument_id, "buy", 10)
        sim.place_limit_order(order.instrument_id, "sell", 10, limit_price=550.0)

        sim.tick()                      # or: await sim.run()
        print(sim.portfolio.total_value)

    Args:
        settings: Simulation settings. Defaults to :func:`get_settings`.
        rng: Random source for every price draw. Defaults to
            ``random.Random(settings.random_seed)``.
        order_engine: Optional ``OrderEngine``; a fresh one by default.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        order_engine: OrderEngine | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rng = rng or random.Random(self._settings.random_seed)
        self._engine = order_engine or OrderEngine()
        self._pnl = PnLCalculator()

        self._state: MarketState | None = None
        self._status = SimulationStatus.CREATED
        self._resume_event = asyncio.Event()
        self._resume_event.set()  # Not paused initially
        self._stop_requested = False

        self._tick_callbacks: list[TickCallback] = []
        self._event_listeners: list[EventListener] = []
        self._events: list[MarketEvent] = []

    # ── Initialization ──────────────────────────────────────────

    def initialize(self, now: datetime | None = None) -> MarketState:
        """Build a fresh universe and an all-cash portfolio.

        Calling it again discards all prior state, orders included.
        """
        instruments, indices = generate_market_data(
            self._rng,
            size=self._settings.universe_size,
            now=now,
        )
        portfolio = create_initial_portfolio(self._settings.initial_cash)
        self._state = MarketState(
            instruments=tuple(instruments),
            indices=tuple(indices),
            orders=(),
            portfolio=portfolio,
        )
        self._emit(
            EventType.MARKET_INITIALIZED,
            f"Market initialized with {len(instruments)} instruments",
            n_instruments=len(instruments),
            n_indices=len(indices),
        )
        return self._state

    # ── Queries ─────────────────────────────────────────────────

    @property
    def state(self) -> MarketState:
        if self._state is None:
            msg = "Simulator has no state. Call initialize() first."
            raise SimulatorNotInitializedError(msg)
        return self._state

    @property
    def instruments(self) -> tuple[Instrument, ...]:
        return self.state.instruments

    @property
    def indices(self) -> tuple[CompositeIndex, ...]:
        return self.state.indices

    @property
    def orders(self) -> tuple[Order, ...]:
        return self.state.orders

    @property
    def portfolio(self) -> Portfolio:
        return self.state.portfolio

    @property
    def status(self) -> SimulationStatus:
        return self._status

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_instrument_by_id(self, instrument_id: str) -> Instrument | None:
        for inst in self.state.instruments:
            if inst.instrument_id == instrument_id:
                return inst
        return None

    def get_instrument_by_ticker(self, ticker: str) -> Instrument | None:
        for inst in self.state.instruments:
            if inst.ticker == ticker:
                return inst
        return None

    def get_index_by_ticker(self, ticker: str) -> CompositeIndex | None:
        for idx in self.state.indices:
            if idx.ticker == ticker:
                return idx
        return None

    def get_order(self, order_id: str) -> Order | None:
        for order in self.state.orders:
            if order.order_id == order_id:
                return order
        return None

    def list_orders(self, status: OrderStatus | str | None = None) -> list[Order]:
        """Orders newest first, optionally filtered by *status*."""
        orders: Sequence[Order] = self.state.orders
        if status is not None:
            wanted = OrderStatus(status)
            orders = [o for o in orders if o.status == wanted]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def get_events(self) -> list[MarketEvent]:
        """Return every notification emitted so far (defensive copy)."""
        return list(self._events)

    # ── Callbacks ───────────────────────────────────────────────

    def on_tick(self, callback: TickCallback) -> None:
        """Register an async callback awaited after each ``run()`` tick."""
        self._tick_callbacks.append(callback)

    def on_event(self, listener: EventListener) -> None:
        """Register a listener called synchronously for every notification."""
        self._event_listeners.append(listener)

    # ── Tick ────────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> TickResult:
        """Advance the market by one tick and publish the new state."""
        state = self.state
        now = now or datetime.now(timezone.utc)
        limit = self._settings.history_limit

        instruments = advance_prices(state.instruments, self._rng, now, limit)
        indices = recompute_indices(state.indices, instruments, now, limit)
        portfolio = self._pnl.update_portfolio_positions(state.portfolio, instruments)

        pending = [o for o in state.orders if o.status == OrderStatus.PENDING]
        sweep = self._engine.check_limit_orders(pending, instruments, portfolio, now)

        tick_count = state.tick_count + 1
        self._state = MarketState(
            instruments=tuple(instruments),
            indices=tuple(indices),
            orders=_merge_orders(state.orders, sweep.orders),
            portfolio=sweep.portfolio,
            tick_count=tick_count,
        )

        if sweep.executed_orders:
            self._emit(
                EventType.LIMIT_ORDERS_EXECUTED,
                f"{len(sweep.executed_orders)} limit order(s) executed",
                order_ids=[o.order_id for o in sweep.executed_orders],
            )

        log.debug(
            "tick_completed",
            tick=tick_count,
            timestamp=now.isoformat(),
            n_pending=len(pending) - len(sweep.executed_orders),
            n_executed=len(sweep.executed_orders),
            total_value=round(sweep.portfolio.total_value, 4),
        )
        return TickResult(tick=tick_count, timestamp=now, executed_orders=sweep.executed_orders)

    # ── Commands ────────────────────────────────────────────────

    def place_market_order(
        self,
        instrument_id: str,
        side: OrderSide | str,
        quantity: int,
    ) -> Order:
        """Create a market order and execute it immediately.

        Returns:
            The ``FILLED`` order, or the ``CANCELED`` order when cash or
            shares were insufficient. Either way it is appended to the book.

        Raises:
            InstrumentNotFoundError: If *instrument_id* is unknown.
            InvalidOrderError: If *side* or *quantity* is invalid.
        """
        state = self.state
        instrument = self._require_instrument(instrument_id)
        order_side = _parse_side(side)
        _validate_quantity(quantity)

        order = self._engine.create_order(
            self._settings.default_user_id,
            instrument,
            OrderType.MARKET,
            order_side,
            quantity,
        )
        result = self._engine.execute_market_order(order, state.instruments, state.portfolio)
        self._state = replace(
            state,
            orders=(*state.orders, result.order),
            portfolio=result.portfolio,
        )
        self._notify_execution(result)
        return result.order

    def place_limit_order(
        self,
        instrument_id: str,
        side: OrderSide | str,
        quantity: int,
        limit_price: float,
    ) -> Order:
        """Queue a limit order; it is evaluated on every subsequent tick.

        Raises:
            InstrumentNotFoundError: If *instrument_id* is unknown.
            InvalidOrderError: If *side*, *quantity* or *limit_price* is invalid.
        """
        state = self.state
        instrument = self._require_instrument(instrument_id)
        order_side = _parse_side(side)
        _validate_quantity(quantity)
        if not limit_price > 0:
            msg = f"Limit price must be greater than 0, got {limit_price}"
            raise InvalidOrderError(msg, context={"limit_price": limit_price})

        order = self._engine.create_order(
            self._settings.default_user_id,
            instrument,
            OrderType.LIMIT,
            order_side,
            quantity,
            limit_price=limit_price,
        )
        self._state = replace(state, orders=(*state.orders, order))
        self._emit(
            EventType.ORDER_PLACED,
            f"Limit order placed: {order_side.value} {quantity} {instrument.ticker} "
            f"at {limit_price:.2f}",
            order_id=order.order_id,
        )
        return order

    def cancel_order(self, order_id: str) -> Order:
        """Cancel a pending order.

        Canceling an already canceled order is a no-op.  A filled order
        stays filled and an ``ORDER_CANCEL_REJECTED`` event is emitted.

        Raises:
            OrderNotFoundError: If *order_id* is unknown.
        """
        state = self.state
        order = self.get_order(order_id)
        if order is None:
            msg = f"Unknown order_id: {order_id}"
            raise OrderNotFoundError(msg, context={"order_id": order_id})

        if order.status == OrderStatus.FILLED:
            self._emit(
                EventType.ORDER_CANCEL_REJECTED,
                f"Order {order.ticker} is already filled and cannot be canceled",
                order_id=order_id,
            )
            return order
        if order.status == OrderStatus.CANCELED:
            return order

        canceled = self._engine.cancel_order(order)
        self._state = replace(
            state,
            orders=tuple(canceled if o.order_id == order_id else o for o in state.orders),
        )
        self._emit(EventType.ORDER_CANCELED, "Order canceled successfully", order_id=order_id)
        return canceled

    # ── Run Loop ────────────────────────────────────────────────

    async def run(self, max_ticks: int | None = None) -> RunSummary:
        """Tick every ``tick_interval_seconds`` until stopped.

        Blocks until ``stop()`` is called or *max_ticks* ticks have run.
        Initializes the market first if needed.
        """
        if self._state is None:
            self.initialize()

        self._status = SimulationStatus.RUNNING
        self._stop_requested = False
        summary = RunSummary(status=SimulationStatus.RUNNING)
        interval = self._settings.tick_interval_seconds

        log.info("simulation_started", interval_seconds=interval, max_ticks=max_ticks)

        try:
            while True:
                if self._stop_requested:
                    break

                # Wait if paused
                await self._resume_event.wait()
                if self._stop_requested:
                    break

                if max_ticks is not None and summary.ticks >= max_ticks:
                    break

                result = self.tick()
                summary.ticks += 1
                summary.executed_orders += len(result.executed_orders)

                for cb in self._tick_callbacks:
                    await cb(self.state, result)

                if max_ticks is not None and summary.ticks >= max_ticks:
                    break
                await asyncio.sleep(interval)

            self._status = SimulationStatus.STOPPED
            summary.status = SimulationStatus.STOPPED

        except Exception as exc:
            self._status = SimulationStatus.ERROR
            summary.status = SimulationStatus.ERROR
            summary.error_message = str(exc)
            log.error("simulation_error", error=str(exc), ticks=summary.ticks)

        summary.completed_at = datetime.now(timezone.utc)
        log.info(
            "simulation_finished",
            status=summary.status.value,
            ticks=summary.ticks,
            executed_orders=summary.executed_orders,
        )
        return summary

    def pause(self) -> None:
        """Pause a running simulation."""
        if self._status == SimulationStatus.RUNNING:
            self._resume_event.clear()
            self._status = SimulationStatus.PAUSED
            log.info("simulation_paused")

    def resume(self) -> None:
        """Resume a paused simulation."""
        if self._status == SimulationStatus.PAUSED:
            self._status = SimulationStatus.RUNNING
            self._resume_event.set()
            log.info("simulation_resumed")

    def stop(self) -> None:
        """Ask the run loop to exit after the current tick."""
        self._stop_requested = True
        # Also resume if paused, so the loop can exit
        self._resume_event.set()
        log.info("simulation_stop_requested")

    # ── Internal ────────────────────────────────────────────────

    def _require_instrument(self, instrument_id: str) -> Instrument:
        instrument = self.get_instrument_by_id(instrument_id)
        if instrument is None:
            msg = f"Instrument not found: {instrument_id}"
            raise InstrumentNotFoundError(msg, context={"instrument_id": instrument_id})
        return instrument

    def _notify_execution(self, result: ExecutionResult) -> None:
        order = result.order
        if result.filled:
            self._emit(
                EventType.ORDER_FILLED,
                f"Market order executed: {order.side.value} {order.quantity} "
                f"{order.ticker} at {order.executed_price:.2f}",
                order_id=order.order_id,
            )
            return

        reason = _FAILURE_MESSAGES[result.failure] if result.failure else "Order failed"
        self._emit(
            EventType.ORDER_FAILED,
            f"Market order failed: {order.side.value} {order.quantity} {order.ticker} ({reason})",
            order_id=order.order_id,
            reason=result.failure.value if result.failure else None,
        )

    def _emit(self, event_type: EventType, message: str, **data: object) -> None:
        event = MarketEvent(event_type=event_type, message=message, data=data)
        self._events.append(event)
        log.info("market_event", event_type=event_type.value, message=message)
        for listener in self._event_listeners:
            listener(event)


# ── Helpers ──────────────────────────────────────────────────────


def _merge_orders(book: Sequence[Order], swept: Sequence[Order]) -> tuple[Order, ...]:
    """Replace swept orders in *book* by id, keeping the book's ordering."""
    by_id = {o.order_id: o for o in swept}
    return tuple(by_id.get(o.order_id, o) for o in book)


def _parse_side(side: OrderSide | str) -> OrderSide:
    try:
        return OrderSide(side)
    except ValueError as exc:
        msg = f"Unknown order side: {side!r}"
        raise InvalidOrderError(msg, context={"side": side}) from exc


def _validate_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        msg = f"Quantity must be a positive whole number, got {quantity!r}"
        raise InvalidOrderError(msg, context={"quantity": quantity})
