"""Order execution engine — order lifecycle and portfolio accounting.

The engine is **stateless**: every method takes the current instruments and
portfolio and returns new objects describing the outcome.  The caller
(typically :class:`~marketsim.simulator.market_simulator.MarketSimulator`)
decides what to publish.

Lifecycle::

    PENDING ──fill──▶ FILLED      (terminal)
       └────cancel──▶ CANCELED    (terminal)

Fill model: every fill executes the full quantity at the instrument's
current price.  No slippage, commission, or partial fills.

Business failures (unknown instrument, insufficient cash or shares) never
raise.  They come back as an :class:`ExecutionResult` whose order is
``CANCELED`` and whose ``failure`` names the reason; the portfolio is
returned unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

from uuid_extensions import uuid7

from marketsim.core.logging import get_logger
from marketsim.core.types import (
    ExecutionFailure,
    ExecutionResult,
    Instrument,
    LimitOrder,
    LimitSweepResult,
    MarketOrder,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Portfolio,
    Position,
)
from marketsim.simulator.pnl_calculator import PnLCalculator

log = get_logger(__name__)


def _find_instrument(instruments: Sequence[Instrument], instrument_id: str) -> Instrument | None:
    for inst in instruments:
        if inst.instrument_id == instrument_id:
            return inst
    return None


def is_triggered(order: LimitOrder, price: float) -> bool:
    """Whether *price* has crossed the limit in the order's favour."""
    if order.side == OrderSide.BUY:
        return price <= order.limit_price
    return price >= order.limit_price


class OrderEngine:
    """Stateless order lifecycle engine.

    Args:
        pnl_calculator: Optional ``PnLCalculator`` instance.
            Defaults to a fresh instance if not provided.
    """

    def __init__(self, pnl_calculator: PnLCalculator | None = None) -> None:
        self._pnl = pnl_calculator or PnLCalculator()

    # ── Creation ────────────────────────────────────────────────

    @staticmethod
    def create_order(
        user_id: str,
        instrument: Instrument,
        order_type: OrderType,
        side: OrderSide,
        quantity: int,
        limit_price: float | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Build a new ``PENDING`` order.

        *limit_price* is kept only for limit orders and ignored otherwise.
        Quantity and price are not validated here; that is the caller's job.

        Raises:
            ValueError: If a limit order is requested without *limit_price*.
        """
        common = {
            "order_id": str(uuid7()),
            "user_id": user_id,
            "instrument_id": instrument.instrument_id,
            "ticker": instrument.ticker,
            "side": side,
            "quantity": quantity,
            "created_at": now or datetime.now(timezone.utc),
        }
        if order_type == OrderType.LIMIT:
            if limit_price is None:
                msg = "limit orders require a limit_price"
                raise ValueError(msg)
            return LimitOrder(limit_price=limit_price, **common)
        return MarketOrder(**common)

    # ── Market Execution ────────────────────────────────────────

    def execute_market_order(
        self,
        order: Order,
        instruments: Sequence[Instrument],
        portfolio: Portfolio,
        now: datetime | None = None,
    ) -> ExecutionResult:
        """Fill *order* in full at the instrument's current price.

        BUY  debits ``price * quantity`` and blends the price into the
        position's average cost (opening the position if needed).
        SELL credits ``price * quantity`` and reduces the position, deleting
        it when the quantity reaches zero.  Average cost is unchanged by sells.

        Args:
            order: The order to execute. Its variant is preserved on the result.
            instruments: Current instrument snapshot.
            portfolio: Portfolio to execute against.
            now: Execution timestamp. Defaults to the current UTC time.

        Returns:
            ``ExecutionResult`` with the ``FILLED`` order and updated portfolio,
            or the ``CANCELED`` order, the unchanged portfolio and a failure reason.
        """
        instrument = _find_instrument(instruments, order.instrument_id)
        if instrument is None:
            return self._reject(order, portfolio, ExecutionFailure.INSTRUMENT_NOT_FOUND)

        price = instrument.current_price
        total = price * order.quantity
        positions = dict(portfolio.positions)  # shallow copy for mutation
        existing = positions.get(order.instrument_id)

        if order.side == OrderSide.BUY:
            # ── BUY ─────────────────────────────────────────────
            if portfolio.cash < total:
                return self._reject(order, portfolio, ExecutionFailure.INSUFFICIENT_FUNDS)
            cash = portfolio.cash - total

            if existing is not None:
                new_qty = existing.quantity + order.quantity
                new_avg = (existing.cost_basis + total) / new_qty
                positions[order.instrument_id] = self._pnl.value_position(
                    replace(existing, quantity=new_qty, average_cost=new_avg),
                    price,
                )
            else:
                positions[order.instrument_id] = Position(
                    instrument_id=instrument.instrument_id,
                    ticker=instrument.ticker,
                    quantity=order.quantity,
                    average_cost=price,
                    current_value=order.quantity * price,
                )
        else:
            # ── SELL ────────────────────────────────────────────
            if existing is None or existing.quantity < order.quantity:
                return self._reject(order, portfolio, ExecutionFailure.INSUFFICIENT_SHARES)
            cash = portfolio.cash + total

            remaining = existing.quantity - order.quantity
            if remaining > 0:
                positions[order.instrument_id] = self._pnl.value_position(
                    replace(existing, quantity=remaining),
                    price,
                )
            else:
                del positions[order.instrument_id]

        updated_portfolio = self._pnl.recalculate_portfolio_totals(
            replace(portfolio, cash=cash, positions=positions),
            instruments,
        )
        filled = replace(
            order,
            status=OrderStatus.FILLED,
            executed_at=now or datetime.now(timezone.utc),
            executed_price=price,
        )

        log.info(
            "order_filled",
            order_id=order.order_id,
            order_type=order.type.value,
            side=order.side.value,
            ticker=order.ticker,
            quantity=order.quantity,
            price=round(price, 4),
            cash=round(updated_portfolio.cash, 4),
        )
        return ExecutionResult(order=filled, portfolio=updated_portfolio)

    # ── Limit Sweep ─────────────────────────────────────────────

    def check_limit_orders(
        self,
        pending_orders: Sequence[Order],
        instruments: Sequence[Instrument],
        portfolio: Portfolio,
        now: datetime | None = None,
    ) -> LimitSweepResult:
        """Fill every pending limit order whose trigger price has been reached.

        Orders are evaluated oldest first; each fill updates the portfolio
        the next order is checked against, so an earlier order may consume
        cash a later one needed.  Orders that are not pending limit orders
        pass through untouched.  A triggered order whose fill fails (for
        lack of cash or shares) stays ``PENDING`` for a later sweep.

        Returns:
            ``LimitSweepResult`` with every input order in processing order,
            the resulting portfolio, and the orders filled by this sweep.
        """
        prices = {inst.instrument_id: inst.current_price for inst in instruments}
        current = portfolio
        processed: list[Order] = []
        executed: list[Order] = []

        for order in sorted(pending_orders, key=lambda o: o.created_at):
            if order.status != OrderStatus.PENDING or not isinstance(order, LimitOrder):
                processed.append(order)
                continue

            price = prices.get(order.instrument_id)
            if price is None or not is_triggered(order, price):
                processed.append(order)
                continue

            result = self.execute_market_order(order, instruments, current, now)
            if result.filled:
                current = result.portfolio
                executed.append(result.order)
                processed.append(result.order)
            else:
                log.info(
                    "limit_order_deferred",
                    order_id=order.order_id,
                    ticker=order.ticker,
                    reason=result.failure.value if result.failure else None,
                )
                processed.append(order)

        if executed:
            log.info("limit_orders_executed", n_executed=len(executed))
        return LimitSweepResult(
            orders=tuple(processed),
            portfolio=current,
            executed_orders=tuple(executed),
        )

    # ── Cancellation ────────────────────────────────────────────

    @staticmethod
    def cancel_order(order: Order) -> Order:
        """Cancel a pending order.  Terminal orders are returned unchanged."""
        if order.is_terminal:
            return order
        log.info("order_canceled", order_id=order.order_id, ticker=order.ticker)
        return replace(order, status=OrderStatus.CANCELED)

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _reject(
        order: Order,
        portfolio: Portfolio,
        failure: ExecutionFailure,
    ) -> ExecutionResult:
        log.warning(
            "order_execution_failed",
            order_id=order.order_id,
            side=order.side.value,
            ticker=order.ticker,
            quantity=order.quantity,
            reason=failure.value,
        )
        return ExecutionResult(
            order=replace(order, status=OrderStatus.CANCELED),
            portfolio=portfolio,
            failure=failure,
        )
