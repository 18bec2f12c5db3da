"""Portfolio valuation — mark-to-market of positions and aggregate P&L.

Aggregates::

    total_investment   = Σ average_cost * quantity
    total_value        = cash + Σ quantity * current_price
    total_profit_loss  = Σ quantity * current_price - total_investment
    total_profit_loss_percentage
                       = (positions_value / total_investment - 1) * 100
                         (0 when nothing is invested)

Only unrealized P&L exists.  A fully sold position is removed together with
its cost basis; no realized-gain ledger is kept.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from marketsim.core.constants import INITIAL_CASH
from marketsim.core.logging import get_logger
from marketsim.core.types import Instrument, Portfolio, Position

log = get_logger(__name__)


def create_initial_portfolio(cash: float = INITIAL_CASH) -> Portfolio:
    """Return an empty portfolio holding only *cash*."""
    return Portfolio(cash=cash, positions={}, total_value=cash)


class PnLCalculator:
    """Stateless calculator for position valuation and portfolio totals."""

    # ── Positions ───────────────────────────────────────────────

    @staticmethod
    def value_position(position: Position, price: float) -> Position:
        """Return *position* with value and P&L refreshed at *price*."""
        return replace(
            position,
            current_value=position.quantity * price,
            profit_loss=(price - position.average_cost) * position.quantity,
            profit_loss_percentage=(price / position.average_cost - 1) * 100,
        )

    @staticmethod
    def update_portfolio_positions(
        portfolio: Portfolio,
        instruments: Sequence[Instrument],
    ) -> Portfolio:
        """Mark every position to its instrument's current price.

        Positions whose instrument is missing keep their previous derived
        fields.  Totals are recomputed afterwards.

        Args:
            portfolio: The portfolio to revalue.
            instruments: Current instrument snapshot.

        Returns:
            A new ``Portfolio`` with refreshed valuations.
        """
        prices = {inst.instrument_id: inst.current_price for inst in instruments}
        positions: dict[str, Position] = {}

        for instrument_id, position in portfolio.positions.items():
            price = prices.get(instrument_id)
            if price is None:
                positions[instrument_id] = position
                continue
            positions[instrument_id] = PnLCalculator.value_position(position, price)

        return PnLCalculator.recalculate_portfolio_totals(
            replace(portfolio, positions=positions),
            instruments,
        )

    # ── Totals ──────────────────────────────────────────────────

    @staticmethod
    def recalculate_portfolio_totals(
        portfolio: Portfolio,
        instruments: Sequence[Instrument],
    ) -> Portfolio:
        """Recompute the ``total_*`` aggregates against *instruments*.

        Positions whose instrument is missing count toward the investment
        but contribute nothing to the value.
        """
        prices = {inst.instrument_id: inst.current_price for inst in instruments}

        total_investment = sum(pos.cost_basis for pos in portfolio.positions.values())
        positions_value = sum(
            pos.quantity * prices[instrument_id]
            for instrument_id, pos in portfolio.positions.items()
            if instrument_id in prices
        )
        total_profit_loss = positions_value - total_investment
        if total_investment > 0:
            total_profit_loss_percentage = (positions_value / total_investment - 1) * 100
        else:
            total_profit_loss_percentage = 0.0

        updated = replace(
            portfolio,
            total_value=portfolio.cash + positions_value,
            total_investment=total_investment,
            total_profit_loss=total_profit_loss,
            total_profit_loss_percentage=total_profit_loss_percentage,
        )

        log.debug(
            "portfolio_totals_recalculated",
            cash=round(updated.cash, 4),
            total_value=round(updated.total_value, 4),
            total_profit_loss=round(total_profit_loss, 4),
            n_positions=len(updated.positions),
        )
        return updated
