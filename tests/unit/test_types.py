"""Tests for core domain types."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from marketsim.core.types import (
    CompositeIndex,
    IndexValuePoint,
    Instrument,
    LimitOrder,
    MarketOrder,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Portfolio,
    Position,
)

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class TestEnums:
    def test_values(self) -> None:
        assert OrderType.MARKET.value == "market"
        assert OrderType.LIMIT.value == "limit"
        assert OrderSide("buy") == OrderSide.BUY
        assert OrderStatus("canceled") == OrderStatus.CANCELED

    def test_str_enum(self) -> None:
        assert OrderSide.SELL == "sell"


class TestInstrument:
    def test_change_helpers(self, make_instrument: Callable[..., Instrument]) -> None:
        inst = dataclasses.replace(
            make_instrument(price=110.0), previous_price=100.0, day_open=88.0,
        )
        assert inst.change == pytest.approx(10.0)
        assert inst.change_percent == pytest.approx(10.0)
        assert inst.day_change == pytest.approx(22.0)
        assert inst.day_change_percent == pytest.approx(25.0)

    def test_frozen(self, make_instrument: Callable[..., Instrument]) -> None:
        inst = make_instrument()
        with pytest.raises(dataclasses.FrozenInstanceError):
            inst.current_price = 1.0  # type: ignore[misc]


class TestCompositeIndex:
    def test_change_helpers(self) -> None:
        idx = CompositeIndex(
            index_id="idx-1",
            ticker="MAIN",
            name="Main Market Index",
            components=("a", "b"),
            current_value=102.0,
            previous_value=100.0,
            day_open=100.0,
            day_high=103.0,
            day_low=99.0,
            value_history=(IndexValuePoint(timestamp=T0, value=102.0),),
        )
        assert idx.change == pytest.approx(2.0)
        assert idx.change_percent == pytest.approx(2.0)


class TestOrders:
    def _common(self) -> dict[str, object]:
        return {
            "order_id": "o-1",
            "user_id": "user-1",
            "instrument_id": "inst-x",
            "ticker": "XYZ",
            "side": OrderSide.BUY,
            "quantity": 5,
        }

    def test_market_order_defaults(self) -> None:
        order = MarketOrder(**self._common())
        assert order.type == OrderType.MARKET
        assert order.status == OrderStatus.PENDING
        assert order.created_at.tzinfo is not None
        assert not order.is_terminal

    def test_limit_order_carries_price(self) -> None:
        order = LimitOrder(limit_price=99.5, **self._common())
        assert order.type == OrderType.LIMIT
        assert order.limit_price == 99.5

    def test_replace_preserves_variant(self) -> None:
        order = LimitOrder(limit_price=99.5, **self._common())
        filled = dataclasses.replace(
            order, status=OrderStatus.FILLED, executed_at=T0 + timedelta(seconds=1), executed_price=99.0,
        )
        assert isinstance(filled, LimitOrder)
        assert filled.is_terminal
        assert filled.limit_price == 99.5

    def test_limit_order_requires_price(self) -> None:
        with pytest.raises(TypeError):
            LimitOrder(**self._common())  # type: ignore[call-arg]

    def test_base_order_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            Order(**self._common())  # type: ignore[abstract]


class TestPortfolio:
    def test_position_cost_basis(self) -> None:
        pos = Position(instrument_id="a", ticker="AAA", quantity=4, average_cost=25.0)
        assert pos.cost_basis == 100.0

    def test_get_position(self) -> None:
        pos = Position(instrument_id="a", ticker="AAA", quantity=1, average_cost=1.0)
        portfolio = Portfolio(cash=10.0, positions={"a": pos})
        assert portfolio.get_position("a") == pos
        assert portfolio.get_position("b") is None

    def test_positions_are_read_only(self) -> None:
        pos = Position(instrument_id="a", ticker="AAA", quantity=1, average_cost=1.0)
        portfolio = Portfolio(cash=10.0, positions={"a": pos})
        with pytest.raises(TypeError):
            portfolio.positions["b"] = pos  # type: ignore[index]
        with pytest.raises(AttributeError):
            portfolio.positions.clear()  # type: ignore[attr-defined]

    def test_positions_copied_from_input(self) -> None:
        pos = Position(instrument_id="a", ticker="AAA", quantity=1, average_cost=1.0)
        source = {"a": pos}
        portfolio = Portfolio(cash=10.0, positions=source)
        source.clear()
        assert portfolio.get_position("a") == pos

    def test_equality_and_replace(self) -> None:
        pos = Position(instrument_id="a", ticker="AAA", quantity=1, average_cost=1.0)
        portfolio = Portfolio(cash=10.0, positions={"a": pos})
        assert portfolio == Portfolio(cash=10.0, positions={"a": pos})
        assert portfolio.positions == {"a": pos}
        emptied = dataclasses.replace(portfolio, positions={})
        assert emptied.positions == {}
        assert portfolio.get_position("a") == pos
