"""Tests for per-tick price evolution and index recompute."""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from marketsim.core.constants import HISTORY_LIMIT, PRICE_FLOOR
from marketsim.core.types import CompositeIndex, IndexValuePoint, Instrument
from marketsim.simulator.price_engine import (
    advance_instrument,
    advance_prices,
    recompute_index,
    recompute_indices,
)
from marketsim.simulator.universe import generate_market_data

T1 = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)


def _make_index(components: tuple[str, ...], value: float = 100.0) -> CompositeIndex:
    return CompositeIndex(
        index_id="idx-1",
        ticker="TEST",
        name="TEST Index",
        components=components,
        current_value=value,
        previous_value=value,
        day_open=value,
        day_high=value,
        day_low=value,
        value_history=(IndexValuePoint(timestamp=T1 - timedelta(minutes=1), value=value),),
    )


class TestAdvanceInstrument:
    def test_appends_bar_from_old_to_new(
        self, make_instrument: Callable[..., Instrument], rng: random.Random,
    ) -> None:
        inst = make_instrument(price=200.0)
        updated = advance_instrument(inst, rng, T1)

        bar = updated.price_history[-1]
        assert len(updated.price_history) == 2
        assert bar.timestamp == T1
        assert bar.open == 200.0
        assert bar.close == updated.current_price
        assert bar.high == max(200.0, updated.current_price)
        assert bar.low == min(200.0, updated.current_price)
        assert 10_000 <= bar.volume < 100_000
        assert updated.previous_price == 200.0

    def test_input_not_mutated(
        self, make_instrument: Callable[..., Instrument], rng: random.Random,
    ) -> None:
        inst = make_instrument(price=200.0)
        snapshot = (inst.current_price, inst.price_history)
        advance_instrument(inst, rng, T1)
        assert (inst.current_price, inst.price_history) == snapshot

    def test_hard_floor(self, make_instrument: Callable[..., Instrument]) -> None:
        inst = make_instrument(price=10.0, volatility=0.9, trend=-0.01)
        rng = random.Random(5)
        for _ in range(200):
            inst = advance_instrument(inst, rng, T1)
            assert inst.current_price >= PRICE_FLOOR

    def test_day_range_tracks_new_price(
        self, make_instrument: Callable[..., Instrument], rng: random.Random,
    ) -> None:
        inst = make_instrument(price=300.0, volatility=0.04)
        for _ in range(30):
            inst = advance_instrument(inst, rng, T1)
            assert inst.day_low <= inst.current_price <= inst.day_high

    def test_history_bounded_fifo(
        self, make_instrument: Callable[..., Instrument], rng: random.Random,
    ) -> None:
        inst = make_instrument(price=300.0)
        stamps = [T1 + timedelta(seconds=3 * i) for i in range(HISTORY_LIMIT + 20)]
        for ts in stamps:
            inst = advance_instrument(inst, rng, ts)
        assert len(inst.price_history) == HISTORY_LIMIT
        assert [p.timestamp for p in inst.price_history] == stamps[-HISTORY_LIMIT:]

    def test_custom_history_limit(
        self, make_instrument: Callable[..., Instrument], rng: random.Random,
    ) -> None:
        inst = make_instrument(price=300.0)
        for _ in range(5):
            inst = advance_instrument(inst, rng, T1, history_limit=3)
        assert len(inst.price_history) == 3


class TestAdvancePrices:
    def test_floor_and_bound_over_many_ticks(self) -> None:
        rng = random.Random(11)
        instruments, _ = generate_market_data(rng, size=40, now=T1)
        for i in range(200):
            instruments = advance_prices(instruments, rng, T1 + timedelta(seconds=3 * (i + 1)))
            assert all(inst.current_price >= PRICE_FLOOR for inst in instruments)
        assert all(len(inst.price_history) == HISTORY_LIMIT for inst in instruments)

    def test_preserves_order_and_identity(self, rng: random.Random) -> None:
        instruments, _ = generate_market_data(rng, size=35, now=T1)
        updated = advance_prices(instruments, rng, T1 + timedelta(seconds=3))
        assert [i.instrument_id for i in updated] == [i.instrument_id for i in instruments]


class TestRecomputeIndices:
    def test_value_is_mean_of_current_prices(self) -> None:
        idx = _make_index(("a", "b"))
        updated = recompute_index(idx, {"a": 100.0, "b": 300.0, "c": 999.0}, T1)
        assert updated.current_value == pytest.approx(200.0)
        assert updated.previous_value == 100.0
        assert updated.day_high == pytest.approx(200.0)
        assert updated.day_low == 100.0
        assert updated.value_history[-1] == IndexValuePoint(timestamp=T1, value=updated.current_value)

    def test_no_components_present_keeps_value(self) -> None:
        idx = _make_index(("gone",), value=123.0)
        updated = recompute_index(idx, {}, T1)
        assert updated.current_value == 123.0

    def test_history_bounded(self) -> None:
        idx = _make_index(("a",))
        for i in range(HISTORY_LIMIT + 5):
            idx = recompute_index(idx, {"a": 100.0 + i}, T1 + timedelta(seconds=i))
        assert len(idx.value_history) == HISTORY_LIMIT
        assert idx.value_history[-1].value == 100.0 + HISTORY_LIMIT + 4

    def test_recompute_after_advance(self, rng: random.Random) -> None:
        instruments, indices = generate_market_data(rng, size=50, now=T1)
        instruments = advance_prices(instruments, rng, T1 + timedelta(seconds=3))
        updated = recompute_indices(indices, instruments, T1 + timedelta(seconds=3))

        prices = {i.instrument_id: i.current_price for i in instruments}
        for before, after in zip(indices, updated):
            if not before.components:
                continue
            expected = sum(prices[c] for c in before.components) / len(before.components)
            assert after.current_value == pytest.approx(expected)
            assert after.previous_value == before.current_value
            assert after.components == before.components
            assert len(after.value_history) == min(len(before.value_history) + 1, HISTORY_LIMIT)
