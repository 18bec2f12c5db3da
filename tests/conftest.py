"""Pytest configuration, compatibility helpers and shared fixtures.

Async tests are marked ``@pytest.mark.asyncio``.  When no async plugin is
installed, :func:`pytest_pyfunc_call` runs them on a fresh event loop so the
suite needs nothing beyond pytest itself.
"""

from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from config.settings import Settings
from marketsim.core.types import Instrument, PricePoint

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` coroutine tests via ``asyncio.run``."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    asyncio.run(test_func(**kwargs))
    return True


# ── Builders ─────────────────────────────────────────────────────


def _make_instrument(
    instrument_id: str = "inst-x",
    ticker: str = "XYZ",
    price: float = 500.0,
    sector: str = "Technology",
    volatility: float = 0.02,
    trend: float = 0.0,
) -> Instrument:
    """Instrument with a one-point history at *price*."""
    return Instrument(
        instrument_id=instrument_id,
        ticker=ticker,
        name=f"{ticker} Holdings",
        sector=sector,
        initial_price=price,
        current_price=price,
        previous_price=price,
        day_open=price,
        day_high=price,
        day_low=price,
        market_cap=price * 1_000_000,
        volume=100_000,
        volatility=volatility,
        trend=trend,
        price_history=(
            PricePoint(timestamp=T0, open=price, high=price, low=price, close=price, volume=100_000),
        ),
    )


# ── Fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def make_instrument() -> Callable[..., Instrument]:
    """Factory for hand-built instruments with a fixed price."""
    return _make_instrument


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tick_interval_seconds=0.001,
        universe_size=100,
        random_seed=1234,
        initial_cash=100_000.0,
        _env_file=None,
    )
