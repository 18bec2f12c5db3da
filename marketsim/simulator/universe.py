"""Market universe builder: a fixed set of instruments plus composite indices.

Builds ``UNIVERSE_SIZE`` instruments with random identities and price
parameters, each with a generated 30-day history, then derives five
composite indices:

    MAIN    top 30 instruments by market cap
    TECH    first 20 Technology instruments in universe order
    FIN     first 20 Finance instruments
    HEALTH  first 20 Healthcare instruments
    ENERGY  first 20 Energy instruments

The universe is fixed after creation; index components never change.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime, timezone

from uuid_extensions import uuid7

from marketsim.core.constants import (
    COMPANY_PREFIXES,
    COMPANY_SUFFIXES,
    FOUR_LETTER_TICKER_PROBABILITY,
    HISTORY_DAYS,
    INDEX_MAIN,
    INDEX_TICKERS,
    INITIAL_PRICE_RANGE,
    MAIN_INDEX_SIZE,
    OUTSTANDING_SHARES_RANGE,
    POINTS_PER_DAY,
    PRICE_FLOOR,
    SECTOR_INDEX_SECTORS,
    SECTOR_INDEX_SIZE,
    SECTORS,
    TICKER_ALPHABET,
    TREND_RANGE,
    UNIVERSE_SIZE,
    VOLATILITY_RANGE,
)
from marketsim.core.logging import get_logger
from marketsim.core.types import CompositeIndex, IndexValuePoint, Instrument
from marketsim.simulator.price_path import generate_price_history

log = get_logger(__name__)


# ── Identity ─────────────────────────────────────────────────────


def generate_ticker(used_tickers: set[str], rng: random.Random) -> str:
    """Draw a 3- or 4-letter ticker not yet in *used_tickers* and reserve it."""
    while True:
        length = 4 if rng.random() < FOUR_LETTER_TICKER_PROBABILITY else 3
        ticker = "".join(rng.choice(TICKER_ALPHABET) for _ in range(length))
        if ticker not in used_tickers:
            used_tickers.add(ticker)
            return ticker


def generate_company_name(rng: random.Random) -> str:
    return f"{rng.choice(COMPANY_PREFIXES)} {rng.choice(COMPANY_SUFFIXES)}"


# ── Instruments ──────────────────────────────────────────────────


def generate_instrument(
    used_tickers: set[str],
    rng: random.Random,
    now: datetime | None = None,
) -> Instrument:
    """Create one instrument with a freshly generated price history.

    Current and previous prices are the last two closes; "today" is the
    last ``POINTS_PER_DAY`` points of the history.
    """
    ticker = generate_ticker(used_tickers, rng)
    name = generate_company_name(rng)
    sector = rng.choice(SECTORS)
    initial_price = rng.uniform(*INITIAL_PRICE_RANGE)
    volatility = rng.uniform(*VOLATILITY_RANGE)
    trend = rng.uniform(*TREND_RANGE)

    history = generate_price_history(
        initial_price,
        days=HISTORY_DAYS,
        points_per_day=POINTS_PER_DAY,
        volatility=volatility,
        trend=trend,
        rng=rng,
        now=now,
    )

    # Intraday perturbation can nudge a close just under the floor
    current_price = max(history[-1].close, PRICE_FLOOR)
    previous_price = max(history[-2].close, PRICE_FLOOR) if len(history) > 1 else initial_price

    today = history[-POINTS_PER_DAY:]
    outstanding_shares = rng.randrange(*OUTSTANDING_SHARES_RANGE)

    return Instrument(
        instrument_id=str(uuid7()),
        ticker=ticker,
        name=name,
        sector=sector,
        initial_price=initial_price,
        current_price=current_price,
        previous_price=previous_price,
        day_open=today[0].open,
        day_high=max(p.high for p in today),
        day_low=min(p.low for p in today),
        market_cap=current_price * outstanding_shares,
        volume=sum(p.volume for p in today),
        volatility=volatility,
        trend=trend,
        price_history=tuple(history),
    )


# ── Indices ──────────────────────────────────────────────────────


def _average(values: Sequence[float]) -> float:
    """Arithmetic mean, ``0.0`` for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def select_components(ticker: str, instruments: Sequence[Instrument]) -> list[str]:
    """Return the constituent instrument ids for the index *ticker*."""
    if ticker == INDEX_MAIN:
        by_cap = sorted(instruments, key=lambda inst: inst.market_cap, reverse=True)
        return [inst.instrument_id for inst in by_cap[:MAIN_INDEX_SIZE]]

    sector = SECTOR_INDEX_SECTORS[ticker]
    members = [inst for inst in instruments if inst.sector == sector]
    return [inst.instrument_id for inst in members[:SECTOR_INDEX_SIZE]]


def build_index(ticker: str, instruments: Sequence[Instrument]) -> CompositeIndex:
    """Derive one composite index and its value history from *instruments*.

    The history is sampled at every timestamp of the first instrument's
    history.  A component without a point at that exact timestamp
    contributes 0 to the sum.
    """
    components = select_components(ticker, instruments)
    component_set = set(components)
    members = [inst for inst in instruments if inst.instrument_id in component_set]

    initial_value = _average([inst.initial_price for inst in members])

    closes_by_member: list[dict[datetime, float]] = [
        {p.timestamp: p.close for p in inst.price_history} for inst in members
    ]
    timestamps = [p.timestamp for p in instruments[0].price_history]

    value_history: list[IndexValuePoint] = []
    for ts in timestamps:
        closes = [by_ts.get(ts, 0.0) for by_ts in closes_by_member]
        value_history.append(IndexValuePoint(timestamp=ts, value=_average(closes)))

    values = [p.value for p in value_history]
    today = values[-POINTS_PER_DAY:]

    if not members:
        log.warning("index_without_components", ticker=ticker)

    return CompositeIndex(
        index_id=str(uuid7()),
        ticker=ticker,
        name=f"{ticker} Index",
        components=tuple(components),
        current_value=values[-1],
        previous_value=values[-2] if len(values) > 1 else initial_value,
        day_open=today[0],
        day_high=max(today),
        day_low=min(today),
        value_history=tuple(value_history),
    )


def build_indices(instruments: Sequence[Instrument]) -> list[CompositeIndex]:
    return [build_index(ticker, instruments) for ticker in INDEX_TICKERS]


# ── Universe ─────────────────────────────────────────────────────


def generate_market_data(
    rng: random.Random,
    size: int = UNIVERSE_SIZE,
    now: datetime | None = None,
) -> tuple[list[Instrument], list[CompositeIndex]]:
    """Build the full instrument universe and its indices.

    All instruments share one *now* so their history timestamps align and
    index values are exact averages.

    Args:
        rng: Random source for every draw.
        size: Number of instruments to create.
        now: Timestamp of the newest history point. Defaults to current UTC time.

    Returns:
        ``(instruments, indices)``; exactly one index per ``INDEX_TICKERS`` entry.
    """
    if size < 1:
        msg = f"universe size must be at least 1, got {size}"
        raise ValueError(msg)

    now = now or datetime.now(timezone.utc)
    used_tickers: set[str] = set()
    instruments = [generate_instrument(used_tickers, rng, now) for _ in range(size)]
    indices = build_indices(instruments)

    log.info(
        "market_universe_built",
        n_instruments=len(instruments),
        n_indices=len(indices),
        index_sizes={idx.ticker: len(idx.components) for idx in indices},
    )
    return instruments, indices

