"""Advance the market universe by one simulated tick.

Both entry points are pure: they return new instruments and indices and
never touch their inputs.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

from marketsim.core.constants import HISTORY_LIMIT, PRICE_FLOOR, TICK_VOLUME_RANGE
from marketsim.core.logging import get_logger
from marketsim.core.types import CompositeIndex, IndexValuePoint, Instrument, PricePoint
from marketsim.simulator.price_path import price_step

log = get_logger(__name__)


def advance_instrument(
    instrument: Instrument,
    rng: random.Random,
    now: datetime,
    history_limit: int = HISTORY_LIMIT,
) -> Instrument:
    """Apply one price step to *instrument* and append the resulting bar.

    Unlike history generation, the floor here is a hard clamp.
    """
    old_price = instrument.current_price
    new_price = max(
        price_step(old_price, instrument.volatility, instrument.trend, rng),
        PRICE_FLOOR,
    )

    point = PricePoint(
        timestamp=now,
        open=old_price,
        high=max(old_price, new_price),
        low=min(old_price, new_price),
        close=new_price,
        volume=rng.randrange(*TICK_VOLUME_RANGE),
    )

    return replace(
        instrument,
        previous_price=old_price,
        current_price=new_price,
        day_high=max(instrument.day_high, new_price),
        day_low=min(instrument.day_low, new_price),
        price_history=(*instrument.price_history, point)[-history_limit:],
    )


def advance_prices(
    instruments: Sequence[Instrument],
    rng: random.Random,
    now: datetime | None = None,
    history_limit: int = HISTORY_LIMIT,
) -> list[Instrument]:
    """Advance every instrument by one tick, preserving order."""
    now = now or datetime.now(timezone.utc)
    updated = [advance_instrument(inst, rng, now, history_limit) for inst in instruments]
    log.debug("prices_advanced", n_instruments=len(updated), timestamp=now.isoformat())
    return updated


def recompute_index(
    index: CompositeIndex,
    prices: dict[str, float],
    now: datetime,
    history_limit: int = HISTORY_LIMIT,
) -> CompositeIndex:
    """Revalue *index* as the mean current price of its components.

    Components absent from *prices* are skipped; with none present the
    index keeps its current value.
    """
    component_prices = [prices[cid] for cid in index.components if cid in prices]
    if component_prices:
        new_value = sum(component_prices) / len(component_prices)
    else:
        new_value = index.current_value

    point = IndexValuePoint(timestamp=now, value=new_value)
    return replace(
        index,
        previous_value=index.current_value,
        current_value=new_value,
        day_high=max(index.day_high, new_value),
        day_low=min(index.day_low, new_value),
        value_history=(*index.value_history, point)[-history_limit:],
    )


def recompute_indices(
    indices: Sequence[CompositeIndex],
    instruments: Sequence[Instrument],
    now: datetime | None = None,
    history_limit: int = HISTORY_LIMIT,
) -> list[CompositeIndex]:
    """Revalue every index against the (already advanced) *instruments*."""
    now = now or datetime.now(timezone.utc)
    prices = {inst.instrument_id: inst.current_price for inst in instruments}
    updated = [recompute_index(idx, prices, now, history_limit) for idx in indices]
    log.debug(
        "indices_recomputed",
        values={idx.ticker: round(idx.current_value, 4) for idx in updated},
    )
    return updated
