"""Synthetic price-path generation.

Each step applies a volatility-scaled noise term plus a trend bias::

    noise        = (U(0,1) - 0.5) * volatility
    biased_trend = U(0,1) * trend
    price       += price * (noise + biased_trend)

The trend term is not centred on zero: it scales ``trend`` by a uniform
draw, so a positive trend only ever pushes prices up and a negative trend
only ever pushes them down.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from marketsim.core.constants import (
    HISTORY_VOLUME_RANGE,
    INTRADAY_VOLATILITY_SCALE,
    MILLISECONDS_PER_DAY,
    PRICE_FLOOR,
    PRICE_RECOVERY_SPAN,
)
from marketsim.core.logging import get_logger
from marketsim.core.types import PricePoint

log = get_logger(__name__)


def price_step(price: float, volatility: float, trend: float, rng: random.Random) -> float:
    """Return *price* advanced by one noise-plus-trend step (unfloored)."""
    noise = (rng.random() - 0.5) * volatility
    biased_trend = rng.random() * trend
    return price + price * (noise + biased_trend)


def generate_price_history(
    base_price: float,
    days: int,
    points_per_day: int,
    volatility: float,
    trend: float,
    rng: random.Random,
    now: datetime | None = None,
) -> list[PricePoint]:
    """Generate ``(days + 1) * points_per_day`` ascending OHLCV points.

    Points are spaced ``1 / points_per_day`` of a day apart and the last
    point is stamped *now*, so instruments generated with the same *now*
    share identical timestamps.  The first point lies
    ``(days + 1) * points_per_day - 1`` steps before *now*.

    A price that drops under the floor is reset to a random value in
    ``[floor, floor + span)``; the walk continues from there.

    Args:
        base_price: Starting price (> 0).
        days: Number of whole days before the current day (>= 0).
        points_per_day: Samples per day (>= 1).
        volatility: Noise amplitude, typically in ``(0, 1)``.
        trend: Per-step drift factor, typically in ``(-0.01, 0.01)``.
        rng: Random source for every draw.
        now: Timestamp of the newest point. Defaults to the current UTC time.

    Returns:
        Price points ordered oldest to newest.

    Raises:
        ValueError: If *base_price*, *days* or *points_per_day* is out of range.
    """
    if base_price <= 0:
        msg = f"base_price must be positive, got {base_price}"
        raise ValueError(msg)
    if days < 0:
        msg = f"days must be non-negative, got {days}"
        raise ValueError(msg)
    if points_per_day < 1:
        msg = f"points_per_day must be at least 1, got {points_per_day}"
        raise ValueError(msg)

    now = now or datetime.now(timezone.utc)
    step = timedelta(milliseconds=MILLISECONDS_PER_DAY / points_per_day)
    n_points = (days + 1) * points_per_day
    start = now - step * (n_points - 1)

    history: list[PricePoint] = []
    current_price = base_price

    for i in range(n_points):
        current_price = price_step(current_price, volatility, trend, rng)
        if current_price < PRICE_FLOOR:
            current_price = PRICE_FLOOR + rng.random() * PRICE_RECOVERY_SPAN

        intraday_volatility = volatility * current_price * INTRADAY_VOLATILITY_SCALE
        open_ = current_price
        close = current_price + (rng.random() - 0.5) * intraday_volatility
        high = max(open_, close) + rng.random() * intraday_volatility
        low = min(open_, close) - rng.random() * intraday_volatility
        volume = rng.randrange(*HISTORY_VOLUME_RANGE)

        history.append(
            PricePoint(
                timestamp=start + step * i,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
            ),
        )

    log.debug(
        "price_history_generated",
        base_price=round(base_price, 4),
        n_points=n_points,
        last_close=round(history[-1].close, 4),
    )
    return history
