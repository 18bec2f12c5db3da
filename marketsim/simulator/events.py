"""Human-readable market notifications.

Events are advisory: they tell a presentation layer what just happened
("Market order executed: buy 10 ABC at 500.00") but carry no state of
their own.  The authoritative data is always the published ``MarketState``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from uuid_extensions import uuid7


class EventType(str, Enum):
    MARKET_INITIALIZED = "market_initialized"
    ORDER_PLACED = "order_placed"
    ORDER_FILLED = "order_filled"
    ORDER_FAILED = "order_failed"
    ORDER_CANCELED = "order_canceled"
    ORDER_CANCEL_REJECTED = "order_cancel_rejected"
    LIMIT_ORDERS_EXECUTED = "limit_orders_executed"


@dataclass(frozen=True)
class MarketEvent:
    """Single notification emitted by the simulator."""

    event_type: EventType
    message: str
    data: dict[str, object] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid7()))

    @property
    def is_error(self) -> bool:
        return self.event_type in (EventType.ORDER_FAILED, EventType.ORDER_CANCEL_REJECTED)
