"""Custom exception hierarchy for the market simulator."""

from __future__ import annotations

from typing import Any


class MarketSimError(Exception):
    """Base exception for all market simulator errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context or {}


# ── Lookup ───────────────────────────────────────────────────────

class InstrumentNotFoundError(MarketSimError):
    """No instrument with the requested id or ticker exists in the universe."""


class OrderNotFoundError(MarketSimError):
    """No order with the requested id exists in the order book."""


# ── Commands ─────────────────────────────────────────────────────

class InvalidOrderError(MarketSimError):
    """Order parameters rejected before reaching the ledger."""


# ── Orchestration ────────────────────────────────────────────────

class SimulatorNotInitializedError(MarketSimError):
    """A query or command ran before ``MarketSimulator.initialize()``."""
