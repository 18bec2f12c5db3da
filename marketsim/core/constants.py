"""System-wide constants. All magic numbers and strings live here."""

from __future__ import annotations

# ── Price Dynamics ───────────────────────────────────────────────
PRICE_FLOOR = 10.0                  # No instrument ever trades below this
PRICE_RECOVERY_SPAN = 10.0          # Generator reset range: [floor, floor + span)
INTRADAY_VOLATILITY_SCALE = 0.1     # OHLC spread = volatility * price * scale
HISTORY_LIMIT = 150                 # Max points kept per price / value history
MILLISECONDS_PER_DAY = 86_400_000

# ── Universe Generation ──────────────────────────────────────────
UNIVERSE_SIZE = 100
HISTORY_DAYS = 30
POINTS_PER_DAY = 5                  # The last POINTS_PER_DAY points are "today"
TICKER_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
FOUR_LETTER_TICKER_PROBABILITY = 0.3

INITIAL_PRICE_RANGE = (50.0, 2000.0)
VOLATILITY_RANGE = (0.01, 0.05)
TREND_RANGE = (-0.01, 0.01)
OUTSTANDING_SHARES_RANGE = (10_000_000, 1_000_000_000)
HISTORY_VOLUME_RANGE = (50_000, 1_000_000)
TICK_VOLUME_RANGE = (10_000, 100_000)

COMPANY_PREFIXES: tuple[str, ...] = (
    "Quantum", "Nexus", "Apex", "Synergy", "Global", "Infinite", "Horizon",
    "Pioneer", "Elite", "Prime", "Fusion", "Vortex", "Dynamic", "Strategic",
    "Integrated", "Advanced", "Universal", "Precision", "Innovative",
    "Catalyst", "Summit", "Titan", "Vector", "Stellar", "Olympus",
)

COMPANY_SUFFIXES: tuple[str, ...] = (
    "Systems", "Technologies", "Dynamics", "Solutions", "Innovations", "Corp",
    "Industries", "Enterprises", "Networks", "Labs", "Robotics", "Ventures",
    "Group", "Holdings", "Communications", "Analytics", "Micro", "Energy",
    "Logistics", "Aviation", "Pharmaceuticals", "BioScience", "Manufacturing",
    "Telecom",
)

SECTORS: tuple[str, ...] = (
    "Technology", "Finance", "Healthcare", "Energy", "Consumer Goods",
    "Industrials", "Telecommunications", "Utilities", "Materials", "Real Estate",
)

# ── Composite Indices ────────────────────────────────────────────
INDEX_MAIN = "MAIN"
INDEX_TECH = "TECH"
INDEX_FIN = "FIN"
INDEX_HEALTH = "HEALTH"
INDEX_ENERGY = "ENERGY"

INDEX_TICKERS: tuple[str, ...] = (
    INDEX_MAIN, INDEX_TECH, INDEX_FIN, INDEX_HEALTH, INDEX_ENERGY,
)

SECTOR_INDEX_SECTORS: dict[str, str] = {
    INDEX_TECH: "Technology",
    INDEX_FIN: "Finance",
    INDEX_HEALTH: "Healthcare",
    INDEX_ENERGY: "Energy",
}

MAIN_INDEX_SIZE = 30                # Top N instruments by market cap
SECTOR_INDEX_SIZE = 20              # First N sector members in universe order

# ── Trading ──────────────────────────────────────────────────────
INITIAL_CASH = 100_000.0
DEFAULT_USER_ID = "user-1"

# ── Orchestration ────────────────────────────────────────────────
TICK_INTERVAL_SECONDS = 3.0
