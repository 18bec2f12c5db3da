"""Market simulator settings — loaded from environment variables via .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marketsim.core.constants import (
    DEFAULT_USER_ID,
    HISTORY_LIMIT,
    INITIAL_CASH,
    MAIN_INDEX_SIZE,
    TICK_INTERVAL_SECONDS,
    UNIVERSE_SIZE,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """All configuration flows through this class. Never read env vars directly."""

    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Simulation ───────────────────────────────────────────────
    tick_interval_seconds: float = TICK_INTERVAL_SECONDS
    universe_size: int = UNIVERSE_SIZE
    history_limit: int = HISTORY_LIMIT
    random_seed: int | None = None       # None = nondeterministic

    # ── Trading ──────────────────────────────────────────────────
    initial_cash: float = INITIAL_CASH
    default_user_id: str = DEFAULT_USER_ID

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        """Reject values the simulation cannot run with."""
        if self.tick_interval_seconds <= 0:
            msg = f"tick_interval_seconds must be positive, got {self.tick_interval_seconds}"
            raise ValueError(msg)
        if self.initial_cash <= 0:
            msg = f"initial_cash must be positive, got {self.initial_cash}"
            raise ValueError(msg)
        if self.history_limit < 1:
            msg = f"history_limit must be at least 1, got {self.history_limit}"
            raise ValueError(msg)
        if self.universe_size < MAIN_INDEX_SIZE:
            msg = (
                f"universe_size must be at least {MAIN_INDEX_SIZE} "
                f"to fill the MAIN index, got {self.universe_size}"
            )
            raise ValueError(msg)
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Singleton settings loader — reads .env once, reuses thereafter."""
    global _settings_instance  # noqa: PLW0603
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
