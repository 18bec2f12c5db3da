"""Market simulator console runner.

Usage:
    python scripts/run_simulation.py
    python scripts/run_simulation.py --ticks 20 --interval 0.5 --seed 7
    python scripts/run_simulation.py --json-logs
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import Settings, get_settings
from marketsim.core.constants import INDEX_MAIN
from marketsim.core.logging import get_logger, setup_logging
from marketsim.core.types import MarketState
from marketsim.simulator import MarketEvent, MarketSimulator, TickResult

log = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Market Simulator Runner")
    parser.add_argument(
        "--ticks",
        type=int,
        default=0,
        help="Max ticks (0 = unlimited, default: 0)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (default: from settings)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for a reproducible market (default: from settings)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of console output",
    )
    return parser.parse_args()


def build_settings(args: argparse.Namespace) -> Settings:
    """Overlay command-line overrides on the environment settings."""
    overrides: dict[str, object] = {}
    if args.interval is not None:
        overrides["tick_interval_seconds"] = args.interval
    if args.seed is not None:
        overrides["random_seed"] = args.seed
    if args.json_logs:
        overrides["log_json"] = True
    base = get_settings()
    return Settings(**{**base.model_dump(), **overrides})


async def print_tick(state: MarketState, result: TickResult) -> None:
    main_index = next(idx for idx in state.indices if idx.ticker == INDEX_MAIN)
    print(
        f"[tick {result.tick:>4}] {INDEX_MAIN} {main_index.current_value:,.2f} "
        f"({main_index.change_percent:+.2f}%)  "
        f"portfolio {state.portfolio.total_value:,.2f}",
    )


def print_event(event: MarketEvent) -> None:
    print(f"  * {event.message}")


async def main() -> None:
    """Entry point."""
    args = parse_args()
    settings = build_settings(args)
    setup_logging(settings.log_level, json_output=settings.log_json)

    sim = MarketSimulator(settings=settings)
    sim.on_tick(print_tick)
    sim.on_event(print_event)
    sim.initialize()

    # Handle graceful shutdown
    loop = asyncio.get_running_loop()
    for sig_name in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig_name, sim.stop)

    summary = await sim.run(max_ticks=args.ticks or None)
    log.info("runner_exit", status=summary.status.value, ticks=summary.ticks)


if __name__ == "__main__":
    asyncio.run(main())
