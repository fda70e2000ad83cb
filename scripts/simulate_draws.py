#!/usr/bin/env python3
"""
Fire concurrent draw requests at the configured store and tally the outcomes.

Usage:
    python scripts/simulate_draws.py --devices 200 --workers 16 --rate 1.0

Every request uses a distinct device id, so with ``--rate 1.0`` the number of
wins must equal the number of free tokens before the run (capped by the
number of devices). The script exits non-zero if the tally disagrees with
the store afterwards.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Optional

from prizepool.config import load_settings
from prizepool.draw import DrawEngine, DrawOutcome


def _label(outcome: DrawOutcome) -> str:
    if outcome.won:
        return "won"
    return outcome.reason or "lost_gate"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--devices", type=int, default=100, help="distinct device ids")
    parser.add_argument("--workers", type=int, default=8, help="concurrent threads")
    parser.add_argument("--rate", type=float, default=None, help="win rate per request")
    parser.add_argument("--seed", type=int, default=None, help="seed for the random gate")
    parser.add_argument("--db-url", default=None, help="override DB_URL")
    parser.add_argument("--prefix", default="sim", help="device id prefix")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING)

    settings = load_settings()
    if args.db_url:
        settings = replace(settings, database_url=args.db_url)
    rng = random.Random(args.seed) if args.seed is not None else None
    engine = DrawEngine.from_settings(settings, rng=rng)

    before = engine.state()
    device_ids = [f"{args.prefix}-{index:05d}" for index in range(args.devices)]
    with ThreadPoolExecutor(max_workers=args.workers) as pool:
        outcomes = list(pool.map(lambda d: engine.draw(d, args.rate), device_ids))
    after = engine.state()

    tally = Counter(_label(outcome) for outcome in outcomes)
    print(f"Before: {before.to_payload()}")
    for label in ("won", "lost_gate", "already_winner", "no_prizes_left"):
        print(f"  {label:<15} {tally.get(label, 0)}")
    print(f"After:  {after.to_payload()}")

    if before.remaining - after.remaining != tally["won"]:
        print("Mismatch between reported wins and claimed tokens", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
