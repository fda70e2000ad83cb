"""Bounded prize pool: at most one win per device, never more wins than tokens."""

from .draw import DrawEngine, DrawOutcome, PoolState
from .errors import InvalidInputError, PrizePoolError, StoreUnavailableError

__all__ = [
    "DrawEngine",
    "DrawOutcome",
    "PoolState",
    "InvalidInputError",
    "PrizePoolError",
    "StoreUnavailableError",
]
