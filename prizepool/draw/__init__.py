"""Draw pipeline: request validation, random gate and the draw engine."""

from .engine import ALREADY_WINNER, NO_PRIZES_LEFT, DrawEngine, DrawOutcome, PoolState
from .gate import RandomSource, coerce_rate, passes_gate, validate_device_id

__all__ = [
    "ALREADY_WINNER",
    "NO_PRIZES_LEFT",
    "DrawEngine",
    "DrawOutcome",
    "PoolState",
    "RandomSource",
    "coerce_rate",
    "passes_gate",
    "validate_device_id",
]
