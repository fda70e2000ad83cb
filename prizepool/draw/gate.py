"""Request validation and the probabilistic admission gate."""

from __future__ import annotations

import math
from decimal import Decimal
from numbers import Real
from typing import Any, Protocol

from ..errors import InvalidInputError


class RandomSource(Protocol):
    """Anything exposing ``random()`` in ``[0, 1)``, e.g. :class:`random.Random`."""

    def random(self) -> float: ...


def validate_device_id(device_id: Any) -> str:
    """Return ``device_id`` unchanged if it is a usable identity.

    Parameters
    ----------
    device_id : Any
        Caller-supplied identity.

    Raises
    ------
    InvalidInputError
        If the value is not a string or is empty.
    """

    if not isinstance(device_id, str):
        raise InvalidInputError("device_id must be a string")
    if not device_id:
        raise InvalidInputError("device_id must not be empty")
    return device_id


def coerce_rate(value: Any, default: float) -> float:
    """Coerce a caller-supplied win rate to a float.

    Only numeric coercion is applied; the value is not clamped, so rates
    at or below zero always lose and rates above one always pass.

    Parameters
    ----------
    value : Any
        Raw rate; ``None``, booleans, non-numeric or non-finite values fall
        back to ``default``.
    default : float
        Configured default win rate.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (Real, Decimal, str)):
        try:
            rate = float(value)
        except (ValueError, OverflowError):
            return default
        if math.isfinite(rate):
            return rate
    return default


def passes_gate(rng: RandomSource, rate: float) -> bool:
    """Draw once from ``rng`` and report whether the draw is below ``rate``."""

    return rng.random() < rate


__all__ = ["RandomSource", "coerce_rate", "passes_gate", "validate_device_id"]
