"""Draw engine deciding whether a device receives a prize token."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from .gate import RandomSource, coerce_rate, passes_gate, validate_device_id
from ..config import DEFAULT_MAX_PRIZES, DEFAULT_WIN_RATE, Settings, load_settings
from ..db.engine import get_sessionmaker, make_engine
from ..db.transaction import atomic
from ..models import PrizeToken, Winner

logger = logging.getLogger(__name__)

ALREADY_WINNER = "already_winner"
NO_PRIZES_LEFT = "no_prizes_left"


class _RegisteredConcurrently(Exception):
    """Aborts a claim whose device was registered by a parallel request."""


@dataclass(frozen=True)
class DrawOutcome:
    """Result of a single draw request.

    Attributes
    ----------
    won : bool
        Whether the request claimed a prize token.
    remaining : int
        Free tokens left after the request.
    reason : Optional[str]
        ``"already_winner"`` or ``"no_prizes_left"`` for those losses;
        ``None`` for wins and for requests that lost the random gate.
    """

    won: bool
    remaining: int
    reason: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"won": self.won}
        if self.reason is not None:
            payload["reason"] = self.reason
        payload["remaining"] = self.remaining
        return payload


@dataclass(frozen=True)
class PoolState:
    """Snapshot of the pool counters."""

    max_prizes: int
    awarded: int
    remaining: int

    def to_payload(self) -> dict[str, int]:
        return {
            "max": self.max_prizes,
            "awarded": self.awarded,
            "remaining": self.remaining,
        }


class DrawEngine:
    """Runs draw requests against the shared prize store.

    Each request walks a fixed sequence: prior-win check, random gate,
    atomic token claim, winner registration. The claim and the registration
    share one transaction; the reads around them run in their own short
    transactions. If the registration finds the device already present,
    a parallel request for the same device won first and the claim is
    rolled back. No state is kept in the engine between requests, so one
    instance may serve any number of threads.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        default_rate: float = DEFAULT_WIN_RATE,
        max_prizes: int = DEFAULT_MAX_PRIZES,
        rng: Optional[RandomSource] = None,
    ) -> None:
        """Create a draw engine bound to a session factory.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory producing sessions on the shared store.
        default_rate : float, default: 0.15
            Gate probability used when a request omits ``rate``.
        max_prizes : int, default: 10
            Informational pool size reported by :meth:`state`.
        rng : Optional[RandomSource], default: None
            Random source for the gate. Pass a seeded
            :class:`random.Random` for reproducible draws; when omitted a
            private unseeded instance is used.
        """

        self._sessions = session_factory
        self.default_rate = default_rate
        self.max_prizes = max_prizes
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        rng: Optional[RandomSource] = None,
    ) -> "DrawEngine":
        """Build an engine, database engine included, from :class:`Settings`."""

        settings = settings or load_settings()
        engine = make_engine(settings.database_url, echo=settings.echo)
        return cls(
            get_sessionmaker(engine),
            default_rate=settings.default_win_rate,
            max_prizes=settings.max_prizes,
            rng=rng,
        )

    def draw(self, device_id: str, rate: Any = None) -> DrawOutcome:
        """Run one draw request for ``device_id``.

        Parameters
        ----------
        device_id : str
            Requesting identity; must be a non-empty string.
        rate : Any, default: None
            Win probability for this request. Numeric strings are accepted;
            missing or non-numeric values use :attr:`default_rate`.

        Returns
        -------
        DrawOutcome
            Business outcome of the request. Losing is never an exception.

        Raises
        ------
        InvalidInputError
            If ``device_id`` is not a non-empty string. Nothing is read or
            written in that case.
        StoreUnavailableError
            If the store fails; any in-flight claim is rolled back.
        """

        device_id = validate_device_id(device_id)
        rate = coerce_rate(rate, self.default_rate)

        with atomic(self._sessions) as session:
            if Winner.has_won(session, device_id):
                remaining = PrizeToken.remaining_count(session)
                logger.debug(f"Device {device_id!r} already won; skipping draw")
                return DrawOutcome(False, remaining, ALREADY_WINNER)

        if not passes_gate(self._rng, rate):
            logger.debug(f"Device {device_id!r} lost the gate at rate {rate}")
            return DrawOutcome(False, self.remaining())

        try:
            with atomic(self._sessions) as session:
                token_id = PrizeToken.claim_one(session, device_id)
                if token_id is None:
                    logger.debug(
                        f"Device {device_id!r} passed the gate but the pool is empty"
                    )
                    return DrawOutcome(False, 0, NO_PRIZES_LEFT)
                if not Winner.record_win(session, device_id):
                    raise _RegisteredConcurrently(device_id)
        except _RegisteredConcurrently:
            logger.info(
                f"Device {device_id!r} won in a concurrent request; claim rolled back"
            )
            return DrawOutcome(False, self.remaining(), ALREADY_WINNER)

        logger.info(f"Device {device_id!r} won prize token {token_id}")
        return DrawOutcome(True, self.remaining())

    def remaining(self) -> int:
        """Return the number of free tokens."""

        with atomic(self._sessions) as session:
            return PrizeToken.remaining_count(session)

    def state(self) -> PoolState:
        """Return configured, awarded and remaining counts."""

        with atomic(self._sessions) as session:
            return PoolState(
                max_prizes=self.max_prizes,
                awarded=Winner.count(session),
                remaining=PrizeToken.remaining_count(session),
            )


__all__ = [
    "ALREADY_WINNER",
    "NO_PRIZES_LEFT",
    "DrawEngine",
    "DrawOutcome",
    "PoolState",
]
