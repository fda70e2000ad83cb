"""Database model for the finite prize pool."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Text,
    func,
    select,
    text,
    update,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base

logger = logging.getLogger(__name__)


class PrizeToken(Base):
    """One claimable unit of the prize pool.

    Tokens are created once when the pool is seeded and move from free to
    claimed exactly once. Only :meth:`claim_one` writes ``claimed_by``.
    """

    __tablename__ = "prize_tokens"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    """Stable token identifier assigned at seeding."""

    claimed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Device that owns the token; ``None`` while the token is free."""

    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Timestamp of the claim, set together with ``claimed_by``."""

    __table_args__ = (
        CheckConstraint(
            "(claimed_by IS NULL AND claimed_at IS NULL)"
            " OR (claimed_by IS NOT NULL AND claimed_at IS NOT NULL)",
            name="claim_pair",
        ),
        Index(
            "ix_prize_tokens_free",
            "id",
            postgresql_where=text("claimed_by IS NULL"),
            sqlite_where=text("claimed_by IS NULL"),
        ),
    )

    def __init__(
        self,
        *,
        claimed_by: Optional[str] = None,
        claimed_at: Optional[datetime] = None,
    ) -> None:
        self.claimed_by = claimed_by
        self.claimed_at = claimed_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<PrizeToken(id={id}, claimed_by={by})>".format(
            id=self.id, by=self.claimed_by
        )

    @classmethod
    def seed(cls, session: Session, count: int) -> int:
        """Create ``count`` free tokens if the pool has never been seeded.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        count : int
            Pool size to create.

        Returns
        -------
        int
            Number of tokens created; ``0`` when the table already holds rows.

        Raises
        ------
        ValueError
            If ``count`` is negative.
        """
        if count < 0:
            raise ValueError("Pool size must not be negative")

        existing = cls.total_count(session)
        if existing:
            logger.info(f"Prize pool already seeded with {existing} tokens")
            return 0

        session.add_all([cls() for _ in range(count)])
        session.flush()
        logger.info(f"Seeded prize pool with {count} tokens")
        return count

    @classmethod
    def claim_one(
        cls,
        session: Session,
        device_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[int]:
        """Atomically assign one free token to ``device_id``.

        Selection and assignment happen in a single ``UPDATE`` statement.
        On PostgreSQL the candidate row is picked with ``FOR UPDATE SKIP
        LOCKED`` so concurrent claimers move on to other free rows instead
        of queueing behind each other; backends without row locks fall back
        to the outer ``claimed_by IS NULL`` guard, which lets at most one
        writer update a given row.

        Parameters
        ----------
        session : Session
            Session with an open transaction.
        device_id : str
            Identity that receives the token.
        now : Optional[datetime], default: None
            Claim timestamp; defaults to the current UTC time.

        Returns
        -------
        Optional[int]
            Id of the claimed token, or ``None`` if no free token was found.
        """
        claimed_at = now or datetime.now(timezone.utc)
        candidate = (
            select(cls.id)
            .where(cls.claimed_by.is_(None))
            .order_by(cls.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(cls)
            .where(cls.id == candidate, cls.claimed_by.is_(None))
            .values(claimed_by=device_id, claimed_at=claimed_at)
            .returning(cls.id)
            .execution_options(synchronize_session=False)
        )
        token_id = session.execute(stmt).scalar_one_or_none()
        if token_id is None:
            logger.debug(f"No free prize token left for device {device_id!r}")
        else:
            logger.info(f"Prize token {token_id} claimed by device {device_id!r}")
        return token_id

    @classmethod
    def remaining_count(cls, session: Session) -> int:
        """Return the number of tokens that are still free."""

        return session.scalar(
            select(func.count()).select_from(cls).where(cls.claimed_by.is_(None))
        ) or 0

    @classmethod
    def claimed_count(cls, session: Session) -> int:
        return session.scalar(
            select(func.count()).select_from(cls).where(cls.claimed_by.is_not(None))
        ) or 0

    @classmethod
    def total_count(cls, session: Session) -> int:
        return session.scalar(select(func.count()).select_from(cls)) or 0

    @classmethod
    def unregistered_claims(cls, session: Session) -> list["PrizeToken"]:
        """Return claimed tokens whose device has no :class:`Winner` row.

        A non-empty result means a claim committed without its winner
        registration, breaking the claimed-count/winner-count correspondence.
        """
        from .winner import Winner

        stmt = (
            select(cls)
            .outerjoin(Winner, Winner.device_id == cls.claimed_by)
            .where(cls.claimed_by.is_not(None), Winner.device_id.is_(None))
            .order_by(cls.id)
        )
        return list(session.scalars(stmt))

    @classmethod
    def get_by_device(cls, session: Session, device_id: str) -> Optional["PrizeToken"]:
        """Return the token claimed by ``device_id`` if one exists."""

        return session.scalars(
            select(cls).where(cls.claimed_by == device_id).order_by(cls.id)
        ).first()
