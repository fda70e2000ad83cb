"""Database model for the registry of winning devices."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Text, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class Winner(Base):
    """Membership fact recording that a device has won a prize."""

    __tablename__ = "winners"

    device_id: Mapped[str] = mapped_column(Text, primary_key=True)
    """Winning identity; the primary key makes the record unique."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the first win."""

    def __init__(
        self,
        *,
        device_id: str,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.device_id = device_id
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Winner(device_id={id})>".format(id=self.device_id)

    @classmethod
    def has_won(cls, session: Session, device_id: str) -> bool:
        """Return ``True`` when ``device_id`` already holds a win."""

        return (
            session.scalar(select(cls.device_id).where(cls.device_id == device_id))
            is not None
        )

    @classmethod
    def record_win(cls, session: Session, device_id: str) -> bool:
        """Insert a winner row for ``device_id`` unless one already exists.

        The insert is conflict-safe: a concurrent or repeated registration
        for the same device is a silent no-op.

        Parameters
        ----------
        session : Session
            Session with an open transaction.
        device_id : str
            Identity to register.

        Returns
        -------
        bool
            ``True`` if this call created the row, ``False`` if it existed.
        """
        values = {"device_id": device_id, "created_at": datetime.now(timezone.utc)}
        dialect_insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)

        if dialect_insert is not None:
            stmt = (
                dialect_insert(cls)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["device_id"])
                .returning(cls.device_id)
            )
            inserted = session.execute(stmt).scalar_one_or_none() is not None
        else:
            # No native upsert: isolate the insert in a savepoint so a
            # duplicate key only rolls back this statement.
            try:
                with session.begin_nested():
                    session.execute(insert(cls).values(**values))
                inserted = True
            except IntegrityError:
                inserted = False

        if inserted:
            logger.debug(f"Registered winner {device_id!r}")
        else:
            logger.debug(f"Winner {device_id!r} already registered")
        return inserted

    @classmethod
    def count(cls, session: Session) -> int:
        """Return the number of registered winners."""

        return session.scalar(select(func.count()).select_from(cls)) or 0
