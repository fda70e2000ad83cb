"""Transactional envelope shared by every store access."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session_factory: sessionmaker) -> Iterator[Session]:
    """Run the enclosed block inside a single committed transaction.

    The session commits when the block exits normally and rolls back on any
    exception. Store errors surface as :class:`StoreUnavailableError` so
    callers never see a partially applied claim.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory bound to the shared engine.

    Yields
    ------
    Session
        Session with an open transaction.
    """
    try:
        with session_factory.begin() as session:
            yield session
    except SQLAlchemyError as exc:
        logger.warning(f"Store transaction rolled back: {exc}")
        raise StoreUnavailableError(f"Store transaction failed: {exc}") from exc


__all__ = ["atomic"]
