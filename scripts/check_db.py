"""Report schema drift and pool/registry mismatches for the configured store."""

from __future__ import annotations

import sys

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Engine

from prizepool.db import atomic, get_sessionmaker, make_engine
from prizepool.db.utils import dt_iso
from prizepool.errors import StoreUnavailableError
from prizepool.models import Base, PrizeToken, Winner


def schema_differences(engine: Engine) -> list:
    """Return the Alembic operations needed to bring the store up to the models."""
    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection=connection,
            opts={
                "compare_type": True,
                "render_as_batch": connection.dialect.name == "sqlite",
            },
        )
        upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    if upgrade_ops is None or upgrade_ops.is_empty():
        return []
    return list(upgrade_ops.ops or [])


def main() -> int:
    engine = make_engine()
    url_display = engine.url.render_as_string(hide_password=True)

    try:
        differences = schema_differences(engine)
    except Exception as exc:
        print(f"Schema check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2
    if differences:
        print(f"Schema check: FAILED for {url_display}. Differences detected:")
        for op in differences:
            print(f"- {op}")
        return 1
    print(f"Schema check: OK for {url_display}.")

    try:
        with atomic(get_sessionmaker(engine)) as session:
            claimed = PrizeToken.claimed_count(session)
            winners = Winner.count(session)
            orphans = PrizeToken.unregistered_claims(session)
    except StoreUnavailableError as exc:
        print(f"Pool check: ERROR: {exc}", file=sys.stderr)
        return 2

    print(f"Pool check: {claimed} claimed tokens, {winners} registered winners.")
    if orphans:
        print("Claimed tokens without a winner record:")
        for token in orphans:
            print(
                f"- token {token.id} claimed by {token.claimed_by!r}"
                f" at {dt_iso(token.claimed_at)}"
            )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
