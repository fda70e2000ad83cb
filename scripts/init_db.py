from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from prizepool.config import load_settings
from prizepool.db import atomic, get_sessionmaker, make_engine
from prizepool.draw import DrawEngine
from prizepool.models import PrizeToken


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def main() -> None:
    """Apply migrations, seed an empty pool and report the resulting state."""
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    upgrade_db()

    engine = make_engine(settings.database_url, echo=settings.echo)
    print("Current tables:", ", ".join(sorted(inspect(engine).get_table_names())))

    sessions = get_sessionmaker(engine)
    with atomic(sessions) as session:
        created = PrizeToken.seed(session, settings.pool_size)
    print(f"Seeded tokens: {created}")

    state = DrawEngine(
        sessions,
        default_rate=settings.default_win_rate,
        max_prizes=settings.max_prizes,
    ).state()
    print("Pool state:", state.to_payload())


if __name__ == "__main__":
    main()
