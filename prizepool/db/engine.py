from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

# Seconds a SQLite connection waits on the database lock before giving up.
SQLITE_BUSY_TIMEOUT = 30


def _install_sqlite_hooks(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first DML statement and a deferred
    transaction that later upgrades to a writer fails immediately with
    "database is locked" when another writer is active. Taking the lock at
    BEGIN lets concurrent claimers queue on the busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    if database_url is None:
        from ..config import load_settings

        database_url = load_settings().database_url

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT
        # Pooled connections are handed to whichever thread checks them out.
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine)

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,  # Keep objects accessible after commit
        future=True,
    )
