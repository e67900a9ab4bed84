from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from . import config

# Connection execution option naming the SQLite BEGIN mode.
SQLITE_BEGIN = "sqlite_begin"


class Base(DeclarativeBase):
    pass


def _enable_immediate_transactions(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write, which lets two requests
    # read the same lot state before either writes. Take the write lock up
    # front unless the session was opened read-only.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        mode = conn.get_execution_options().get(SQLITE_BEGIN, "IMMEDIATE")
        conn.exec_driver_sql(f"BEGIN {mode}")


def build_engine(url: str | None = None) -> Engine:
    url = url or config.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": config.SQLITE_BUSY_TIMEOUT,
            },
        )
        _enable_immediate_transactions(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


def begin_read_only(db: Session) -> Session:
    """
    Start ``db``'s transaction without the SQLite write lock.

    Must be called before the session runs any statement. Other databases
    ignore the option.
    """
    db.connection(execution_options={SQLITE_BEGIN: "DEFERRED"})
    return db


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
