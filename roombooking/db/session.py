from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from ..config import get_settings

settings = get_settings()

DATABASE_URL = settings.sqlalchemy_url

Base = declarative_base()


def enable_sqlite_write_locking(target: Engine) -> Engine:
    """Make every SQLite transaction ``BEGIN IMMEDIATE``.

    pysqlite defers BEGIN until the first write, so two sessions can both
    read "no conflict" before either inserts. Taking the write lock up front
    serialises check-then-insert the way a row lock does on PostgreSQL.
    """

    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return enable_sqlite_write_locking(create_engine(url, future=True, **kwargs))
    return create_engine(url, future=True, echo=False, pool_pre_ping=True, **kwargs)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
