from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from sales_engine.core.config import settings

Base = declarative_base()


def _enable_sqlite_locking(engine: Engine) -> None:
    """
    pysqlite starts transactions lazily, on the first write. That lets two
    requests read a property as AVAILABLE before either of them writes.
    Taking the write lock at BEGIN serialises the whole read-check-write unit,
    which is what SELECT ... FOR UPDATE gives us on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
        else:
            engine = create_engine(url, echo=echo, connect_args=connect_args)
        _enable_sqlite_locking(engine)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = create_db_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
