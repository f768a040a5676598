from __future__ import annotations
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

class Base(DeclarativeBase):
    pass

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def create_db_engine(database_url: str) -> Engine:
    """
    Create the Database Engine.
    One per process; it manages the connection pool.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # An in-memory database only lives as long as its connection, so every session must share one.
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=False, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    # Now, we create the pooled PostgreSQL engine.
    # - pool_size=5: Keep 5 connections open and ready.
    # - max_overflow=10: Allow spiking up to 15 connections during heavy load.
    # - pool_pre_ping=True: Check if connection is alive before using it.
    return create_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )

def make_session_factory(engine: Engine) -> sessionmaker:
    # autoflush=False: We want control over when SQL is emitted.
    # expire_on_commit=False: rows are converted to schemas after commit.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def init_db(engine: Engine) -> None:
    from datalens import models  # Import models to register them with Base
    Base.metadata.create_all(bind=engine)
