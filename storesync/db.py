from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Purpose: Create the SQLAlchemy engine for the store and run tables.
    Inputs/Outputs: Input is a database URL; output is an Engine.
    Side Effects / State: Opens a connection pool lazily.
    Dependencies: sqlalchemy.create_engine.
    Failure Modes: Unknown dialects raise at creation time.
    If Removed: Neither the catalog store nor the run store can persist anything.
    Testing Notes: "sqlite://" yields a shared in-memory database via StaticPool.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    # Import models so their tables are registered on Base.metadata.
    from . import db_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
