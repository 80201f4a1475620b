from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from fastapi import Request
from typing import Generator
import logging
from pathlib import Path

from core.environment import get_env_bool

# Table metadata must be registered before create_all
from models import db_models  # noqa: F401

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets a local directory and thread-safe connections"""
    connect_args = {}
    engine_kwargs = {}

    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url in IN_MEMORY_URLS:
            # One shared connection so every session sees the same in-memory DB
            engine_kwargs["poolclass"] = StaticPool
        else:
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Database: SQLite configured")
    else:
        engine_kwargs.update({"pool_pre_ping": True, "pool_recycle": 3600})
        logger.info("Database: PostgreSQL configured")

    return create_engine(
        database_url,
        echo=get_env_bool("SQL_DEBUG"),  # Set SQL_DEBUG=true for query logging
        connect_args=connect_args,
        **engine_kwargs,
    )


def create_db_and_tables(engine: Engine):
    """Create all database tables"""
    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Generator[Session, None, None]:
    """Dependency for getting database session"""
    with Session(request.app.state.engine) as session:
        yield session
