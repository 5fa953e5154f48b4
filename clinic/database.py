# clinic/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the configured backend."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Repository calls run on worker threads
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine: Engine):
    """Create all database tables - MUST import models first!"""
    # Import models to register them with Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created (or already present).")


def drop_tables(engine: Engine):
    """Drop all database tables"""
    from . import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped.")
