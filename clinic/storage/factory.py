# clinic/storage/factory.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..database import build_engine, build_session_factory, create_tables
from .base import Repositories
from .kv import JsonFileStore, KeyValueStore, RedisStore
from .local import build_local_repositories
from .sql import build_sql_repositories

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> KeyValueStore:
    """Key/value store for local collections and the PIN record."""
    if settings.local_store_url:
        logger.info("Using Redis key/value store")
        return RedisStore.from_url(settings.local_store_url)
    logger.info(f"Using JSON file store at {settings.local_store_path}")
    return JsonFileStore(settings.local_store_path)


def build_repositories(settings: Settings, store: KeyValueStore) -> Repositories:
    """SQL repositories when DATABASE_URL is configured, local ones otherwise."""
    if settings.uses_remote_backend:
        engine = build_engine(settings.database_url, echo=settings.debug)
        try:
            create_tables(engine)
        except SQLAlchemyError as e:
            # Repositories degrade per call until the backend is reachable
            logger.error(f"Could not create tables on startup: {e}")
        logger.info("Persistence: relational backend")
        return build_sql_repositories(build_session_factory(engine))
    logger.info("Persistence: local key/value store (no DATABASE_URL configured)")
    return build_local_repositories(store)
