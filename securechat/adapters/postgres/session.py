"""Database Session Management.

The engine is created once per process on first use and the schema is
created if absent. There is no implicit teardown.
"""
import logging
import threading
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from securechat.adapters.postgres.models import Base
from securechat.errors import StorageError

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None
_lock = threading.Lock()


def init_db(engine: Engine) -> None:
    """Create the key store table if it does not exist yet."""
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize key store schema: {e}")
        raise StorageError(f"Failed to initialize key store schema: {e}") from e


def get_session_factory(database_url: str) -> sessionmaker:
    """Get or create the process-wide session factory."""
    global _engine, _session_factory
    with _lock:
        if _session_factory is None:
            try:
                _engine = create_engine(database_url, pool_pre_ping=True)
            except (SQLAlchemyError, ImportError) as e:
                raise StorageError(f"Failed to create database engine: {e}") from e
            init_db(_engine)
            _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
            logger.info("Initialized key store database engine")
        return _session_factory


def dispose_engine() -> None:
    global _engine, _session_factory
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None
