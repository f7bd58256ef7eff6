"""PostgresKeyValueStore - Database-backed local key store.

Any SQLAlchemy-supported database works; Postgres in deployment, SQLite in tests.
"""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from securechat.adapters.postgres.models import KeyStoreEntry
from securechat.domain.e2ee.ports import KeyValueStore
from securechat.errors import StorageError

logger = logging.getLogger(__name__)


class PostgresKeyValueStore(KeyValueStore):
    """Key store rows in `key_store_entries`, scoped by namespace."""

    def __init__(self, session_factory: Callable[[], Session], namespace: str = "key-store"):
        """Initialize store.

        Args:
            session_factory: Callable returning a new SQLAlchemy Session
            namespace: Logical store name
        """
        self._session_factory = session_factory
        self.namespace = namespace

    async def get(self, key: str) -> Optional[Any]:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyStoreEntry, (self.namespace, key))
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"Key store read failed for {self.namespace}/{key}: {e}")
            raise StorageError(f"Key store read failed: {e}") from e

    async def put(self, key: str, value: Any) -> None:
        await self.put_many({key: value})

    async def put_many(self, entries: Dict[str, Any]) -> None:
        """Upsert all entries in a single transaction."""
        with self._session_factory() as db:
            try:
                for key, value in entries.items():
                    existing = db.get(KeyStoreEntry, (self.namespace, key))
                    if existing:
                        existing.value = value
                    else:
                        db.add(KeyStoreEntry(namespace=self.namespace, key=key, value=value))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Key store write failed for {self.namespace}: {e}")
                raise StorageError(f"Key store write failed: {e}") from e

    async def clear(self) -> None:
        with self._session_factory() as db:
            try:
                db.query(KeyStoreEntry).filter(KeyStoreEntry.namespace == self.namespace).delete()
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Key store clear failed for {self.namespace}: {e}")
                raise StorageError(f"Key store clear failed: {e}") from e
