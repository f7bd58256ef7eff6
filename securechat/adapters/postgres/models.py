"""SQLAlchemy Models for the key store."""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class KeyStoreEntry(Base):
    """One value in a key store namespace."""
    __tablename__ = "key_store_entries"
    namespace = Column(String(64), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
