"""
SQL Key-Value Backend

Stores the card store's records in a single SQLAlchemy table, so any
database SQLAlchemy speaks (SQLite by default) can back the engine.

Tables:
- kv_records: one row per key (key, value, updated_at)

Usage:
    from studydeck.db.sql import SQLBackend

    backend = SQLBackend("sqlite:///studydeck.db")
    backend.set("studydeck:deck:python", "[]")
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, Text, create_engine, delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from studydeck.config import settings, yaml_config
from studydeck.db.base import KeyValueBackend, record_size
from studydeck.errors import StorageCapacityExceeded
from studydeck.models.base import utc_now

logger = logging.getLogger(__name__)


# Get database configuration from yaml config
db_config: dict[str, Any] = yaml_config.get("database", {})
ECHO_SQL: bool = db_config.get("echo", False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class KeyValueRecord(Base):
    """
    One persisted key.

    Attributes:
        key: Namespaced record key (e.g. "studydeck:deck:python")
        value: Serialized JSON payload
        updated_at: Time of the last write
    """

    __tablename__ = "kv_records"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


def is_disk_full(error: OperationalError) -> bool:
    """True for "database or disk is full" style failures."""
    message = str(error.orig if error.orig is not None else error).lower()
    return "full" in message or "no space" in message


class SQLBackend(KeyValueBackend):
    """
    Key-value backend on a relational database.

    Capacity failures come from two places: the database itself running
    out of space, and the optional ``max_bytes`` quota on the total size
    of stored payloads.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        engine: Optional[Engine] = None,
        max_bytes: Optional[int] = None,
    ):
        """
        Initialize the backend and create its table if needed.

        Args:
            url: SQLAlchemy URL (default: settings.DATABASE_URL)
            engine: Pre-built engine, overrides ``url``
            max_bytes: Total payload quota (default: DATABASE_MAX_BYTES,
                0 = unlimited)
        """
        self.engine = engine or create_engine(
            url or settings.DATABASE_URL, echo=ECHO_SQL
        )
        if max_bytes is None:
            max_bytes = settings.DATABASE_MAX_BYTES
        self.max_bytes = max_bytes or None
        self._session_maker = sessionmaker(self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self._session_maker()

    def get(self, key: str) -> Optional[str]:
        with self._session() as session:
            record = session.get(KeyValueRecord, key)
            return record.value if record is not None else None

    def set(self, key: str, value: str) -> None:
        with self._session() as session:
            try:
                if self.max_bytes is not None:
                    self._check_quota(session, key, value)

                record = session.get(KeyValueRecord, key)
                if record is None:
                    session.add(KeyValueRecord(key=key, value=value))
                else:
                    record.value = value
                session.commit()
            except OperationalError as e:
                session.rollback()
                if not is_disk_full(e):
                    raise
                logger.error(f"Database refused write to {key}: {e}")
                raise StorageCapacityExceeded(
                    attempted_bytes=record_size(key, value),
                    details={"backend": "sql", "reason": str(e.orig)},
                ) from e

    def _check_quota(self, session: Session, key: str, value: str) -> None:
        """
        Refuse the write if it would push stored payloads past the quota.

        Other rows are measured with the database's LENGTH(), which counts
        characters; the new row is measured in UTF-8 bytes.
        """
        stored = session.scalar(
            select(
                func.coalesce(
                    func.sum(
                        func.length(KeyValueRecord.key)
                        + func.length(KeyValueRecord.value)
                    ),
                    0,
                )
            ).where(KeyValueRecord.key != key)
        )
        attempted = int(stored or 0) + record_size(key, value)
        if attempted > self.max_bytes:
            logger.error(
                f"SQL backend quota exceeded writing {key}: "
                f"{attempted} > {self.max_bytes} bytes"
            )
            raise StorageCapacityExceeded(attempted_bytes=attempted)

    def delete(self, key: str) -> None:
        with self._session() as session:
            session.execute(delete(KeyValueRecord).where(KeyValueRecord.key == key))
            session.commit()

    def keys(self, prefix: str = "") -> list[str]:
        with self._session() as session:
            rows = session.scalars(
                select(KeyValueRecord.key)
                .where(KeyValueRecord.key.startswith(prefix, autoescape=True))
                .order_by(KeyValueRecord.key)
            )
            return list(rows)

    def close(self) -> None:
        self.engine.dispose()
