"""SQL backed record store.

Offers the :class:`~boxall.record_store.RecordStore` contract on top of a
single SQLModel table so the registry, box records and ledger can live in a
transactional database instead of loose files.
"""

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .errors import StorageUnavailableError
from .storage_config import DATABASE_URL

logger = logging.getLogger(__name__)


class StoredRecord(SQLModel, table=True):
    """One record payload keyed by its record key."""

    key: str = Field(primary_key=True)
    payload: str
    updated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )


def make_engine(url: str = DATABASE_URL):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


class SqlRecordStore:
    """Record store keeping each payload in a :class:`StoredRecord` row."""

    def __init__(self, url: str = DATABASE_URL, engine=None) -> None:
        self.engine = engine if engine is not None else make_engine(url)
        try:
            SQLModel.metadata.create_all(self.engine, tables=[StoredRecord.__table__])
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Unable to initialise record table: {exc}") from exc

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        with Session(self.engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def load(self, key: str) -> Optional[str]:
        try:
            with Session(self.engine) as session:
                row = session.get(StoredRecord, key)
                return row.payload if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Unable to read {key}: {exc}") from exc

    def save(self, key: str, payload: str) -> bool:
        try:
            with self.session_scope() as session:
                row = session.get(StoredRecord, key)
                if row is None:
                    row = StoredRecord(key=key, payload=payload)
                else:
                    row.payload = payload
                    row.updated_at = dt.datetime.now(dt.timezone.utc)
                session.add(row)
        except SQLAlchemyError as exc:
            logger.error("Error saving %s: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            with self.session_scope() as session:
                row = session.get(StoredRecord, key)
                if row is None:
                    return False
                session.delete(row)
        except SQLAlchemyError as exc:
            logger.error("Error deleting %s: %s", key, exc)
            return False
        return True

    def rename(self, old_key: str, new_key: str) -> bool:
        try:
            with self.session_scope() as session:
                row = session.get(StoredRecord, old_key)
                if row is None:
                    logger.warning("Source record %s not found for rename", old_key)
                    return False
                if session.get(StoredRecord, new_key) is not None:
                    logger.warning("Destination record %s already exists", new_key)
                    return False
                session.add(StoredRecord(key=new_key, payload=row.payload))
                session.delete(row)
        except SQLAlchemyError as exc:
            logger.error("Error renaming %s to %s: %s", old_key, new_key, exc)
            return False
        return True

    def exists(self, key: str) -> bool:
        return self.load(key) is not None

    def keys(self, prefix: str = "") -> list[str]:
        try:
            with Session(self.engine) as session:
                statement = select(StoredRecord.key).where(
                    StoredRecord.key.startswith(prefix, autoescape=True)
                )
                return sorted(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Unable to list records: {exc}") from exc
