# service_nexus/app/storage.py
"""Key-value persistence substrate for the service collection.

A store maps string keys to string values, nothing more. Each handle
carries a re-entrant lock so read-modify-write cycles issued through the
same handle do not interleave. Separate handles over the same backing
data share no lock.
"""
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import models
from .exceptions import PersistenceError, StorageQuotaExceededError
from ..config import DEFAULT_QUOTA_BYTES

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Base class: quota enforcement and locking around a raw get/set pair."""

    def __init__(self, quota_bytes: int | None = DEFAULT_QUOTA_BYTES):
        self.quota_bytes = quota_bytes
        self.lock = threading.RLock()

    def get(self, key: str) -> str | None:
        return self._get(key)

    def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if self.quota_bytes is not None and size > self.quota_bytes:
            logger.warning(f"Refusing write to '{key}': {size} bytes over quota {self.quota_bytes}")
            raise StorageQuotaExceededError(key, size, self.quota_bytes)
        self._set(key, value)

    def _get(self, key: str) -> str | None:
        raise NotImplementedError

    def _set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Pass the same ``data`` dict to several handles to
    model several writers over one backing store."""

    def __init__(self, data: dict[str, str] | None = None, quota_bytes: int | None = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes=quota_bytes)
        self.data = data if data is not None else {}

    def _get(self, key: str) -> str | None:
        return self.data.get(key)

    def _set(self, key: str, value: str) -> None:
        self.data[key] = value


class SqlKeyValueStore(KeyValueStore):
    """Store backed by the ``storage_entries`` table."""

    def __init__(self, session_factory: sessionmaker, quota_bytes: int | None = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes=quota_bytes)
        self.session_factory = session_factory

    def _get(self, key: str) -> str | None:
        db: Session = self.session_factory()
        try:
            entry = db.get(models.StorageEntry, key)
            return entry.value if entry else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read '{key}': {e}", key=key, original_error=e) from e
        finally:
            db.close()

    def _set(self, key: str, value: str) -> None:
        db: Session = self.session_factory()
        try:
            entry = db.get(models.StorageEntry, key)
            if entry is None:
                db.add(models.StorageEntry(key=key, value=value))
            else:
                entry.value = value
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Database write for '{key}' failed")
            raise PersistenceError(f"Failed to write '{key}': {e}", key=key, original_error=e) from e
        finally:
            db.close()
