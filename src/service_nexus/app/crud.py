# service_nexus/app/crud.py
"""CRUD over the service collection.

The collection is a single JSON array stored under one key. Every mutation
reads the whole array, changes it in memory and writes the whole array
back. Records that no longer validate are skipped on read but written
back as they were stored. Mutations through one store handle are
serialized by that handle's lock; two handles over the same backing data
can still overwrite each other's changes.
"""
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from . import schemas
from .exceptions import PersistenceError
from .storage import KeyValueStore
from ..config import SERVICES_STORAGE_KEY

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]

# Fields the caller never controls through an update
_SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_service_id() -> str:
    return str(uuid.uuid4())


def _next_timestamp(clock: Clock, previous: datetime | None = None) -> datetime:
    now = clock()
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


# A stored entry is either a parsed record or the raw JSON value of a record
# that no longer validates. Raw entries are written back unchanged.
Entry = Any


def corrupt_backup_key(key: str) -> str:
    return f"{key}:corrupt-backup"


def _load(store: KeyValueStore, key: str, *, for_write: bool = False) -> list[Entry]:
    """Loads every stored entry in order.

    An absent value, a value that is not a JSON array, and (for reads only)
    a failing store all load as empty. Before a write replaces a value that
    is not a JSON array, that value is copied to the backup key. Individual
    records that fail validation are logged and kept as raw entries.
    """
    try:
        raw = store.get(key)
    except PersistenceError as e:
        if for_write:
            raise
        logger.warning(f"Could not read service collection '{key}', treating it as empty: {e}")
        return []

    if raw is None:
        return []

    try:
        items = json.loads(raw)
    except ValueError:
        items = None
    if not isinstance(items, list):
        logger.warning(f"Service collection '{key}' is not a JSON array, treating it as empty")
        if for_write:
            backup_key = corrupt_backup_key(key)
            store.set(backup_key, raw)
            logger.warning(f"Copied the unreadable value of '{key}' to '{backup_key}' before overwriting it")
        return []

    entries: list[Entry] = []
    for index, item in enumerate(items):
        try:
            entries.append(schemas.Service.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Record {index} of '{key}' is unreadable ({e.error_count()} errors), keeping it as stored")
            entries.append(item)
    return entries


def _entry_id(entry: Entry) -> Any:
    if isinstance(entry, schemas.Service):
        return entry.id
    if isinstance(entry, dict) and isinstance(entry.get("id"), str):
        return entry["id"]
    return None


def _read_all(store: KeyValueStore, key: str) -> list[schemas.Service]:
    return [e for e in _load(store, key) if isinstance(e, schemas.Service)]


def _write_all(store: KeyValueStore, key: str, entries: list[Entry]) -> None:
    items = [
        e.model_dump(mode="json", by_alias=True, exclude_none=True) if isinstance(e, schemas.Service) else e
        for e in entries
    ]
    try:
        payload = json.dumps(items, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Could not serialize service collection: {e}", key=key, original_error=e) from e
    store.set(key, payload)


def get_services(store: KeyValueStore, *, key: str = SERVICES_STORAGE_KEY) -> list[schemas.Service]:
    """Fetches every service in stored order."""
    return _read_all(store, key)


def get_service_by_id(store: KeyValueStore, service_id: str, *, key: str = SERVICES_STORAGE_KEY) -> schemas.Service | None:
    """Fetches a service by its id."""
    for service in _read_all(store, key):
        if service.id == service_id:
            return service
    return None


def create_service(
    store: KeyValueStore,
    service: schemas.ServiceCreate,
    *,
    key: str = SERVICES_STORAGE_KEY,
    clock: Clock = utcnow,
    id_factory: IdFactory = new_service_id,
) -> schemas.Service:
    """Creates a new service entry with a fresh id and timestamps."""
    with store.lock:
        entries = _load(store, key, for_write=True)
        existing_ids = {_entry_id(e) for e in entries}

        service_id = id_factory()
        if service_id in existing_ids:
            raise PersistenceError(f"Generated id '{service_id}' is already in use", key=key)

        now = clock()
        db_service = schemas.Service(
            **service.model_dump(),
            id=service_id,
            created_at=now,
            updated_at=now,
        )
        entries.append(db_service)
        _write_all(store, key, entries)
        return db_service


def _merge(
    store: KeyValueStore,
    service_id: str,
    changes: dict[str, Any],
    *,
    key: str,
    clock: Clock,
    stamp_test: bool = False,
) -> schemas.Service | None:
    with store.lock:
        entries = _load(store, key, for_write=True)
        index = next(
            (i for i, e in enumerate(entries) if isinstance(e, schemas.Service) and e.id == service_id), None
        )
        if index is None:
            return None

        current = entries[index]
        now = _next_timestamp(clock, current.updated_at)
        merged = current.model_dump()
        merged.update({k: v for k, v in changes.items() if k not in _SYSTEM_FIELDS})
        merged["updated_at"] = now
        if stamp_test:
            merged["last_tested"] = now

        updated = schemas.Service.model_validate(merged)
        entries[index] = updated
        _write_all(store, key, entries)
        return updated


def update_service(
    store: KeyValueStore,
    service_id: str,
    service: schemas.ServiceUpdate,
    *,
    key: str = SERVICES_STORAGE_KEY,
    clock: Clock = utcnow,
) -> schemas.Service | None:
    """Merges the explicitly set fields of ``service`` onto the stored record."""
    return _merge(store, service_id, service.model_dump(exclude_unset=True), key=key, clock=clock)


def delete_service(store: KeyValueStore, service_id: str, *, key: str = SERVICES_STORAGE_KEY) -> bool:
    """Removes a service; returns False when no record had that id.

    Unreadable stored records carrying that id are removed too.
    """
    with store.lock:
        entries = _load(store, key, for_write=True)
        remaining = [e for e in entries if _entry_id(e) != service_id]
        if len(remaining) == len(entries):
            return False
        _write_all(store, key, remaining)
        return True


def record_service_test(
    store: KeyValueStore,
    service_id: str,
    *,
    key: str = SERVICES_STORAGE_KEY,
    clock: Clock = utcnow,
) -> schemas.Service | None:
    """Stamps ``last_tested`` (and ``updated_at``) with the current time."""
    return _merge(store, service_id, {}, key=key, clock=clock, stamp_test=True)


def filter_services(
    services: Iterable[schemas.Service],
    query: str | None = None,
    service_type: str | None = None,
    status: str | None = None,
) -> list[schemas.Service]:
    """Case-insensitive name/url search plus exact type and status filters.

    ``None``, ``""`` and ``"all"`` disable the type and status filters.
    """
    needle = (query or "").lower()
    result = []
    for service in services:
        if needle and needle not in service.name.lower() and needle not in service.url.lower():
            continue
        if service_type not in (None, "", "all") and service.type != service_type:
            continue
        if status not in (None, "", "all") and service.status.value != status:
            continue
        result.append(service)
    return result


def distinct_values(services: Iterable[schemas.Service], field: str) -> list[str]:
    """Unique values of ``field`` in first-seen order."""
    seen: dict[str, None] = {}
    for service in services:
        value = getattr(service, field)
        value = getattr(value, "value", value)
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)
