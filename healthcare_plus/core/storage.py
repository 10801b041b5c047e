"""
Flat-file record store.

Each named collection lives in ``<DATA_DIR>/<collection>.json`` as a JSON
array of records. Every write is a whole-collection read-modify-write:
concurrent writers to the same collection are last-writer-wins unless the
store is built with ``serialize_writes=True``, which queues writers behind
a per-collection lock.
"""
import asyncio
import contextlib
import json
import logging
import os
import secrets
import string
import tempfile
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from .config import settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
T = TypeVar("T")

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a short alphanumeric ID: 9 random chars plus the tail of the ms clock."""
    random_part = _to_base36(secrets.randbits(46)).rjust(9, "0")
    time_part = _to_base36(int(time.time() * 1000))[4:]
    return random_part + time_part


# Timestamp helpers
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _next_timestamp(previous: Any) -> str:
    # updated_at must move forward even when two writes share a clock tick
    now = utc_now()
    last = parse_timestamp(previous)
    if last is not None and now <= last:
        now = last + timedelta(microseconds=1)
    return to_timestamp(now)


class RecordStore:
    def __init__(self, data_dir: Union[str, Path], serialize_writes: bool = False):
        self.data_dir = Path(data_dir)
        self.serialize_writes = serialize_writes
        self._locks: Dict[str, asyncio.Lock] = {}

    def __repr__(self):
        return f"<RecordStore(data_dir='{self.data_dir}', serialize_writes={self.serialize_writes})>"

    def path_for(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    # Raw file access
    def _read_sync(self, collection: str, strict: bool = False) -> List[Record]:
        """Load a collection; a missing file is an empty collection.

        An unreadable or malformed file also reads as empty, except with
        ``strict=True`` (write paths), where it raises StorageError so the
        file is never overwritten.
        """
        path = self.path_for(collection)
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as exc:
            logger.error(f"Error reading {path.name}: {exc}")
            if strict:
                raise StorageError(f"Collection '{collection}' is unreadable") from exc
            return []

        if not isinstance(data, list):
            logger.error(f"Error reading {path.name}: expected a JSON array")
            if strict:
                raise StorageError(f"Collection '{collection}' is not a JSON array")
            return []
        return data

    def _write_sync(self, collection: str, records: List[Record]) -> None:
        path = self.path_for(collection)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(path.parent), prefix=f".{collection}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(records, fh, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"Error writing {path.name}: {exc}")
            raise StorageError(f"Failed to write collection '{collection}'") from exc

    async def _read(self, collection: str, strict: bool = False) -> List[Record]:
        return await asyncio.to_thread(self._read_sync, collection, strict)

    async def _write(self, collection: str, records: List[Record]) -> None:
        await asyncio.to_thread(self._write_sync, collection, records)

    @contextlib.asynccontextmanager
    async def _writer(self, collection: str):
        """Hold the collection's write lock when serialized writes are enabled."""
        if not self.serialize_writes:
            yield
            return
        lock = self._locks.setdefault(collection, asyncio.Lock())
        async with lock:
            yield

    # Queries
    async def list_all(self, collection: str) -> List[Record]:
        return await self._read(collection)

    async def get_by_id(self, collection: str, record_id: str) -> Optional[Record]:
        for record in await self._read(collection):
            if record.get("id") == record_id:
                return record
        return None

    async def get_by_field(self, collection: str, field: str, value: Any) -> Optional[Record]:
        for record in await self._read(collection):
            if record.get(field) == value:
                return record
        return None

    # Mutations
    async def create(self, collection: str, fields: Dict[str, Any]) -> Record:
        now = to_timestamp(utc_now())
        new_id = generate_id()
        record: Record = {"id": new_id, "created_at": now, "updated_at": now}
        record.update(fields)
        record["id"] = new_id

        async with self._writer(collection):
            records = await self._read(collection, strict=True)
            records.append(record)
            await self._write(collection, records)
        return dict(record)

    async def update(self, collection: str, record_id: str, fields: Dict[str, Any]) -> Optional[Record]:
        changes = {k: v for k, v in fields.items() if k != "id"}

        async with self._writer(collection):
            records = await self._read(collection, strict=True)
            for index, record in enumerate(records):
                if record.get("id") == record_id:
                    break
            else:
                return None

            updated = {**record, **changes}
            updated["updated_at"] = _next_timestamp(record.get("updated_at"))
            records[index] = updated
            await self._write(collection, records)
        return dict(updated)

    async def remove(self, collection: str, record_id: str) -> bool:
        async with self._writer(collection):
            records = await self._read(collection, strict=True)
            remaining = [r for r in records if r.get("id") != record_id]
            await self._write(collection, remaining)
        return len(remaining) != len(records)

    async def bulk_persist(self, collection: str, records: Iterable[Record]) -> None:
        """Replace the whole collection."""
        async with self._writer(collection):
            await self._write(collection, list(records))

    async def modify(self, collection: str, mutator: Callable[[List[Record]], T]) -> T:
        """Run ``mutator`` over the collection in one read-modify-write cycle.

        The mutator edits the list in place and its return value is passed
        back to the caller.
        """
        async with self._writer(collection):
            records = await self._read(collection, strict=True)
            result = mutator(records)
            await self._write(collection, records)
        return result

    async def ensure_collections(self, collections: Iterable[str]) -> None:
        """Create empty collection files that do not exist yet."""
        for collection in collections:
            if not self.path_for(collection).exists():
                await self.bulk_persist(collection, [])
                logger.info(f"Created empty {collection}.json")


store = RecordStore(settings.data_path, serialize_writes=settings.STORE_SERIALIZE_WRITES)


# Store dependency
def get_store() -> RecordStore:
    """Get the record store."""
    return store
