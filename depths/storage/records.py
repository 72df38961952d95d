"""Table-oriented record store backed by one JSON file per table.

Records look like the rows of a hosted spreadsheet database:

    {"id": "rec3f9a...", "fields": {...}, "created_time": "2026-01-01T00:00:00+00:00"}

Field values are scalars or JSON text (see ``fields.py``); the store never
interprets them. Table files are written to a temp file and swapped in with
``os.replace`` so a crash never leaves half a table behind.

``commit`` applies a batch of changes under a compare-and-set guard. The
whole batch runs inside one lock with no awaits, snapshotting every touched
table first and restoring it if any write fails.
"""

import asyncio
import copy
import json
import logging
import os
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TABLES = ("players", "characters", "commands", "game_instances", "rooms", "dungeons")

Record = dict[str, Any]
Predicate = Callable[[dict[str, Any]], bool]


class StorageError(RuntimeError):
    """Raised when a record cannot be read or written."""


class ConflictError(StorageError):
    """Raised when a commit guard no longer matches the stored value."""


class Change(BaseModel):
    """One write inside a ``commit`` batch. ``record_id`` is None for creates."""

    table: str
    op: Literal["create", "update"] = "update"
    record_id: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class Guard(BaseModel):
    """Commit precondition: ``table[record_id].fields[field] == expected``."""

    table: str
    record_id: str
    field: str
    expected: Any


class RecordStore(Protocol):
    async def create(self, table: str, fields: dict[str, Any]) -> Record: ...

    async def read(self, table: str, predicate: Predicate | None = None) -> list[Record]: ...

    async def get(self, table: str, record_id: str) -> Record | None: ...

    async def update(self, table: str, record_id: str, fields: dict[str, Any]) -> Record: ...

    async def delete(self, table: str, record_id: str) -> bool: ...

    async def commit(self, changes: Iterable[Change], guard: Guard | None = None) -> list[Record]: ...


def new_record_id() -> str:
    return "rec" + uuid.uuid4().hex[:14]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise StorageError(f"Unknown table: {table}")


class JsonRecordStore:
    """Record store persisting each table as ``<data_dir>/<table>.json``."""

    def __init__(self, data_dir: Path) -> None:
        self._dir = data_dir
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _path(self, table: str) -> Path:
        return self._dir / f"{table}.json"

    def _load(self, table: str) -> list[Record]:
        path = self._path(table)
        if not path.is_file():
            return []
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read table {table}: {e}") from e

    def _save(self, table: str, records: list[Record]) -> None:
        path = self._path(table)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(records, indent=2))
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Cannot write table {table}: {e}") from e

    # ── CRUD ────────────────────────────────────────────

    async def create(self, table: str, fields: dict[str, Any]) -> Record:
        _check_table(table)
        async with self._lock:
            records = self._load(table)
            record = {"id": new_record_id(), "fields": dict(fields), "created_time": _now()}
            records.append(record)
            self._save(table, records)
        return copy.deepcopy(record)

    async def read(self, table: str, predicate: Predicate | None = None) -> list[Record]:
        _check_table(table)
        records = self._load(table)
        if predicate is None:
            return records
        return [r for r in records if predicate(r["fields"])]

    async def get(self, table: str, record_id: str) -> Record | None:
        _check_table(table)
        for record in self._load(table):
            if record["id"] == record_id:
                return record
        return None

    async def update(self, table: str, record_id: str, fields: dict[str, Any]) -> Record:
        _check_table(table)
        async with self._lock:
            records = self._load(table)
            record = self._apply_update(table, records, record_id, fields)
            self._save(table, records)
        return copy.deepcopy(record)

    async def delete(self, table: str, record_id: str) -> bool:
        _check_table(table)
        async with self._lock:
            records = self._load(table)
            remaining = [r for r in records if r["id"] != record_id]
            if len(remaining) == len(records):
                return False
            self._save(table, remaining)
        return True

    @staticmethod
    def _apply_update(
        table: str, records: list[Record], record_id: str, fields: dict[str, Any]
    ) -> Record:
        for record in records:
            if record["id"] == record_id:
                record["fields"].update(fields)
                return record
        raise StorageError(f"Record {record_id} not found in {table}")

    # ── Atomic batch ────────────────────────────────────

    async def commit(self, changes: Iterable[Change], guard: Guard | None = None) -> list[Record]:
        """Apply ``changes`` all-or-nothing if ``guard`` still holds.

        Raises ConflictError when the guarded field has moved on, and
        StorageError (after restoring every touched table) when a write fails.
        """
        changes = list(changes)
        tables = {c.table for c in changes}
        if guard is not None:
            tables.add(guard.table)
        for table in tables:
            _check_table(table)

        async with self._lock:
            loaded = {table: self._load(table) for table in tables}
            snapshot = copy.deepcopy(loaded)

            if guard is not None:
                current = None
                for record in loaded[guard.table]:
                    if record["id"] == guard.record_id:
                        current = record["fields"].get(guard.field)
                        break
                else:
                    raise ConflictError(f"Guarded record {guard.record_id} is gone")
                if current != guard.expected:
                    raise ConflictError(
                        f"{guard.table}.{guard.field} is {current!r}, expected {guard.expected!r}"
                    )

            written: list[Record] = []
            try:
                for change in changes:
                    records = loaded[change.table]
                    if change.op == "create":
                        record = {
                            "id": change.record_id or new_record_id(),
                            "fields": dict(change.fields),
                            "created_time": _now(),
                        }
                        records.append(record)
                    else:
                        record = self._apply_update(
                            change.table, records, change.record_id or "", change.fields
                        )
                    written.append(copy.deepcopy(record))
                for table, records in loaded.items():
                    self._save(table, records)
            except StorageError:
                logger.error("Commit failed, restoring %d table(s)", len(snapshot))
                for table, records in snapshot.items():
                    self._save(table, records)
                raise
        return written


class CachedRecordStore:
    """Read-through cache over content tables, invalidated on any write to them.

    Only tables listed in ``cached`` are cached; everything else passes
    straight through. The cache belongs to this wrapper instance.
    """

    def __init__(self, inner: RecordStore, cached: Iterable[str] = ("rooms", "dungeons")) -> None:
        self._inner = inner
        self._cached = set(cached)
        self._cache: dict[str, list[Record]] = {}

    def invalidate(self, table: str | None = None) -> None:
        if table is None:
            self._cache.clear()
        else:
            self._cache.pop(table, None)

    async def _table(self, table: str) -> list[Record]:
        if table not in self._cache:
            self._cache[table] = await self._inner.read(table)
        return self._cache[table]

    async def create(self, table: str, fields: dict[str, Any]) -> Record:
        self.invalidate(table)
        return await self._inner.create(table, fields)

    async def read(self, table: str, predicate: Predicate | None = None) -> list[Record]:
        if table not in self._cached:
            return await self._inner.read(table, predicate)
        records = copy.deepcopy(await self._table(table))
        if predicate is None:
            return records
        return [r for r in records if predicate(r["fields"])]

    async def get(self, table: str, record_id: str) -> Record | None:
        if table not in self._cached:
            return await self._inner.get(table, record_id)
        for record in await self._table(table):
            if record["id"] == record_id:
                return copy.deepcopy(record)
        return None

    async def update(self, table: str, record_id: str, fields: dict[str, Any]) -> Record:
        self.invalidate(table)
        return await self._inner.update(table, record_id, fields)

    async def delete(self, table: str, record_id: str) -> bool:
        self.invalidate(table)
        return await self._inner.delete(table, record_id)

    async def commit(self, changes: Iterable[Change], guard: Guard | None = None) -> list[Record]:
        changes = list(changes)
        for change in changes:
            self.invalidate(change.table)
        return await self._inner.commit(changes, guard)
