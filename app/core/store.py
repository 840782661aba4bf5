from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path

import duckdb

from app.core.errors import StorageFailure
from app.core.events import ChangeBus, ChangeEvent
from app.core.logger import log_event

logger = logging.getLogger("ubs-flow")

COLLECTIONS = (
    "users",
    "patients",
    "appointments",
    "vaccines",
    "vaccine_stock",
    "labTests",
)


def _matches(record: dict, filters: dict) -> bool:
    return all(key in record and record[key] == value for key, value in filters.items())


class RecordStore:
    """Collection-keyed record store with merge-on-write semantics

    Subclasses provide the storage medium through ``_load``, ``_commit``
    and ``_stored_collections``. Every collection write replaces the whole
    collection in one commit, so a rejected write leaves the collection at
    its last committed state.
    """

    def __init__(self, bus: ChangeBus | None = None, quota_bytes: int = 0) -> None:
        self.bus = bus or ChangeBus()
        self.quota_bytes = quota_bytes
        self._lock = threading.RLock()

    def _load(self, collection: str) -> list[dict]:
        raise NotImplementedError

    def _commit(self, collection: str, records: list[dict], encoded: str) -> None:
        raise NotImplementedError

    def _stored_collections(self) -> list[str]:
        raise NotImplementedError

    def get(self, collection: str, filters: dict | None = None) -> list[dict]:
        """Read a collection

        Args:
            collection: collection name
            filters: exact-match field/value pairs, all of which must match

        Returns:
            Copies of the matching records; empty when never written
        """
        with self._lock:
            records = self._load(collection)
        if filters:
            records = [record for record in records if _matches(record, filters)]
        return copy.deepcopy(records)

    def get_one(self, collection: str, record_id: str) -> dict | None:
        """Read one record by id, or None when absent"""
        for record in self.get(collection):
            if record.get("id") == record_id:
                return record
        return None

    def save(self, collection: str, data: dict | list[dict]) -> list[dict]:
        """Upsert one or many records

        Records without an id are skipped with a warning. An existing id is
        shallow-merged: incoming keys overwrite, absent keys are preserved.

        Args:
            collection: collection name
            data: one record or a list of records

        Returns:
            The stored (merged) form of every accepted record

        Raises:
            StorageFailure: when the medium rejects the write
        """
        items = data if isinstance(data, list) else [data]
        saved_ids: list[str] = []
        with self._lock:
            current = self._load(collection)
            index = {record.get("id"): position for position, record in enumerate(current)}
            for item in items:
                if not isinstance(item, dict) or not item.get("id"):
                    logger.warning(
                        "save skipped record without id",
                        extra={"event": "save_skipped", "stage": collection},
                    )
                    continue
                record_id = item["id"]
                if record_id in index:
                    position = index[record_id]
                    current[position] = {**current[position], **copy.deepcopy(item)}
                else:
                    index[record_id] = len(current)
                    current.append(copy.deepcopy(item))
                saved_ids.append(record_id)
            if not saved_ids:
                return []
            self._write(collection, current)
            saved = [copy.deepcopy(current[index[record_id]]) for record_id in saved_ids]
        self.bus.publish(ChangeEvent(collection, "save", tuple(saved_ids)))
        return saved

    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record; absent ids are a no-op

        Raises:
            StorageFailure: when the medium rejects the write
        """
        with self._lock:
            current = self._load(collection)
            remaining = [record for record in current if record.get("id") != record_id]
            self._write(collection, remaining)
        self.bus.publish(ChangeEvent(collection, "delete", (record_id,)))

    def snapshot(self) -> dict[str, list[dict]]:
        """Return every known collection, for backup"""
        with self._lock:
            names = sorted(set(COLLECTIONS) | set(self._stored_collections()))
            return {name: copy.deepcopy(self._load(name)) for name in names}

    def restore(self, data: dict[str, list[dict]]) -> None:
        """Replace the given collections wholesale, for backup import

        Raises:
            StorageFailure: when a collection is malformed or the write fails
        """
        for name, records in data.items():
            if not isinstance(records, list) or not all(
                isinstance(record, dict) and record.get("id") for record in records
            ):
                raise StorageFailure(name, "backup inválido: registros sem id")
        with self._lock:
            for name, records in data.items():
                self._write(name, copy.deepcopy(records))
        for name in data:
            self.bus.publish(ChangeEvent(name, "restore"))

    def clear(self) -> None:
        """Empty every collection"""
        with self._lock:
            names = sorted(set(COLLECTIONS) | set(self._stored_collections()))
            for name in names:
                self._write(name, [])
        for name in names:
            self.bus.publish(ChangeEvent(name, "clear"))

    def _write(self, collection: str, records: list[dict]) -> None:
        try:
            encoded = json.dumps(records, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise self._failure(collection, f"registro não serializável: {exc}") from exc
        if self.quota_bytes > 0:
            used = sum(
                len(json.dumps(self._load(name), ensure_ascii=False).encode("utf-8"))
                for name in self._stored_collections()
                if name != collection
            )
            if used + len(encoded.encode("utf-8")) > self.quota_bytes:
                raise self._failure(collection, "cota de armazenamento excedida")
        self._commit(collection, records, encoded)

    def _failure(self, collection: str, message: str) -> StorageFailure:
        log_event(
            "storage_failed",
            "ERROR",
            collection,
            "store",
            message,
            error_code="STORE_WRITE_001",
        )
        return StorageFailure(collection, message)


class MemoryRecordStore(RecordStore):
    """Record store kept as JSON text per collection in process memory"""

    def __init__(self, bus: ChangeBus | None = None, quota_bytes: int = 0) -> None:
        super().__init__(bus, quota_bytes)
        self._data: dict[str, str] = {}

    def _load(self, collection: str) -> list[dict]:
        text = self._data.get(collection)
        if not text:
            return []
        data = json.loads(text)
        return data if isinstance(data, list) else []

    def _commit(self, collection: str, records: list[dict], encoded: str) -> None:
        self._data[collection] = encoded

    def _stored_collections(self) -> list[str]:
        return list(self._data)


class DuckDBRecordStore(RecordStore):
    """Durable record store backed by a local DuckDB file"""

    def __init__(
        self, path: str, bus: ChangeBus | None = None, quota_bytes: int = 0
    ) -> None:
        super().__init__(bus, quota_bytes)
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(path)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                collection VARCHAR,
                id VARCHAR,
                position INTEGER,
                body VARCHAR
            )
            """
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _load(self, collection: str) -> list[dict]:
        try:
            rows = self._conn.execute(
                "SELECT body FROM records WHERE collection = ? ORDER BY position",
                [collection],
            ).fetchall()
        except duckdb.Error as exc:
            raise StorageFailure(collection, f"leitura falhou: {exc}") from exc
        return [json.loads(row[0]) for row in rows]

    def _commit(self, collection: str, records: list[dict], encoded: str) -> None:
        rows = [
            [collection, str(record["id"]), position, json.dumps(record, ensure_ascii=False)]
            for position, record in enumerate(records)
        ]
        try:
            self._conn.begin()
        except duckdb.Error as exc:
            raise self._failure(collection, f"escrita recusada: {exc}") from exc
        try:
            self._conn.execute("DELETE FROM records WHERE collection = ?", [collection])
            if rows:
                self._conn.executemany(
                    "INSERT INTO records (collection, id, position, body) VALUES (?, ?, ?, ?)",
                    rows,
                )
            self._conn.commit()
        except duckdb.Error as exc:
            self._conn.rollback()
            raise self._failure(collection, f"escrita recusada: {exc}") from exc

    def _stored_collections(self) -> list[str]:
        try:
            rows = self._conn.execute(
                "SELECT DISTINCT collection FROM records ORDER BY collection"
            ).fetchall()
        except duckdb.Error as exc:
            raise StorageFailure("records", f"leitura falhou: {exc}") from exc
        return [row[0] for row in rows]
