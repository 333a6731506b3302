"""
Record store facade over the hosted key-value document store.

Every value is a JSON document. Reads and writes go to the remote table when it is
configured and reachable; every successful remote read and every write is mirrored
in an in-process cache, which serves reads while the remote is unconfigured or
failing. Writes are last-writer-wins: there are no transactions or version tokens.
"""

import copy
import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from planner_micro.db.database import Base, get_session_local
from planner_micro.models.store_models import KeyValueRecord

logger = logging.getLogger(__name__)


def _snapshot(value: Any) -> Any:
    # Detach from caller-owned objects and reject values that are not JSON documents
    return json.loads(json.dumps(value))


class RecordStore:
    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine
        self._session_factory = get_session_local(engine) if engine is not None else None
        self._cache: Dict[str, Any] = {}
        self._lock = threading.RLock()
        self.connected = False
        self.last_error: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return self._session_factory is not None

    # -----------------------------
    # Connection state
    # -----------------------------
    def ensure_schema(self) -> bool:
        if not self.is_configured:
            return False
        try:
            Base.metadata.create_all(bind=self._engine, checkfirst=True)
            return True
        except SQLAlchemyError as e:
            self._mark_offline("ensure_schema", e)
            return False

    def check_connection(self) -> bool:
        if not self.is_configured:
            self.connected = False
            return False
        try:
            with self._session_factory() as session:
                session.execute(select(KeyValueRecord.key).limit(1))
            self.connected = True
            self.last_error = None
        except SQLAlchemyError as e:
            self._mark_offline("check_connection", e)
        return self.connected

    def status(self) -> Dict[str, Any]:
        with self._lock:
            cached = len(self._cache)
        return {
            "configured": self.is_configured,
            "connected": self.connected,
            "cached_keys": cached,
            "last_error": self.last_error,
        }

    def _mark_offline(self, operation: str, error: Exception) -> None:
        self.connected = False
        self.last_error = str(error)
        logger.warning(f"Store {operation} failed, serving from local cache: {error}")

    # -----------------------------
    # Document operations
    # -----------------------------
    def get(self, key: str) -> Optional[Any]:
        if self.is_configured:
            try:
                with self._session_factory() as session:
                    record = session.get(KeyValueRecord, key)
                    value = copy.deepcopy(record.value) if record is not None else None
                self.connected = True
                with self._lock:
                    if value is None:
                        self._cache.pop(key, None)
                        return None
                    self._cache[key] = value
                    return copy.deepcopy(value)
            except SQLAlchemyError as e:
                self._mark_offline(f"get({key})", e)

        with self._lock:
            return copy.deepcopy(self._cache.get(key))

    def set(self, key: str, value: Any) -> None:
        document = _snapshot(value)
        with self._lock:
            self._cache[key] = document
        self._write_remote(key, document)

    def remove(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)
        if not self.is_configured:
            return
        try:
            with self._session_factory() as session:
                record = session.get(KeyValueRecord, key)
                if record is not None:
                    session.delete(record)
                    session.commit()
            self.connected = True
        except SQLAlchemyError as e:
            self._mark_offline(f"remove({key})", e)

    def scan(self, prefix: str) -> List[Dict[str, Any]]:
        """Return every {key, value} whose key starts with prefix, ordered by key"""
        if self.is_configured:
            try:
                with self._session_factory() as session:
                    rows = session.execute(
                        select(KeyValueRecord.key, KeyValueRecord.value)
                        .where(KeyValueRecord.key.startswith(prefix, autoescape=True))
                        .order_by(KeyValueRecord.key)
                    ).all()
                    results = [{"key": row.key, "value": copy.deepcopy(row.value)} for row in rows]
                self.connected = True
                with self._lock:
                    for item in results:
                        self._cache[item["key"]] = copy.deepcopy(item["value"])
                return results
            except SQLAlchemyError as e:
                self._mark_offline(f"scan({prefix})", e)

        with self._lock:
            return [
                {"key": key, "value": copy.deepcopy(value)}
                for key, value in sorted(self._cache.items())
                if key.startswith(prefix)
            ]

    def export_all(self) -> Dict[str, Any]:
        if self.is_configured:
            try:
                with self._session_factory() as session:
                    rows = session.execute(select(KeyValueRecord.key, KeyValueRecord.value)).all()
                    exported = {row.key: copy.deepcopy(row.value) for row in rows}
                self.connected = True
                return exported
            except SQLAlchemyError as e:
                self._mark_offline("export_all", e)

        with self._lock:
            return copy.deepcopy(self._cache)

    def import_all(self, snapshot: Union[Mapping[str, Any], str]) -> int:
        """Overwrite every key in the snapshot verbatim. Accepts a mapping or its JSON text."""
        if isinstance(snapshot, str):
            snapshot = json.loads(snapshot)
        if not isinstance(snapshot, Mapping):
            raise ValueError("Snapshot must be a JSON object of key -> value")
        for key, value in snapshot.items():
            self.set(key, value)
        return len(snapshot)

    # -----------------------------
    # Remote-only access (audit log)
    # -----------------------------
    def get_secure(self, key: str) -> Optional[Any]:
        if not self.is_configured:
            return None
        try:
            with self._session_factory() as session:
                record = session.get(KeyValueRecord, key)
                value = copy.deepcopy(record.value) if record is not None else None
            self.connected = True
            return value
        except SQLAlchemyError as e:
            self._mark_offline(f"get_secure({key})", e)
            return None

    def set_secure(self, key: str, value: Any) -> None:
        if not self.is_configured:
            logger.warning(f"Cannot save secure item {key}: remote store not configured")
            return
        self._write_remote(key, _snapshot(value))

    def pull_remote(self) -> int:
        """Refresh the local cache from the remote store. Raises when the remote is unavailable."""
        if not self.is_configured:
            raise RuntimeError("Remote store not configured")
        try:
            with self._session_factory() as session:
                rows = session.execute(select(KeyValueRecord.key, KeyValueRecord.value)).all()
                pulled = {row.key: copy.deepcopy(row.value) for row in rows}
        except SQLAlchemyError as e:
            self._mark_offline("pull_remote", e)
            raise RuntimeError(f"Pull from remote store failed: {e}") from e

        self.connected = True
        with self._lock:
            self._cache.update(pulled)
        logger.info(f"Pulled {len(pulled)} items from remote store")
        return len(pulled)

    def _write_remote(self, key: str, document: Any) -> None:
        if not self.is_configured:
            return
        try:
            with self._session_factory() as session:
                session.merge(KeyValueRecord(key=key, value=document, updated_at=datetime.utcnow()))
                session.commit()
            self.connected = True
        except SQLAlchemyError as e:
            self._mark_offline(f"set({key})", e)
