"""
Audit log of administrative and account actions.

Records live under one key, newest first, and are only ever read from and written
to the remote store (never served from the local cache).
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from planner_micro.constants import SYSTEM_RECORDS_KEY
from planner_micro.schemas.admin_schemas import ActionTypeEnum, SystemRecordSchema
from planner_micro.services.record_store import RecordStore
from planner_micro.tools.timestamps import now_iso, now_ms

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return f"log-{now_ms()}-{uuid.uuid4().hex[:9]}"


def build_record(
    actor: Mapping[str, Any],
    action: ActionTypeEnum,
    target_id: Optional[str] = None,
    target_name: Optional[str] = None,
    details: Optional[str] = None,
) -> Dict[str, Any]:
    return SystemRecordSchema(
        id=new_record_id(),
        timestamp=now_ms(),
        date=now_iso(),
        actor_id=actor["id"],
        actor_name=actor.get("name") or "Unknown",
        actor_role=actor.get("role", "student"),
        action=action,
        target_id=target_id,
        target_name=target_name,
        details=details,
    ).to_document()


def log_action(
    store: RecordStore,
    actor: Mapping[str, Any],
    action: ActionTypeEnum,
    target_id: Optional[str] = None,
    target_name: Optional[str] = None,
    details: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Prepend an audit record. Unknown actions raise ValueError; store failures are
    logged, never raised to the caller.
    """
    action = ActionTypeEnum(action)
    try:
        record = build_record(actor, action, target_id, target_name, details)
        records = store.get_secure(SYSTEM_RECORDS_KEY) or []
        store.set_secure(SYSTEM_RECORDS_KEY, [record] + records)
        return record
    except Exception as e:
        logger.error(f"Failed to log action {action.value}: {e}")
        return None


def get_records(store: RecordStore) -> List[Dict[str, Any]]:
    records = store.get_secure(SYSTEM_RECORDS_KEY) or []
    return sorted(records, key=lambda record: record.get("timestamp", 0), reverse=True)


def save_records(store: RecordStore, records: List[Dict[str, Any]]) -> None:
    store.set_secure(SYSTEM_RECORDS_KEY, records)


def upsert_record(store: RecordStore, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Add a hand-written record, or replace the one with the same id"""
    entry = dict(record)
    entry["id"] = entry.get("id") or new_record_id()
    entry["timestamp"] = entry.get("timestamp") or now_ms()
    entry["date"] = entry.get("date") or now_iso()

    records = get_records(store)
    for idx, existing in enumerate(records):
        if existing.get("id") == entry["id"]:
            records[idx] = entry
            break
    else:
        records.insert(0, entry)
    save_records(store, records)
    return entry


def delete_records(store: RecordStore, record_ids: List[str]) -> int:
    wanted = set(record_ids)
    records = get_records(store)
    kept = [record for record in records if record.get("id") not in wanted]
    save_records(store, kept)
    return len(records) - len(kept)


def clear_records(store: RecordStore) -> None:
    save_records(store, [])
    logger.info("Audit log cleared")
