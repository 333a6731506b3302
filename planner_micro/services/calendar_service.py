"""
Assessment calendar.

Events live in the ``assessment_events`` array. Older exports lack ``category``
and/or ``eventType``; those defaults are filled in on load and written back.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping

from planner_micro.constants import ASSESSMENT_EVENTS_KEY
from planner_micro.services import audit_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.user_service import is_admin, is_teacher_identity
from planner_micro.tools.timestamps import now_ms

logger = logging.getLogger(__name__)


def apply_legacy_defaults(events: List[Dict[str, Any]]) -> bool:
    """Fill missing category/eventType in place. Returns True when anything changed."""
    changed = False
    for event in events:
        if not event.get("category") and not event.get("eventType"):
            event["category"] = "Test"
            event["eventType"] = "academic"
            changed = True
        elif not event.get("eventType"):
            event["eventType"] = "academic"
            changed = True
    return changed


def get_events(store: RecordStore) -> List[Dict[str, Any]]:
    events = store.get(ASSESSMENT_EVENTS_KEY) or []
    if apply_legacy_defaults(events):
        store.set(ASSESSMENT_EVENTS_KEY, events)
        logger.info("Filled legacy defaults on assessment events")
    return events


def _find_event(events: List[Dict[str, Any]], event_id: str) -> Dict[str, Any]:
    for event in events:
        if event.get("id") == event_id:
            return event
    raise LookupError(f"Event {event_id} not found")


def get_event(store: RecordStore, event_id: str) -> Dict[str, Any]:
    return _find_event(get_events(store), event_id)


def visible_events(store: RecordStore, viewer: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Personal events only for their creator; pending events only for staff and the creator"""
    staff = is_admin(viewer) or is_teacher_identity(store, viewer)
    visible = []
    for event in get_events(store):
        own = event.get("creatorId") == viewer["id"]
        if event.get("eventType") == "personal" and not own:
            continue
        if event.get("status") == "pending" and not (staff or own):
            continue
        visible.append(event)
    return sorted(visible, key=lambda e: e.get("date", ""))


def pending_events(store: RecordStore) -> List[Dict[str, Any]]:
    return [event for event in get_events(store) if event.get("status") == "pending"]


def initial_status(store: RecordStore, creator: Mapping[str, Any], event_type: str, auto_approve_flag: bool) -> str:
    if event_type == "personal":
        return "approved"
    staff = is_admin(creator) or is_teacher_identity(store, creator)
    if not staff and event_type == "academic" and not auto_approve_flag:
        return "pending"
    return "approved"


def _log_action_for(event_type: str) -> str:
    return "EDIT_EVENT_CALENDAR" if event_type == "school" else "EDIT_ASSESSMENT_CALENDAR"


def create_event(store: RecordStore, creator: Mapping[str, Any], fields: Mapping[str, Any], auto_approve_flag: bool = False) -> Dict[str, Any]:
    events = get_events(store)
    event_type = fields.get("eventType") or "academic"
    event = {
        **fields,
        "id": f"evt-{now_ms()}-{uuid.uuid4().hex[:6]}",
        "eventType": event_type,
        "creatorId": creator["id"],
        "creatorName": creator.get("name") or "Unknown",
        "status": initial_status(store, creator, event_type, auto_approve_flag),
    }
    events.append(event)
    store.set(ASSESSMENT_EVENTS_KEY, events)

    if event["status"] == "approved" and event_type != "personal":
        details = "Auto-accepted" if auto_approve_flag else "Direct Add"
        audit_service.log_action(store, creator, _log_action_for(event_type), details=f"{event['title']} ({details})")
    return event


def _can_edit(store: RecordStore, actor: Mapping[str, Any], event: Mapping[str, Any]) -> bool:
    return event.get("creatorId") == actor["id"] or is_admin(actor) or is_teacher_identity(store, actor)


def update_event(store: RecordStore, actor: Mapping[str, Any], event_id: str, fields: Mapping[str, Any], auto_approve_flag: bool = False) -> Dict[str, Any]:
    events = get_events(store)
    event = _find_event(events, event_id)
    if not _can_edit(store, actor, event):
        raise PermissionError("You cannot edit this event")

    event.update({key: value for key, value in fields.items() if key not in ("id", "creatorId", "creatorName", "status")})
    if event.get("status") == "pending" and auto_approve_flag:
        event["status"] = "approved"
    store.set(ASSESSMENT_EVENTS_KEY, events)

    if event.get("eventType") != "personal":
        audit_service.log_action(store, actor, "EDIT_ASSESSMENT_CALENDAR", event_id, details=event.get("title"))
    return event


def delete_event(store: RecordStore, actor: Mapping[str, Any], event_id: str) -> None:
    events = get_events(store)
    event = _find_event(events, event_id)
    if not _can_edit(store, actor, event):
        raise PermissionError("You cannot delete this event")
    store.set(ASSESSMENT_EVENTS_KEY, [e for e in events if e.get("id") != event_id])
    if event.get("eventType") != "personal":
        audit_service.log_action(store, actor, "EDIT_ASSESSMENT_CALENDAR", details=f"Deleted: {event.get('title')}")


def moderate_event(store: RecordStore, actor: Mapping[str, Any], event_id: str, action: str) -> Dict[str, Any]:
    """
    Approve (logged on behalf of the requesting student) or reject. Rejected events
    are removed from the calendar.
    """
    if action not in ("approved", "rejected"):
        raise ValueError("Moderation action must be 'approved' or 'rejected'")
    events = get_events(store)
    event = _find_event(events, event_id)

    if action == "rejected":
        store.set(ASSESSMENT_EVENTS_KEY, [e for e in events if e.get("id") != event_id])
        return {**event, "status": "rejected"}

    event["status"] = "approved"
    store.set(ASSESSMENT_EVENTS_KEY, events)
    requester = {"id": event.get("creatorId"), "name": event.get("creatorName"), "role": "student"}
    audit_service.log_action(
        store, requester, _log_action_for(event.get("eventType", "academic")),
        details=f"{event.get('title')} (Approved by {actor.get('name')})",
    )
    return event
