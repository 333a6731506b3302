"""
Schedule Service

Loads a user's schedule, runs the requested reconciliation and persists the result.
Every write is a read-modify-write of the whole ``schedule_{userId}`` document with
no version check: when two sessions edit the same schedule the last write wins.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Tuple

from planner_micro.constants import PERIODS_PER_DAY, WEEKDAYS, period_id, schedule_key
from planner_micro.services import schedule_reconciler as reconciler
from planner_micro.services.catalog_service import get_teachers
from planner_micro.services.record_store import RecordStore

logger = logging.getLogger(__name__)

_CJK = re.compile(r"[\u4e00-\u9fa5]")

DAY_NAMES = {
    "monday": "Mon",
    "tuesday": "Tue",
    "wednesday": "Wed",
    "thursday": "Thu",
    "friday": "Fri",
}


def load_schedule(store: RecordStore, user_id: str) -> Dict[str, Any]:
    return store.get(schedule_key(user_id)) or {}


def save_schedule(store: RecordStore, user_id: str, schedule: Mapping[str, Any]) -> Dict[str, Any]:
    store.set(schedule_key(user_id), schedule)
    return dict(schedule)


def update_period(store: RecordStore, user_id: str, period: Mapping[str, Any]) -> Dict[str, Any]:
    updated = reconciler.apply_single_edit(load_schedule(store, user_id), period)
    return save_schedule(store, user_id, updated)


def bulk_update(store: RecordStore, user_id: str, incoming: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    updated = reconciler.apply_bulk_merge(load_schedule(store, user_id), incoming)
    return save_schedule(store, user_id, updated)


def copy_day(store: RecordStore, user_id: str, from_day: str, to_day: str) -> Dict[str, Any]:
    updated = reconciler.copy_day(load_schedule(store, user_id), from_day, to_day)
    return save_schedule(store, user_id, updated)


def add_task(store: RecordStore, user_id: str, task_fields: Mapping[str, Any], source: str = "student") -> Tuple[Dict[str, Any], List[str]]:
    fields = dict(task_fields)
    subject = fields.get("subject")
    task = {
        "id": reconciler.new_task_id(),
        "completed": False,
        "source": source,
        **fields,
    }
    updated, targets = reconciler.add_task(load_schedule(store, user_id), task, subject)
    return save_schedule(store, user_id, updated), targets


def edit_task(store: RecordStore, user_id: str, pid: str, task_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    updated = reconciler.edit_task(load_schedule(store, user_id), pid, task_id, changes)
    return save_schedule(store, user_id, updated)


def delete_task(store: RecordStore, user_id: str, pid: str, task_id: str) -> Dict[str, Any]:
    updated = reconciler.delete_task(load_schedule(store, user_id), pid, task_id)
    return save_schedule(store, user_id, updated)


def toggle_task(store: RecordStore, user_id: str, pid: str, task_id: str) -> Dict[str, Any]:
    updated = reconciler.toggle_task_completed(load_schedule(store, user_id), pid, task_id)
    return save_schedule(store, user_id, updated)


# -----------------------------
# Assessment calendar -> to-do
# -----------------------------
def event_to_task(event: Mapping[str, Any]) -> Dict[str, Any]:
    personal = event.get("eventType") == "personal"
    if event.get("category") == "Quiz":
        category = "Quiz"
    elif personal:
        category = "Personal"
    else:
        category = "Test"
    teacher_line = "" if personal else f"Teacher: {event.get('teacherName', '')}"
    task = {
        "id": reconciler.new_task_id("t-cal"),
        "title": event["title"],
        "description": f"Imported from Calendar. {teacher_line}\n{event.get('description') or ''}",
        "category": category,
        "importance": "High",
        "urgency": "High",
        "dueDate": event.get("date"),
        "completed": False,
        "source": "student",
    }
    if event.get("subject") and event["subject"] != "Personal":
        task["subject"] = event["subject"]
    return task


def add_event_to_todo(store: RecordStore, user_id: str, event: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Attach an assessment event as a task on the periods whose subject loosely matches it"""
    if event.get("eventType") == "school":
        raise ValueError("School events cannot be added to the to-do list")
    subject = None if event.get("eventType") == "personal" else event.get("subject")
    updated, targets = reconciler.attach_task_by_fuzzy_subject(
        load_schedule(store, user_id), event_to_task(event), subject
    )
    return save_schedule(store, user_id, updated), targets


# -----------------------------
# AI timetable import
# -----------------------------
def normalize_day(raw: str) -> str:
    raw = (raw or "").strip()
    short = DAY_NAMES.get(raw.lower(), raw[:3]) if len(raw) > 3 else raw
    return short[:1].upper() + short[1:].lower()


def best_teacher_match(raw_name: str, teachers: List[Mapping[str, Any]]) -> str:
    if not raw_name:
        return ""
    normalized = raw_name.lower().replace(".", "", 1).strip()
    for teacher in teachers:
        if teacher["name"].lower() == normalized or normalized in (teacher.get("email") or "").lower():
            return teacher["name"]
    for teacher in teachers:
        last_name = teacher["name"].lower().split(" ")[-1]
        if last_name and last_name in normalized:
            return teacher["name"]
    return raw_name


def rows_to_incoming(rows: List[Mapping[str, Any]], teachers: List[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Build a full-week incoming map from parsed timetable rows. Every slot is present
    (empty unless a row fills it) and every slot's task list is reset.
    """
    bad_names = [row.get("teacher") for row in rows if _CJK.search(row.get("teacher") or "")]
    if bad_names:
        raise ValueError("Teacher names must be picked from the teacher database before importing")

    incoming: Dict[str, Dict[str, Any]] = {}
    for day in WEEKDAYS:
        for slot in range(PERIODS_PER_DAY):
            pid = period_id(day, slot)
            incoming[pid] = {"id": pid, "subject": "", "tasks": []}

    by_name = {teacher["name"]: teacher for teacher in teachers}
    for row in rows:
        day = normalize_day(row.get("day", ""))
        slot = row.get("periodIndex")
        if day not in WEEKDAYS or not isinstance(slot, int) or not 0 <= slot < PERIODS_PER_DAY:
            logger.debug(f"Skipping timetable row outside the week grid: {row}")
            continue

        raw_teacher = row.get("teacher") or ""
        teacher_name = raw_teacher if raw_teacher in by_name else best_teacher_match(raw_teacher, teachers)
        pid = period_id(day, slot)
        entry = {
            "id": pid,
            "subject": row.get("subject") or "",
            "room": row.get("room") or None,
            "teacherName": teacher_name or None,
            "teacherId": by_name[teacher_name]["id"] if teacher_name in by_name else None,
            "tasks": [],
        }
        incoming[pid] = {key: value for key, value in entry.items() if value is not None}
    return incoming


def import_timetable(store: RecordStore, user_id: str, rows: List[Mapping[str, Any]]) -> Dict[str, Any]:
    incoming = rows_to_incoming(rows, get_teachers(store))
    logger.info(f"Importing {len(rows)} timetable rows for {user_id}")
    return bulk_update(store, user_id, incoming)
