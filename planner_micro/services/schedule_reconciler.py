"""
Schedule reconciliation.

A schedule is a sparse mapping of period id ("Mon-0" .. "Fri-7") to a period
document. Periods that share the same non-empty subject string are one course taught
in several weekly slots, so their teacher, room and task list must agree. Every
function here is pure: it takes the current mapping and returns a new one, leaving
persistence to the caller.

Courses are grouped by exact, case-sensitive subject text. Task creation matches
subjects case-insensitively; task deletion and completion never propagate.
"""

import copy
import re
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple

from planner_micro.constants import FALLBACK_PERIOD_ID, PERIODS_PER_DAY, WEEKDAYS, period_id

ScheduleMap = Dict[str, Dict[str, Any]]

# Fields every same-subject period copies from the edited one
SHARED_FIELDS = ("teacherName", "teacherId", "room")

TASK_EDITABLE_FIELDS = ("title", "description", "category", "importance", "urgency", "dueDate")


def new_task_id(prefix: str = "t") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def empty_period(pid: str) -> Dict[str, Any]:
    return {"id": pid, "subject": "", "tasks": []}


def get_period(schedule: Mapping[str, Any], pid: str) -> Dict[str, Any]:
    period = schedule.get(pid)
    return copy.deepcopy(period) if period else empty_period(pid)


def _set_optional(target: Dict[str, Any], field: str, value: Any) -> None:
    if value is None:
        target.pop(field, None)
    else:
        target[field] = value


def _share_course_fields(target: Dict[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    shared = dict(target)
    for field in SHARED_FIELDS:
        _set_optional(shared, field, source.get(field))
    shared["tasks"] = copy.deepcopy(source.get("tasks") or [])
    return shared


# -----------------------------
# Period edits
# -----------------------------
def apply_single_edit(schedule: Mapping[str, Any], edited: Mapping[str, Any]) -> ScheduleMap:
    """Write one period and copy its teacher, room and tasks onto every same-subject period"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    period = copy.deepcopy(dict(edited))
    period.setdefault("subject", "")
    period.setdefault("tasks", [])
    updated[period["id"]] = period

    subject = period["subject"]
    if not subject:
        return updated

    for key, other in updated.items():
        if key != period["id"] and other.get("subject") == subject:
            updated[key] = _share_course_fields(other, period)
    return updated


def apply_bulk_merge(schedule: Mapping[str, Any], incoming: Mapping[str, Mapping[str, Any]]) -> ScheduleMap:
    """
    Merge a batch of periods (AI import, calendar writes).

    A non-empty incoming subject replaces subject/teacher/room; an empty one clears
    them. Incoming tasks replace the existing list only when provided; a missing or
    null tasks field keeps what the slot already has.
    """
    merged: ScheduleMap = copy.deepcopy(dict(schedule))
    for key, item in incoming.items():
        existing = merged.get(key) or {"id": key, "tasks": []}
        entry = dict(existing)
        entry.setdefault("id", key)

        if item.get("subject"):
            entry["subject"] = item["subject"]
            for field in SHARED_FIELDS:
                _set_optional(entry, field, item.get(field))
        else:
            entry["subject"] = ""
            for field in SHARED_FIELDS:
                entry.pop(field, None)

        incoming_tasks = item.get("tasks")
        if incoming_tasks is not None:
            entry["tasks"] = copy.deepcopy(list(incoming_tasks))
        else:
            entry["tasks"] = copy.deepcopy(existing.get("tasks") or [])
        merged[key] = entry
    return merged


def copy_day(schedule: Mapping[str, Any], from_day: str, to_day: str) -> ScheduleMap:
    """Duplicate one weekday's periods onto another; copied periods start with no tasks"""
    if from_day not in WEEKDAYS or to_day not in WEEKDAYS:
        raise ValueError(f"Days must be one of {', '.join(WEEKDAYS)}")
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    for slot in range(PERIODS_PER_DAY):
        source = schedule.get(period_id(from_day, slot))
        if source:
            dest_id = period_id(to_day, slot)
            updated[dest_id] = {**copy.deepcopy(dict(source)), "id": dest_id, "tasks": []}
    return updated


# -----------------------------
# Task edits
# -----------------------------
def delete_task(schedule: Mapping[str, Any], pid: str, task_id: str) -> ScheduleMap:
    """Remove a task from the named period only; same-subject copies are left in place"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    period = updated.get(pid)
    if not period:
        return updated
    period["tasks"] = [task for task in period.get("tasks") or [] if task.get("id") != task_id]
    return updated


def toggle_task_completed(schedule: Mapping[str, Any], pid: str, task_id: str) -> ScheduleMap:
    """Flip completion on the named period's copy of a task"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    period = updated.get(pid)
    if not period:
        raise LookupError(f"Period {pid} not found")
    for task in period.get("tasks") or []:
        if task.get("id") == task_id:
            task["completed"] = not task.get("completed", False)
            return updated
    raise LookupError(f"Task {task_id} not found in {pid}")


def add_task(
    schedule: Mapping[str, Any],
    task: Mapping[str, Any],
    subject: Optional[str] = None,
) -> Tuple[ScheduleMap, List[str]]:
    """
    Attach a task to every period whose subject matches (case-insensitive).
    Unmatched or subject-less tasks land on the first Monday slot.
    """
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    wanted = (subject or "").strip().lower()
    targets = []
    if wanted:
        targets = [
            key for key, period in updated.items()
            if period.get("subject") and period["subject"].lower() == wanted
        ]
    if not targets:
        if FALLBACK_PERIOD_ID not in updated or not updated[FALLBACK_PERIOD_ID]:
            updated[FALLBACK_PERIOD_ID] = empty_period(FALLBACK_PERIOD_ID)
        targets = [FALLBACK_PERIOD_ID]

    for key in targets:
        period = updated[key]
        period["tasks"] = list(period.get("tasks") or []) + [copy.deepcopy(dict(task))]
    return updated, targets


def edit_task(
    schedule: Mapping[str, Any],
    pid: str,
    task_id: str,
    changes: Mapping[str, Any],
) -> ScheduleMap:
    """Update a task and its copies in every period sharing the subject of the named period"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    period = updated.get(pid)
    if not period:
        raise LookupError(f"Period {pid} not found")

    allowed = {field: value for field, value in changes.items() if field in TASK_EDITABLE_FIELDS}
    subject = period.get("subject") or ""
    if subject:
        keys = [key for key, other in updated.items() if other.get("subject") == subject]
    else:
        keys = [pid]

    for key in keys:
        for task in updated[key].get("tasks") or []:
            if task.get("id") == task_id:
                task.update(copy.deepcopy(allowed))
    return updated


# -----------------------------
# Subject matching helpers
# -----------------------------
_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


def _normalize_subject(text: str) -> str:
    return _PUNCTUATION.sub("", text.lower()).strip()


def is_fuzzy_subject_match(first: str, second: str) -> bool:
    """Token-overlap match that tolerates typos such as 'Stated' vs 'States'"""
    if not first or not second:
        return False
    s1, s2 = _normalize_subject(first), _normalize_subject(second)
    if not s1 or not s2:
        return False
    if s1 in s2 or s2 in s1:
        return True

    tokens1 = [t for t in s1.split() if len(t) > 2]
    tokens2 = [t for t in s2.split() if len(t) > 2]
    if not tokens1 or not tokens2:
        return False

    intersection = [t for t in tokens1 if any(t2 in t or t in t2 for t2 in tokens2)]
    return len(intersection) >= 2 or (len(tokens1) == 1 and len(intersection) == 1)


def attach_task_by_fuzzy_subject(
    schedule: Mapping[str, Any],
    task: Mapping[str, Any],
    subject: Optional[str],
) -> Tuple[ScheduleMap, List[str]]:
    """Attach a calendar-derived task to fuzzy-matching periods, else the first Monday slot"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    targets = []
    if subject:
        targets = [
            key for key, period in updated.items()
            if period.get("subject") and is_fuzzy_subject_match(period["subject"], subject)
        ]
    if not targets:
        if not updated.get(FALLBACK_PERIOD_ID):
            updated[FALLBACK_PERIOD_ID] = empty_period(FALLBACK_PERIOD_ID)
        targets = [FALLBACK_PERIOD_ID]
    for key in targets:
        period = updated[key]
        period["tasks"] = list(period.get("tasks") or []) + [copy.deepcopy(dict(task))]
    return updated, targets


def subjects_in_schedule(schedule: Mapping[str, Any]) -> List[str]:
    seen: List[str] = []
    for period in schedule.values():
        subject = period.get("subject")
        if subject and subject not in seen:
            seen.append(subject)
    return seen


def rename_subject(schedule: Mapping[str, Any], old_name: str, new_name: str) -> Tuple[ScheduleMap, bool]:
    """Rename a subject on every period and on tasks that carry it as their subject"""
    updated: ScheduleMap = copy.deepcopy(dict(schedule))
    changed = False
    for period in updated.values():
        if period.get("subject") == old_name:
            period["subject"] = new_name
            for task in period.get("tasks") or []:
                if task.get("subject") == old_name:
                    task["subject"] = new_name
            changed = True
    return updated, changed
