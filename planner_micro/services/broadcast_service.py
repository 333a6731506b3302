"""
Teacher tools: class roster, task broadcasts and broadcast history.

A student is on a teacher's roster when any period in the student's schedule names
the teacher (case-insensitive, substring match so "Ms. Lin" finds "Lin").
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping

from planner_micro.constants import SCHEDULE_PREFIX, broadcast_history_key, schedule_key, user_key
from planner_micro.services import audit_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.schedule_reconciler import new_task_id
from planner_micro.tools.timestamps import now_iso, now_ms, today

logger = logging.getLogger(__name__)


def _teaches(period: Mapping[str, Any], teacher_name: str) -> bool:
    assigned = (period.get("teacherName") or "").lower()
    wanted = teacher_name.lower()
    return bool(assigned) and bool(wanted) and (assigned == wanted or wanted in assigned)


def build_roster(store: RecordStore, teacher: Mapping[str, Any]) -> List[Dict[str, Any]]:
    teacher_name = (teacher.get("name") or "").strip()
    if not teacher_name:
        return []

    roster = []
    for item in store.scan(SCHEDULE_PREFIX):
        student_id = item["key"][len(SCHEDULE_PREFIX):]
        if student_id == teacher["id"]:
            continue
        periods, subjects = [], []
        for period in (item["value"] or {}).values():
            if _teaches(period, teacher_name):
                periods.append(period["id"])
                if period.get("subject") and period["subject"] not in subjects:
                    subjects.append(period["subject"])
        if periods:
            student = store.get(user_key(student_id)) or {}
            roster.append({
                "id": student_id,
                "name": student.get("name") or "Unknown",
                "periods": sorted(periods),
                "subjects": subjects,
            })
    return roster


def filter_roster(roster: List[Mapping[str, Any]], subjects: List[str], periods: List[str]) -> List[Mapping[str, Any]]:
    if not subjects and not periods:
        return list(roster)
    return [
        student for student in roster
        if (not subjects or any(s in subjects for s in student["subjects"]))
        and (not periods or any(p in periods for p in student["periods"]))
    ]


def broadcast_task(store: RecordStore, teacher: Mapping[str, Any], request: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Push a task into every targeted student's periods with this teacher and queue a
    broadcast notification on each student. Returns the history record.
    """
    title = request["title"]
    description = request.get("description") or ""
    category = request.get("category") or "Homework"
    subjects = list(request.get("subjects") or [])
    periods = list(request.get("periods") or [])

    targets = filter_roster(build_roster(store, teacher), subjects, periods)
    broadcast_id = f"b-{now_ms()}-{uuid.uuid4().hex[:8]}"
    delivered = 0

    for student in targets:
        schedule = store.get(schedule_key(student["id"]))
        if schedule:
            task = {
                "id": new_task_id("t-broad"),
                "title": title,
                "description": description,
                "category": category,
                "importance": "High",
                "urgency": "High",
                "dueDate": request.get("dueDate") or "",
                "completed": False,
                "source": "teacher",
            }
            touched = False
            for pid in student["periods"]:
                if pid in schedule:
                    schedule[pid]["tasks"] = list(schedule[pid].get("tasks") or []) + [dict(task)]
                    touched = True
            if touched:
                store.set(schedule_key(student["id"]), schedule)
                delivered += 1

        student_user = store.get(user_key(student["id"]))
        if student_user:
            student_user["broadcasts"] = list(student_user.get("broadcasts") or []) + [{
                "id": broadcast_id,
                "teacherName": teacher.get("name") or "Teacher",
                "title": title,
                "message": f"New {category}: {description}",
                "date": today(),
                "acknowledged": False,
            }]
            store.set(user_key(student["id"]), student_user)

    filters = " | ".join([
        f"Subj: {', '.join(subjects)}" if subjects else "All Subj",
        f"Per: {', '.join(periods)}" if periods else "All Per",
    ])
    record = {"id": broadcast_id, "title": title, "targetCount": delivered, "date": now_iso(), "filters": filters}
    history = store.get(broadcast_history_key(teacher["id"])) or []
    store.set(broadcast_history_key(teacher["id"]), [record] + history)
    audit_service.log_action(store, teacher, "BROADCAST_TASK", details=f"{title} to {delivered} students")
    logger.info(f"Broadcast {broadcast_id} from {teacher['id']} delivered to {delivered} students")
    return record


def get_history(store: RecordStore, teacher_id: str) -> List[Dict[str, Any]]:
    return store.get(broadcast_history_key(teacher_id)) or []


def clear_history(store: RecordStore, teacher_id: str) -> None:
    store.set(broadcast_history_key(teacher_id), [])


def remove_student(store: RecordStore, teacher: Mapping[str, Any], student_id: str) -> int:
    """Free every period in the student's schedule taught by this teacher"""
    schedule = store.get(schedule_key(student_id))
    if not schedule:
        raise LookupError(f"Schedule for {student_id} not found")
    teacher_name = (teacher.get("name") or "").strip()
    cleared = 0
    for pid, period in schedule.items():
        if _teaches(period, teacher_name):
            schedule[pid] = {
                key: value for key, value in period.items()
                if key not in ("teacherId", "teacherName")
            }
            schedule[pid].update({"subject": "", "tasks": []})
            cleared += 1
    store.set(schedule_key(student_id), schedule)
    return cleared
