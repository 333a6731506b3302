"""
Catalog Service
Shared reference data: the teacher database, the subject list and feature flags.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from planner_micro.constants import (
    ASSESSMENT_EVENTS_KEY,
    AUDITED_FLAGS,
    DEFAULT_FLAGS,
    DEFAULT_SUBJECTS,
    DEFAULT_TEACHERS,
    FEATURE_FLAGS_KEY,
    GRADES_PREFIX,
    SCHEDULE_PREFIX,
    SUBJECTS_KEY,
    TEACHERS_KEY,
)
from planner_micro.services import audit_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.schedule_reconciler import rename_subject

logger = logging.getLogger(__name__)


def ensure_seed_data(store: RecordStore) -> Dict[str, bool]:
    """Write the default teachers, subjects and flags on first run"""
    seeded = {}
    for key, default in (
        (TEACHERS_KEY, DEFAULT_TEACHERS),
        (SUBJECTS_KEY, DEFAULT_SUBJECTS),
        (FEATURE_FLAGS_KEY, DEFAULT_FLAGS),
    ):
        seeded[key] = False
        if store.get(key) is None:
            store.set(key, default)
            seeded[key] = True
            logger.info(f"Seeded default {key}")
    return seeded


# -----------------------------
# Feature flags
# -----------------------------
def get_flags(store: RecordStore) -> Dict[str, bool]:
    stored = store.get(FEATURE_FLAGS_KEY) or {}
    return {**DEFAULT_FLAGS, **stored}


def update_flags(store: RecordStore, actor: Mapping[str, Any], changes: Mapping[str, bool]) -> Dict[str, bool]:
    unknown = [name for name in changes if name not in DEFAULT_FLAGS]
    if unknown:
        raise ValueError(f"Unknown feature flags: {', '.join(unknown)}")

    flags = get_flags(store)
    changed = {name: bool(value) for name, value in changes.items() if flags.get(name) != bool(value)}
    flags.update(changed)
    store.set(FEATURE_FLAGS_KEY, flags)

    for name, value in changed.items():
        if name in AUDITED_FLAGS:
            audit_service.log_action(store, actor, "FEATURE_TOGGLE", details=f"{name} -> {str(value).lower()}")
    return flags


def toggle_flag(store: RecordStore, actor: Mapping[str, Any], name: str) -> Dict[str, bool]:
    flags = get_flags(store)
    if name not in flags:
        raise ValueError(f"Unknown feature flag: {name}")
    return update_flags(store, actor, {name: not flags[name]})


# -----------------------------
# Teacher database
# -----------------------------
def get_teachers(store: RecordStore) -> List[Dict[str, Any]]:
    teachers = store.get(TEACHERS_KEY)
    return teachers if teachers is not None else list(DEFAULT_TEACHERS)


def find_teacher_by_email(teachers: List[Mapping[str, Any]], email: str) -> Optional[Mapping[str, Any]]:
    wanted = email.strip().lower()
    for teacher in teachers:
        if (teacher.get("email") or "").lower() == wanted:
            return teacher
    return None


def is_registered_teacher(teachers: List[Mapping[str, Any]], user_id: str) -> bool:
    lowered = user_id.lower()
    return any(
        teacher.get("id") == user_id or (teacher.get("email") or "").lower() == lowered
        for teacher in teachers
    )


def add_teacher(store: RecordStore, actor: Mapping[str, Any], name: str, subject: str, email: str) -> Dict[str, Any]:
    teachers = get_teachers(store)
    if find_teacher_by_email(teachers, email):
        raise ValueError(f"A teacher with email {email} already exists")
    teacher = {
        "id": f"t-{uuid.uuid4().hex[:10]}",
        "name": name.strip(),
        "subject": subject.strip() or "General",
        "email": email.strip(),
    }
    store.set(TEACHERS_KEY, teachers + [teacher])
    audit_service.log_action(store, actor, "EDIT_TEACHER_DATABASE", teacher["id"], teacher["name"], "Added teacher")
    return teacher


def update_teacher(store: RecordStore, actor: Mapping[str, Any], teacher_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    teachers = get_teachers(store)
    for teacher in teachers:
        if teacher.get("id") == teacher_id:
            teacher.update({field: value for field, value in changes.items() if value is not None})
            store.set(TEACHERS_KEY, teachers)
            audit_service.log_action(store, actor, "EDIT_TEACHER_DATABASE", teacher_id, teacher.get("name"), "Edited teacher")
            return teacher
    raise LookupError(f"Teacher {teacher_id} not found")


def delete_teachers(store: RecordStore, actor: Mapping[str, Any], teacher_ids: List[str]) -> int:
    teachers = get_teachers(store)
    doomed = set(teacher_ids)
    kept = [teacher for teacher in teachers if teacher.get("id") not in doomed]
    removed = len(teachers) - len(kept)
    store.set(TEACHERS_KEY, kept)
    audit_service.log_action(store, actor, "EDIT_TEACHER_DATABASE", details=f"Deleted {removed} teachers")
    return removed


# -----------------------------
# Subject database
# -----------------------------
def get_subjects(store: RecordStore) -> List[str]:
    subjects = store.get(SUBJECTS_KEY)
    return subjects if subjects is not None else list(DEFAULT_SUBJECTS)


def add_subjects(store: RecordStore, actor: Mapping[str, Any], names: List[str]) -> List[str]:
    subjects = get_subjects(store)
    added = []
    for name in names:
        name = name.strip()
        if name and name not in subjects:
            subjects.append(name)
            added.append(name)
    store.set(SUBJECTS_KEY, subjects)
    if added:
        audit_service.log_action(store, actor, "EDIT_SUBJECT_DATABASE", details=f"Added subjects: {', '.join(added)}")
    return subjects


def delete_subjects(store: RecordStore, actor: Mapping[str, Any], names: List[str]) -> List[str]:
    doomed = set(names)
    subjects = [subject for subject in get_subjects(store) if subject not in doomed]
    store.set(SUBJECTS_KEY, subjects)
    audit_service.log_action(store, actor, "EDIT_SUBJECT_DATABASE", details=f"Deleted {len(doomed)} subjects")
    return subjects


def rename_subject_everywhere(store: RecordStore, actor: Mapping[str, Any], old_name: str, new_name: str) -> Dict[str, int]:
    """
    Rename a subject in the subject list and carry the new name into every schedule
    (period and task subjects), the assessment calendar and every grade list.
    """
    if old_name == new_name:
        raise ValueError("New subject name must differ from the old one")

    subjects = [new_name if subject == old_name else subject for subject in get_subjects(store)]
    store.set(SUBJECTS_KEY, subjects)

    touched = {"schedules": 0, "events": 0, "grades": 0}
    for item in store.scan(SCHEDULE_PREFIX):
        updated, changed = rename_subject(item["value"] or {}, old_name, new_name)
        if changed:
            store.set(item["key"], updated)
            touched["schedules"] += 1

    events = store.get(ASSESSMENT_EVENTS_KEY) or []
    renamed_events = 0
    for event in events:
        if event.get("subject") == old_name:
            event["subject"] = new_name
            renamed_events += 1
    if renamed_events:
        store.set(ASSESSMENT_EVENTS_KEY, events)
        touched["events"] = renamed_events

    for item in store.scan(GRADES_PREFIX):
        grades = item["value"] or []
        if any(course.get("name") == old_name for course in grades):
            for course in grades:
                if course.get("name") == old_name:
                    course["name"] = new_name
            store.set(item["key"], grades)
            touched["grades"] += 1

    audit_service.log_action(
        store, actor, "EDIT_SUBJECT_DATABASE",
        details=f"Renamed Subject: {old_name} -> {new_name} (Propagated)",
    )
    logger.info(f"Renamed subject {old_name} -> {new_name}: {touched}")
    return touched
