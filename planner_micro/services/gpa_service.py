import uuid
from typing import Any, Dict, List, Tuple

from planner_micro.constants import GPA_SCALE, grades_key
from planner_micro.services.record_store import RecordStore
from planner_micro.services.schedule_service import load_schedule
from planner_micro.services.schedule_reconciler import subjects_in_schedule


def grade_for_percent(percent: float) -> Tuple[str, float]:
    for minimum, letter, point in GPA_SCALE:
        if percent >= minimum:
            return letter, point
    return "F", 0.0


def average_gpa(courses: List[Dict[str, Any]]) -> float:
    if not courses:
        return 0.0
    total = sum(grade_for_percent(course.get("gradePercent", 0))[1] for course in courses)
    return round(total / len(courses), 2)


def _new_course(name: str, percent: float = 0) -> Dict[str, Any]:
    return {"id": uuid.uuid4().hex[:12], "name": name, "gradePercent": percent}


def load_courses(store: RecordStore, user_id: str, seed_from_schedule: bool = True) -> List[Dict[str, Any]]:
    """Saved grade list, topped up with any scheduled subject not yet listed"""
    courses = store.get(grades_key(user_id)) or []
    if not seed_from_schedule:
        return courses

    known = {course["name"].lower() for course in courses}
    added = False
    for subject in subjects_in_schedule(load_schedule(store, user_id)):
        if subject.lower() not in known:
            courses.append(_new_course(subject))
            known.add(subject.lower())
            added = True
    if added:
        store.set(grades_key(user_id), courses)
    return courses


def summarize(courses: List[Dict[str, Any]]) -> Dict[str, Any]:
    rows = []
    for course in courses:
        letter, point = grade_for_percent(course.get("gradePercent", 0))
        rows.append({**course, "letter": letter, "point": point})
    return {"courses": rows, "gpa": average_gpa(courses)}


def add_course(store: RecordStore, user_id: str, name: str, percent: float) -> Dict[str, Any]:
    if not 0 <= percent <= 100:
        raise ValueError("Grade must be between 0 and 100")
    courses = load_courses(store, user_id, seed_from_schedule=False)
    course = _new_course(name.strip(), percent)
    store.set(grades_key(user_id), courses + [course])
    return course


def update_course(store: RecordStore, user_id: str, course_id: str, percent: float) -> Dict[str, Any]:
    if not 0 <= percent <= 100:
        raise ValueError("Grade must be between 0 and 100")
    courses = load_courses(store, user_id, seed_from_schedule=False)
    for course in courses:
        if course["id"] == course_id:
            course["gradePercent"] = percent
            store.set(grades_key(user_id), courses)
            return course
    raise LookupError(f"Course {course_id} not found")


def remove_course(store: RecordStore, user_id: str, course_id: str) -> None:
    courses = load_courses(store, user_id, seed_from_schedule=False)
    store.set(grades_key(user_id), [course for course in courses if course["id"] != course_id])


def clear_courses(store: RecordStore, user_id: str) -> None:
    store.set(grades_key(user_id), [])
