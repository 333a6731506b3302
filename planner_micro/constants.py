"""
Shared constants for the planner service: store keys, week layout and seed data.
"""

from typing import Dict, List

# === STORE KEYS ===

TEACHERS_KEY = "teachers"
SUBJECTS_KEY = "subjects"
FEATURE_FLAGS_KEY = "feature_flags"
COMMUNITY_POSTS_KEY = "community_posts"
ASSESSMENT_EVENTS_KEY = "assessment_events"
SYSTEM_RECORDS_KEY = "system_records"

USER_PREFIX = "user_"
SCHEDULE_PREFIX = "schedule_"
GRADES_PREFIX = "grades_"
BROADCAST_HISTORY_PREFIX = "broadcast_history_"


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def schedule_key(user_id: str) -> str:
    return f"{SCHEDULE_PREFIX}{user_id}"


def grades_key(user_id: str) -> str:
    return f"{GRADES_PREFIX}{user_id}"


def broadcast_history_key(teacher_id: str) -> str:
    return f"{BROADCAST_HISTORY_PREFIX}{teacher_id}"


# === WEEK LAYOUT ===

WEEKDAYS: List[str] = ["Mon", "Tue", "Wed", "Thu", "Fri"]
PERIODS_PER_DAY = 8
FALLBACK_PERIOD_ID = "Mon-0"


def period_id(day: str, slot: int) -> str:
    return f"{day}-{slot}"


# === SEED DATA ===

DEFAULT_SUBJECTS: List[str] = [
    "Math", "English", "Physics", "Chemistry", "Biology",
    "History", "Geography", "Art", "Music", "PE",
    "Computer Science", "Economics", "Chinese", "Calculus",
]

# "name,subject,email;" entries, same shape as the roster exported by the school office
RAW_TEACHER_ROSTER = (
    "Abigail Turner,Math,abigail.turner@school.example;"
    "Benjamin Okafor,Physics、Chemistry,benjamin.okafor@school.example;"
    "Carmen Delgado,English,carmen.delgado@school.example;"
    "Daniel Whitaker,History、Economics,daniel.whitaker@school.example;"
    "Elena Petrova,Biology,elena.petrova@school.example;"
    "Farid Haddad,Computer Science,farid.haddad@school.example;"
    "Grace Lin,Chinese,grace.lin@school.example;"
    "Henry Castillo,PE,henry.castillo@school.example;"
)


def parse_teacher_roster(raw: str) -> List[Dict[str, str]]:
    teachers = []
    entries = [entry.strip() for entry in raw.split(";") if entry.strip()]
    for idx, entry in enumerate(entries):
        parts = [part.strip() for part in entry.split(",")]
        teachers.append({
            "id": f"t-{idx}",
            "name": parts[0] if len(parts) > 0 and parts[0] else "Unknown",
            "subject": parts[1] if len(parts) > 1 and parts[1] else "General",
            "email": parts[2] if len(parts) > 2 and parts[2] else "no-email",
        })
    return teachers


DEFAULT_TEACHERS = parse_teacher_roster(RAW_TEACHER_ROSTER)

DEFAULT_FLAGS: Dict[str, bool] = {
    "enableCommunity": True,
    "enableGPA": True,
    "enableCalendar": True,
    "autoApprovePosts": False,
    "autoApproveRequests": False,
    "enableAIImport": True,
    "enableAIContentCheck": True,
    "enableTeacherAI": True,
    "enableAITutor": True,
}

# Flags whose toggles are written to the audit log
AUDITED_FLAGS = {"autoApprovePosts", "autoApproveRequests", "enableAIContentCheck"}

GRADE_LEVELS: List[str] = ["G5", "G6", "G7", "G8", "G9", "G10", "G11", "G12"]

# (minimum percent, letter, grade point), checked top-down
GPA_SCALE = [
    (93, "A", 4.00),
    (90, "A-", 3.67),
    (87, "B+", 3.33),
    (83, "B", 3.00),
    (80, "B-", 2.67),
    (77, "C+", 2.33),
    (73, "C", 2.00),
    (70, "C-", 1.67),
    (67, "D+", 1.33),
    (63, "D", 1.00),
    (60, "D-", 0.67),
]

# Checked before any AI moderation; substring match, case-insensitive
PROFANITY_LIST: List[str] = ["abuse", "hate", "stupid", "idiot", "kill", "attack", "hell", "damn"]
