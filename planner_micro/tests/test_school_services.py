import pytest

from planner_micro.constants import ASSESSMENT_EVENTS_KEY, broadcast_history_key, grades_key, schedule_key, user_key
from planner_micro.services import (
    audit_service,
    broadcast_service,
    calendar_service,
    catalog_service,
    community_service,
    gpa_service,
    schedule_service,
)

ADMIN = {"id": "a1", "name": "Ada", "role": "admin"}
TEACHER = {"id": "grace.lin@school.example", "name": "Grace Lin", "role": "teacher"}


def make_student(store, user_id="s1", **extra):
    user = {"id": user_id, "name": f"Student {user_id}", "role": "student", "isCommunicationBanned": False,
            "warnings": [], "broadcasts": [], **extra}
    store.set(user_key(user_id), user)
    return user

# === CATALOG ===

def test_seed_data_written_once(store):
    assert catalog_service.ensure_seed_data(store) == {"teachers": False, "subjects": False, "feature_flags": False}
    assert len(catalog_service.get_teachers(store)) == 8


def test_flag_updates_audit_only_moderation_flags(store):
    catalog_service.update_flags(store, ADMIN, {"enableGPA": False})
    assert audit_service.get_records(store) == []

    flags = catalog_service.toggle_flag(store, ADMIN, "autoApprovePosts")
    assert flags["autoApprovePosts"] is True
    assert audit_service.get_records(store)[0]["details"] == "autoApprovePosts -> true"

    with pytest.raises(ValueError):
        catalog_service.update_flags(store, ADMIN, {"noSuchFlag": True})


def test_audit_actions_are_a_closed_set(store):
    with pytest.raises(ValueError):
        audit_service.log_action(store, ADMIN, "DROP_TABLES")
    assert audit_service.get_records(store) == []

    record = audit_service.log_action(store, ADMIN, "BAN_USER", "s1", "Sam")
    assert record["action"] == "BAN_USER"
    assert (record["actorId"], record["actorRole"], record["targetName"]) == ("a1", "admin", "Sam")
    assert "details" not in record


def test_teacher_database_rejects_duplicate_email(store):
    catalog_service.add_teacher(store, ADMIN, "New Person", "Art", "new.person@school.example")
    with pytest.raises(ValueError):
        catalog_service.add_teacher(store, ADMIN, "Other", "Art", "NEW.PERSON@school.example")


def test_rename_subject_everywhere(store):
    schedule_service.save_schedule(store, "s1", {"Mon-0": {"id": "Mon-0", "subject": "Math", "tasks": []}})
    store.set(ASSESSMENT_EVENTS_KEY, [{"id": "e1", "subject": "Math", "title": "Unit test", "date": "2024-05-01"}])
    store.set(grades_key("s1"), [{"id": "c1", "name": "Math", "gradePercent": 91}])

    touched = catalog_service.rename_subject_everywhere(store, ADMIN, "Math", "Mathematics")

    assert touched == {"schedules": 1, "events": 1, "grades": 1}
    assert "Mathematics" in catalog_service.get_subjects(store)
    assert store.get(schedule_key("s1"))["Mon-0"]["subject"] == "Mathematics"
    assert store.get(grades_key("s1"))[0]["name"] == "Mathematics"

# === SCHEDULE SERVICE ===

def test_ai_rows_become_full_week_with_roster_names(store):
    schedule_service.save_schedule(store, "s1", {
        "Mon-0": {"id": "Mon-0", "subject": "Old", "tasks": [{"id": "t-1", "title": "x"}]},
    })
    rows = [
        {"day": "Monday", "periodIndex": 0, "subject": "Math", "teacher": "Ms. Turner", "room": "101"},
        {"day": "tue", "periodIndex": 3, "subject": "Chinese", "teacher": "Grace Lin", "room": ""},
        {"day": "Sat", "periodIndex": 1, "subject": "Ignored", "teacher": "", "room": ""},
    ]
    schedule = schedule_service.import_timetable(store, "s1", rows)

    assert len(schedule) == 40
    assert schedule["Mon-0"]["subject"] == "Math"
    assert schedule["Mon-0"]["teacherName"] == "Abigail Turner"
    assert schedule["Mon-0"]["teacherId"] == "t-0"
    assert schedule["Mon-0"]["tasks"] == []
    assert schedule["Tue-3"]["teacherName"] == "Grace Lin"
    assert "room" not in schedule["Tue-3"]
    assert schedule["Fri-7"] == {"id": "Fri-7", "subject": "", "tasks": []}


def test_ai_rows_with_untranslated_teacher_names_are_rejected(store):
    with pytest.raises(ValueError):
        schedule_service.import_timetable(store, "s1", [
            {"day": "Mon", "periodIndex": 0, "subject": "Chinese", "teacher": "林老师", "room": ""},
        ])


def test_add_task_through_service_persists_everywhere(store):
    schedule_service.save_schedule(store, "s1", {
        "Mon-0": {"id": "Mon-0", "subject": "Math", "tasks": []},
        "Thu-4": {"id": "Thu-4", "subject": "Math", "tasks": []},
    })
    schedule, targets = schedule_service.add_task(store, "s1", {"title": "Problem set", "subject": "math"})

    assert sorted(targets) == ["Mon-0", "Thu-4"]
    saved = store.get(schedule_key("s1"))
    assert saved["Mon-0"]["tasks"][0]["id"] == saved["Thu-4"]["tasks"][0]["id"]
    assert saved["Mon-0"]["tasks"][0]["source"] == "student"


def test_event_to_todo(store):
    schedule_service.save_schedule(store, "s1", {"Wed-1": {"id": "Wed-1", "subject": "AP Biology", "tasks": []}})
    event = {"id": "e1", "title": "Cell quiz", "subject": "Biology", "category": "Quiz",
             "eventType": "academic", "date": "2024-05-01", "teacherName": "Elena Petrova"}

    _, targets = schedule_service.add_event_to_todo(store, "s1", event)
    task = store.get(schedule_key("s1"))["Wed-1"]["tasks"][0]
    assert targets == ["Wed-1"]
    assert task["category"] == "Quiz"
    assert task["dueDate"] == "2024-05-01"
    assert task["id"].startswith("t-cal-")

    with pytest.raises(ValueError):
        schedule_service.add_event_to_todo(store, "s1", {**event, "eventType": "school"})

# === COMMUNITY ===

def test_student_post_waits_for_moderation(store):
    student = make_student(store)
    post = community_service.create_post(store, student, {"title": "Study group", "subject": "Math",
                                                          "gradeLevels": ["G9"]})
    assert post["status"] == "pending"
    assert community_service.visible_posts(store, make_student(store, "s2")) == []
    assert community_service.visible_posts(store, student)[0]["id"] == post["id"]

    community_service.moderate_post(store, ADMIN, post["id"], "approved")
    assert len(community_service.visible_posts(store, make_student(store, "s2"))) == 1


def test_post_rules(store):
    banned = make_student(store, "s9", isCommunicationBanned=True)
    with pytest.raises(PermissionError):
        community_service.create_post(store, banned, {"title": "Hi", "gradeLevels": ["G9"]})

    student = make_student(store)
    with pytest.raises(PermissionError):
        community_service.create_post(store, student, {"title": "Hi", "category": "Announcement"})
    with pytest.raises(ValueError):
        community_service.create_post(store, student, {"title": "Hi"})
    with pytest.raises(ValueError):
        community_service.create_post(store, student, {"title": "I hate this", "gradeLevels": ["G9"]})

    post = community_service.create_post(store, ADMIN, {"title": "Assembly", "category": "Announcement"})
    assert post["status"] == "approved"


def test_likes_are_once_per_user(store):
    post = community_service.create_post(store, ADMIN, {"title": "News", "category": "Announcement"})
    assert community_service.toggle_like(store, "s1", post["id"])["likes"] == 1
    assert community_service.toggle_like(store, "s2", post["id"])["likes"] == 2
    assert community_service.toggle_like(store, "s1", post["id"])["likes"] == 1


def test_nested_comments(store):
    student = make_student(store)
    post = community_service.create_post(store, ADMIN, {"title": "News", "category": "Announcement"})
    parent = community_service.add_comment(store, student, post["id"], "Great")
    community_service.add_comment(store, student, post["id"], "Agreed", parent_id=parent["id"])

    saved = community_service.get_posts(store)[0]
    assert saved["comments"][0]["replies"][0]["text"] == "Agreed"
    with pytest.raises(LookupError):
        community_service.add_comment(store, student, post["id"], "Orphan", parent_id="missing")

# === CALENDAR ===

def test_legacy_event_defaults_are_written_back(store):
    store.set(ASSESSMENT_EVENTS_KEY, [
        {"id": "e1", "title": "Old", "date": "2024-01-01"},
        {"id": "e2", "title": "Quiz", "date": "2024-01-02", "category": "Quiz"},
    ])
    events = calendar_service.get_events(store)

    assert (events[0]["category"], events[0]["eventType"]) == ("Test", "academic")
    assert (events[1]["category"], events[1]["eventType"]) == ("Quiz", "academic")
    assert store.get(ASSESSMENT_EVENTS_KEY)[0]["eventType"] == "academic"


def test_student_academic_event_pending_unless_auto_approved(store):
    student = make_student(store)
    fields = {"title": "Lab test", "subject": "Physics", "date": "2024-05-02", "eventType": "academic"}

    assert calendar_service.create_event(store, student, fields)["status"] == "pending"
    assert calendar_service.create_event(store, student, fields, auto_approve_flag=True)["status"] == "approved"
    personal = calendar_service.create_event(store, student, {**fields, "eventType": "personal"})
    assert personal["status"] == "approved"
    assert personal not in calendar_service.visible_events(store, make_student(store, "s2"))


def test_rejecting_event_removes_it(store):
    student = make_student(store)
    event = calendar_service.create_event(store, student, {"title": "Lab", "subject": "Physics", "date": "2024-05-02"})
    calendar_service.moderate_event(store, ADMIN, event["id"], "rejected")
    assert calendar_service.get_events(store) == []

# === TEACHER TOOLS ===

def test_roster_broadcast_and_remove_student(store):
    make_student(store, "s1")
    make_student(store, "s2")
    schedule_service.save_schedule(store, "s1", {
        "Mon-0": {"id": "Mon-0", "subject": "Chinese", "teacherName": "Ms. Grace Lin", "tasks": []},
        "Tue-0": {"id": "Tue-0", "subject": "Math", "teacherName": "Abigail Turner", "tasks": []},
    })
    schedule_service.save_schedule(store, "s2", {
        "Wed-5": {"id": "Wed-5", "subject": "Chinese", "teacherName": "Grace Lin", "tasks": []},
    })

    roster = broadcast_service.build_roster(store, TEACHER)
    assert [student["id"] for student in roster] == ["s1", "s2"]
    assert roster[0]["periods"] == ["Mon-0"]

    record = broadcast_service.broadcast_task(store, TEACHER, {"title": "Essay", "description": "500 words",
                                                                "periods": ["Mon-0"]})
    assert record["targetCount"] == 1
    assert record["filters"] == "All Subj | Per: Mon-0"
    assert store.get(schedule_key("s1"))["Mon-0"]["tasks"][0]["source"] == "teacher"
    assert store.get(schedule_key("s1"))["Tue-0"]["tasks"] == []
    assert store.get(user_key("s1"))["broadcasts"][0]["title"] == "Essay"
    assert store.get(user_key("s2"))["broadcasts"] == []
    assert store.get(broadcast_history_key(TEACHER["id"]))[0]["id"] == record["id"]

    assert broadcast_service.remove_student(store, TEACHER, "s1") == 1
    cleared = store.get(schedule_key("s1"))["Mon-0"]
    assert cleared["subject"] == "" and "teacherName" not in cleared

# === GRADES ===

def test_gpa_table_and_average():
    assert gpa_service.grade_for_percent(95) == ("A", 4.0)
    assert gpa_service.grade_for_percent(88) == ("B+", 3.33)
    assert gpa_service.grade_for_percent(59.9) == ("F", 0.0)
    assert gpa_service.average_gpa([{"gradePercent": 95}, {"gradePercent": 85}]) == 3.5


def test_courses_seeded_from_schedule(store):
    schedule_service.save_schedule(store, "s1", {
        "Mon-0": {"id": "Mon-0", "subject": "Math", "tasks": []},
        "Tue-0": {"id": "Tue-0", "subject": "Art", "tasks": []},
    })
    gpa_service.add_course(store, "s1", "math", 90)
    courses = gpa_service.load_courses(store, "s1")

    assert [course["name"] for course in courses] == ["math", "Art"]
    with pytest.raises(ValueError):
        gpa_service.add_course(store, "s1", "PE", 120)
