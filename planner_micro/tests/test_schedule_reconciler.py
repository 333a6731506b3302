import copy

import pytest

from planner_micro.services import schedule_reconciler as reconciler


def make_task(task_id, title="Worksheet", subject=None):
    task = {"id": task_id, "title": title, "category": "Homework", "importance": "Medium",
            "urgency": "Medium", "completed": False, "source": "student"}
    if subject:
        task["subject"] = subject
    return task


@pytest.fixture
def schedule():
    return {
        "Mon-0": {"id": "Mon-0", "subject": "Math", "teacherName": "A", "room": "101", "tasks": []},
        "Wed-2": {"id": "Wed-2", "subject": "Math", "teacherName": "A", "room": "101", "tasks": []},
        "Tue-1": {"id": "Tue-1", "subject": "English", "teacherName": "C", "room": "305", "tasks": []},
    }


def test_edit_propagates_to_same_subject(schedule):
    edited = {**schedule["Mon-0"], "teacherName": "B", "room": "202"}
    updated = reconciler.apply_single_edit(schedule, edited)

    assert updated["Wed-2"]["teacherName"] == "B"
    assert updated["Wed-2"]["room"] == "202"
    assert updated["Tue-1"]["teacherName"] == "C"
    # input untouched
    assert schedule["Wed-2"]["teacherName"] == "A"


def test_edit_propagates_tasks_and_removes_cleared_fields(schedule):
    edited = {"id": "Mon-0", "subject": "Math", "teacherName": "A", "tasks": [make_task("t-1")]}
    updated = reconciler.apply_single_edit(schedule, edited)

    assert updated["Wed-2"]["tasks"] == [make_task("t-1")]
    assert "room" not in updated["Wed-2"]


def test_subject_match_is_case_sensitive(schedule):
    schedule["Thu-3"] = {"id": "Thu-3", "subject": "math", "teacherName": "Z", "tasks": []}
    updated = reconciler.apply_single_edit(schedule, {**schedule["Mon-0"], "teacherName": "B"})
    assert updated["Thu-3"]["teacherName"] == "Z"


def test_clearing_subject_does_not_propagate(schedule):
    updated = reconciler.apply_single_edit(schedule, {"id": "Mon-0", "subject": "", "tasks": []})

    assert updated["Mon-0"]["subject"] == ""
    assert updated["Wed-2"] == schedule["Wed-2"]


def test_single_edit_is_idempotent(schedule):
    edited = {**schedule["Mon-0"], "teacherName": "B", "room": "202", "tasks": [make_task("t-9")]}
    once = reconciler.apply_single_edit(schedule, edited)
    twice = reconciler.apply_single_edit(once, edited)
    assert once == twice


def test_copy_day_resets_tasks(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1")]
    updated = reconciler.copy_day(schedule, "Mon", "Fri")

    assert updated["Fri-0"]["subject"] == "Math"
    assert updated["Fri-0"]["room"] == "101"
    assert updated["Fri-0"]["id"] == "Fri-0"
    assert updated["Fri-0"]["tasks"] == []
    assert updated["Mon-0"]["tasks"] == [make_task("t-1")]


def test_copy_day_rejects_unknown_day(schedule):
    with pytest.raises(ValueError):
        reconciler.copy_day(schedule, "Mon", "Sat")


def test_bulk_merge_keeps_tasks_when_not_provided(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1"), make_task("t-2")]
    updated = reconciler.apply_bulk_merge(schedule, {"Mon-0": {"subject": "Math", "teacherName": "B"}})

    assert [task["id"] for task in updated["Mon-0"]["tasks"]] == ["t-1", "t-2"]
    assert updated["Mon-0"]["teacherName"] == "B"


def test_bulk_merge_empty_tasks_clears(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1"), make_task("t-2")]
    updated = reconciler.apply_bulk_merge(schedule, {"Mon-0": {"subject": "Math", "tasks": []}})
    assert updated["Mon-0"]["tasks"] == []


def test_bulk_merge_empty_subject_clears_course_fields(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1")]
    updated = reconciler.apply_bulk_merge(schedule, {"Mon-0": {"subject": "", "tasks": None}})

    assert updated["Mon-0"]["subject"] == ""
    assert "teacherName" not in updated["Mon-0"]
    assert "room" not in updated["Mon-0"]
    assert updated["Mon-0"]["tasks"] == [make_task("t-1")]


def test_bulk_merge_creates_missing_period(schedule):
    updated = reconciler.apply_bulk_merge(schedule, {"Fri-7": {"subject": "Art", "room": "Studio"}})
    assert updated["Fri-7"] == {"id": "Fri-7", "subject": "Art", "room": "Studio", "tasks": []}


def test_delete_task_only_touches_named_period(schedule):
    task = make_task("t-1")
    schedule["Mon-0"]["tasks"] = [copy.deepcopy(task)]
    schedule["Wed-2"]["tasks"] = [copy.deepcopy(task)]
    updated = reconciler.delete_task(schedule, "Mon-0", "t-1")

    assert updated["Mon-0"]["tasks"] == []
    assert updated["Wed-2"]["tasks"] == [task]


def test_delete_task_missing_period_is_noop(schedule):
    assert reconciler.delete_task(schedule, "Fri-5", "t-1") == schedule


def test_toggle_task_only_touches_named_period(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1")]
    schedule["Wed-2"]["tasks"] = [make_task("t-1")]
    updated = reconciler.toggle_task_completed(schedule, "Mon-0", "t-1")

    assert updated["Mon-0"]["tasks"][0]["completed"] is True
    assert updated["Wed-2"]["tasks"][0]["completed"] is False


def test_toggle_unknown_task_raises(schedule):
    with pytest.raises(LookupError):
        reconciler.toggle_task_completed(schedule, "Mon-0", "missing")


def test_add_task_matches_subject_case_insensitively(schedule):
    updated, targets = reconciler.add_task(schedule, make_task("t-5"), "MATH")

    assert sorted(targets) == ["Mon-0", "Wed-2"]
    assert updated["Mon-0"]["tasks"][0]["id"] == "t-5"
    assert updated["Tue-1"]["tasks"] == []


def test_add_task_without_match_falls_back_to_first_monday_slot():
    updated, targets = reconciler.add_task({}, make_task("t-5"), "Latin")

    assert targets == ["Mon-0"]
    assert updated["Mon-0"]["tasks"][0]["id"] == "t-5"
    assert updated["Mon-0"]["subject"] == ""


def test_edit_task_propagates_to_same_subject(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1")]
    schedule["Wed-2"]["tasks"] = [make_task("t-1")]
    updated = reconciler.edit_task(schedule, "Wed-2", "t-1", {"title": "Quiz prep", "completed": True})

    assert updated["Mon-0"]["tasks"][0]["title"] == "Quiz prep"
    assert updated["Wed-2"]["tasks"][0]["title"] == "Quiz prep"
    # completion is not an editable field
    assert updated["Mon-0"]["tasks"][0]["completed"] is False


def test_edit_task_on_free_period_stays_local():
    schedule = {
        "Mon-0": {"id": "Mon-0", "subject": "", "tasks": [make_task("t-1")]},
        "Mon-1": {"id": "Mon-1", "subject": "", "tasks": [make_task("t-1")]},
    }
    updated = reconciler.edit_task(schedule, "Mon-0", "t-1", {"title": "Changed"})

    assert updated["Mon-0"]["tasks"][0]["title"] == "Changed"
    assert updated["Mon-1"]["tasks"][0]["title"] == "Worksheet"


@pytest.mark.parametrize("first, second, expected", [
    ("AP United States History", "AP United Stated History", True),
    ("Math", "Mathematics", True),
    ("Chemistry", "Physics", False),
    ("", "Math", False),
])
def test_fuzzy_subject_match(first, second, expected):
    assert reconciler.is_fuzzy_subject_match(first, second) is expected


def test_attach_by_fuzzy_subject(schedule):
    updated, targets = reconciler.attach_task_by_fuzzy_subject(schedule, make_task("t-cal"), "Mathematics")
    assert sorted(targets) == ["Mon-0", "Wed-2"]
    assert updated["Tue-1"]["tasks"] == []


def test_rename_subject_updates_periods_and_tasks(schedule):
    schedule["Mon-0"]["tasks"] = [make_task("t-1", subject="Math")]
    updated, changed = reconciler.rename_subject(schedule, "Math", "Algebra")

    assert changed
    assert updated["Mon-0"]["subject"] == "Algebra"
    assert updated["Wed-2"]["subject"] == "Algebra"
    assert updated["Mon-0"]["tasks"][0]["subject"] == "Algebra"
    assert reconciler.subjects_in_schedule(updated) == ["Algebra", "English"]
