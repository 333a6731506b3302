import pytest

from planner_micro.config import config
from planner_micro.constants import grades_key, schedule_key, user_key
from planner_micro.services import audit_service, user_service
from planner_micro.tools.passwords import verify_user_password

TEACHER_EMAIL = "abigail.turner@school.example"


def test_student_registration(store):
    user, pending = user_service.register(store, "s1", "pw", "Sam")

    assert pending is False
    assert user["role"] == "student"
    assert user["isCommunicationBanned"] is True
    assert "password" not in user and user["passwordHash"] != "pw"
    assert audit_service.get_records(store)[0]["action"] == "LOGIN"


def test_admin_ids_register_as_admin(store):
    user, _ = user_service.register(store, config.ADMIN_USER_IDS[0], "pw", "Ada")
    assert user["role"] == "admin"


def test_duplicate_registration_rejected(store):
    user_service.register(store, "s1", "pw", "Sam")
    with pytest.raises(ValueError):
        user_service.register(store, "s1", "pw", "Sam again")


def test_teacher_registration_requires_roster_match(store):
    with pytest.raises(ValueError):
        user_service.register(store, "nobody@school.example", "pw", "Nobody", "teacher")
    with pytest.raises(ValueError):
        user_service.register(store, TEACHER_EMAIL, "pw", "Someone Else", "teacher")

    user, pending = user_service.register(store, TEACHER_EMAIL.upper(), "pw", "abigail turner", "teacher")
    assert pending is True
    assert user["id"] == TEACHER_EMAIL
    assert user["isApproved"] is False


def test_login_check_order(store):
    with pytest.raises(PermissionError, match="User not found"):
        user_service.authenticate(store, "ghost", "pw")

    user_service.register(store, TEACHER_EMAIL, "pw", "Abigail Turner", "teacher")
    with pytest.raises(PermissionError, match="pending admin approval"):
        user_service.authenticate(store, TEACHER_EMAIL, "wrong", "teacher")

    user_service.register(store, "s1", "pw", "Sam")
    with pytest.raises(PermissionError, match="Incorrect password"):
        user_service.authenticate(store, "s1", "wrong")

    banned = store.get(user_key("s1"))
    banned["isBanned"] = True
    store.set(user_key("s1"), banned)
    with pytest.raises(PermissionError, match="banned"):
        user_service.authenticate(store, "s1", "wrong")


def test_teacher_on_default_password_must_change_it(store):
    admin = {"id": "a1", "name": "Ada", "role": "admin"}
    teachers = store.get("teachers")
    created = user_service.create_teacher_accounts(store, admin, [teachers[0]["id"]])
    assert created == [TEACHER_EMAIL]

    with pytest.raises(user_service.PasswordChangeRequired):
        user_service.authenticate(store, TEACHER_EMAIL, config.DEFAULT_TEACHER_PASSWORD, "teacher")

    with pytest.raises(ValueError):
        user_service.force_password_change(
            store, TEACHER_EMAIL, config.DEFAULT_TEACHER_PASSWORD, config.DEFAULT_TEACHER_PASSWORD
        )
    user_service.force_password_change(store, TEACHER_EMAIL, config.DEFAULT_TEACHER_PASSWORD, "fresh-secret")
    user = user_service.authenticate(store, TEACHER_EMAIL, "fresh-secret", "teacher")
    assert user_service.landing_view(store, user) == "teacher_dashboard"


def test_legacy_plaintext_password_is_upgraded(store):
    store.set(user_key("old"), {"id": "old", "name": "Old", "role": "student", "password": "legacy"})
    user_service.authenticate(store, "old", "legacy")

    saved = store.get(user_key("old"))
    assert "password" not in saved
    assert verify_user_password(saved, "legacy")


def test_reset_password(store):
    user_service.register(store, "s1", "pw", "Sam")
    with pytest.raises(PermissionError):
        user_service.reset_password(store, "s1", "nope", "newpass")
    user_service.reset_password(store, "s1", "pw", "newpass")
    assert user_service.authenticate(store, "s1", "newpass")["id"] == "s1"


def test_warnings_and_ban_toggle(store):
    admin = {"id": "a1", "name": "Ada", "role": "admin"}
    user_service.register(store, "s1", "pw", "Sam")

    assert user_service.send_warnings(store, admin, ["s1", "ghost"], "Be kind") == 1
    assert store.get(user_key("s1"))["warnings"][0]["message"] == "Be kind"

    assert user_service.set_ban(store, admin, "s1")["isBanned"] is True
    assert user_service.set_ban(store, admin, "s1")["isBanned"] is False
    actions = [record["action"] for record in audit_service.get_records(store)]
    assert "BAN_USER" in actions and "UNBAN_USER" in actions


def test_delete_user_fully(store):
    admin = {"id": "a1", "name": "Ada", "role": "admin"}
    user_service.register(store, "s1", "pw", "Sam")
    store.set(schedule_key("s1"), {})
    store.set(grades_key("s1"), [])

    user_service.delete_user_fully(store, admin, "s1")
    assert store.get(user_key("s1")) is None
    assert store.get(schedule_key("s1")) is None
    assert store.get(grades_key("s1")) is None


def test_super_admin_checks():
    assert user_service.is_super_admin({"id": config.SUPER_ADMIN_USER_ID})
    assert user_service.is_super_admin({"id": "x", "hasSuperAdminPrivilege": True})
    assert not user_service.is_super_admin({"id": "x", "role": "admin"})
    with pytest.raises(PermissionError):
        user_service.require_super_admin({"id": "x", "role": "secondary_admin"})
