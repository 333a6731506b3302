"""
User Service

Accounts and the admin console's user management. Users are stored as camelCase
documents under ``user_{id}``; the password is only ever stored as a passlib hash.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple

from planner_micro.config import config
from planner_micro.constants import (
    USER_PREFIX,
    broadcast_history_key,
    grades_key,
    schedule_key,
    user_key,
)
from planner_micro.schemas.users_schemas import ADMIN_ROLES, UserRoleEnum
from planner_micro.services import audit_service
from planner_micro.services.catalog_service import find_teacher_by_email, get_teachers, is_registered_teacher
from planner_micro.services.record_store import RecordStore
from planner_micro.tools.passwords import set_user_password, verify_user_password
from planner_micro.tools.timestamps import now_ms, today

logger = logging.getLogger(__name__)

CREDENTIAL_FIELDS = ("passwordHash", "password")


class PasswordChangeRequired(Exception):
    """Teacher signed in with the default password and must choose a new one first"""

    def __init__(self, user_id: str):
        super().__init__("Password change required before first sign-in")
        self.user_id = user_id


# -----------------------------
# Lookups and permissions
# -----------------------------
def public_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in user.items() if key not in CREDENTIAL_FIELDS}


def get_user(store: RecordStore, user_id: str) -> Dict[str, Any]:
    user = store.get(user_key(user_id))
    if not user:
        raise LookupError(f"User {user_id} not found")
    return user


def is_admin(user: Mapping[str, Any]) -> bool:
    return user.get("role") in ADMIN_ROLES


def can_delete_accounts(user: Mapping[str, Any]) -> bool:
    return user.get("role") == UserRoleEnum.admin.value


def is_super_admin(user: Mapping[str, Any]) -> bool:
    return (
        user.get("id") == config.SUPER_ADMIN_USER_ID
        or user.get("id") in config.ADMIN_USER_IDS
        or bool(user.get("hasSuperAdminPrivilege"))
    )


def require_admin(user: Mapping[str, Any]) -> None:
    if not is_admin(user):
        raise PermissionError("Admin access required")


def require_super_admin(user: Mapping[str, Any]) -> None:
    if not is_super_admin(user):
        raise PermissionError("Super admin access required")


def is_teacher_identity(store: RecordStore, user: Mapping[str, Any]) -> bool:
    return user.get("role") == UserRoleEnum.teacher.value or is_registered_teacher(get_teachers(store), user["id"])


def landing_view(store: RecordStore, user: Mapping[str, Any]) -> str:
    if user.get("id") == config.SUPER_ADMIN_USER_ID:
        return "admin"
    if is_teacher_identity(store, user):
        return "teacher_dashboard"
    return "student"


# -----------------------------
# Registration and sign-in
# -----------------------------
def register(store: RecordStore, user_id: str, password: str, name: str, account_type: str = "student") -> Tuple[Dict[str, Any], bool]:
    """
    Create an account. Returns (user, pending_approval).

    Teachers register with their school e-mail, which must be listed in the teacher
    database under the same name; they wait for admin approval. Students start
    without community posting rights.
    """
    is_teacher = account_type == "teacher"
    user_id = user_id.strip().lower() if is_teacher else user_id.strip()
    if not user_id:
        raise ValueError("User id is required")
    if store.get(user_key(user_id)):
        raise ValueError("An account with this id already exists")

    if is_teacher:
        teacher = find_teacher_by_email(get_teachers(store), user_id)
        if not teacher:
            raise ValueError("This e-mail is not listed in the teacher database")
        if teacher["name"].strip().lower() != name.strip().lower():
            raise ValueError(f"Name does not match the teacher database ({teacher['name']}).")
        role = UserRoleEnum.teacher.value
    else:
        role = UserRoleEnum.admin.value if user_id in config.ADMIN_USER_IDS else UserRoleEnum.student.value

    user = {
        "id": user_id,
        "name": name.strip(),
        "role": role,
        "isBanned": False,
        "isCommunicationBanned": not is_teacher,
        "isApproved": not is_teacher,
        "warnings": [],
        "broadcasts": [],
    }
    if is_teacher:
        user["email"] = user_id
    set_user_password(user, password)
    store.set(user_key(user_id), user)
    logger.info(f"Registered {role} account {user_id}")

    if not is_teacher:
        audit_service.log_action(store, user, "LOGIN")
    return user, is_teacher


def authenticate(store: RecordStore, user_id: str, password: str, account_type: str = "student") -> Dict[str, Any]:
    """Checks, in order: exists, not banned, teacher approved, password, default password"""
    user_id = user_id.strip().lower() if account_type == "teacher" else user_id.strip()
    user = store.get(user_key(user_id))
    if not user:
        raise PermissionError("User not found.")
    if user.get("isBanned"):
        raise PermissionError("This account has been banned.")
    if user.get("role") == UserRoleEnum.teacher.value and user.get("isApproved") is False:
        raise PermissionError("Account pending admin approval.")
    if not verify_user_password(user, password):
        raise PermissionError("Incorrect password.")

    if is_teacher_identity(store, user) and verify_user_password(user, config.DEFAULT_TEACHER_PASSWORD):
        raise PasswordChangeRequired(user["id"])

    # Upgrade accounts restored with a plain-text password
    if "password" in user:
        set_user_password(user, password)
        store.set(user_key(user["id"]), user)

    audit_service.log_action(store, user, "LOGIN")
    return user


def force_password_change(store: RecordStore, user_id: str, current_password: str, new_password: str, account_type: str = "teacher") -> Dict[str, Any]:
    user_id = user_id.strip().lower() if account_type == "teacher" else user_id.strip()
    user = get_user(store, user_id)
    if user.get("isBanned"):
        raise PermissionError("This account has been banned.")
    if not verify_user_password(user, current_password):
        raise PermissionError("Incorrect password.")
    if new_password == config.DEFAULT_TEACHER_PASSWORD:
        raise ValueError("Choose a password different from the default one")

    set_user_password(user, new_password)
    store.set(user_key(user_id), user)
    audit_service.log_action(store, user, "CHANGE_PASSWORD", details="Forced password change on login")
    return user


def reset_password(store: RecordStore, user_id: str, old_password: str, new_password: str) -> Dict[str, Any]:
    user = get_user(store, user_id)
    if not verify_user_password(user, old_password):
        raise PermissionError("Incorrect old password.")
    set_user_password(user, new_password)
    store.set(user_key(user_id), user)
    return user


def load_session_user(store: RecordStore, user_id: str) -> Dict[str, Any]:
    """Fresh user for session bootstrap; banned users cannot open a session"""
    user = get_user(store, user_id)
    if user.get("isBanned"):
        raise PermissionError("This account has been banned.")
    return user


# -----------------------------
# Admin console
# -----------------------------
def list_users(store: RecordStore) -> List[Dict[str, Any]]:
    users = [item["value"] for item in store.scan(USER_PREFIX) if item["value"]]
    users.sort(key=lambda user: str(user.get("id", "")))
    return [public_user(user) for user in users]


def send_warnings(store: RecordStore, actor: Mapping[str, Any], user_ids: List[str], message: str) -> int:
    delivered = 0
    for uid in user_ids:
        user = store.get(user_key(uid))
        if not user:
            continue
        warning = {
            "id": f"w-{now_ms()}-{uuid.uuid4().hex[:8]}",
            "message": message,
            "date": today(),
            "acknowledged": False,
        }
        user["warnings"] = list(user.get("warnings") or []) + [warning]
        store.set(user_key(uid), user)
        delivered += 1
    audit_service.log_action(store, actor, "SEND_WARNING", details=f"Sent to {len(user_ids)} users: {message}")
    return delivered


def set_ban(store: RecordStore, actor: Mapping[str, Any], user_id: str, banned: Optional[bool] = None) -> Dict[str, Any]:
    """Ban or unban; toggles when banned is None"""
    user = get_user(store, user_id)
    user["isBanned"] = (not user.get("isBanned")) if banned is None else banned
    store.set(user_key(user_id), user)
    action = "BAN_USER" if user["isBanned"] else "UNBAN_USER"
    audit_service.log_action(store, actor, action, user_id, user.get("name"), "Account Ban" if user["isBanned"] else "Account Unban")
    return user


def set_communication_ban(store: RecordStore, actor: Mapping[str, Any], user_id: str, banned: bool) -> Dict[str, Any]:
    user = get_user(store, user_id)
    user["isCommunicationBanned"] = banned
    store.set(user_key(user_id), user)
    audit_service.log_action(store, actor, "COMMUNITY_EDIT", user_id, user.get("name"), f"Communication ban -> {str(banned).lower()}")
    return user


def change_role(store: RecordStore, actor: Mapping[str, Any], user_id: str, role: str) -> Dict[str, Any]:
    if role not in {member.value for member in UserRoleEnum}:
        raise ValueError(f"Unknown role: {role}")
    user = get_user(store, user_id)
    user["role"] = role
    store.set(user_key(user_id), user)
    audit_service.log_action(store, actor, "CHANGE_ROLE", user_id, details=role)
    return user


def rename_user(store: RecordStore, actor: Mapping[str, Any], user_id: str, name: str) -> Dict[str, Any]:
    user = get_user(store, user_id)
    user["name"] = name.strip()
    store.set(user_key(user_id), user)
    audit_service.log_action(store, actor, "UPDATE_USER_NAME", user_id, user["name"])
    return user


def admin_set_password(store: RecordStore, actor: Mapping[str, Any], user_id: str, password: str) -> Dict[str, Any]:
    user = get_user(store, user_id)
    set_user_password(user, password)
    store.set(user_key(user_id), user)
    audit_service.log_action(store, actor, "CHANGE_PASSWORD", user_id, details="Admin Reset")
    return user


def approve_teacher(store: RecordStore, actor: Mapping[str, Any], user_id: str) -> Dict[str, Any]:
    user = get_user(store, user_id)
    user["isApproved"] = True
    store.set(user_key(user_id), user)
    audit_service.log_action(store, actor, "CHANGE_ROLE", user_id, user.get("name"), "Teacher account approved")
    return user


def set_super_admin_privilege(store: RecordStore, actor: Mapping[str, Any], user_ids: List[str], grant: bool) -> int:
    updated = 0
    for uid in user_ids:
        user = store.get(user_key(uid))
        if user:
            user["hasSuperAdminPrivilege"] = grant
            store.set(user_key(uid), user)
            updated += 1
    audit_service.log_action(
        store, actor, "CHANGE_ROLE",
        details=f"{'Granted' if grant else 'Revoked'} super admin privilege for {updated} users",
    )
    return updated


def delete_user_fully(store: RecordStore, actor: Mapping[str, Any], user_id: str) -> None:
    """Remove the user, their schedule, grades and broadcast history"""
    for key in (user_key(user_id), schedule_key(user_id), grades_key(user_id), broadcast_history_key(user_id)):
        store.remove(key)
    audit_service.log_action(store, actor, "DELETE_USER", user_id, details="Full Account Wipe")
    logger.info(f"Wiped account {user_id}")


def create_teacher_accounts(store: RecordStore, actor: Mapping[str, Any], teacher_ids: List[str]) -> List[str]:
    """Create approved accounts on the default password for listed teachers without one"""
    teachers = {teacher["id"]: teacher for teacher in get_teachers(store)}
    created = []
    for teacher_id in teacher_ids:
        teacher = teachers.get(teacher_id)
        if not teacher:
            continue
        account_id = teacher["email"].lower()
        if store.get(user_key(account_id)):
            continue
        user = {
            "id": account_id,
            "name": teacher["name"],
            "email": account_id,
            "role": UserRoleEnum.teacher.value,
            "isApproved": True,
            "isBanned": False,
            "warnings": [],
            "broadcasts": [],
        }
        set_user_password(user, config.DEFAULT_TEACHER_PASSWORD)
        store.set(user_key(account_id), user)
        created.append(account_id)

    if len(created) == 1:
        audit_service.log_action(store, actor, "CREATE_TEACHER_ACC", created[0], _teacher_name_for_account(teachers, created[0]))
    elif created:
        audit_service.log_action(store, actor, "CREATE_TEACHER_ACC", details=f"Bulk created {len(created)} accounts")
    return created


def _teacher_name_for_account(teachers: Mapping[str, Mapping[str, Any]], account_id: str) -> Optional[str]:
    for teacher in teachers.values():
        if teacher["email"].lower() == account_id:
            return teacher["name"]
    return None
