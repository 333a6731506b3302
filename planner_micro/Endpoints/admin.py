import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, status

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import ensure_admin, service_errors
from planner_micro.schemas.admin_schemas import (
    AdminPasswordRequest,
    BulkIdsRequest,
    FeatureFlagsSchema,
    ImportResponse,
    ModerationRequest,
    PullResponse,
    RenameUserRequest,
    RoleChangeRequest,
    SendWarningRequest,
    SubjectRenameRequest,
    SubjectsAddRequest,
    SystemRecordWrite,
    TeacherCreateRequest,
    TeacherUpdateRequest,
)
from planner_micro.services import audit_service, calendar_service, catalog_service, community_service, user_service
from planner_micro.services.notification_poller import notification_poller
from planner_micro.services.session_context import session_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin Console"])


def _close_sessions_of(user_id: str) -> None:
    for context in session_registry.active_sessions():
        if context.user_id == user_id:
            notification_poller.unwatch(context.session_id)
    session_registry.close_user_sessions(user_id)

# === USERS ===

@router.get("/users")
async def list_users(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return user_service.list_users(store)


@router.post("/users/warnings")
async def send_warnings(request: SendWarningRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    delivered = user_service.send_warnings(store, context.user, request.user_ids, request.message)
    return {"delivered": delivered}


@router.post("/users/{user_id}/ban")
async def ban_user(user_id: str, store: store_dependency, context: context_dependency, banned: Optional[bool] = None):
    """
    Ban or unban a user; toggles when ``banned`` is not given. A banned user's
    open sessions are closed.
    """
    ensure_admin(context)
    with service_errors():
        user = user_service.set_ban(store, context.user, user_id, banned)
    if user["isBanned"]:
        _close_sessions_of(user_id)
    return user_service.public_user(user)


@router.post("/users/{user_id}/communication-ban")
async def communication_ban(user_id: str, banned: bool, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user = user_service.set_communication_ban(store, context.user, user_id, banned)
    return user_service.public_user(user)


@router.put("/users/{user_id}/role")
async def change_role(user_id: str, request: RoleChangeRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user = user_service.change_role(store, context.user, user_id, request.role)
    return user_service.public_user(user)


@router.put("/users/{user_id}/name")
async def rename_user(user_id: str, request: RenameUserRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user = user_service.rename_user(store, context.user, user_id, request.name)
    return user_service.public_user(user)


@router.put("/users/{user_id}/password")
async def set_password(user_id: str, request: AdminPasswordRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user_service.admin_set_password(store, context.user, user_id, request.password)
    return {"message": "Password updated"}


@router.post("/users/{user_id}/approve")
async def approve_teacher(user_id: str, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user = user_service.approve_teacher(store, context.user, user_id)
    return user_service.public_user(user)


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, store: store_dependency, context: context_dependency):
    """
    Wipe a user with their schedule, grades and broadcast history
    """
    ensure_admin(context)
    if not user_service.can_delete_accounts(context.user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only full admins can delete accounts")
    if user_id == context.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    user_service.delete_user_fully(store, context.user, user_id)
    _close_sessions_of(user_id)
    return {"message": f"User {user_id} deleted"}


@router.post("/users/super-admin")
async def super_admin_privilege(request: BulkIdsRequest, grant: bool, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user_service.require_super_admin(context.user)
        updated = user_service.set_super_admin_privilege(store, context.user, request.ids, grant)
    return {"updated": updated}

# === SPECTATE / IMPERSONATE ===

@router.post("/spectate/{user_id}")
async def spectate(user_id: str, store: store_dependency, context: context_dependency):
    """View (and edit) another user's schedule from this session"""
    ensure_admin(context)
    with service_errors():
        user_service.get_user(store, user_id)
    context.spectated_user_id = user_id
    return {"spectatedUserId": user_id}


@router.delete("/spectate")
async def stop_spectating(context: context_dependency):
    ensure_admin(context)
    context.spectated_user_id = None
    return {"spectatedUserId": None}


@router.post("/impersonate/{user_id}")
async def impersonate(user_id: str, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        user = user_service.get_user(store, user_id)
    context.impersonated_user = user_service.public_user(user)
    logger.info(f"Admin {context.user_id} impersonating {user_id}")
    return {"actingAs": context.impersonated_user}


@router.delete("/impersonate")
async def stop_impersonating(context: context_dependency):
    ensure_admin(context)
    context.impersonated_user = None
    return {"actingAs": user_service.public_user(context.user)}

# === TEACHER DATABASE ===

@router.get("/teachers")
async def list_teachers(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return catalog_service.get_teachers(store)


@router.post("/teachers")
async def add_teacher(request: TeacherCreateRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        teacher = catalog_service.add_teacher(store, context.user, request.name, request.subject, request.email)
    accounts: List[str] = []
    if request.create_account:
        accounts = user_service.create_teacher_accounts(store, context.user, [teacher["id"]])
    return {"teacher": teacher, "accounts": accounts}


@router.put("/teachers/{teacher_id}")
async def update_teacher(teacher_id: str, request: TeacherUpdateRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        return catalog_service.update_teacher(store, context.user, teacher_id, request.model_dump(exclude_none=True))


@router.post("/teachers/delete")
async def delete_teachers(request: BulkIdsRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return {"deleted": catalog_service.delete_teachers(store, context.user, request.ids)}


@router.post("/teachers/accounts")
async def create_teacher_accounts(request: BulkIdsRequest, store: store_dependency, context: context_dependency):
    """Create approved accounts on the default password for the listed teachers"""
    ensure_admin(context)
    return {"created": user_service.create_teacher_accounts(store, context.user, request.ids)}

# === SUBJECT DATABASE ===

@router.get("/subjects")
async def list_subjects(store: store_dependency, context: context_dependency):
    return catalog_service.get_subjects(store)


@router.post("/subjects")
async def add_subjects(request: SubjectsAddRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        return catalog_service.add_subjects(store, context.user, request.subjects)


@router.post("/subjects/delete")
async def delete_subjects(request: BulkIdsRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return catalog_service.delete_subjects(store, context.user, request.ids)


@router.post("/subjects/rename")
async def rename_subject(request: SubjectRenameRequest, store: store_dependency, context: context_dependency):
    """
    Rename a subject everywhere it is used: schedules, tasks, calendar and grades
    """
    ensure_admin(context)
    with service_errors():
        return catalog_service.rename_subject_everywhere(store, context.user, request.old_name, request.new_name)

# === FEATURE FLAGS ===

@router.get("/flags", response_model=FeatureFlagsSchema)
async def get_flags(store: store_dependency, context: context_dependency):
    return catalog_service.get_flags(store)


@router.put("/flags", response_model=FeatureFlagsSchema)
async def update_flags(store: store_dependency, context: context_dependency, changes: Dict[str, bool] = Body(...)):
    ensure_admin(context)
    with service_errors():
        flags = catalog_service.update_flags(store, context.user, changes)
    session_registry.update_flags(flags)
    return flags


@router.post("/flags/{name}/toggle", response_model=FeatureFlagsSchema)
async def toggle_flag(name: str, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        flags = catalog_service.toggle_flag(store, context.user, name)
    session_registry.update_flags(flags)
    return flags

# === MODERATION ===

@router.get("/moderation")
async def moderation_queue(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return {
        "posts": community_service.pending_posts(store),
        "events": calendar_service.pending_events(store),
    }


@router.post("/moderation/posts/{post_id}")
async def moderate_post(post_id: str, request: ModerationRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    with service_errors():
        return community_service.moderate_post(store, context.user, post_id, request.action, request.reason)


@router.post("/moderation/events/{event_id}")
async def moderate_event(event_id: str, request: ModerationRequest, store: store_dependency, context: context_dependency):
    """
    Approving logs the event on behalf of the student who requested it;
    rejecting removes it from the calendar
    """
    ensure_admin(context)
    with service_errors():
        return calendar_service.moderate_event(store, context.user, event_id, request.action)

# === AUDIT LOG ===

@router.get("/records")
async def list_records(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return audit_service.get_records(store)


@router.post("/records")
async def save_record(request: SystemRecordWrite, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return audit_service.upsert_record(store, request.to_document())


@router.put("/records/{record_id}")
async def edit_record(record_id: str, request: SystemRecordWrite, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return audit_service.upsert_record(store, {**request.to_document(), "id": record_id})


@router.post("/records/delete")
async def delete_records(request: BulkIdsRequest, store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return {"deleted": audit_service.delete_records(store, request.ids)}


@router.delete("/records")
async def clear_records(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    audit_service.clear_records(store)
    return {"message": "Audit log cleared"}

# === STORE SNAPSHOTS ===

@router.get("/store/status")
async def store_status(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    store.check_connection()
    return store.status()


@router.get("/store/export")
async def export_store(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    return store.export_all()


@router.post("/store/import", response_model=ImportResponse)
async def import_store(store: store_dependency, context: context_dependency, snapshot: Dict[str, Any] = Body(...)):
    """
    Overwrite every key in the snapshot verbatim
    """
    ensure_admin(context)
    with service_errors():
        imported = store.import_all(snapshot)
    session_registry.update_flags(catalog_service.get_flags(store))
    audit_service.log_action(store, context.user, "DATABASE_EDIT", details=f"Imported {imported} keys")
    return {"imported": imported}


@router.post("/store/pull", response_model=PullResponse)
async def pull_store(store: store_dependency, context: context_dependency):
    ensure_admin(context)
    try:
        pulled = store.pull_remote()
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    session_registry.update_flags(catalog_service.get_flags(store))
    return {"pulled": pulled}
