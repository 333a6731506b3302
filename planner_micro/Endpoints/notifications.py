from fastapi import APIRouter

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import service_errors
from planner_micro.schemas.users_schemas import AcknowledgeRequest, NotificationStateResponse
from planner_micro.services.notification_poller import acknowledge_notification, notification_poller, poll_once
from planner_micro.services.session_context import AppContext, session_registry

router = APIRouter(tags=["Notifications"])


def _state(context: AppContext, connected: bool) -> dict:
    active = context.active_notification or {}
    return {
        "kind": active.get("kind"),
        "notification": active.get("notification"),
        "admin_pending_count": context.admin_pending_count,
        "polling": notification_poller.is_watching(context.session_id),
        "connected": connected,
    }


@router.get("", response_model=NotificationStateResponse)
async def get_notification_state(store: store_dependency, context: context_dependency):
    """
    What the last poll surfaced for this session
    """
    return _state(context, store.connected)


@router.post("/poll", response_model=NotificationStateResponse)
async def poll_now(store: store_dependency, context: context_dependency):
    poll_once(context, store, session_registry)
    return _state(context, store.connected)


@router.post("/acknowledge", response_model=NotificationStateResponse)
async def acknowledge(request: AcknowledgeRequest, store: store_dependency, context: context_dependency):
    with service_errors():
        user, next_notification = acknowledge_notification(store, context.user_id, request.notification_id)
    context.user = user
    context.active_notification = next_notification
    return _state(context, store.connected)
