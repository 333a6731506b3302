from fastapi import APIRouter

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import acting_user, ensure_feature, service_errors
from planner_micro.schemas.community_schemas import EventWriteRequest
from planner_micro.services import calendar_service, schedule_service

router = APIRouter(tags=["Assessment Calendar"])

# === CALENDAR EVENT ENDPOINTS ===

@router.get("/events")
async def list_events(store: store_dependency, context: context_dependency):
    ensure_feature(context, "enableCalendar")
    return calendar_service.visible_events(store, acting_user(store, context))


@router.post("/events")
async def create_event(request: EventWriteRequest, store: store_dependency, context: context_dependency):
    """
    Create an event. Student academic events wait for approval unless auto-approval is on.
    """
    flags = ensure_feature(context, "enableCalendar")
    with service_errors():
        return calendar_service.create_event(
            store, acting_user(store, context), request.to_document(), flags.get("autoApproveRequests", False)
        )


@router.put("/events/{event_id}")
async def update_event(event_id: str, request: EventWriteRequest, store: store_dependency, context: context_dependency):
    flags = ensure_feature(context, "enableCalendar")
    with service_errors():
        return calendar_service.update_event(
            store, acting_user(store, context), event_id, request.to_document(), flags.get("autoApproveRequests", False)
        )


@router.delete("/events/{event_id}")
async def delete_event(event_id: str, store: store_dependency, context: context_dependency):
    with service_errors():
        calendar_service.delete_event(store, acting_user(store, context), event_id)
    return {"message": "Event deleted"}


@router.post("/events/{event_id}/todo")
async def add_event_to_todo(event_id: str, store: store_dependency, context: context_dependency):
    """
    Copy an assessment event onto the schedule as a task on the matching subject periods
    """
    target = context.schedule_target_id()
    with service_errors():
        event = calendar_service.get_event(store, event_id)
        schedule, periods = schedule_service.add_event_to_todo(store, target, event)
    return {"user_id": target, "schedule": schedule, "periods": periods}
