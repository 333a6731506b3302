from fastapi import APIRouter, HTTPException, status

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import service_errors
from planner_micro.schemas.schedule_schemas import (
    BulkScheduleRequest,
    ClassPeriodSchema,
    CopyDayRequest,
    ScheduleResponse,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from planner_micro.services import schedule_service

router = APIRouter(tags=["Schedule", "Tasks"])

# === SCHEDULE ===

@router.get("", response_model=ScheduleResponse)
async def get_schedule(store: store_dependency, context: context_dependency):
    """
    Schedule of the impersonated user, else the spectated user, else our own
    """
    target = context.schedule_target_id()
    return {"user_id": target, "schedule": schedule_service.load_schedule(store, target)}


@router.put("/periods/{period_id}", response_model=ScheduleResponse)
async def update_period(period_id: str, period: ClassPeriodSchema, store: store_dependency, context: context_dependency):
    """
    Save one period. Teacher, room and tasks are copied to every period with the same subject.
    """
    if period.id != period_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Period id does not match the URL")
    target = context.schedule_target_id()
    with service_errors():
        schedule = schedule_service.update_period(store, target, period.to_document())
    return {"user_id": target, "schedule": schedule}


@router.post("/bulk", response_model=ScheduleResponse)
async def bulk_update(request: BulkScheduleRequest, store: store_dependency, context: context_dependency):
    target = context.schedule_target_id()
    # tasks stays None when omitted so existing tasks are kept
    incoming = {
        pid: item.model_dump(by_alias=True, mode="json")
        for pid, item in request.periods.items()
    }
    with service_errors():
        schedule = schedule_service.bulk_update(store, target, incoming)
    return {"user_id": target, "schedule": schedule}


@router.post("/copy-day", response_model=ScheduleResponse)
async def copy_day(request: CopyDayRequest, store: store_dependency, context: context_dependency):
    target = context.schedule_target_id()
    with service_errors():
        schedule = schedule_service.copy_day(store, target, request.from_day, request.to_day)
    return {"user_id": target, "schedule": schedule}

# === TASKS ===

@router.post("/tasks")
async def add_task(request: TaskCreateRequest, store: store_dependency, context: context_dependency):
    target = context.schedule_target_id()
    source = "teacher" if context.role == "teacher" else "student"
    with service_errors():
        schedule, targets = schedule_service.add_task(store, target, request.to_document(), source)
    return {"user_id": target, "schedule": schedule, "periods": targets}


@router.patch("/periods/{period_id}/tasks/{task_id}", response_model=ScheduleResponse)
async def edit_task(period_id: str, task_id: str, request: TaskUpdateRequest, store: store_dependency, context: context_dependency):
    target = context.schedule_target_id()
    changes = request.model_dump(by_alias=True, exclude_unset=True, mode="json")
    with service_errors():
        schedule = schedule_service.edit_task(store, target, period_id, task_id, changes)
    return {"user_id": target, "schedule": schedule}


@router.delete("/periods/{period_id}/tasks/{task_id}", response_model=ScheduleResponse)
async def delete_task(period_id: str, task_id: str, store: store_dependency, context: context_dependency):
    """
    Removes the task from this period only; copies on same-subject periods stay
    """
    target = context.schedule_target_id()
    schedule = schedule_service.delete_task(store, target, period_id, task_id)
    return {"user_id": target, "schedule": schedule}


@router.post("/periods/{period_id}/tasks/{task_id}/toggle", response_model=ScheduleResponse)
async def toggle_task(period_id: str, task_id: str, store: store_dependency, context: context_dependency):
    target = context.schedule_target_id()
    with service_errors():
        schedule = schedule_service.toggle_task(store, target, period_id, task_id)
    return {"user_id": target, "schedule": schedule}
