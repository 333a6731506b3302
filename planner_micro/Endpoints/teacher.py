from fastapi import APIRouter

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import acting_user, ensure_staff, service_errors
from planner_micro.schemas.community_schemas import BroadcastTaskRequest
from planner_micro.services import broadcast_service

router = APIRouter(tags=["Teacher Tools"])


@router.get("/roster")
async def get_roster(store: store_dependency, context: context_dependency):
    """
    Students whose schedules name this teacher, with the matching periods and subjects
    """
    teacher = acting_user(store, context)
    ensure_staff(store, teacher)
    return broadcast_service.build_roster(store, teacher)


@router.delete("/roster/{student_id}")
async def remove_student(student_id: str, store: store_dependency, context: context_dependency):
    teacher = acting_user(store, context)
    ensure_staff(store, teacher)
    with service_errors():
        cleared = broadcast_service.remove_student(store, teacher, student_id)
    return {"cleared": cleared}


@router.post("/broadcasts")
async def broadcast_task(request: BroadcastTaskRequest, store: store_dependency, context: context_dependency):
    teacher = acting_user(store, context)
    ensure_staff(store, teacher)
    return broadcast_service.broadcast_task(store, teacher, request.to_document())


@router.get("/broadcasts")
async def broadcast_history(store: store_dependency, context: context_dependency):
    teacher = acting_user(store, context)
    ensure_staff(store, teacher)
    return broadcast_service.get_history(store, teacher["id"])


@router.delete("/broadcasts")
async def clear_broadcast_history(store: store_dependency, context: context_dependency):
    teacher = acting_user(store, context)
    ensure_staff(store, teacher)
    broadcast_service.clear_history(store, teacher["id"])
    return {"message": "Broadcast history cleared"}
