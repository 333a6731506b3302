from fastapi import APIRouter

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import ensure_feature, service_errors
from planner_micro.schemas.grades_schemas import GradeCreateRequest, GradeSummary, GradeUpdateRequest
from planner_micro.services import gpa_service

router = APIRouter(tags=["Grades"])


@router.get("", response_model=GradeSummary)
async def get_grades(store: store_dependency, context: context_dependency, seed: bool = True):
    """
    Course list with letter grades and the average GPA. With ``seed`` on, subjects
    from the schedule that are not listed yet are added at 0%.
    """
    ensure_feature(context, "enableGPA")
    courses = gpa_service.load_courses(store, context.effective_user["id"], seed_from_schedule=seed)
    return gpa_service.summarize(courses)


@router.post("", response_model=GradeSummary)
async def add_course(request: GradeCreateRequest, store: store_dependency, context: context_dependency):
    ensure_feature(context, "enableGPA")
    user_id = context.effective_user["id"]
    with service_errors():
        gpa_service.add_course(store, user_id, request.name, request.grade_percent)
    return gpa_service.summarize(gpa_service.load_courses(store, user_id, seed_from_schedule=False))


@router.put("/{course_id}", response_model=GradeSummary)
async def update_course(course_id: str, request: GradeUpdateRequest, store: store_dependency, context: context_dependency):
    ensure_feature(context, "enableGPA")
    user_id = context.effective_user["id"]
    with service_errors():
        gpa_service.update_course(store, user_id, course_id, request.grade_percent)
    return gpa_service.summarize(gpa_service.load_courses(store, user_id, seed_from_schedule=False))


@router.delete("/{course_id}", response_model=GradeSummary)
async def remove_course(course_id: str, store: store_dependency, context: context_dependency):
    user_id = context.effective_user["id"]
    gpa_service.remove_course(store, user_id, course_id)
    return gpa_service.summarize(gpa_service.load_courses(store, user_id, seed_from_schedule=False))


@router.delete("", response_model=GradeSummary)
async def clear_courses(store: store_dependency, context: context_dependency):
    gpa_service.clear_courses(store, context.effective_user["id"])
    return {"courses": [], "gpa": 0.0}
