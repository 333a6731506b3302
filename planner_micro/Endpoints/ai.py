import logging

from fastapi import APIRouter, HTTPException, status

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import ensure_feature, service_errors
from planner_micro.schemas.ai_schemas import (
    ChatRequest,
    ChatResponse,
    ContentCheckRequest,
    ContentCheckResponse,
    ScheduleImageRequest,
    ScheduleImageResponse,
    ScheduleImportRequest,
)
from planner_micro.schemas.schedule_schemas import ScheduleResponse
from planner_micro.services import schedule_service
from planner_micro.services.session_context import AppContext
from planner_micro.services.gemini_service import (
    TUTOR_OFFLINE_REPLY,
    ScheduleParseError,
    get_gemini_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["AI"])


def _discard_if_closed(context: AppContext) -> None:
    # the session may have logged out while the model was answering
    if not context.active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Session ended before the AI replied")


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, store: store_dependency, context: context_dependency):
    """
    One tutor turn. Failures come back as a fallback reply, never as an error.
    """
    ensure_feature(context, "enableTeacherAI" if request.mode == "teacher" else "enableAITutor")
    try:
        service = get_gemini_service()
    except ValueError as e:
        logger.error(f"AI tutor unavailable: {e}")
        return {"text": TUTOR_OFFLINE_REPLY}

    file = request.file.to_document() if request.file else None
    history = [turn.model_dump() for turn in request.history]
    text = await service.tutor_reply(history, request.message, file, request.mode)
    _discard_if_closed(context)
    return {"text": text}


@router.post("/schedule/parse", response_model=ScheduleImageResponse)
async def parse_schedule_image(request: ScheduleImageRequest, store: store_dependency, context: context_dependency):
    """
    Read a timetable photo into rows for review. Nothing is saved until /schedule/import.
    """
    ensure_feature(context, "enableAIImport")
    try:
        service = get_gemini_service()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    try:
        rows = await service.parse_schedule_image(request.image, request.mime_type)
    except ScheduleParseError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    _discard_if_closed(context)

    parsed = []
    for row in rows:
        try:
            parsed.append({
                "day": schedule_service.normalize_day(str(row.get("day", ""))),
                "period_index": int(row.get("periodIndex")),
                "subject": row.get("subject") or "",
                "teacher": row.get("teacher") or "",
                "room": row.get("room") or "",
            })
        except (TypeError, ValueError):
            logger.warning(f"Dropping unreadable timetable row: {row}")
    return {"rows": [item for item in parsed if 0 <= item["period_index"] <= 7]}


@router.post("/schedule/import", response_model=ScheduleResponse)
async def import_schedule(request: ScheduleImportRequest, store: store_dependency, context: context_dependency):
    """
    Replace the whole week with the reviewed rows; every period's task list is reset
    """
    ensure_feature(context, "enableAIImport")
    target = context.schedule_target_id()
    rows = [row.to_document() for row in request.rows]
    with service_errors():
        schedule = schedule_service.import_timetable(store, target, rows)
    return {"user_id": target, "schedule": schedule}


@router.post("/content-check", response_model=ContentCheckResponse)
async def content_check(request: ContentCheckRequest, store: store_dependency, context: context_dependency):
    try:
        service = get_gemini_service()
    except ValueError as e:
        logger.warning(f"AI content check skipped: {e}")
        return {"is_safe": True, "reason": None}
    verdict = await service.check_content_safety(request.text)
    return {"is_safe": verdict["isSafe"], "reason": verdict.get("reason")}
