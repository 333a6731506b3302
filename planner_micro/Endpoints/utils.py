"""
Shared helpers for the planner routers: service error translation and the
"who is acting" lookups every router needs.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict

from fastapi import HTTPException, status

from planner_micro.constants import user_key
from planner_micro.services.gemini_service import get_gemini_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.session_context import AppContext
from planner_micro.services.user_service import is_admin, is_teacher_identity

logger = logging.getLogger(__name__)


@contextmanager
def service_errors():
    """Translate service exceptions into HTTP errors"""
    try:
        yield
    except HTTPException:
        raise
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e).strip("'\""))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def acting_user(store: RecordStore, context: AppContext) -> Dict[str, Any]:
    """Latest stored copy of the user this session acts as (impersonated user first)"""
    effective = context.effective_user
    return store.get(user_key(effective["id"])) or effective


def ensure_admin(context: AppContext) -> None:
    if not context.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


def ensure_staff(store: RecordStore, user: Dict[str, Any]) -> None:
    if not (is_admin(user) or is_teacher_identity(store, user)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher access required")


def ensure_feature(context: AppContext, flag: str) -> Dict[str, bool]:
    """Gate on the session's feature flags, refreshed at login, on every poll and on admin changes"""
    flags = context.flags
    if not flags.get(flag, False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Feature '{flag}' is disabled")
    return flags


async def screen_content(flags: Dict[str, bool], *texts: str) -> None:
    """Run the AI content check when it is enabled; an unavailable AI service lets content through"""
    if not flags.get("enableAIContentCheck"):
        return
    text = "\n".join(t for t in texts if t)
    if not text:
        return
    try:
        service = get_gemini_service()
    except ValueError as e:
        logger.warning(f"AI content check skipped: {e}")
        return
    verdict = await service.check_content_safety(text)
    if not verdict["isSafe"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Flagged by AI: {verdict.get('reason') or 'Inappropriate content'}",
        )
