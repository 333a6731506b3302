"""
Per-session application context.

Everything that used to be process-wide UI state (the signed-in user, feature flags,
who an admin is spectating or impersonating, the notification being shown) lives on
an AppContext created at login and torn down at logout. Contexts are looked up by the
session id carried in the access token.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from planner_micro.schemas.users_schemas import ADMIN_ROLES

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    session_id: str
    user: Dict[str, Any]
    flags: Dict[str, bool] = field(default_factory=dict)
    view: str = "student"
    impersonated_user: Optional[Dict[str, Any]] = None
    spectated_user_id: Optional[str] = None
    # {"kind": "warning" | "broadcast", "notification": {...}}
    active_notification: Optional[Dict[str, Any]] = None
    admin_pending_count: int = 0
    active: bool = True
    started_at: datetime = field(default_factory=datetime.utcnow)
    last_polled_at: Optional[datetime] = None

    @property
    def user_id(self) -> str:
        return self.user["id"]

    @property
    def role(self) -> str:
        return self.user.get("role", "student")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def effective_user(self) -> Dict[str, Any]:
        return self.impersonated_user or self.user

    def schedule_target_id(self) -> str:
        """Schedule writes go to the impersonated user, else the spectated one, else our own"""
        if self.impersonated_user:
            return self.impersonated_user["id"]
        if self.spectated_user_id:
            return self.spectated_user_id
        return self.user_id

    def close(self) -> None:
        self.active = False
        self.active_notification = None
        self.impersonated_user = None
        self.spectated_user_id = None


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, AppContext] = {}
        self._lock = threading.Lock()

    def create(self, user: Dict[str, Any], flags: Dict[str, bool], view: str = "student") -> AppContext:
        context = AppContext(session_id=uuid.uuid4().hex, user=user, flags=dict(flags), view=view)
        with self._lock:
            self._sessions[context.session_id] = context
        logger.info(f"Session {context.session_id} opened for user {context.user_id}")
        return context

    def get(self, session_id: Optional[str]) -> Optional[AppContext]:
        if not session_id:
            return None
        with self._lock:
            context = self._sessions.get(session_id)
        if context is None or not context.active:
            return None
        return context

    def close(self, session_id: str) -> Optional[AppContext]:
        with self._lock:
            context = self._sessions.pop(session_id, None)
        if context is not None:
            context.close()
            logger.info(f"Session {session_id} closed for user {context.user_id}")
        return context

    def close_user_sessions(self, user_id: str) -> int:
        """Close every session belonging to user_id (ban, account wipe)"""
        with self._lock:
            doomed = [sid for sid, ctx in self._sessions.items() if ctx.user_id == user_id]
        for sid in doomed:
            self.close(sid)
        return len(doomed)

    def active_sessions(self) -> List[AppContext]:
        with self._lock:
            return [ctx for ctx in self._sessions.values() if ctx.active]

    def update_flags(self, flags: Dict[str, bool]) -> None:
        for context in self.active_sessions():
            context.flags = dict(flags)

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for context in sessions:
            context.close()


session_registry = SessionRegistry()
