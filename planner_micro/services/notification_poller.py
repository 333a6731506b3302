"""
Notification Poller

While a session is open its user record is re-read on a fixed interval so that
warnings and teacher broadcasts written by other sessions surface without a reload.
Admin sessions also re-count the community posts and assessment events waiting for
moderation.

Sessions move Idle -> Polling on login (watch) and back to Idle on logout (unwatch).
A poll that finishes after its session closed is discarded.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from planner_micro.config import config
from planner_micro.constants import ASSESSMENT_EVENTS_KEY, COMMUNITY_POSTS_KEY, user_key
from planner_micro.db.connection import get_store
from planner_micro.services.catalog_service import get_flags
from planner_micro.services.record_store import RecordStore
from planner_micro.services.session_context import AppContext, SessionRegistry, session_registry
from planner_micro.tools.timestamps import now_iso

logger = logging.getLogger(__name__)


def select_next_notification(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First unacknowledged warning by array order, else first unacknowledged broadcast"""
    if not user:
        return None
    for warning in user.get("warnings") or []:
        if not warning.get("acknowledged"):
            return {"kind": "warning", "notification": warning}
    for broadcast in user.get("broadcasts") or []:
        if not broadcast.get("acknowledged"):
            return {"kind": "broadcast", "notification": broadcast}
    return None


def count_pending_moderation(store: RecordStore) -> int:
    posts = store.get(COMMUNITY_POSTS_KEY) or []
    events = store.get(ASSESSMENT_EVENTS_KEY) or []
    pending_posts = sum(1 for post in posts if post.get("status") == "pending")
    pending_events = sum(1 for event in events if event.get("status") == "pending")
    return pending_posts + pending_events


def acknowledge_notification(
    store: RecordStore,
    user_id: str,
    notification_id: str,
) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """
    Mark one warning or broadcast acknowledged on the stored user.

    The user is re-read first so acknowledgements never overwrite warnings added by
    an admin since the session last polled. Only the notification currently shown can
    be acknowledged; acknowledging twice keeps the original timestamp. Returns the
    saved user and the next notification to show.
    """
    user = store.get(user_key(user_id))
    if not user:
        raise LookupError(f"User {user_id} not found")

    shown = select_next_notification(user)
    shown_id = shown["notification"].get("id") if shown else None

    for field in ("warnings", "broadcasts"):
        for item in user.get(field) or []:
            if item.get("id") == notification_id:
                if not item.get("acknowledged"):
                    if notification_id != shown_id:
                        raise ValueError(f"Notification {notification_id} is not the one being shown")
                    item["acknowledged"] = True
                    item["acknowledgedDate"] = now_iso()
                    store.set(user_key(user_id), user)
                    logger.info(f"User {user_id} acknowledged {field[:-1]} {notification_id}")
                return user, select_next_notification(user)

    raise LookupError(f"Notification {notification_id} not found for user {user_id}")


def poll_once(context: AppContext, store: RecordStore, registry: Optional[SessionRegistry] = None) -> bool:
    """
    Run one poll for a session. Returns False when the store is unreachable or the
    result was discarded.
    """
    if not context.active:
        return False
    if not store.check_connection():
        logger.debug(f"Store unreachable, skipping poll for session {context.session_id}")
        return False

    fresh_user = store.get(user_key(context.user_id))
    flags = get_flags(store)
    pending = count_pending_moderation(store) if context.is_admin else None

    # Session may have logged out while the store calls were in flight
    if not context.active:
        logger.debug(f"Discarding poll result for closed session {context.session_id}")
        return False

    if fresh_user:
        if fresh_user.get("isBanned"):
            logger.info(f"User {context.user_id} was banned, closing session {context.session_id}")
            if registry is not None:
                registry.close(context.session_id)
            else:
                context.close()
            return False
        context.user = fresh_user
        context.active_notification = select_next_notification(fresh_user)

    context.flags = flags
    if pending is not None:
        context.admin_pending_count = pending
    context.last_polled_at = datetime.utcnow()
    return True


class NotificationPoller:
    """One APScheduler interval job per open session"""

    def __init__(
        self,
        store_provider: Callable[[], RecordStore],
        registry: SessionRegistry,
        interval_seconds: int = config.POLL_INTERVAL_SECONDS,
    ):
        self._store_provider = store_provider
        self._registry = registry
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[BackgroundScheduler] = None

    @staticmethod
    def job_id(session_id: str) -> str:
        return f"poll-{session_id}"

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> bool:
        if self.running:
            return True
        try:
            self._scheduler = BackgroundScheduler()
            self._scheduler.start()
            logger.info(f"Notification poller started (every {self.interval_seconds}s per session)")
            return True
        except Exception as e:
            logger.error(f"Error starting notification poller: {e}")
            self._scheduler = None
            return False

    def shutdown(self) -> None:
        if self.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification poller stopped")
        self._scheduler = None

    def watch(self, context: AppContext) -> bool:
        """Idle -> Polling for this session"""
        if not self.running:
            return False
        self._scheduler.add_job(
            self._run,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            args=[context.session_id],
            id=self.job_id(context.session_id),
            name=f"Poll notifications for {context.user_id}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        return True

    def unwatch(self, session_id: str) -> None:
        """Polling -> Idle for this session"""
        if not self.running:
            return
        if self._scheduler.get_job(self.job_id(session_id)) is not None:
            self._scheduler.remove_job(self.job_id(session_id))

    def is_watching(self, session_id: str) -> bool:
        return self.running and self._scheduler.get_job(self.job_id(session_id)) is not None

    def _run(self, session_id: str) -> None:
        context = self._registry.get(session_id)
        if context is None:
            self.unwatch(session_id)
            return
        try:
            poll_once(context, self._store_provider(), self._registry)
        except Exception as e:
            logger.error(f"Notification poll failed for session {session_id}: {e}")
        if not context.active:
            self.unwatch(session_id)


notification_poller = NotificationPoller(get_store, session_registry)
