import pytest

from planner_micro.constants import COMMUNITY_POSTS_KEY, FEATURE_FLAGS_KEY, user_key
from planner_micro.services.notification_poller import (
    NotificationPoller,
    acknowledge_notification,
    count_pending_moderation,
    poll_once,
    select_next_notification,
)
from planner_micro.services.record_store import RecordStore
from planner_micro.services.session_context import SessionRegistry


def seed_user(store, user_id="s1", role="student"):
    user = {
        "id": user_id,
        "name": "Sam",
        "role": role,
        "warnings": [
            {"id": "w1", "message": "First", "date": "2024-01-01", "acknowledged": False},
            {"id": "w2", "message": "Second", "date": "2024-01-02", "acknowledged": False},
        ],
        "broadcasts": [
            {"id": "b1", "teacherName": "Ms. Lin", "title": "Essay", "message": "New Homework: essay",
             "date": "2024-01-03", "acknowledged": False},
        ],
    }
    store.set(user_key(user_id), user)
    return user


def test_warnings_surface_before_broadcasts_and_never_reappear(store):
    user = seed_user(store)
    shown = []
    current = select_next_notification(user)
    while current:
        shown.append(current["notification"]["id"])
        user, current = acknowledge_notification(store, "s1", current["notification"]["id"])

    assert shown == ["w1", "w2", "b1"]
    saved = store.get(user_key("s1"))
    for item in saved["warnings"] + saved["broadcasts"]:
        assert item["acknowledged"] is True
        assert item["acknowledgedDate"]
    assert select_next_notification(saved) is None


def test_acknowledge_twice_keeps_first_timestamp(store):
    seed_user(store)
    user, _ = acknowledge_notification(store, "s1", "w1")
    first = user["warnings"][0]["acknowledgedDate"]
    user, _ = acknowledge_notification(store, "s1", "w1")
    assert user["warnings"][0]["acknowledgedDate"] == first


def test_only_the_shown_notification_can_be_acknowledged(store):
    seed_user(store)
    with pytest.raises(ValueError):
        acknowledge_notification(store, "s1", "b1")
    with pytest.raises(ValueError):
        acknowledge_notification(store, "s1", "w2")

    saved = store.get(user_key("s1"))
    assert saved["broadcasts"][0]["acknowledged"] is False
    assert saved["warnings"][1]["acknowledged"] is False

    _, current = acknowledge_notification(store, "s1", "w1")
    assert current["notification"]["id"] == "w2"
    # already acknowledged items can be acknowledged again
    _, current = acknowledge_notification(store, "s1", "w1")
    assert current["notification"]["id"] == "w2"


def test_acknowledge_keeps_warnings_added_since_last_poll(store):
    seed_user(store)
    stored = store.get(user_key("s1"))
    stored["warnings"].append({"id": "w3", "message": "Late", "date": "2024-01-04", "acknowledged": False})
    store.set(user_key("s1"), stored)

    user, _ = acknowledge_notification(store, "s1", "w1")
    assert [w["id"] for w in user["warnings"]] == ["w1", "w2", "w3"]


def test_acknowledge_unknown_notification(store):
    seed_user(store)
    with pytest.raises(LookupError):
        acknowledge_notification(store, "s1", "nope")


def test_poll_surfaces_notification(store):
    registry = SessionRegistry()
    context = registry.create(seed_user(store), {})
    assert poll_once(context, store, registry)
    assert context.active_notification["notification"]["id"] == "w1"
    assert context.last_polled_at is not None


def test_poll_after_logout_is_discarded(store):
    registry = SessionRegistry()
    context = registry.create(seed_user(store), {})
    registry.close(context.session_id)

    assert poll_once(context, store, registry) is False
    assert context.active_notification is None


def test_poll_closes_session_of_banned_user(store):
    registry = SessionRegistry()
    user = seed_user(store)
    context = registry.create(user, {})
    store.set(user_key("s1"), {**user, "isBanned": True})

    assert poll_once(context, store, registry) is False
    assert registry.get(context.session_id) is None


def test_admin_poll_counts_pending_moderation(store):
    registry = SessionRegistry()
    store.set(COMMUNITY_POSTS_KEY, [{"id": "1", "status": "pending"}, {"id": "2", "status": "approved"}])
    store.set("assessment_events", [{"id": "e1", "status": "pending"}])
    context = registry.create(seed_user(store, "a1", role="admin"), {})

    poll_once(context, store, registry)
    assert context.admin_pending_count == 2
    assert count_pending_moderation(store) == 2


def test_student_poll_skips_moderation_count(store):
    registry = SessionRegistry()
    store.set(COMMUNITY_POSTS_KEY, [{"id": "1", "status": "pending"}])
    context = registry.create(seed_user(store), {})
    poll_once(context, store, registry)
    assert context.admin_pending_count == 0


def test_poller_watch_and_unwatch(store):
    registry = SessionRegistry()
    poller = NotificationPoller(lambda: store, registry, interval_seconds=3600)
    context = registry.create(seed_user(store), {})

    assert poller.watch(context) is False  # not started yet
    assert poller.start()
    try:
        assert poller.watch(context)
        assert poller.is_watching(context.session_id)

        poller._run(context.session_id)
        assert context.active_notification["kind"] == "warning"

        poller.unwatch(context.session_id)
        assert not poller.is_watching(context.session_id)
    finally:
        poller.shutdown()
    assert not poller.running


def test_poller_drops_job_for_closed_session(store):
    registry = SessionRegistry()
    poller = NotificationPoller(lambda: store, registry, interval_seconds=3600)
    context = registry.create(seed_user(store), {})
    poller.start()
    try:
        poller.watch(context)
        registry.close(context.session_id)
        poller._run(context.session_id)
        assert not poller.is_watching(context.session_id)
    finally:
        poller.shutdown()


def test_poll_refreshes_session_flags(store):
    registry = SessionRegistry()
    context = registry.create(seed_user(store), {"enableGPA": True})
    store.set(FEATURE_FLAGS_KEY, {"enableGPA": False})

    assert poll_once(context, store, registry)
    assert context.flags["enableGPA"] is False
    assert context.flags["enableCommunity"] is True


def test_poll_skipped_while_store_unreachable():
    offline = RecordStore()
    registry = SessionRegistry()
    context = registry.create(seed_user(offline), {"enableGPA": True})

    assert poll_once(context, offline, registry) is False
    assert context.active_notification is None
    assert context.last_polled_at is None
    assert registry.get(context.session_id) is context
