"""
Community board: posts, likes, pins, threaded comments and post moderation.
All posts live in one ``community_posts`` array, newest first.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from planner_micro.constants import COMMUNITY_POSTS_KEY, PROFANITY_LIST
from planner_micro.services import audit_service
from planner_micro.services.record_store import RecordStore
from planner_micro.services.user_service import is_admin, is_teacher_identity
from planner_micro.tools.timestamps import now_ms

logger = logging.getLogger(__name__)

ANNOUNCEMENT = "Announcement"


def contains_profanity(*texts: Optional[str]) -> bool:
    for text in texts:
        lowered = (text or "").lower()
        if any(word in lowered for word in PROFANITY_LIST):
            return True
    return False


def get_posts(store: RecordStore) -> List[Dict[str, Any]]:
    return store.get(COMMUNITY_POSTS_KEY) or []


def _save_posts(store: RecordStore, posts: List[Dict[str, Any]]) -> None:
    store.set(COMMUNITY_POSTS_KEY, posts)


def _find_post(posts: List[Dict[str, Any]], post_id: str) -> Dict[str, Any]:
    for post in posts:
        if post.get("id") == post_id:
            return post
    raise LookupError(f"Post {post_id} not found")


def visible_posts(store: RecordStore, viewer: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Approved posts for everyone, plus the viewer's own; admins see every post. Pinned first."""
    posts = get_posts(store)
    if not is_admin(viewer):
        posts = [p for p in posts if p.get("status") == "approved" or p.get("authorId") == viewer["id"]]
    return sorted(posts, key=lambda p: (not p.get("pinned", False), -p.get("timestamp", 0)))


def pending_posts(store: RecordStore) -> List[Dict[str, Any]]:
    return [post for post in get_posts(store) if post.get("status") == "pending"]


def create_post(
    store: RecordStore,
    author: Mapping[str, Any],
    fields: Mapping[str, Any],
    auto_approve_flag: bool = False,
) -> Dict[str, Any]:
    """
    Create a post. Staff posts and posts made while auto-approval is on are published
    immediately; everything else waits for moderation. Any AI content check runs
    before this is called.
    """
    if author.get("isCommunicationBanned"):
        raise PermissionError("Posting is disabled for this account")

    staff = is_admin(author) or is_teacher_identity(store, author)
    category = fields.get("category") or "Others"
    if category == ANNOUNCEMENT and not staff:
        raise PermissionError("Only staff can post announcements")
    if category != ANNOUNCEMENT and not fields.get("gradeLevels"):
        raise ValueError("Select at least one grade level")
    if contains_profanity(fields.get("title"), fields.get("description")):
        raise ValueError("Contains prohibited keywords (Profanity Filter).")

    auto_approved = staff or auto_approve_flag
    post = {
        "likes": 0,
        "likedBy": [],
        "comments": [],
        "attachments": [],
        "pinned": False,
        "subject": "General",
        **fields,
        "id": f"post-{now_ms()}-{uuid.uuid4().hex[:6]}",
        "authorId": author["id"],
        "authorName": author.get("name") or "Unknown",
        "authorRole": author.get("role"),
        "category": category,
        "timestamp": now_ms(),
        "status": "approved" if auto_approved else "pending",
    }
    _save_posts(store, [post] + get_posts(store))
    audit_service.log_action(store, author, "CREATE_POST", details=post["title"])
    return post


def toggle_like(store: RecordStore, user_id: str, post_id: str) -> Dict[str, Any]:
    """Each user likes a post at most once; liking again removes the like"""
    posts = get_posts(store)
    post = _find_post(posts, post_id)
    liked_by = list(post.get("likedBy") or [])
    if user_id in liked_by:
        liked_by.remove(user_id)
    else:
        liked_by.append(user_id)
    post["likedBy"] = liked_by
    post["likes"] = len(liked_by)
    _save_posts(store, posts)
    return post


def toggle_pin(store: RecordStore, actor: Mapping[str, Any], post_id: str) -> Dict[str, Any]:
    if not (is_admin(actor) or is_teacher_identity(store, actor)):
        raise PermissionError("Only staff can pin posts")
    posts = get_posts(store)
    post = _find_post(posts, post_id)
    post["pinned"] = not post.get("pinned", False)
    _save_posts(store, posts)
    return post


def delete_post(store: RecordStore, actor: Mapping[str, Any], post_id: str) -> None:
    posts = get_posts(store)
    post = _find_post(posts, post_id)
    if not (is_admin(actor) or post.get("authorId") == actor["id"]):
        raise PermissionError("Only the author or an admin can delete this post")
    _save_posts(store, [p for p in posts if p.get("id") != post_id])
    audit_service.log_action(store, actor, "COMMUNITY_EDIT", details=f"Deleted Post {post_id}")


def _insert_reply(comments: List[Dict[str, Any]], parent_id: str, reply: Dict[str, Any]) -> bool:
    for comment in comments:
        if comment.get("id") == parent_id:
            comment["replies"] = list(comment.get("replies") or []) + [reply]
            return True
        if _insert_reply(comment.get("replies") or [], parent_id, reply):
            return True
    return False


def _remove_comment(comments: List[Dict[str, Any]], comment_id: str) -> List[Dict[str, Any]]:
    return [
        {**comment, "replies": _remove_comment(comment.get("replies") or [], comment_id)}
        for comment in comments
        if comment.get("id") != comment_id
    ]


def add_comment(
    store: RecordStore,
    author: Mapping[str, Any],
    post_id: str,
    text: str,
    parent_id: Optional[str] = None,
) -> Dict[str, Any]:
    if author.get("isCommunicationBanned"):
        raise PermissionError("Commenting is disabled for this account")
    if not text.strip():
        raise ValueError("Comment cannot be empty")
    if contains_profanity(text):
        raise ValueError("Comment contains prohibited keywords.")

    posts = get_posts(store)
    post = _find_post(posts, post_id)
    comment = {
        "id": f"c-{now_ms()}-{uuid.uuid4().hex[:6]}",
        "authorId": author["id"],
        "authorName": author.get("name") or "Unknown",
        "authorRole": author.get("role"),
        "text": text,
        "timestamp": now_ms(),
        "replies": [],
    }
    comments = list(post.get("comments") or [])
    if parent_id:
        if not _insert_reply(comments, parent_id, comment):
            raise LookupError(f"Comment {parent_id} not found")
    else:
        comments.append(comment)
    post["comments"] = comments
    _save_posts(store, posts)
    return comment


def delete_comment(store: RecordStore, actor: Mapping[str, Any], post_id: str, comment_id: str) -> None:
    if not is_admin(actor):
        raise PermissionError("Only admins can delete comments")
    posts = get_posts(store)
    post = _find_post(posts, post_id)
    post["comments"] = _remove_comment(post.get("comments") or [], comment_id)
    _save_posts(store, posts)
    audit_service.log_action(store, actor, "COMMUNITY_EDIT", details=f"Deleted Comment in post {post_id}")


def moderate_post(store: RecordStore, actor: Mapping[str, Any], post_id: str, action: str, reason: Optional[str] = None) -> Dict[str, Any]:
    if action not in ("approved", "rejected"):
        raise ValueError("Moderation action must be 'approved' or 'rejected'")
    posts = get_posts(store)
    post = _find_post(posts, post_id)
    post["status"] = action
    if reason:
        post["rejectionReason"] = reason
    else:
        post.pop("rejectionReason", None)
    _save_posts(store, posts)
    audit_service.log_action(
        store, actor,
        "APPROVE_POST" if action == "approved" else "REJECT_POST",
        details=f"{post.get('title')} ({post.get('authorName')})",
    )
    return post
