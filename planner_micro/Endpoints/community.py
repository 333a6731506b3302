from fastapi import APIRouter

from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.auth import context_dependency
from planner_micro.Endpoints.utils import acting_user, ensure_feature, screen_content, service_errors
from planner_micro.schemas.community_schemas import CommentCreateRequest, PostCreateRequest
from planner_micro.services import community_service

router = APIRouter(tags=["Community"])


@router.get("/posts")
async def list_posts(store: store_dependency, context: context_dependency):
    """
    Approved posts, plus your own pending ones (staff see everything). Pinned first.
    """
    ensure_feature(context, "enableCommunity")
    return community_service.visible_posts(store, acting_user(store, context))


@router.post("/posts")
async def create_post(request: PostCreateRequest, store: store_dependency, context: context_dependency):
    flags = ensure_feature(context, "enableCommunity")
    author = acting_user(store, context)
    fields = request.to_document()
    with service_errors():
        # Cheap keyword filter first, the AI check only sees text that passed it
        if community_service.contains_profanity(fields.get("title"), fields.get("description")):
            raise ValueError("Contains prohibited keywords (Profanity Filter).")
        await screen_content(flags, fields.get("title"), fields.get("description"))
        return community_service.create_post(store, author, fields, flags.get("autoApprovePosts", False))


@router.post("/posts/{post_id}/like")
async def toggle_like(post_id: str, store: store_dependency, context: context_dependency):
    with service_errors():
        return community_service.toggle_like(store, acting_user(store, context)["id"], post_id)


@router.post("/posts/{post_id}/pin")
async def toggle_pin(post_id: str, store: store_dependency, context: context_dependency):
    with service_errors():
        return community_service.toggle_pin(store, acting_user(store, context), post_id)


@router.delete("/posts/{post_id}")
async def delete_post(post_id: str, store: store_dependency, context: context_dependency):
    with service_errors():
        community_service.delete_post(store, acting_user(store, context), post_id)
    return {"message": "Post deleted"}


@router.post("/posts/{post_id}/comments")
async def add_comment(post_id: str, request: CommentCreateRequest, store: store_dependency, context: context_dependency):
    flags = ensure_feature(context, "enableCommunity")
    author = acting_user(store, context)
    with service_errors():
        if community_service.contains_profanity(request.text):
            raise ValueError("Comment contains prohibited keywords.")
        await screen_content(flags, request.text)
        return community_service.add_comment(store, author, post_id, request.text, request.parent_id)


@router.delete("/posts/{post_id}/comments/{comment_id}")
async def delete_comment(post_id: str, comment_id: str, store: store_dependency, context: context_dependency):
    with service_errors():
        community_service.delete_comment(store, acting_user(store, context), post_id, comment_id)
    return {"message": "Comment deleted"}
