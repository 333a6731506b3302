from datetime import datetime, timedelta
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from planner_micro.config import config
from planner_micro.db.connection import store_dependency
from planner_micro.Endpoints.utils import acting_user, service_errors
from planner_micro.schemas.users_schemas import (
    ForcePasswordChangeRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from planner_micro.services import user_service
from planner_micro.services.catalog_service import get_flags, get_subjects
from planner_micro.services.notification_poller import notification_poller
from planner_micro.services.record_store import RecordStore
from planner_micro.services.session_context import AppContext, session_registry

router = APIRouter(tags=["Authentication"])

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="login")


# Token creation
def create_access_token(
    user_id: str, role: str, session_id: str, expires_delta: timedelta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
):
    encode = {"sub": user_id, "role": role, "sid": session_id}
    expires = datetime.utcnow() + expires_delta
    encode.update({"exp": expires})
    return jwt.encode(encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


# Current user dependency
async def get_current_user(token: Annotated[str, Depends(oauth2_bearer)]):
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        session_id: str = payload.get("sid")
        if user_id is None or session_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
            )
        return {"user_id": user_id, "role": payload.get("role"), "sid": session_id}
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed. Your token is invalid or has expired.",
        )

user_dependency = Annotated[dict, Depends(get_current_user)]


async def get_session_context(current_user: user_dependency) -> AppContext:
    context = session_registry.get(current_user["sid"])
    if context is None or context.user_id != current_user["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has ended. Please sign in again.",
        )
    return context

context_dependency = Annotated[AppContext, Depends(get_session_context)]


def open_session(store: RecordStore, user: Dict[str, Any]) -> Dict[str, Any]:
    """Create the session context from the stored user, start polling for it and issue its token"""
    try:
        user = user_service.load_session_user(store, user["id"])
    except (PermissionError, LookupError) as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e).strip("'\""))
    view = user_service.landing_view(store, user)
    context = session_registry.create(user, get_flags(store), view)
    notification_poller.watch(context)
    token = create_access_token(user["id"], user.get("role", "student"), context.session_id)
    return {"access_token": token, "token_type": "bearer", "user": user_service.public_user(user), "view": view}


def close_session(session_id: str) -> None:
    notification_poller.unwatch(session_id)
    session_registry.close(session_id)


@router.post("/register", response_model=RegisterResponse)
async def register(store: store_dependency, request: RegisterRequest):
    """
    Register a student or teacher account. Students are signed in right away;
    teachers wait for admin approval.
    """
    with service_errors():
        user, pending = user_service.register(store, request.id, request.password, request.name, request.account_type)

    if pending:
        return {"user": user_service.public_user(user), "pending_approval": True}
    session = open_session(store, user)
    return {
        "user": session["user"],
        "pending_approval": False,
        "access_token": session["access_token"],
        "view": session["view"],
    }


@router.post("/login", response_model=LoginResponse)
async def login(store: store_dependency, request: LoginRequest):
    try:
        user = user_service.authenticate(store, request.id, request.password, request.account_type)
    except user_service.PasswordChangeRequired as e:
        raise HTTPException(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail={"message": str(e), "userId": e.user_id},
        )
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    return open_session(store, user)


@router.post("/password/force-change", response_model=LoginResponse)
async def force_password_change(store: store_dependency, request: ForcePasswordChangeRequest):
    """Replace the default teacher password, then sign in with the new one"""
    with service_errors():
        user_service.force_password_change(
            store, request.id, request.current_password, request.new_password, request.account_type
        )
        user = user_service.authenticate(store, request.id, request.new_password, request.account_type)
    return open_session(store, user)


@router.post("/password/reset")
async def reset_password(store: store_dependency, context: context_dependency, request: ResetPasswordRequest):
    with service_errors():
        user_service.reset_password(store, context.user_id, request.old_password, request.new_password)
    return {"message": "Password updated"}


@router.post("/logout")
async def logout(context: context_dependency):
    """
    End the session: stop its notification polling and drop its context
    """
    close_session(context.session_id)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def read_session(store: store_dependency, context: context_dependency):
    return {
        "user": user_service.public_user(context.user),
        "actingAs": user_service.public_user(acting_user(store, context)),
        "view": context.view,
        "flags": context.flags,
        "subjects": get_subjects(store),
        "spectatedUserId": context.spectated_user_id,
        "isSuperAdmin": user_service.is_super_admin(context.user),
        "connected": store.connected,
    }
