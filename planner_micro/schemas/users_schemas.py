from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from planner_micro.schemas.schedule_schemas import StoreDocument


class UserRoleEnum(str, Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"
    secondary_admin = "secondary_admin"


ADMIN_ROLES = {UserRoleEnum.admin.value, UserRoleEnum.secondary_admin.value}


class WarningSchema(StoreDocument):
    id: str
    message: str
    date: str
    acknowledged: bool = False
    acknowledged_date: Optional[str] = None

class BroadcastSchema(StoreDocument):
    id: str
    teacher_name: str
    title: str
    message: str
    date: str
    acknowledged: bool = False
    acknowledged_date: Optional[str] = None

class UserPublic(StoreDocument):
    """User document without credentials"""
    id: str
    role: UserRoleEnum
    name: Optional[str] = None
    email: Optional[str] = None
    is_banned: bool = False
    is_communication_banned: bool = False
    is_approved: Optional[bool] = None
    has_super_admin_privilege: bool = False
    warnings: List[WarningSchema] = []
    broadcasts: List[BroadcastSchema] = []


AccountType = Literal["student", "teacher"]

class RegisterRequest(BaseModel):
    id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    account_type: AccountType = "student"

class LoginRequest(BaseModel):
    id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    account_type: AccountType = "student"

class ForcePasswordChangeRequest(BaseModel):
    id: str
    current_password: str
    new_password: str = Field(..., min_length=6)
    account_type: AccountType = "teacher"

class ResetPasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)

class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserPublic
    view: str

class RegisterResponse(BaseModel):
    user: UserPublic
    pending_approval: bool
    access_token: Optional[str] = None
    view: Optional[str] = None

class NotificationStateResponse(BaseModel):
    kind: Optional[Literal["warning", "broadcast"]] = None
    notification: Optional[dict] = None
    admin_pending_count: int = 0
    polling: bool = False
    connected: bool = False

class AcknowledgeRequest(BaseModel):
    notification_id: str
