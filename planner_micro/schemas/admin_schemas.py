"""
Admin console schemas: feature flags, audit records, user management and the
teacher/subject databases.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from planner_micro.schemas.schedule_schemas import StoreDocument
from planner_micro.schemas.users_schemas import UserRoleEnum


class ActionTypeEnum(str, Enum):
    approve_post = "APPROVE_POST"
    ban_user = "BAN_USER"
    broadcast_task = "BROADCAST_TASK"
    change_password = "CHANGE_PASSWORD"
    change_role = "CHANGE_ROLE"
    community_edit = "COMMUNITY_EDIT"
    create_post = "CREATE_POST"
    create_teacher_acc = "CREATE_TEACHER_ACC"
    database_edit = "DATABASE_EDIT"
    delete_user = "DELETE_USER"
    edit_assessment_calendar = "EDIT_ASSESSMENT_CALENDAR"
    edit_event_calendar = "EDIT_EVENT_CALENDAR"
    edit_subject_database = "EDIT_SUBJECT_DATABASE"
    edit_teacher_database = "EDIT_TEACHER_DATABASE"
    feature_toggle = "FEATURE_TOGGLE"
    login = "LOGIN"
    reject_post = "REJECT_POST"
    send_warning = "SEND_WARNING"
    unban_user = "UNBAN_USER"
    update_user_name = "UPDATE_USER_NAME"
    warning = "WARNING"


class FeatureFlagsSchema(StoreDocument):
    enable_community: bool = True
    enable_gpa: bool = Field(True, alias="enableGPA")
    enable_calendar: bool = True
    auto_approve_posts: bool = False
    auto_approve_requests: bool = False
    enable_ai_import: bool = Field(True, alias="enableAIImport")
    enable_ai_content_check: bool = Field(True, alias="enableAIContentCheck")
    enable_teacher_ai: bool = Field(True, alias="enableTeacherAI")
    enable_ai_tutor: bool = Field(True, alias="enableAITutor")


class SystemRecordSchema(StoreDocument):
    id: str
    timestamp: int  # epoch milliseconds
    date: str
    actor_id: str
    actor_name: str
    actor_role: UserRoleEnum
    action: ActionTypeEnum
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[str] = None

class SystemRecordWrite(StoreDocument):
    """Admin-authored audit entry (add or edit)"""
    id: Optional[str] = None
    timestamp: Optional[int] = None
    date: Optional[str] = None
    actor_id: str
    actor_name: str
    actor_role: UserRoleEnum
    action: ActionTypeEnum
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[str] = None


class TeacherSchema(StoreDocument):
    id: str
    name: str
    subject: str = "General"
    email: str

class TeacherCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    subject: str = "General"
    email: str = Field(..., min_length=3)
    create_account: bool = False

class TeacherUpdateRequest(BaseModel):
    name: Optional[str] = None
    subject: Optional[str] = None
    email: Optional[str] = None


class SendWarningRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    message: str = Field(..., min_length=1)

class RoleChangeRequest(BaseModel):
    role: UserRoleEnum

class RenameUserRequest(BaseModel):
    name: str = Field(..., min_length=1)

class AdminPasswordRequest(BaseModel):
    password: str = Field(..., min_length=1)

class BulkIdsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)

class SubjectsAddRequest(BaseModel):
    subjects: List[str] = Field(..., min_length=1)

class SubjectRenameRequest(BaseModel):
    old_name: str = Field(..., min_length=1)
    new_name: str = Field(..., min_length=1)

class ModerationRequest(BaseModel):
    action: Literal["approved", "rejected"]
    reason: Optional[str] = None

class ImportResponse(BaseModel):
    imported: int

class PullResponse(BaseModel):
    pulled: int
