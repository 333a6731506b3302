"""
Community board, assessment calendar and teacher broadcast schemas
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from planner_micro.schemas.schedule_schemas import StoreDocument, TaskCategoryEnum
from planner_micro.schemas.users_schemas import UserRoleEnum

# === ENUMS ===

class CommunityCategoryEnum(str, Enum):
    announcement = "Announcement"
    club = "Club/ASA"
    others = "Others"
    resource_sharing = "Resource Sharing"

class ModerationStatusEnum(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class EventTypeEnum(str, Enum):
    academic = "academic"
    personal = "personal"
    school = "school"

class EventCategoryEnum(str, Enum):
    test = "Test"
    quiz = "Quiz"
    performance = "Performance"
    event = "Event"
    other = "Other"

# === COMMUNITY ===

class AttachmentSchema(StoreDocument):
    name: str
    type: str
    data: str  # base64

class CommentSchema(StoreDocument):
    id: str
    author_id: str
    author_name: str
    author_role: UserRoleEnum
    text: str
    timestamp: int
    replies: List["CommentSchema"] = []

class CommunityPostSchema(StoreDocument):
    id: str
    author_id: str
    author_name: str
    author_role: Optional[UserRoleEnum] = None
    title: str
    subject: str
    category: CommunityCategoryEnum
    description: Optional[str] = None
    grade_levels: List[str] = []
    date: Optional[str] = None
    timestamp: int
    likes: int = 0
    liked_by: List[str] = []
    status: ModerationStatusEnum = ModerationStatusEnum.pending
    rejection_reason: Optional[str] = None
    attachments: List[AttachmentSchema] = []
    comments: List[CommentSchema] = []
    pinned: bool = False

class PostCreateRequest(StoreDocument):
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    category: CommunityCategoryEnum = CommunityCategoryEnum.others
    description: Optional[str] = None
    grade_levels: List[str] = []
    date: Optional[str] = None
    attachments: List[AttachmentSchema] = []

class CommentCreateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    parent_id: Optional[str] = None

# === CALENDAR ===

class AssessmentEventSchema(StoreDocument):
    id: str
    title: str
    subject: str
    teacher_name: str = ""
    grade_levels: List[str] = []
    date: str  # YYYY-MM-DD
    creator_id: str
    creator_name: str
    status: Optional[ModerationStatusEnum] = None
    event_type: Optional[EventTypeEnum] = None
    category: Optional[EventCategoryEnum] = None
    description: Optional[str] = None

class EventWriteRequest(StoreDocument):
    title: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    teacher_name: str = ""
    grade_levels: List[str] = []
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    event_type: EventTypeEnum = EventTypeEnum.academic
    category: EventCategoryEnum = EventCategoryEnum.test
    description: Optional[str] = None

# === TEACHER BROADCASTS ===

class BroadcastRecordSchema(StoreDocument):
    id: str
    title: str
    target_count: int
    date: str
    filters: str

class BroadcastTaskRequest(StoreDocument):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: TaskCategoryEnum = TaskCategoryEnum.homework
    due_date: Optional[str] = None
    subjects: List[str] = []
    periods: List[str] = []

class RosterStudent(BaseModel):
    id: str
    name: str
    periods: List[str]
    subjects: List[str]

class BroadcastResult(BaseModel):
    record: dict
    delivered: int
