"""
Schedule Schemas
Weekly timetable periods, the tasks attached to them and schedule edit requests.
Stored documents use camelCase field names; requests accept either spelling.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from planner_micro.constants import WEEKDAYS

# === ENUMS ===

class TaskCategoryEnum(str, Enum):
    test = "Test"
    quiz = "Quiz"
    project = "Project"
    homework = "Homework"
    presentation = "Presentation"
    personal = "Personal"
    others = "Others"

class LevelEnum(str, Enum):
    high = "High"
    medium = "Medium"
    low = "Low"

class TaskSourceEnum(str, Enum):
    student = "student"
    teacher = "teacher"


class StoreDocument(BaseModel):
    """Base for documents persisted in the key-value store"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

def check_period_id(value: str) -> str:
    day, _, slot = value.partition("-")
    if day not in WEEKDAYS or not slot.isdigit() or not 0 <= int(slot) <= 7:
        raise ValueError(f"Period id '{value}' must look like 'Mon-0' with slot 0-7")
    return value

# === DOCUMENTS ===

class TaskSchema(StoreDocument):
    id: str
    title: str
    description: Optional[str] = None
    category: TaskCategoryEnum = TaskCategoryEnum.homework
    importance: LevelEnum = LevelEnum.medium
    urgency: LevelEnum = LevelEnum.medium
    due_date: Optional[str] = None
    completed: bool = False
    source: Optional[TaskSourceEnum] = None
    subject: Optional[str] = None

class ClassPeriodSchema(StoreDocument):
    id: str  # "Day-PeriodIndex", e.g. "Mon-0"
    subject: str = ""
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    room: Optional[str] = None
    tasks: List[TaskSchema] = []

    @field_validator("id")
    @classmethod
    def validate_period_id(cls, value: str) -> str:
        return check_period_id(value)

# === REQUESTS ===

class PeriodMergeItem(StoreDocument):
    """Incoming period for a bulk merge; tasks left out (or null) keep the existing tasks"""
    subject: str = ""
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    room: Optional[str] = None
    tasks: Optional[List[TaskSchema]] = None

class BulkScheduleRequest(BaseModel):
    periods: Dict[str, PeriodMergeItem]

    @field_validator("periods")
    @classmethod
    def validate_period_ids(cls, value: Dict[str, PeriodMergeItem]) -> Dict[str, PeriodMergeItem]:
        for period_id in value:
            check_period_id(period_id)
        return value

class CopyDayRequest(BaseModel):
    from_day: str
    to_day: str

    @field_validator("from_day", "to_day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        if value not in WEEKDAYS:
            raise ValueError(f"Day must be one of {', '.join(WEEKDAYS)}")
        return value

class TaskCreateRequest(StoreDocument):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: TaskCategoryEnum = TaskCategoryEnum.homework
    importance: LevelEnum = LevelEnum.medium
    urgency: LevelEnum = LevelEnum.medium
    due_date: Optional[str] = None
    subject: Optional[str] = None

class TaskUpdateRequest(StoreDocument):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[TaskCategoryEnum] = None
    importance: Optional[LevelEnum] = None
    urgency: Optional[LevelEnum] = None
    due_date: Optional[str] = None

class ScheduleResponse(BaseModel):
    user_id: str
    schedule: Dict[str, dict]
