from typing import List

from pydantic import BaseModel, Field

from planner_micro.schemas.schedule_schemas import StoreDocument


class GradeCourseSchema(StoreDocument):
    id: str
    name: str
    grade_percent: float = Field(0, ge=0, le=100)

class GradeCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    grade_percent: float = Field(..., ge=0, le=100)

class GradeUpdateRequest(BaseModel):
    grade_percent: float = Field(..., ge=0, le=100)

class GradeSummary(BaseModel):
    courses: List[dict]
    gpa: float
