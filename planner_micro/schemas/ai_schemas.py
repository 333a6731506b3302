from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from planner_micro.schemas.schedule_schemas import StoreDocument


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str

class InlineFile(StoreDocument):
    mime_type: str
    data: str  # base64

class ChatRequest(BaseModel):
    history: List[ChatTurn] = []
    message: str = Field(..., min_length=1)
    file: Optional[InlineFile] = None
    mode: Literal["student", "teacher"] = "teacher"

class ChatResponse(BaseModel):
    text: str

class ScheduleImageRequest(StoreDocument):
    image: str = Field(..., min_length=1)  # base64
    mime_type: str = "image/png"

class ParsedPeriod(StoreDocument):
    day: str
    period_index: int = Field(..., ge=0, le=7)
    subject: str = ""
    teacher: str = ""
    room: str = ""

class ScheduleImageResponse(BaseModel):
    rows: List[ParsedPeriod]

class ScheduleImportRequest(BaseModel):
    rows: List[ParsedPeriod] = Field(..., min_length=1)

class ContentCheckRequest(BaseModel):
    text: str = Field(..., min_length=1)

class ContentCheckResponse(BaseModel):
    is_safe: bool
    reason: Optional[str] = None
