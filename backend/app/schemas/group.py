from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from backend.app.schemas.common import StudentSummary, UserSummary

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    max_students: Optional[int] = Field(default=None, ge=1, le=50)
    teacher_id: Optional[int] = None
    student_ids: list[int] = []


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    max_students: Optional[int] = Field(default=None, ge=1, le=50)
    teacher_id: Optional[int] = None
    student_ids: Optional[list[int]] = None
    is_active: Optional[bool] = None


class GroupStudentsAdd(BaseModel):
    student_ids: list[int] = Field(min_length=1)


class GroupRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: str
    max_students: int
    is_active: bool
    teacher: Optional[UserSummary] = None
    students: list[StudentSummary] = []
    student_count: int = 0
    created_at: Optional[datetime] = None
