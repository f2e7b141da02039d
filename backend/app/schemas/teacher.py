from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from backend.app.schemas.common import GroupSummary


class TeacherCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    specialization: Optional[str] = None
    bio: Optional[str] = None
    certifications: Optional[list[str]] = None


class TeacherUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    specialization: Optional[str] = None
    bio: Optional[str] = None
    certifications: Optional[list[str]] = None
    is_active: Optional[bool] = None


class TeacherRead(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_active: bool
    specialization: Optional[str] = None
    bio: Optional[str] = None
    certifications: list[str] = []
    groups: list[GroupSummary] = []
    created_at: Optional[datetime] = None
