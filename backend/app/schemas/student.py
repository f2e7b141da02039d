"""Student schemas for Centro Lúdico."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from backend.app.models.enums import Gender
from backend.app.schemas.common import GroupSummary, UserSummary


class StudentBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    birth_date: date
    gender: Optional[Gender] = None
    allergies: Optional[str] = None
    observations: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    photo_url: Optional[str] = None


class StudentCreate(StudentBase):
    parent_id: Optional[int] = None
    parent_email: Optional[EmailStr] = None
    parent_first_name: Optional[str] = None
    parent_last_name: Optional[str] = None
    parent_phone: Optional[str] = None

    @model_validator(mode="after")
    def _parent_reference(self):
        if self.parent_id is None and self.parent_email is None:
            raise ValueError("Either parent_id or parent_email is required")
        return self


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    allergies: Optional[str] = None
    observations: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    photo_url: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None


class StudentRead(StudentBase):
    id: int
    is_active: bool
    parent: Optional[UserSummary] = None
    groups: list[GroupSummary] = []
    created_at: Optional[datetime] = None
    parent_invitation_sent: Optional[bool] = None


class ParentEmailCheck(BaseModel):
    exists: bool
    is_parent: bool = False
    parent: Optional[UserSummary] = None


class BirthdayRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    birth_date: date
    next_birthday: date
    days_until: int
    turning: int
