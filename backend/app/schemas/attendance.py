"""Attendance and activity schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from backend.app.core.time import naive_utc
from backend.app.models.enums import (
    ActivityStatus,
    ActivityType,
    AttendanceStatus,
    MealStatus,
    Mood,
    YesNo,
)
from backend.app.schemas.common import StudentSummary, UserSummary

HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"


class AttendanceFields(BaseModel):
    status: AttendanceStatus = AttendanceStatus.PRESENT
    check_in_time: Optional[str] = Field(default=None, pattern=HH_MM)
    check_out_time: Optional[str] = Field(default=None, pattern=HH_MM)
    notes: Optional[str] = None
    snack: Optional[MealStatus] = None
    lunch: Optional[MealStatus] = None
    participated_in_activities: Optional[YesNo] = None
    urination: Optional[YesNo] = None
    defecation: Optional[YesNo] = None
    mood: Optional[Mood] = None


class AttendanceCreate(AttendanceFields):
    student_id: int
    date: date


class AttendanceBulkCreate(BaseModel):
    records: list[AttendanceCreate] = Field(min_length=1)


class AttendanceUpdate(BaseModel):
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[str] = Field(default=None, pattern=HH_MM)
    check_out_time: Optional[str] = Field(default=None, pattern=HH_MM)
    notes: Optional[str] = None
    snack: Optional[MealStatus] = None
    lunch: Optional[MealStatus] = None
    participated_in_activities: Optional[YesNo] = None
    urination: Optional[YesNo] = None
    defecation: Optional[YesNo] = None
    mood: Optional[Mood] = None


class AttendanceRead(AttendanceFields):
    id: int
    date: date
    student: StudentSummary
    marked_by: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ActivityFields(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    type: ActivityType
    status: ActivityStatus = ActivityStatus.SCHEDULED
    start_time: datetime
    end_time: Optional[datetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _window(self):
        if self.end_time is not None and naive_utc(self.end_time) <= naive_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class ActivityCreate(ActivityFields):
    student_id: int


class ActivityBatchCreate(ActivityFields):
    student_ids: list[int] = Field(min_length=1)


class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    type: Optional[ActivityType] = None
    status: Optional[ActivityStatus] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    type: ActivityType
    status: ActivityStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    batch_id: Optional[str] = None
    student: StudentSummary
    assigned_by: Optional[UserSummary] = None
    created_at: Optional[datetime] = None


class BatchResult(BaseModel):
    batch_id: str
    affected: int
