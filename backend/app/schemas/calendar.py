from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from backend.app.models.enums import EventParticipantType, EventStatus, EventType, InvitationStatus
from backend.app.schemas.common import UserSummary


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    all_day: bool = False
    type: EventType = EventType.EVENT
    location: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    attendee_ids: list[int] = []
    student_ids: list[int] = []
    group_ids: list[int] = []


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    all_day: Optional[bool] = None
    type: Optional[EventType] = None
    status: Optional[EventStatus] = None
    location: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    attendee_ids: Optional[list[int]] = None
    student_ids: Optional[list[int]] = None
    group_ids: Optional[list[int]] = None


class ParticipantCreate(BaseModel):
    participant_id: int
    participant_type: EventParticipantType


class ParticipantStatusUpdate(BaseModel):
    participant_type: EventParticipantType = EventParticipantType.USER
    status: Literal[InvitationStatus.ACCEPTED, InvitationStatus.DECLINED]


class EventParticipantRead(BaseModel):
    id: int
    participant_id: int
    participant_type: EventParticipantType
    status: InvitationStatus
    responded_at: Optional[datetime] = None


class EventRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    all_day: bool
    type: EventType
    status: EventStatus
    location: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    google_event_id: Optional[str] = None
    outlook_event_id: Optional[str] = None
    created_by: Optional[UserSummary] = None
    participants: list[EventParticipantRead] = []


class CalendarSyncRequest(BaseModel):
    access_token: str = Field(min_length=1)


class CalendarSyncResult(BaseModel):
    provider: Literal["google", "outlook"]
    external_event_id: str


class OAuthUrl(BaseModel):
    url: str


class OAuthCallback(BaseModel):
    code: str = Field(min_length=1)


