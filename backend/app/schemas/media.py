from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from backend.app.models.enums import MediaType
from backend.app.schemas.common import StudentSummary, UserSummary


class MediaUpdate(BaseModel):
    description: Optional[str] = None
    student_ids: Optional[list[int]] = None


class MediaRead(BaseModel):
    id: int
    file_name: str
    original_file_name: str
    file_url: str
    media_type: MediaType
    mime_type: str
    file_size: int
    description: Optional[str] = None
    uploaded_at: datetime
    uploaded_by: Optional[UserSummary] = None
    students: list[StudentSummary] = []


class SignedUrlRequest(BaseModel):
    expires_in: int = 3600


class SignedUrlRead(BaseModel):
    url: str
    expires_in: int
