from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from backend.app.models.enums import ChatRoomType, MessageType, ParticipantRole
from backend.app.schemas.common import UserSummary


class ParticipantRead(BaseModel):
    user: UserSummary
    role: ParticipantRole
    joined_at: Optional[datetime] = None


class MessageAttachment(BaseModel):
    key: str
    url: str
    file_name: str
    mime_type: str
    size: int


class MessageCreate(BaseModel):
    chat_room_id: int
    content: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT


class MessageRead(BaseModel):
    id: int
    chat_room_id: int
    content: str
    type: MessageType
    attachments: list[MessageAttachment] = []
    is_edited: bool
    edited_at: Optional[datetime] = None
    sender: UserSummary
    created_at: datetime


class ChatRoomRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: ChatRoomType
    group_id: Optional[int] = None
    created_by_id: Optional[int] = None
    participants: list[ParticipantRead] = []
    last_message: Optional[MessageRead] = None
    unread_count: int = 0
    created_at: Optional[datetime] = None


class UnreadCount(BaseModel):
    count: int


class MarkReadResult(BaseModel):
    marked: int


class SignedFileUrl(BaseModel):
    url: str
    expires_in: int


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1)
