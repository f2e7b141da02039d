"""Chat rooms, messages and read tracking.

A message is unread for a user when it was sent by someone else into a room the
user participates in and no MessageRead row exists for (message, user).
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, exists, func
from sqlalchemy.orm import Session

from backend.app.core.time import utc_now
from backend.app.models.chat import ChatParticipant, ChatRoom, Message, MessageRead
from backend.app.models.enums import ChatRoomType, MessageType, ParticipantRole, UserRole
from backend.app.models.group import Group
from backend.app.models.user import User
from backend.app.schemas.chat import (
    ChatRoomRead,
    MessageAttachment,
    MessageCreate,
    MessageRead as MessageReadSchema,
    ParticipantRead,
)
from backend.app.services.redaction import user_summary
from backend.app.services.storage import LocalStorageService
from backend.app.services.visibility_policy import Principal, VisibilityPolicy

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 50
ALLOWED_ATTACHMENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}
CHAT_FILE_URL_TTL = 3600
CHAT_FOLDER = "chat"


# -- serialization -------------------------------------------------------------


def to_message_read(message: Message, viewer: Optional[Principal]) -> MessageReadSchema:
    return MessageReadSchema(
        id=message.id,
        chat_room_id=message.chat_room_id,
        content=message.content,
        type=message.type,
        attachments=[MessageAttachment.model_validate(a) for a in message.attachments or []],
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        sender=user_summary(message.sender, viewer, with_role=True),
        created_at=message.created_at,
    )


def _unread_query(db: Session, user_id: int):
    return (
        db.query(Message)
        .join(ChatRoom, ChatRoom.id == Message.chat_room_id)
        .join(
            ChatParticipant,
            and_(
                ChatParticipant.chat_room_id == Message.chat_room_id,
                ChatParticipant.user_id == user_id,
                ChatParticipant.left_at.is_(None),
            ),
        )
        .filter(
            ChatRoom.is_active.is_(True),
            Message.sender_id != user_id,
            ~exists().where(and_(MessageRead.message_id == Message.id, MessageRead.user_id == user_id)),
        )
    )


def to_room_read(db: Session, room: ChatRoom, viewer: Principal) -> ChatRoomRead:
    last = (
        db.query(Message)
        .filter(Message.chat_room_id == room.id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .first()
    )
    unread = _unread_query(db, viewer.id).filter(Message.chat_room_id == room.id).count()
    participants = [
        ParticipantRead(user=user_summary(p.user, viewer, with_role=True), role=p.role, joined_at=p.joined_at)
        for p in room.participants
        if p.left_at is None
    ]
    return ChatRoomRead(
        id=room.id,
        name=room.name,
        description=room.description,
        type=room.type,
        group_id=room.group_id,
        created_by_id=room.created_by_id,
        participants=participants,
        last_message=to_message_read(last, viewer) if last else None,
        unread_count=unread,
        created_at=room.created_at,
    )


# -- membership ----------------------------------------------------------------


def room_ids_for_user(db: Session, user_id: int) -> list[int]:
    rows = (
        db.query(ChatParticipant.chat_room_id)
        .join(ChatRoom, ChatRoom.id == ChatParticipant.chat_room_id)
        .filter(ChatParticipant.user_id == user_id, ChatParticipant.left_at.is_(None), ChatRoom.is_active.is_(True))
        .all()
    )
    return [row[0] for row in rows]


def is_participant(db: Session, room_id: int, user_id: int) -> bool:
    return (
        db.query(ChatParticipant.id)
        .filter(
            ChatParticipant.chat_room_id == room_id,
            ChatParticipant.user_id == user_id,
            ChatParticipant.left_at.is_(None),
        )
        .first()
        is not None
    )


def get_room_or_404(db: Session, room_id: int) -> ChatRoom:
    room = db.query(ChatRoom).filter(ChatRoom.id == room_id, ChatRoom.is_active.is_(True)).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat room not found")
    return room


def require_participant(db: Session, room_id: int, user_id: int) -> ChatRoom:
    room = get_room_or_404(db, room_id)
    if not is_participant(db, room.id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a participant of this chat")
    return room


def _add_participant(room: ChatRoom, user_id: int, role: ParticipantRole) -> None:
    for existing in room.participants:
        if existing.user_id == user_id:
            if existing.left_at is not None:
                existing.left_at = None
                existing.joined_at = utc_now()
            if role == ParticipantRole.ADMIN:
                existing.role = role.value
            return
    room.participants.append(ChatParticipant(user_id=user_id, role=role.value))


# -- rooms ---------------------------------------------------------------------


def list_rooms(db: Session, *, actor: Principal) -> list[ChatRoomRead]:
    ids = room_ids_for_user(db, actor.id)
    if not ids:
        return []
    rooms = db.query(ChatRoom).filter(ChatRoom.id.in_(ids)).order_by(ChatRoom.updated_at.desc()).all()
    return [to_room_read(db, room, actor) for room in rooms]


def unread_count(db: Session, *, user_id: int) -> int:
    return _unread_query(db, user_id).count()


def mark_room_read(db: Session, *, room_id: int, actor: Principal) -> int:
    require_participant(db, room_id, actor.id)
    pending = _unread_query(db, actor.id).filter(Message.chat_room_id == room_id).all()
    for message in pending:
        db.add(MessageRead(message_id=message.id, user_id=actor.id))
    db.commit()
    return len(pending)


def get_messages(
    db: Session, *, room_id: int, actor: Principal, limit: int = DEFAULT_MESSAGE_LIMIT, before_id: Optional[int] = None
) -> list[MessageReadSchema]:
    require_participant(db, room_id, actor.id)
    query = db.query(Message).filter(Message.chat_room_id == room_id)
    if before_id is not None:
        query = query.filter(Message.id < before_id)
    messages = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return [to_message_read(m, actor) for m in messages]


def _sync_group_participants(room: ChatRoom, group: Group) -> None:
    _add_participant(room, group.teacher_id, ParticipantRole.ADMIN)
    parent_ids = sorted({s.parent_id for s in group.students if s.is_active})
    for parent_id in parent_ids:
        _add_participant(room, parent_id, ParticipantRole.MEMBER)


def ensure_group_room(db: Session, *, group_id: int, actor: Principal, policy: VisibilityPolicy) -> ChatRoomRead:
    group = db.query(Group).filter(Group.id == group_id, Group.is_active.is_(True)).first()
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    if actor.role == UserRole.TEACHER and group.teacher_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only open chats for groups you teach")
    if actor.role == UserRole.PARENT and group.id not in policy.index.groups_of_parent(actor.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="None of your children belong to this group")

    room = (
        db.query(ChatRoom)
        .filter(ChatRoom.group_id == group.id, ChatRoom.type == ChatRoomType.GROUP.value, ChatRoom.is_active.is_(True))
        .first()
    )
    if room is None:
        room = ChatRoom(
            name=group.name,
            description=f"Chat del grupo {group.name}",
            type=ChatRoomType.GROUP.value,
            group_id=group.id,
            created_by_id=actor.id,
        )
        db.add(room)
    _sync_group_participants(room, group)
    if actor.is_admin:
        _add_participant(room, actor.id, ParticipantRole.ADMIN)
    db.commit()
    db.refresh(room)
    return to_room_read(db, room, actor)


def _find_direct_room(db: Session, user_a: int, user_b: int) -> Optional[ChatRoom]:
    candidates = (
        db.query(ChatRoom)
        .join(ChatParticipant, ChatParticipant.chat_room_id == ChatRoom.id)
        .filter(
            ChatRoom.type == ChatRoomType.DIRECT.value,
            ChatRoom.is_active.is_(True),
            ChatParticipant.user_id.in_([user_a, user_b]),
        )
        .group_by(ChatRoom.id)
        .having(func.count(func.distinct(ChatParticipant.user_id)) == 2)
        .all()
    )
    for room in candidates:
        if {p.user_id for p in room.participants} == {user_a, user_b}:
            return room
    return None


def ensure_direct_room(db: Session, *, other_user_id: int, actor: Principal, policy: VisibilityPolicy) -> ChatRoomRead:
    if other_user_id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot open a chat with yourself")
    me = db.query(User).filter(User.id == actor.id).first()
    other = db.query(User).filter(User.id == other_user_id, User.is_active.is_(True)).first()
    if not me or not other:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    policy.enforce(policy.check_direct_chat(actor, Principal.of(other)))

    room = _find_direct_room(db, actor.id, other.id)
    if room is None:
        room = ChatRoom(
            name=f"{me.full_name} - {other.full_name}",
            type=ChatRoomType.DIRECT.value,
            created_by_id=actor.id,
        )
        room.participants = [
            ChatParticipant(user_id=actor.id, role=ParticipantRole.MEMBER.value),
            ChatParticipant(user_id=other.id, role=ParticipantRole.MEMBER.value),
        ]
        db.add(room)
        db.commit()
        db.refresh(room)
    return to_room_read(db, room, actor)


def can_delete_room(room: ChatRoom, actor: Principal) -> bool:
    if actor.is_admin or room.created_by_id == actor.id:
        return True
    if room.type == ChatRoomType.GROUP.value and room.group is not None:
        return actor.role == UserRole.TEACHER and room.group.teacher_id == actor.id
    return False


def delete_room(db: Session, *, room_id: int, actor: Principal) -> None:
    room = db.query(ChatRoom).filter(ChatRoom.id == room_id).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat room not found")
    if not can_delete_room(room, actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot delete this chat")
    db.delete(room)
    db.commit()
    logger.info("Chat room %s deleted by user %s", room_id, actor.id)


# -- messages ------------------------------------------------------------------


def post_message(db: Session, *, payload: MessageCreate, actor: Principal) -> MessageReadSchema:
    room = require_participant(db, payload.chat_room_id, actor.id)
    message = Message(
        content=payload.content,
        type=payload.type.value,
        sender_id=actor.id,
        chat_room_id=room.id,
    )
    db.add(message)
    room.updated_at = utc_now()
    db.commit()
    db.refresh(message)
    return to_message_read(message, actor)


def broadcast_message(db: Session, *, message_id: int) -> MessageReadSchema:
    """Render a message for a room broadcast; contact fields are omitted."""
    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return to_message_read(message, None)


def get_own_message(db: Session, message_id: int, actor: Principal) -> Message:
    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.sender_id != actor.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only modify your own messages")
    return message


def edit_message(db: Session, *, message_id: int, content: str, actor: Principal) -> MessageReadSchema:
    message = get_own_message(db, message_id, actor)
    message.content = content
    message.is_edited = True
    message.edited_at = utc_now()
    db.commit()
    db.refresh(message)
    return to_message_read(message, actor)


def attach_file(
    db: Session,
    *,
    message_id: int,
    data: bytes,
    filename: str,
    content_type: str,
    actor: Principal,
    storage: LocalStorageService,
    max_bytes: int,
) -> MessageReadSchema:
    message = get_own_message(db, message_id, actor)
    if content_type not in ALLOWED_ATTACHMENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File type {content_type} is not allowed")
    if len(data) > max_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File exceeds the maximum allowed size")

    stored = storage.upload(data, filename, CHAT_FOLDER)
    attachments = list(message.attachments or [])
    attachment = MessageAttachment(
        key=stored["key"], url=stored["url"], file_name=filename, mime_type=content_type, size=len(data)
    )
    attachments.append(attachment.model_dump())
    message.attachments = attachments
    if message.type == MessageType.TEXT.value:
        message.type = MessageType.IMAGE.value if content_type.startswith("image/") else MessageType.FILE.value
    db.commit()
    db.refresh(message)
    return to_message_read(message, actor)


def signed_file_url(db: Session, *, file_key: str, actor: Principal, storage: LocalStorageService) -> str:
    # Only files uploaded through attach_file live under the chat folder.
    room_ids = room_ids_for_user(db, actor.id)
    if room_ids and file_key.startswith(f"{CHAT_FOLDER}/"):
        messages = db.query(Message).filter(Message.chat_room_id.in_(room_ids)).all()
        for message in messages:
            if any(a.get("key") == file_key for a in message.attachments or []):
                return storage.signed_url(file_key, CHAT_FILE_URL_TTL)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")


def available_users(db: Session, *, actor: Principal, policy: VisibilityPolicy) -> list:
    users = (
        db.query(User)
        .filter(User.id != actor.id, User.is_active.is_(True))
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )
    return [
        user_summary(u, actor, with_role=True)
        for u in users
        if policy.check_direct_chat(actor, Principal.of(u)).allowed
    ]
