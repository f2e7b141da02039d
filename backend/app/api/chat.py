"""Chat rooms, messages and the realtime socket."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, WebSocket, status
from sqlalchemy.orm import Session

from backend.app.core.settings import get_settings
from backend.app.db.session import SessionLocal, get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.chat import (
    ChatRoomRead,
    MarkReadResult,
    MessageCreate,
    MessageRead,
    MessageUpdate,
    SignedFileUrl,
    UnreadCount,
)
from backend.app.schemas.common import UserSummary
from backend.app.services import chat as chat_service
from backend.app.services.chat_realtime import ChatGateway, manager
from backend.app.services.storage import LocalStorageService, get_storage
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/rooms", response_model=list[ChatRoomRead])
async def list_rooms(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return chat_service.list_rooms(db, actor=Principal.of(current_user))


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return UnreadCount(count=chat_service.unread_count(db, user_id=current_user.id))


@router.post("/rooms/group/{group_id}", response_model=ChatRoomRead)
async def open_group_room(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return chat_service.ensure_group_room(db, group_id=group_id, actor=Principal.of(current_user), policy=policy)


@router.post("/rooms/direct/{user_id}", response_model=ChatRoomRead)
async def open_direct_room(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return chat_service.ensure_direct_room(db, other_user_id=user_id, actor=Principal.of(current_user), policy=policy)


@router.post("/rooms/{room_id}/read", response_model=MarkReadResult)
async def mark_room_read(room_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return MarkReadResult(marked=chat_service.mark_room_read(db, room_id=room_id, actor=Principal.of(current_user)))


@router.get("/rooms/{room_id}/messages", response_model=list[MessageRead])
async def get_messages(
    room_id: int,
    limit: int = Query(default=chat_service.DEFAULT_MESSAGE_LIMIT, ge=1, le=200),
    before_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return chat_service.get_messages(
        db, room_id=room_id, actor=Principal.of(current_user), limit=limit, before_id=before_id
    )


@router.delete("/rooms/{room_id}")
async def delete_room(room_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    chat_service.delete_room(db, room_id=room_id, actor=Principal.of(current_user))
    manager.close_room(room_id)
    return {"status": "deleted", "id": room_id}


@router.post("/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def post_message(
    message_in: MessageCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return chat_service.post_message(db, payload=message_in, actor=Principal.of(current_user))


@router.put("/messages/{message_id}", response_model=MessageRead)
async def edit_message(
    message_id: int,
    body: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return chat_service.edit_message(db, message_id=message_id, content=body.content, actor=Principal.of(current_user))


@router.post("/messages/{message_id}/files", response_model=MessageRead)
async def attach_file(
    message_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalStorageService = Depends(get_storage),
):
    data = await file.read()
    return chat_service.attach_file(
        db,
        message_id=message_id,
        data=data,
        filename=file.filename or "file",
        content_type=file.content_type or "application/octet-stream",
        actor=Principal.of(current_user),
        storage=storage,
        max_bytes=get_settings().max_upload_bytes,
    )


@router.get("/files/{file_key:path}", response_model=SignedFileUrl)
async def get_file_url(
    file_key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalStorageService = Depends(get_storage),
):
    url = chat_service.signed_file_url(db, file_key=file_key, actor=Principal.of(current_user), storage=storage)
    return SignedFileUrl(url=url, expires_in=chat_service.CHAT_FILE_URL_TTL)


@router.get("/users/available", response_model=list[UserSummary])
async def available_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return chat_service.available_users(db, actor=Principal.of(current_user), policy=policy)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, token: Optional[str] = None):
    db = SessionLocal()
    try:
        await ChatGateway(db).handle(websocket, token)
    finally:
        db.close()
