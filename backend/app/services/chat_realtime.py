"""WebSocket chat delivery.

Frames are JSON objects ``{"event": <name>, "data": {...}}``. The connection
registry is process-local: users connected to another worker do not receive
room broadcasts.
"""

import logging
from collections import defaultdict
from typing import Any, Optional

from fastapi import HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from backend.app.dependencies.auth import resolve_user_from_token
from backend.app.models.enums import MessageType
from backend.app.schemas.chat import MessageCreate
from backend.app.services import chat as chat_service
from backend.app.services.visibility_policy import Principal

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 1008


class RoomEvent(BaseModel):
    chat_room_id: int


class SendMessageEvent(RoomEvent):
    content: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT


class MessageUpdatedEvent(RoomEvent):
    message_id: int


class ConnectionManager:
    def __init__(self):
        self.connections: dict[WebSocket, int] = {}
        self.rooms: dict[int, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        self.connections[websocket] = user_id

    def disconnect(self, websocket: WebSocket) -> Optional[int]:
        user_id = self.connections.pop(websocket, None)
        for room_id in list(self.rooms):
            self.leave(websocket, room_id)
        return user_id

    def join(self, websocket: WebSocket, room_id: int) -> None:
        self.rooms[room_id].add(websocket)

    def leave(self, websocket: WebSocket, room_id: int) -> None:
        members = self.rooms.get(room_id)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room_id]

    def close_room(self, room_id: int) -> None:
        self.rooms.pop(room_id, None)

    def in_room(self, websocket: WebSocket, room_id: int) -> bool:
        return websocket in self.rooms.get(room_id, ())

    def is_online(self, user_id: int) -> bool:
        return user_id in self.connections.values()

    def online_users_in_room(self, room_id: int) -> set[int]:
        return {self.connections[ws] for ws in self.rooms.get(room_id, ()) if ws in self.connections}

    async def send(self, websocket: WebSocket, event: str, data: dict) -> None:
        try:
            await websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.info("Dropping dead chat socket: %s", exc)
            self.disconnect(websocket)

    async def emit_to_room(self, room_id: int, event: str, data: dict, exclude: Optional[WebSocket] = None) -> None:
        for websocket in list(self.rooms.get(room_id, ())):
            if websocket is not exclude:
                await self.send(websocket, event, data)


manager = ConnectionManager()


class ChatGateway:
    def __init__(self, db: Session, connections: ConnectionManager = manager):
        self.db = db
        self.connections = connections

    async def handle(self, websocket: WebSocket, token: Optional[str]) -> None:
        await websocket.accept()
        user = resolve_user_from_token(self.db, token) if token else None
        if user is None:
            await websocket.send_json({"event": "error", "data": {"message": "Unauthorized"}})
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        actor = Principal.of(user)
        user_name = user.full_name
        await self.connections.connect(websocket, user.id)
        room_ids = chat_service.room_ids_for_user(self.db, user.id)
        for room_id in room_ids:
            self.connections.join(websocket, room_id)
            await self.connections.emit_to_room(
                room_id, "user_online", {"user_id": user.id, "user_name": user_name}, exclude=websocket
            )
        logger.info("User %s connected to chat (%d rooms)", user.id, len(room_ids))

        try:
            while True:
                frame = await websocket.receive_json()
                await self.dispatch(websocket, actor, user_name, frame)
        except WebSocketDisconnect:
            pass
        finally:
            await self._on_disconnect(websocket, user.id)

    async def dispatch(self, websocket: WebSocket, actor: Principal, user_name: str, frame: Any) -> None:
        if not isinstance(frame, dict):
            await self.connections.send(websocket, "error", {"message": "Malformed frame"})
            return
        event = frame.get("event")
        data = frame.get("data") or {}
        handler = {
            "send_message": self.on_send_message,
            "join_room": self.on_join_room,
            "leave_room": self.on_leave_room,
            "typing_start": self.on_typing_start,
            "typing_stop": self.on_typing_stop,
            "message_updated": self.on_message_updated,
        }.get(event)
        if handler is None:
            await self.connections.send(websocket, "error", {"message": f"Unknown event: {event}"})
            return
        # REST requests commit through other sessions between frames.
        self.db.expire_all()
        try:
            await handler(websocket, actor, user_name, data)
        except ValidationError as exc:
            await self.connections.send(websocket, "error", {"event": event, "message": exc.errors()[0]["msg"]})
        except HTTPException as exc:
            self.db.rollback()
            await self.connections.send(websocket, "error", {"event": event, "message": exc.detail})

    async def on_send_message(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        event = SendMessageEvent.model_validate(data)
        message = chat_service.post_message(
            self.db,
            payload=MessageCreate(
                chat_room_id=event.chat_room_id,
                content=event.content,
                type=event.type,
            ),
            actor=actor,
        )
        self.connections.join(websocket, event.chat_room_id)
        payload = chat_service.broadcast_message(self.db, message_id=message.id).model_dump(mode="json")
        await self.connections.emit_to_room(event.chat_room_id, "new_message", payload)
        self._notify_offline(event.chat_room_id, message.id)

    async def on_join_room(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        event = RoomEvent.model_validate(data)
        chat_service.require_participant(self.db, event.chat_room_id, actor.id)
        self.connections.join(websocket, event.chat_room_id)
        marked = chat_service.mark_room_read(self.db, room_id=event.chat_room_id, actor=actor)
        await self.connections.send(websocket, "joined_room", {"chat_room_id": event.chat_room_id, "marked_read": marked})

    async def on_leave_room(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        event = RoomEvent.model_validate(data)
        self.connections.leave(websocket, event.chat_room_id)
        await self.connections.send(websocket, "left_room", {"chat_room_id": event.chat_room_id})

    async def _typing(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict, outbound: str) -> None:
        event = RoomEvent.model_validate(data)
        if not self.connections.in_room(websocket, event.chat_room_id):
            return
        await self.connections.emit_to_room(
            event.chat_room_id,
            outbound,
            {"chat_room_id": event.chat_room_id, "user_id": actor.id, "user_name": user_name},
            exclude=websocket,
        )

    async def on_typing_start(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        await self._typing(websocket, actor, user_name, data, "user_typing")

    async def on_typing_stop(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        await self._typing(websocket, actor, user_name, data, "user_stopped_typing")

    async def on_message_updated(self, websocket: WebSocket, actor: Principal, user_name: str, data: dict) -> None:
        event = MessageUpdatedEvent.model_validate(data)
        chat_service.require_participant(self.db, event.chat_room_id, actor.id)
        message = chat_service.get_own_message(self.db, event.message_id, actor)
        if message.chat_room_id != event.chat_room_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        payload = chat_service.broadcast_message(self.db, message_id=message.id).model_dump(mode="json")
        await self.connections.emit_to_room(
            event.chat_room_id, "message_updated", {"chat_room_id": event.chat_room_id, "message": payload}, exclude=websocket
        )

    def _notify_offline(self, room_id: int, message_id: int) -> None:
        # Push notifications are not implemented; offline participants read on next sync.
        online = self.connections.online_users_in_room(room_id)
        logger.debug("Message %s in room %s delivered live to users %s", message_id, room_id, sorted(online))

    async def _on_disconnect(self, websocket: WebSocket, user_id: int) -> None:
        rooms = [room_id for room_id, members in self.connections.rooms.items() if websocket in members]
        self.connections.disconnect(websocket)
        if not self.connections.is_online(user_id):
            for room_id in rooms:
                await self.connections.emit_to_room(room_id, "user_offline", {"user_id": user_id})
        logger.info("User %s disconnected from chat", user_id)
