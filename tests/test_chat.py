import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app
from backend.app.services.chat_realtime import ConnectionManager
from backend.app.services.storage import LocalStorageService, get_storage
from tests.factories import auth_headers, daycare, make_group, make_student


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def open_direct(client, actor_id, other_id):
    return client.post(f"/chat/rooms/direct/{other_id}", headers=auth_headers(actor_id))


def test_parents_without_common_group_cannot_chat():
    client = TestClient(app)
    ids = daycare()

    resp = open_direct(client, ids["p1"], ids["p2"])
    assert resp.status_code == 403
    assert "share a group" in resp.json()["detail"]


def test_parents_sharing_a_group_can_chat_and_room_is_reused():
    client = TestClient(app)
    ids = daycare()
    lucas = make_student(ids["p2"], "Lucas")
    make_group(ids["t1"], [ids["mia"], lucas], name="Compartido")

    first = open_direct(client, ids["p1"], ids["p2"])
    assert first.status_code == 200
    again = open_direct(client, ids["p2"], ids["p1"])
    assert again.json()["id"] == first.json()["id"]


def test_direct_chat_rules_for_teachers_and_self():
    client = TestClient(app)
    ids = daycare()

    assert open_direct(client, ids["t1"], ids["p1"]).status_code == 200
    assert open_direct(client, ids["t1"], ids["p2"]).status_code == 403
    assert open_direct(client, ids["t1"], ids["t2"]).status_code == 200
    assert open_direct(client, ids["p2"], ids["admin"]).status_code == 200
    assert open_direct(client, ids["t1"], ids["t1"]).status_code == 400
    assert open_direct(client, ids["t1"], 9999).status_code == 404


def test_unread_count_and_mark_read():
    client = TestClient(app)
    ids = daycare()
    room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]

    for text in ("Hola", "Mia comió muy bien"):
        resp = client.post(
            "/chat/messages", json={"chat_room_id": room_id, "content": text}, headers=auth_headers(ids["t1"])
        )
        assert resp.status_code == 201
    client.post("/chat/messages", json={"chat_room_id": room_id, "content": "Gracias"}, headers=auth_headers(ids["p1"]))

    assert client.get("/chat/unread-count", headers=auth_headers(ids["p1"])).json() == {"count": 2}
    assert client.get("/chat/unread-count", headers=auth_headers(ids["t1"])).json() == {"count": 1}

    marked = client.post(f"/chat/rooms/{room_id}/read", headers=auth_headers(ids["p1"]))
    assert marked.json() == {"marked": 2}
    assert client.get("/chat/unread-count", headers=auth_headers(ids["p1"])).json() == {"count": 0}


def test_only_participants_read_and_post():
    client = TestClient(app)
    ids = daycare()
    room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]

    assert client.get(f"/chat/rooms/{room_id}/messages", headers=auth_headers(ids["p2"])).status_code == 403
    resp = client.post("/chat/messages", json={"chat_room_id": room_id, "content": "x"}, headers=auth_headers(ids["p2"]))
    assert resp.status_code == 403


def test_messages_are_newest_first_and_hide_contact_fields():
    client = TestClient(app)
    ids = daycare()
    room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]
    client.post("/chat/messages", json={"chat_room_id": room_id, "content": "uno"}, headers=auth_headers(ids["p1"]))
    client.post("/chat/messages", json={"chat_room_id": room_id, "content": "dos"}, headers=auth_headers(ids["t1"]))

    messages = client.get(f"/chat/rooms/{room_id}/messages?limit=10", headers=auth_headers(ids["p1"])).json()
    assert [m["content"] for m in messages] == ["dos", "uno"]
    teacher_sender = messages[0]["sender"]
    assert "email" not in teacher_sender and "phone" not in teacher_sender


def test_group_room_includes_teacher_and_parents():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(f"/chat/rooms/group/{ids['g1']}", headers=auth_headers(ids["t1"]))
    assert resp.status_code == 200
    participants = {p["user"]["id"]: p["role"] for p in resp.json()["participants"]}
    assert participants == {ids["t1"]: "admin", ids["p1"]: "member"}

    again = client.post(f"/chat/rooms/group/{ids['g1']}", headers=auth_headers(ids["p1"]))
    assert again.json()["id"] == resp.json()["id"]

    assert client.post(f"/chat/rooms/group/{ids['g1']}", headers=auth_headers(ids["t2"])).status_code == 403
    assert client.post(f"/chat/rooms/group/{ids['g1']}", headers=auth_headers(ids["p2"])).status_code == 403


def test_group_room_can_be_deleted_by_its_teacher_not_by_parents():
    client = TestClient(app)
    ids = daycare()
    room_id = client.post(f"/chat/rooms/group/{ids['g1']}", headers=auth_headers(ids["admin"])).json()["id"]

    assert client.delete(f"/chat/rooms/{room_id}", headers=auth_headers(ids["p1"])).status_code == 403
    assert client.delete(f"/chat/rooms/{room_id}", headers=auth_headers(ids["t1"])).status_code == 200
    assert client.get("/chat/rooms", headers=auth_headers(ids["t1"])).json() == []


def test_available_users_follow_direct_chat_rules():
    client = TestClient(app)
    ids = daycare()

    available = client.get("/chat/users/available", headers=auth_headers(ids["p1"])).json()
    assert {u["id"] for u in available} == {ids["admin"], ids["t1"]}
    assert all("email" not in u for u in available)


def test_attach_file_and_signed_url(tmp_path):
    service = LocalStorageService(root=str(tmp_path), public_base_url="http://testserver")
    app.dependency_overrides[get_storage] = lambda: service
    try:
        client = TestClient(app)
        ids = daycare()
        room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]
        message_id = client.post(
            "/chat/messages", json={"chat_room_id": room_id, "content": "Foto"}, headers=auth_headers(ids["t1"])
        ).json()["id"]

        denied = client.post(
            f"/chat/messages/{message_id}/files",
            files={"file": ("a.png", b"png-bytes", "image/png")},
            headers=auth_headers(ids["p1"]),
        )
        assert denied.status_code == 403

        bad_type = client.post(
            f"/chat/messages/{message_id}/files",
            files={"file": ("a.exe", b"MZ", "application/x-msdownload")},
            headers=auth_headers(ids["t1"]),
        )
        assert bad_type.status_code == 400

        attached = client.post(
            f"/chat/messages/{message_id}/files",
            files={"file": ("a.png", b"png-bytes", "image/png")},
            headers=auth_headers(ids["t1"]),
        )
        assert attached.status_code == 200
        assert attached.json()["type"] == "image"
        key = attached.json()["attachments"][0]["key"]

        signed = client.get(f"/chat/files/{key}", headers=auth_headers(ids["p1"]))
        assert signed.status_code == 200
        assert signed.json()["expires_in"] == 3600
        assert client.get(f"/chat/files/{key}", headers=auth_headers(ids["p2"])).status_code == 404
    finally:
        app.dependency_overrides.pop(get_storage, None)


def test_edit_message_only_by_sender():
    client = TestClient(app)
    ids = daycare()
    room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]
    message_id = client.post(
        "/chat/messages", json={"chat_room_id": room_id, "content": "Hola"}, headers=auth_headers(ids["t1"])
    ).json()["id"]

    assert client.put(f"/chat/messages/{message_id}", json={"content": "x"}, headers=auth_headers(ids["p1"])).status_code == 403
    edited = client.put(f"/chat/messages/{message_id}", json={"content": "Hola!"}, headers=auth_headers(ids["t1"]))
    assert edited.json()["is_edited"] is True
    assert edited.json()["content"] == "Hola!"


def test_websocket_rejects_missing_token():
    client = TestClient(app)
    with client.websocket_connect("/chat/ws") as ws:
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Unauthorized"}}
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_websocket_delivers_messages_to_room_members():
    ids = daycare()
    teacher_token = auth_headers(ids["t1"])["Authorization"].split()[1]
    parent_token = auth_headers(ids["p1"])["Authorization"].split()[1]

    with TestClient(app) as client:
        room_id = open_direct(client, ids["t1"], ids["p1"]).json()["id"]
        run_socket_exchange(client, ids, room_id, teacher_token, parent_token)


def run_socket_exchange(client, ids, room_id, teacher_token, parent_token):
    with client.websocket_connect(f"/chat/ws?token={parent_token}") as parent_ws:
        with client.websocket_connect(f"/chat/ws?token={teacher_token}") as teacher_ws:
            online = parent_ws.receive_json()
            assert online["event"] == "user_online"
            assert online["data"]["user_id"] == ids["t1"]

            teacher_ws.send_json({"event": "send_message", "data": {"chat_room_id": room_id, "content": "Buenos días"}})
            for ws in (teacher_ws, parent_ws):
                frame = ws.receive_json()
                assert frame["event"] == "new_message"
                assert frame["data"]["content"] == "Buenos días"
                sender = frame["data"]["sender"]
                assert sender["id"] == ids["t1"]
                assert "email" not in sender and "phone" not in sender
            message_id = frame["data"]["id"]

            parent_ws.send_json({"event": "join_room", "data": {"chat_room_id": room_id}})
            joined = parent_ws.receive_json()
            assert joined == {"event": "joined_room", "data": {"chat_room_id": room_id, "marked_read": 1}}

            teacher_ws.send_json({"event": "typing_start", "data": {"chat_room_id": room_id}})
            typing = parent_ws.receive_json()
            assert typing["event"] == "user_typing"
            assert typing["data"]["user_id"] == ids["t1"]

            teacher_ws.send_json({"event": "bogus", "data": {}})
            assert teacher_ws.receive_json()["event"] == "error"

            edit_frame = {"chat_room_id": room_id, "message_id": message_id}
            parent_ws.send_json({"event": "message_updated", "data": edit_frame})
            rejected = parent_ws.receive_json()
            assert rejected["event"] == "error"
            assert rejected["data"]["message"] == "You can only modify your own messages"

            client.put(
                f"/chat/messages/{message_id}", json={"content": "Buenos días a todos"}, headers=auth_headers(ids["t1"])
            )
            teacher_ws.send_json({"event": "message_updated", "data": edit_frame})
            updated = parent_ws.receive_json()
            assert updated["event"] == "message_updated"
            assert updated["data"]["message"]["content"] == "Buenos días a todos"
            assert updated["data"]["message"]["is_edited"] is True
            assert "phone" not in updated["data"]["message"]["sender"]

        offline = parent_ws.receive_json()
        assert offline == {"event": "user_offline", "data": {"user_id": ids["t1"]}}


def test_client_supplied_attachments_cannot_expose_stored_media(tmp_path):
    service = LocalStorageService(root=str(tmp_path), public_base_url="http://testserver")
    app.dependency_overrides[get_storage] = lambda: service
    try:
        client = TestClient(app)
        ids = daycare()
        uploaded = client.post(
            "/media/upload",
            data={"media_type": "photo", "student_ids": f"[{ids['mia']}]"},
            files={"file": ("mia.png", b"\x89PNG-bytes", "image/png")},
            headers=auth_headers(ids["t1"]),
        )
        assert uploaded.status_code == 201
        photo_url = uploaded.json()["file_url"]
        photo_key = photo_url.split("/files/", 1)[1]

        room_id = open_direct(client, ids["p2"], ids["admin"]).json()["id"]
        posted = client.post(
            "/chat/messages",
            json={"chat_room_id": room_id, "content": "mira", "attachments": [{"key": photo_key}]},
            headers=auth_headers(ids["p2"]),
        )
        assert posted.status_code == 201
        assert posted.json()["attachments"] == []

        assert client.get(f"/chat/files/{photo_key}", headers=auth_headers(ids["p2"])).status_code == 404
    finally:
        app.dependency_overrides.pop(get_storage, None)


def test_connection_manager_prunes_empty_rooms():
    connections = ConnectionManager()
    first, second = object(), object()
    connections.join(first, 1)
    connections.join(second, 1)
    connections.join(first, 2)

    connections.leave(first, 1)
    assert connections.rooms[1] == {second}
    connections.leave(second, 1)
    assert 1 not in connections.rooms

    connections.disconnect(first)
    assert connections.rooms == {}

    connections.join(second, 3)
    connections.close_room(3)
    assert not connections.in_room(second, 3)
    assert 3 not in connections.rooms
