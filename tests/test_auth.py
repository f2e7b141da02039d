import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.user import User
from backend.app.services.email_service import get_email_service
from tests.factories import auth_headers, make_user


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


class RecordingEmailService:
    def __init__(self):
        self.resets = []

    def send_password_reset(self, to, first_name, token):
        self.resets.append((to, token))
        return True


@pytest.fixture
def outbox():
    service = RecordingEmailService()
    app.dependency_overrides[get_email_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_email_service, None)


def register(client, email="familia@example.com", password="secret123"):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "first_name": "Laura", "last_name": "Ruiz"},
    )


def test_register_creates_parent_and_rejects_duplicates():
    client = TestClient(app)

    resp = register(client)
    assert resp.status_code == 201
    assert resp.json()["role"] == "parent"
    assert "hashed_password" not in resp.json()

    assert register(client).status_code == 409


def test_login_returns_token_and_user():
    client = TestClient(app)
    register(client)

    resp = client.post("/auth/login", json={"email": "familia@example.com", "password": "secret123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "familia@example.com"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == "familia@example.com"

    refreshed = client.post("/auth/refresh", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]


def test_login_failures():
    client = TestClient(app)
    register(client)
    make_user("inactivo@example.com", is_active=False)

    assert client.post("/auth/login", json={"email": "familia@example.com", "password": "nope"}).status_code == 400
    assert client.post("/auth/login", json={"email": "nadie@example.com", "password": "secret123"}).status_code == 400
    inactive = client.post("/auth/login", json={"email": "inactivo@example.com", "password": "secret123"})
    assert inactive.status_code == 400
    assert inactive.json()["detail"] == "User is inactive"


def test_protected_routes_require_valid_token():
    client = TestClient(app)

    assert client.get("/auth/me").status_code == 401
    assert client.get("/students", headers={"Authorization": "Bearer invalid"}).status_code == 401


def test_change_password():
    client = TestClient(app)
    user_id = make_user("cambio@example.com")

    wrong = client.post(
        "/auth/change-password",
        json={"current_password": "wrong", "new_password": "nuevo123"},
        headers=auth_headers(user_id),
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/auth/change-password",
        json={"current_password": "secret123", "new_password": "nuevo123"},
        headers=auth_headers(user_id),
    )
    assert ok.status_code == 200
    assert client.post("/auth/login", json={"email": "cambio@example.com", "password": "nuevo123"}).status_code == 200


def test_password_reset_flow(outbox):
    client = TestClient(app)
    make_user("olvido@example.com")

    unknown = client.post("/auth/forgot-password", json={"email": "nadie@example.com"})
    assert unknown.status_code == 200
    assert unknown.json()["reset_token"] is None

    resp = client.post("/auth/forgot-password", json={"email": "olvido@example.com"})
    assert resp.status_code == 200
    token = resp.json()["reset_token"]
    assert outbox.resets == [("olvido@example.com", token)]

    db = SessionLocal()
    try:
        stored = db.query(User).filter(User.email == "olvido@example.com").first().reset_password_token
        assert stored and stored != token
    finally:
        db.close()

    reset = client.post("/auth/reset-password", json={"token": token, "new_password": "otra1234"})
    assert reset.status_code == 200
    assert client.post("/auth/reset-password", json={"token": token, "new_password": "otra1234"}).status_code == 400
    assert client.post("/auth/login", json={"email": "olvido@example.com", "password": "otra1234"}).status_code == 200


def test_profile_update():
    client = TestClient(app)
    user_id = make_user("perfil@example.com")

    resp = client.put(
        "/profile/me", json={"phone": "555-9999", "preferences": {"language": "es"}}, headers=auth_headers(user_id)
    )
    assert resp.status_code == 200
    assert resp.json()["phone"] == "555-9999"
    assert client.get("/profile/me", headers=auth_headers(user_id)).json()["preferences"] == {"language": "es"}
