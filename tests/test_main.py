from fastapi.testclient import TestClient

from backend.app.main import app
from backend.app.services.storage import LocalStorageService, get_storage

client = TestClient(app)


def test_read_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"app": "Centro Lúdico backend", "status": "ok"}


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["environment"] == "development"
    assert body["timestamp"]


def test_storage_health(tmp_path):
    app.dependency_overrides[get_storage] = lambda: LocalStorageService(root=str(tmp_path))
    try:
        response = client.get("/health/storage")
    finally:
        app.dependency_overrides.pop(get_storage, None)
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "backend": "local", "writable": True}
