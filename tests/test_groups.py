import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app
from tests.factories import auth_headers, daycare, make_group, make_student


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def test_admin_creates_group_with_defaults():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(
        "/groups", json={"name": "Ositos", "teacher_id": ids["t2"], "student_ids": [ids["mia"]]}, headers=auth_headers(ids["admin"])
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["color"] == "#3B82F6"
    assert body["max_students"] == 20
    assert body["teacher"]["id"] == ids["t2"]
    assert body["student_count"] == 1


def test_admin_must_name_a_teacher():
    client = TestClient(app)
    ids = daycare()

    assert client.post("/groups", json={"name": "Sin maestra"}, headers=auth_headers(ids["admin"])).status_code == 400
    assert client.post(
        "/groups", json={"name": "Padre", "teacher_id": ids["p1"]}, headers=auth_headers(ids["admin"])
    ).status_code == 400


def test_teacher_creates_group_for_self_only():
    client = TestClient(app)
    ids = daycare()

    own = client.post("/groups", json={"name": "Arte"}, headers=auth_headers(ids["t1"]))
    assert own.status_code == 201
    assert own.json()["teacher"]["id"] == ids["t1"]

    other = client.post("/groups", json={"name": "Arte", "teacher_id": ids["t2"]}, headers=auth_headers(ids["t1"]))
    assert other.status_code == 403


def test_parents_cannot_write_groups():
    client = TestClient(app)
    ids = daycare()

    assert client.post("/groups", json={"name": "X"}, headers=auth_headers(ids["p1"])).status_code == 403
    assert client.put(f"/groups/{ids['g1']}", json={"name": "X"}, headers=auth_headers(ids["p1"])).status_code == 403


def test_teacher_cannot_reassign_group():
    client = TestClient(app)
    ids = daycare()

    resp = client.put(f"/groups/{ids['g1']}", json={"teacher_id": ids["t2"]}, headers=auth_headers(ids["t1"]))
    assert resp.status_code == 403

    renamed = client.put(f"/groups/{ids['g1']}", json={"name": "Girasoles A"}, headers=auth_headers(ids["t1"]))
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Girasoles A"

    reassigned = client.put(f"/groups/{ids['g1']}", json={"teacher_id": ids["t2"]}, headers=auth_headers(ids["admin"]))
    assert reassigned.json()["teacher"]["id"] == ids["t2"]


def test_parent_sees_only_own_children_in_roster():
    client = TestClient(app)
    ids = daycare()
    lucas = make_student(ids["p2"], "Lucas")
    shared = make_group(ids["t1"], [ids["mia"], lucas], name="Compartido")

    roster = client.get(f"/groups/{shared}", headers=auth_headers(ids["p1"])).json()
    assert [s["id"] for s in roster["students"]] == [ids["mia"]]
    assert roster["student_count"] == 2

    assert client.get(f"/groups/{ids['g2']}", headers=auth_headers(ids["p1"])).status_code == 403
    assert {g["id"] for g in client.get("/groups", headers=auth_headers(ids["p1"])).json()} == {ids["g1"], shared}


def test_capacity_is_enforced_on_add():
    client = TestClient(app)
    ids = daycare()
    group_id = client.post(
        "/groups", json={"name": "Chico", "max_students": 1}, headers=auth_headers(ids["t1"])
    ).json()["id"]

    first = client.post(f"/groups/{group_id}/students", json={"student_ids": [ids["mia"]]}, headers=auth_headers(ids["t1"]))
    assert first.status_code == 200
    again = client.post(f"/groups/{group_id}/students", json={"student_ids": [ids["mia"]]}, headers=auth_headers(ids["t1"]))
    assert again.status_code == 400
    full = client.post(f"/groups/{group_id}/students", json={"student_ids": [ids["leo"]]}, headers=auth_headers(ids["t1"]))
    assert full.status_code == 400
    missing = client.post(f"/groups/{group_id}/students", json={"student_ids": [9999]}, headers=auth_headers(ids["t1"]))
    assert missing.status_code == 404


def test_remove_student_and_soft_delete():
    client = TestClient(app)
    ids = daycare()

    removed = client.delete(f"/groups/{ids['g1']}/students/{ids['mia']}", headers=auth_headers(ids["t1"]))
    assert removed.status_code == 200
    assert removed.json()["students"] == []
    assert client.delete(f"/groups/{ids['g1']}/students/{ids['mia']}", headers=auth_headers(ids["t1"])).status_code == 404

    assert client.delete(f"/groups/{ids['g2']}", headers=auth_headers(ids["t1"])).status_code == 403
    assert client.delete(f"/groups/{ids['g2']}", headers=auth_headers(ids["t2"])).status_code == 200
    assert client.get("/groups", headers=auth_headers(ids["t2"])).json() == []
    assert client.get("/students", headers=auth_headers(ids["t2"])).json() == []
