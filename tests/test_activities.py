import pytest
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app
from tests.factories import auth_headers, daycare, make_group, make_student

BASE = "/attendance/activities"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def activity_payload(**extra) -> dict:
    return {"title": "Pintura", "type": "art", "start_time": "2024-05-01T10:00:00Z", **extra}


def test_batch_delete_is_denied_when_any_student_is_out_of_scope():
    client = TestClient(app)
    ids = daycare()
    sofia = make_student(ids["p1"], "Sofia")
    make_group(ids["t1"], [sofia], name="Mariposas")

    created = client.post(
        f"{BASE}/batch",
        json=activity_payload(student_ids=[ids["mia"], sofia, ids["leo"]]),
        headers=auth_headers(ids["admin"]),
    )
    assert created.status_code == 201
    batch_id = created.json()[0]["batch_id"]
    assert {a["batch_id"] for a in created.json()} == {batch_id}

    denied = client.delete(f"{BASE}/batch/{batch_id}", headers=auth_headers(ids["t1"]))
    assert denied.status_code == 403

    remaining = client.get(BASE, headers=auth_headers(ids["admin"]))
    assert len(remaining.json()) == 3


def test_batch_update_changes_every_row_or_none():
    client = TestClient(app)
    ids = daycare()
    batch_id = client.post(
        f"{BASE}/batch", json=activity_payload(student_ids=[ids["mia"], ids["leo"]]), headers=auth_headers(ids["admin"])
    ).json()[0]["batch_id"]

    denied = client.patch(f"{BASE}/batch/{batch_id}", json={"status": "completed"}, headers=auth_headers(ids["t1"]))
    assert denied.status_code == 403
    statuses = {a["status"] for a in client.get(BASE, headers=auth_headers(ids["admin"])).json()}
    assert statuses == {"scheduled"}

    updated = client.patch(f"{BASE}/batch/{batch_id}", json={"status": "completed"}, headers=auth_headers(ids["admin"]))
    assert updated.status_code == 200
    assert updated.json() == {"batch_id": batch_id, "affected": 2}
    statuses = {a["status"] for a in client.get(BASE, headers=auth_headers(ids["admin"])).json()}
    assert statuses == {"completed"}


def test_teacher_batch_in_scope_succeeds_and_deletes_all():
    client = TestClient(app)
    ids = daycare()
    sofia = make_student(ids["p1"], "Sofia")
    make_group(ids["t1"], [sofia], name="Mariposas")

    created = client.post(
        f"{BASE}/batch", json=activity_payload(student_ids=[ids["mia"], sofia]), headers=auth_headers(ids["t1"])
    )
    assert created.status_code == 201
    batch_id = created.json()[0]["batch_id"]

    deleted = client.delete(f"{BASE}/batch/{batch_id}", headers=auth_headers(ids["t1"]))
    assert deleted.status_code == 200
    assert deleted.json()["affected"] == 2
    assert client.delete(f"{BASE}/batch/{batch_id}", headers=auth_headers(ids["t1"])).status_code == 404


def test_teacher_cannot_create_batch_including_foreign_student():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(
        f"{BASE}/batch", json=activity_payload(student_ids=[ids["mia"], ids["leo"]]), headers=auth_headers(ids["t1"])
    )
    assert resp.status_code == 403
    assert client.get(BASE, headers=auth_headers(ids["admin"])).json() == []


def test_activity_window_must_be_ordered():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(
        BASE,
        json=activity_payload(student_id=ids["mia"], end_time="2024-05-01T09:00:00Z"),
        headers=auth_headers(ids["t1"]),
    )
    assert resp.status_code == 422


def test_parent_reads_own_child_activities_only():
    client = TestClient(app)
    ids = daycare()
    admin = auth_headers(ids["admin"])
    client.post(BASE, json=activity_payload(student_id=ids["mia"]), headers=admin)
    client.post(BASE, json=activity_payload(student_id=ids["leo"], type="music"), headers=admin)

    listed = client.get(BASE, headers=auth_headers(ids["p1"]))
    assert [a["student"]["id"] for a in listed.json()] == [ids["mia"]]

    by_type = client.get(f"{BASE}?type=music", headers=admin)
    assert [a["student"]["id"] for a in by_type.json()] == [ids["leo"]]

    denied = client.post(BASE, json=activity_payload(student_id=ids["mia"]), headers=auth_headers(ids["p1"]))
    assert denied.status_code == 403


def test_single_activity_update_and_delete():
    client = TestClient(app)
    ids = daycare()
    activity_id = client.post(
        BASE, json=activity_payload(student_id=ids["mia"]), headers=auth_headers(ids["t1"])
    ).json()["id"]

    updated = client.put(
        f"{BASE}/{activity_id}", json={"status": "in_progress", "notes": "Muy concentrada"}, headers=auth_headers(ids["t1"])
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "in_progress"

    assert client.get(f"{BASE}/{activity_id}", headers=auth_headers(ids["t2"])).status_code == 403
    assert client.delete(f"{BASE}/{activity_id}", headers=auth_headers(ids["t1"])).status_code == 200
    assert client.get(f"{BASE}/{activity_id}", headers=auth_headers(ids["t1"])).status_code == 404


def test_single_create_cannot_join_another_teachers_batch():
    client = TestClient(app)
    ids = daycare()
    batch_id = client.post(
        f"{BASE}/batch", json=activity_payload(student_ids=[ids["leo"]]), headers=auth_headers(ids["t2"])
    ).json()[0]["batch_id"]

    single = client.post(
        BASE, json=activity_payload(student_id=ids["mia"], batch_id=batch_id), headers=auth_headers(ids["t1"])
    )
    assert single.status_code == 201
    assert single.json()["batch_id"] is None

    deleted = client.delete(f"{BASE}/batch/{batch_id}", headers=auth_headers(ids["t2"]))
    assert deleted.status_code == 200
    assert deleted.json() == {"batch_id": batch_id, "affected": 1}
