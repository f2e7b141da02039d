from datetime import date

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.attendance import Attendance
from backend.app.models.enums import UserRole
from backend.app.schemas.attendance import AttendanceCreate
from backend.app.services import attendance as attendance_service
from backend.app.services.relationship_index import RelationshipIndex
from backend.app.services.visibility_policy import Principal, VisibilityPolicy
from tests.factories import auth_headers, daycare


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def attendance_payload(student_id: int, day: str = "2024-05-01", **extra) -> dict:
    return {"student_id": student_id, "date": day, "status": "present", **extra}


def test_teacher_records_attendance_once_per_day_and_parent_reads_it():
    client = TestClient(app)
    ids = daycare()

    first = client.post("/attendance", json=attendance_payload(ids["mia"]), headers=auth_headers(ids["t1"]))
    assert first.status_code == 201
    assert first.json()["status"] == "present"
    assert first.json()["marked_by"]["id"] == ids["t1"]

    second = client.post("/attendance", json=attendance_payload(ids["mia"]), headers=auth_headers(ids["t1"]))
    assert second.status_code == 409

    listed = client.get("/attendance", headers=auth_headers(ids["p1"]))
    assert listed.status_code == 200
    assert [r["student"]["id"] for r in listed.json()] == [ids["mia"]]

    forbidden = client.post(
        "/attendance", json=attendance_payload(ids["mia"], "2024-05-02"), headers=auth_headers(ids["p1"])
    )
    assert forbidden.status_code == 403


def test_duplicate_attendance_conflicts_for_admin_too():
    client = TestClient(app)
    ids = daycare()

    assert client.post("/attendance", json=attendance_payload(ids["leo"]), headers=auth_headers(ids["admin"])).status_code == 201
    resp = client.post("/attendance", json=attendance_payload(ids["leo"]), headers=auth_headers(ids["admin"]))
    assert resp.status_code == 409


def test_parent_is_denied_before_missing_student_is_reported():
    client = TestClient(app)
    ids = daycare()

    resp = client.post("/attendance", json=attendance_payload(9999), headers=auth_headers(ids["p1"]))
    assert resp.status_code == 403


def test_out_of_scope_list_is_empty_but_single_record_is_forbidden():
    client = TestClient(app)
    ids = daycare()
    created = client.post("/attendance", json=attendance_payload(ids["mia"]), headers=auth_headers(ids["t1"]))
    record_id = created.json()["id"]

    listed = client.get(f"/attendance?student_id={ids['mia']}", headers=auth_headers(ids["t2"]))
    assert listed.status_code == 200
    assert listed.json() == []

    single = client.get(f"/attendance/{record_id}", headers=auth_headers(ids["t2"]))
    assert single.status_code == 403

    missing = client.get("/attendance/9999", headers=auth_headers(ids["t2"]))
    assert missing.status_code == 404


def test_teacher_cannot_record_attendance_outside_scope():
    client = TestClient(app)
    ids = daycare()

    resp = client.post("/attendance", json=attendance_payload(ids["leo"]), headers=auth_headers(ids["t1"]))
    assert resp.status_code == 403


def test_bulk_attendance_skips_failed_items():
    client = TestClient(app)
    ids = daycare()
    client.post("/attendance", json=attendance_payload(ids["mia"]), headers=auth_headers(ids["t1"]))

    records = [
        attendance_payload(ids["mia"]),
        attendance_payload(ids["mia"], "2024-05-02", mood="happy", lunch="ate_all"),
        attendance_payload(ids["leo"], "2024-05-02"),
    ]
    resp = client.post("/attendance/bulk", json={"records": records}, headers=auth_headers(ids["t1"]))
    assert resp.status_code == 201
    body = resp.json()
    assert len(body) == 1
    assert body[0]["date"] == "2024-05-02"
    assert body[0]["mood"] == "happy"
    assert body[0]["lunch"] == "ate_all"


def test_bulk_attendance_rejects_parents():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(
        "/attendance/bulk", json={"records": [attendance_payload(ids["mia"])]}, headers=auth_headers(ids["p1"])
    )
    assert resp.status_code == 403


def test_list_filters_by_date_range_and_group():
    client = TestClient(app)
    ids = daycare()
    admin = auth_headers(ids["admin"])
    client.post("/attendance", json=attendance_payload(ids["mia"], "2024-05-01"), headers=admin)
    client.post("/attendance", json=attendance_payload(ids["mia"], "2024-05-10"), headers=admin)
    client.post("/attendance", json=attendance_payload(ids["leo"], "2024-05-10"), headers=admin)

    by_date = client.get("/attendance?start_date=2024-05-05&end_date=2024-05-31", headers=admin)
    assert len(by_date.json()) == 2

    by_group = client.get(f"/attendance?group_id={ids['g2']}", headers=admin)
    assert [r["student"]["id"] for r in by_group.json()] == [ids["leo"]]


def test_update_and_delete_attendance():
    client = TestClient(app)
    ids = daycare()
    record_id = client.post(
        "/attendance", json=attendance_payload(ids["mia"]), headers=auth_headers(ids["t1"])
    ).json()["id"]

    updated = client.put(
        f"/attendance/{record_id}",
        json={"status": "late", "check_in_time": "09:15"},
        headers=auth_headers(ids["t1"]),
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "late"
    assert updated.json()["check_in_time"] == "09:15"

    assert client.put(f"/attendance/{record_id}", json={"status": "absent"}, headers=auth_headers(ids["p1"])).status_code == 403
    assert client.delete(f"/attendance/{record_id}", headers=auth_headers(ids["p1"])).status_code == 403

    deleted = client.delete(f"/attendance/{record_id}", headers=auth_headers(ids["t1"]))
    assert deleted.status_code == 200
    assert client.get(f"/attendance/{record_id}", headers=auth_headers(ids["admin"])).status_code == 404


def test_invalid_check_in_time_is_rejected():
    client = TestClient(app)
    ids = daycare()

    resp = client.post(
        "/attendance", json=attendance_payload(ids["mia"], check_in_time="25:00"), headers=auth_headers(ids["t1"])
    )
    assert resp.status_code == 422


def test_unique_constraint_reports_conflict_when_precheck_misses(monkeypatch):
    ids = daycare()
    monkeypatch.setattr(attendance_service, "find_duplicate", lambda db, student_id, day: None)
    db = SessionLocal()
    try:
        policy = VisibilityPolicy(RelationshipIndex(db))
        actor = Principal(id=ids["t1"], role=UserRole.TEACHER)
        payload = AttendanceCreate(student_id=ids["mia"], date=date(2024, 5, 1), status="present")

        attendance_service.create_attendance(db, payload=payload, actor=actor, policy=policy)
        with pytest.raises(HTTPException) as exc:
            attendance_service.create_attendance(db, payload=payload, actor=actor, policy=policy)
        assert exc.value.status_code == 409

        assert db.query(Attendance).filter(Attendance.student_id == ids["mia"]).count() == 1
        other_day = AttendanceCreate(student_id=ids["mia"], date=date(2024, 5, 2), status="absent")
        created = attendance_service.create_attendance(db, payload=other_day, actor=actor, policy=policy)
        assert created.status.value == "absent"
    finally:
        db.close()
