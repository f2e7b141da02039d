"""Daily attendance records.

At most one record exists per (student, date). The service checks first and the
unique constraint backs it up; both surface as HTTP 409.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.models.attendance import Attendance
from backend.app.models.student import Student
from backend.app.schemas.attendance import AttendanceCreate, AttendanceRead, AttendanceUpdate
from backend.app.services.redaction import student_summary, user_summary
from backend.app.services.visibility_policy import Action, Principal, Resource, VisibilityPolicy

logger = logging.getLogger(__name__)

DUPLICATE_DETAIL = "Attendance already recorded for this student on this date"


def to_attendance_read(record: Attendance, viewer: Principal) -> AttendanceRead:
    return AttendanceRead(
        id=record.id,
        date=record.date,
        status=record.status,
        check_in_time=record.check_in_time,
        check_out_time=record.check_out_time,
        notes=record.notes,
        snack=record.snack,
        lunch=record.lunch,
        participated_in_activities=record.participated_in_activities,
        urination=record.urination,
        defecation=record.defecation,
        mood=record.mood,
        student=student_summary(record.student, viewer),
        marked_by=user_summary(record.marked_by, viewer),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def get_student_or_404(db: Session, student_id: int) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


def scoped_student_ids(
    policy: VisibilityPolicy,
    actor: Principal,
    *,
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
) -> Optional[set[int]]:
    """Combine the caller's scope with student/group filters. None means no restriction."""
    scope = policy.student_scope(actor)
    wanted: Optional[set[int]] = None
    if student_id is not None:
        wanted = {student_id}
    elif group_id is not None:
        wanted = policy.index.students_in_group(group_id)
    if scope is None:
        return wanted
    if wanted is None:
        return scope
    return scope & wanted


def _clean(data: dict) -> dict:
    return {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}


def find_duplicate(db: Session, student_id: int, day: date) -> Optional[int]:
    row = db.query(Attendance.id).filter(Attendance.student_id == student_id, Attendance.date == day).first()
    return row[0] if row else None


def create_attendance(db: Session, *, payload: AttendanceCreate, actor: Principal, policy: VisibilityPolicy) -> AttendanceRead:
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.ATTENDANCE))
    student = get_student_or_404(db, payload.student_id)
    policy.enforce(policy.check_student(actor, student.id, Action.CREATE, Resource.ATTENDANCE))

    if find_duplicate(db, student.id, payload.date):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL)

    record = Attendance(**_clean(payload.model_dump()), marked_by_id=actor.id)
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_DETAIL) from exc
    db.refresh(record)
    return to_attendance_read(record, actor)


def bulk_create_attendance(
    db: Session, *, records: list[AttendanceCreate], actor: Principal, policy: VisibilityPolicy
) -> list[AttendanceRead]:
    # Parents are rejected outright rather than per item.
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.ATTENDANCE))
    created = []
    for item in records:
        try:
            created.append(create_attendance(db, payload=item, actor=actor, policy=policy))
        except HTTPException as exc:
            logger.warning(
                "Skipping attendance for student %s on %s: %s", item.student_id, item.date, exc.detail
            )
    return created


def list_attendance(
    db: Session,
    *,
    actor: Principal,
    policy: VisibilityPolicy,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
) -> list[AttendanceRead]:
    ids = scoped_student_ids(policy, actor, student_id=student_id, group_id=group_id)
    query = db.query(Attendance)
    if ids is not None:
        if not ids:
            return []
        query = query.filter(Attendance.student_id.in_(ids))
    if start_date:
        query = query.filter(Attendance.date >= start_date)
    if end_date:
        query = query.filter(Attendance.date <= end_date)
    records = query.order_by(Attendance.date.desc(), Attendance.id.desc()).all()
    return [to_attendance_read(r, actor) for r in records]


def _get_record(db: Session, attendance_id: int) -> Attendance:
    record = db.query(Attendance).filter(Attendance.id == attendance_id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attendance record not found")
    return record


def get_attendance(db: Session, *, attendance_id: int, actor: Principal, policy: VisibilityPolicy) -> AttendanceRead:
    record = _get_record(db, attendance_id)
    policy.enforce(policy.check_student(actor, record.student_id, Action.READ, Resource.ATTENDANCE))
    return to_attendance_read(record, actor)


def update_attendance(
    db: Session, *, attendance_id: int, payload: AttendanceUpdate, actor: Principal, policy: VisibilityPolicy
) -> AttendanceRead:
    record = _get_record(db, attendance_id)
    policy.enforce(policy.check_student(actor, record.student_id, Action.UPDATE, Resource.ATTENDANCE))
    for field, value in _clean(payload.model_dump(exclude_unset=True)).items():
        if field == "status" and value is None:
            continue
        setattr(record, field, value)
    record.marked_by_id = actor.id
    db.commit()
    db.refresh(record)
    return to_attendance_read(record, actor)


def delete_attendance(db: Session, *, attendance_id: int, actor: Principal, policy: VisibilityPolicy) -> None:
    record = _get_record(db, attendance_id)
    policy.enforce(policy.check_student(actor, record.student_id, Action.DELETE, Resource.ATTENDANCE))
    db.delete(record)
    db.commit()
