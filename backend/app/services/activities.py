"""Per-student activity log with batch operations.

A batch is the set of rows sharing a batch_id. Batch updates and deletes are
authorized against every member student before any row is touched.
"""

import uuid
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.time import naive_utc
from backend.app.models.attendance import Activity
from backend.app.schemas.attendance import (
    ActivityBatchCreate,
    ActivityCreate,
    ActivityRead,
    ActivityUpdate,
    BatchResult,
)
from backend.app.services.attendance import get_student_or_404, scoped_student_ids
from backend.app.services.redaction import student_summary, user_summary
from backend.app.services.visibility_policy import Action, Principal, Resource, VisibilityPolicy

TIME_FIELDS = {"start_time", "end_time"}


def to_activity_read(activity: Activity, viewer: Principal) -> ActivityRead:
    return ActivityRead(
        id=activity.id,
        title=activity.title,
        description=activity.description,
        type=activity.type,
        status=activity.status,
        start_time=activity.start_time,
        end_time=activity.end_time,
        notes=activity.notes,
        batch_id=activity.batch_id,
        student=student_summary(activity.student, viewer),
        assigned_by=user_summary(activity.assigned_by, viewer),
        created_at=activity.created_at,
    )


def _plain(key: str, value):
    if key in TIME_FIELDS:
        return naive_utc(value)
    return value.value if hasattr(value, "value") else value


def _values(payload) -> dict:
    data = payload.model_dump(include={"title", "description", "type", "status", "start_time", "end_time", "notes"})
    return {k: _plain(k, v) for k, v in data.items()}


def _check_window(start: datetime, end: Optional[datetime]) -> None:
    if end is not None and end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_time must be after start_time")


def create_activity(db: Session, *, payload: ActivityCreate, actor: Principal, policy: VisibilityPolicy) -> ActivityRead:
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.ACTIVITY))
    student = get_student_or_404(db, payload.student_id)
    policy.enforce(policy.check_student(actor, student.id, Action.CREATE, Resource.ACTIVITY))

    activity = Activity(**_values(payload), student_id=student.id, assigned_by_id=actor.id)
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return to_activity_read(activity, actor)


def create_activity_batch(
    db: Session, *, payload: ActivityBatchCreate, actor: Principal, policy: VisibilityPolicy
) -> list[ActivityRead]:
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.ACTIVITY))
    student_ids = list(dict.fromkeys(payload.student_ids))
    for student_id in student_ids:
        get_student_or_404(db, student_id)
    policy.enforce(policy.check_students(actor, student_ids, Action.CREATE, Resource.ACTIVITY))

    batch_id = str(uuid.uuid4())
    values = _values(payload)
    activities = [
        Activity(**values, student_id=student_id, batch_id=batch_id, assigned_by_id=actor.id)
        for student_id in student_ids
    ]
    db.add_all(activities)
    db.commit()
    for activity in activities:
        db.refresh(activity)
    return [to_activity_read(a, actor) for a in activities]


def list_activities(
    db: Session,
    *,
    actor: Principal,
    policy: VisibilityPolicy,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
    activity_type: Optional[str] = None,
) -> list[ActivityRead]:
    ids = scoped_student_ids(policy, actor, student_id=student_id, group_id=group_id)
    query = db.query(Activity)
    if ids is not None:
        if not ids:
            return []
        query = query.filter(Activity.student_id.in_(ids))
    if start_date:
        query = query.filter(Activity.start_time >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(Activity.start_time < datetime.combine(end_date + timedelta(days=1), time.min))
    if activity_type:
        query = query.filter(Activity.type == activity_type)
    activities = query.order_by(Activity.start_time.desc(), Activity.id.desc()).all()
    return [to_activity_read(a, actor) for a in activities]


def _get_activity(db: Session, activity_id: int) -> Activity:
    activity = db.query(Activity).filter(Activity.id == activity_id).first()
    if not activity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found")
    return activity


def get_activity(db: Session, *, activity_id: int, actor: Principal, policy: VisibilityPolicy) -> ActivityRead:
    activity = _get_activity(db, activity_id)
    policy.enforce(policy.check_student(actor, activity.student_id, Action.READ, Resource.ACTIVITY))
    return to_activity_read(activity, actor)


def _apply_update(activity: Activity, changes: dict) -> None:
    for field, value in changes.items():
        setattr(activity, field, value)
    _check_window(activity.start_time, activity.end_time)


def _changes(payload: ActivityUpdate) -> dict:
    data = payload.model_dump(exclude_unset=True)
    required = {"title", "type", "status", "start_time"}
    return {
        k: _plain(k, v)
        for k, v in data.items()
        if not (v is None and k in required)
    }


def update_activity(
    db: Session, *, activity_id: int, payload: ActivityUpdate, actor: Principal, policy: VisibilityPolicy
) -> ActivityRead:
    activity = _get_activity(db, activity_id)
    policy.enforce(policy.check_student(actor, activity.student_id, Action.UPDATE, Resource.ACTIVITY))
    _apply_update(activity, _changes(payload))
    db.commit()
    db.refresh(activity)
    return to_activity_read(activity, actor)


def delete_activity(db: Session, *, activity_id: int, actor: Principal, policy: VisibilityPolicy) -> None:
    activity = _get_activity(db, activity_id)
    policy.enforce(policy.check_student(actor, activity.student_id, Action.DELETE, Resource.ACTIVITY))
    db.delete(activity)
    db.commit()


def _get_batch(db: Session, batch_id: str) -> list[Activity]:
    activities = db.query(Activity).filter(Activity.batch_id == batch_id).all()
    if not activities:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity batch not found")
    return activities


def update_activity_batch(
    db: Session, *, batch_id: str, payload: ActivityUpdate, actor: Principal, policy: VisibilityPolicy
) -> BatchResult:
    activities = _get_batch(db, batch_id)
    policy.enforce(
        policy.check_students(actor, {a.student_id for a in activities}, Action.UPDATE, Resource.ACTIVITY)
    )
    changes = _changes(payload)
    try:
        for activity in activities:
            _apply_update(activity, changes)
    except HTTPException:
        db.rollback()
        raise
    db.commit()
    return BatchResult(batch_id=batch_id, affected=len(activities))


def delete_activity_batch(db: Session, *, batch_id: str, actor: Principal, policy: VisibilityPolicy) -> BatchResult:
    activities = _get_batch(db, batch_id)
    policy.enforce(
        policy.check_students(actor, {a.student_id for a in activities}, Action.DELETE, Resource.ACTIVITY)
    )
    for activity in activities:
        db.delete(activity)
    db.commit()
    return BatchResult(batch_id=batch_id, affected=len(activities))
