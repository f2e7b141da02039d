"""Student roster management."""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.security import generate_one_time_token
from backend.app.core.time import utc_now
from backend.app.models.enums import UserRole
from backend.app.models.student import Student
from backend.app.models.user import User
from backend.app.schemas.student import BirthdayRead, ParentEmailCheck, StudentCreate, StudentRead, StudentUpdate
from backend.app.services.email_service import EmailDeliveryError, EmailService
from backend.app.services.redaction import group_summaries, user_summary
from backend.app.services.visibility_policy import Action, Principal, Resource, VisibilityPolicy

logger = logging.getLogger(__name__)

PARENT_INVITATION_TTL = timedelta(hours=24)


def to_student_read(student: Student, viewer: Principal, **extra) -> StudentRead:
    return StudentRead(
        id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        birth_date=student.birth_date,
        gender=student.gender,
        allergies=student.allergies,
        observations=student.observations,
        emergency_contact=student.emergency_contact,
        emergency_phone=student.emergency_phone,
        photo_url=student.photo_url,
        is_active=student.is_active,
        parent=user_summary(student.parent, viewer),
        groups=group_summaries(student.groups),
        created_at=student.created_at,
        **extra,
    )


def get_student_or_404(db: Session, student_id: int) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


def _require_parent_user(db: Session, parent_id: int) -> User:
    parent = db.query(User).filter(User.id == parent_id).first()
    if not parent:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent not found")
    if parent.role != UserRole.PARENT.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Referenced user is not a parent")
    return parent


def _invite_parent(db: Session, payload: StudentCreate) -> tuple[User, str]:
    raw_token, token_hash = generate_one_time_token()
    parent = User(
        email=payload.parent_email,
        hashed_password=None,
        role=UserRole.PARENT.value,
        first_name=payload.parent_first_name or payload.parent_email.split("@")[0],
        last_name=payload.parent_last_name or "",
        phone=payload.parent_phone,
        is_active=True,
        must_change_password=True,
        reset_password_token=token_hash,
        reset_password_expires=utc_now() + PARENT_INVITATION_TTL,
    )
    db.add(parent)
    db.flush()
    return parent, raw_token


def create_student(
    db: Session,
    *,
    payload: StudentCreate,
    actor: Principal,
    policy: VisibilityPolicy,
    email_service: EmailService,
) -> StudentRead:
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.STUDENT))

    invitation_token = None
    if payload.parent_id is not None:
        parent = _require_parent_user(db, payload.parent_id)
    else:
        parent = db.query(User).filter(User.email == payload.parent_email).first()
        if parent and parent.role != UserRole.PARENT.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email belongs to a non-parent account")
        if parent is None:
            parent, invitation_token = _invite_parent(db, payload)

    student = Student(
        first_name=payload.first_name,
        last_name=payload.last_name,
        birth_date=payload.birth_date,
        gender=payload.gender.value if payload.gender else None,
        allergies=payload.allergies,
        observations=payload.observations,
        emergency_contact=payload.emergency_contact,
        emergency_phone=payload.emergency_phone,
        photo_url=payload.photo_url,
        parent_id=parent.id,
    )
    db.add(student)
    db.commit()
    db.refresh(student)

    invitation_sent = None
    if invitation_token is not None:
        try:
            invitation_sent = email_service.send_parent_invitation(
                parent.email, parent.first_name, f"{student.first_name} {student.last_name}", invitation_token
            )
        except EmailDeliveryError as exc:
            logger.error("Parent invitation for student %s could not be sent: %s", student.id, exc)
            invitation_sent = False

    return to_student_read(student, actor, parent_invitation_sent=invitation_sent)


def list_students(db: Session, *, actor: Principal, policy: VisibilityPolicy, include_inactive: bool = False) -> list[StudentRead]:
    query = db.query(Student)
    scope = policy.student_scope(actor)
    if scope is not None:
        if not scope:
            return []
        query = query.filter(Student.id.in_(scope))
    if not (include_inactive and actor.is_admin):
        query = query.filter(Student.is_active.is_(True))
    students = query.order_by(Student.last_name.asc(), Student.first_name.asc()).all()
    return [to_student_read(s, actor) for s in students]


def get_student(db: Session, *, student_id: int, actor: Principal, policy: VisibilityPolicy) -> StudentRead:
    student = get_student_or_404(db, student_id)
    if not student.is_active and not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    policy.enforce(policy.check_student(actor, student.id, Action.READ, Resource.STUDENT))
    return to_student_read(student, actor)


def update_student(
    db: Session, *, student_id: int, payload: StudentUpdate, actor: Principal, policy: VisibilityPolicy
) -> StudentRead:
    student = get_student_or_404(db, student_id)
    policy.enforce(policy.check_student(actor, student.id, Action.UPDATE, Resource.STUDENT))

    data = payload.model_dump(exclude_unset=True)
    if data.get("parent_id") is not None:
        _require_parent_user(db, data["parent_id"])
    elif "parent_id" in data:
        data.pop("parent_id")
    if data.get("gender") is not None:
        data["gender"] = data["gender"].value
    for field, value in data.items():
        setattr(student, field, value)
    db.commit()
    db.refresh(student)
    return to_student_read(student, actor)


def deactivate_student(db: Session, *, student_id: int, actor: Principal, policy: VisibilityPolicy) -> None:
    student = get_student_or_404(db, student_id)
    policy.enforce(policy.check_student(actor, student.id, Action.DELETE, Resource.STUDENT))
    student.is_active = False
    db.commit()


def check_parent_email(db: Session, *, email: str, actor: Principal) -> ParentEmailCheck:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return ParentEmailCheck(exists=False)
    is_parent = user.role == UserRole.PARENT.value
    return ParentEmailCheck(
        exists=True,
        is_parent=is_parent,
        parent=user_summary(user, actor) if is_parent else None,
    )


def _next_birthday(birth_date: date, today: date) -> date:
    def on_year(year: int) -> date:
        try:
            return birth_date.replace(year=year)
        except ValueError:
            # Feb 29 in a non-leap year
            return date(year, 2, 28)

    candidate = on_year(today.year)
    if candidate < today:
        candidate = on_year(today.year + 1)
    return candidate


def upcoming_birthdays(
    db: Session, *, actor: Principal, policy: VisibilityPolicy, days_ahead: int = 30, today: Optional[date] = None
) -> list[BirthdayRead]:
    today = today or date.today()
    query = db.query(Student).filter(Student.is_active.is_(True))
    scope = policy.student_scope(actor)
    if scope is not None:
        if not scope:
            return []
        query = query.filter(Student.id.in_(scope))

    results = []
    for student in query.all():
        upcoming = _next_birthday(student.birth_date, today)
        days_until = (upcoming - today).days
        if days_until > days_ahead:
            continue
        results.append(
            BirthdayRead(
                id=student.id,
                first_name=student.first_name,
                last_name=student.last_name,
                birth_date=student.birth_date,
                next_birthday=upcoming,
                days_until=days_until,
                turning=upcoming.year - student.birth_date.year,
            )
        )
    results.sort(key=lambda b: (b.days_until, b.last_name, b.first_name))
    return results
