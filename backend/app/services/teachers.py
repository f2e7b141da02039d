"""Teacher accounts. Profile extras live in the user's preferences JSON."""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.security import get_password_hash
from backend.app.core.settings import get_settings
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.schemas.teacher import TeacherCreate, TeacherRead, TeacherUpdate
from backend.app.services.redaction import group_summaries
from backend.app.services.visibility_policy import Principal

PROFILE_KEYS = ("specialization", "bio", "certifications")


def to_teacher_read(teacher: User) -> TeacherRead:
    prefs = teacher.preferences or {}
    return TeacherRead(
        id=teacher.id,
        email=teacher.email,
        first_name=teacher.first_name,
        last_name=teacher.last_name,
        phone=teacher.phone,
        is_active=teacher.is_active,
        specialization=prefs.get("specialization"),
        bio=prefs.get("bio"),
        certifications=prefs.get("certifications") or [],
        groups=group_summaries(teacher.taught_groups),
        created_at=teacher.created_at,
    )


def get_teacher_or_404(db: Session, teacher_id: int) -> User:
    teacher = db.query(User).filter(User.id == teacher_id, User.role == UserRole.TEACHER.value).first()
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    return teacher


def _require_self_or_admin(actor: Principal, teacher_id: int) -> None:
    if not actor.is_admin and actor.id != teacher_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own teacher profile")


def create_teacher(db: Session, *, payload: TeacherCreate) -> TeacherRead:
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    password = payload.password or get_settings().default_teacher_password
    teacher = User(
        email=payload.email,
        hashed_password=get_password_hash(password),
        role=UserRole.TEACHER.value,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        is_active=True,
        must_change_password=payload.password is None,
        preferences={k: getattr(payload, k) for k in PROFILE_KEYS if getattr(payload, k) is not None},
    )
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    return to_teacher_read(teacher)


def list_teachers(db: Session, *, include_inactive: bool = False) -> list[TeacherRead]:
    query = db.query(User).filter(User.role == UserRole.TEACHER.value)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    teachers = query.order_by(User.last_name.asc(), User.first_name.asc()).all()
    return [to_teacher_read(t) for t in teachers]


def get_teacher(db: Session, *, teacher_id: int, actor: Principal) -> TeacherRead:
    _require_self_or_admin(actor, teacher_id)
    return to_teacher_read(get_teacher_or_404(db, teacher_id))


def update_teacher(db: Session, *, teacher_id: int, payload: TeacherUpdate, actor: Principal) -> TeacherRead:
    _require_self_or_admin(actor, teacher_id)
    teacher = get_teacher_or_404(db, teacher_id)
    data = payload.model_dump(exclude_unset=True)

    if not actor.is_admin and ({"is_active", "password"} & data.keys()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can change status or password")

    password = data.pop("password", None)
    if password:
        teacher.hashed_password = get_password_hash(password)
        teacher.must_change_password = True

    prefs = dict(teacher.preferences or {})
    for key in PROFILE_KEYS:
        if key in data:
            prefs[key] = data.pop(key)
    teacher.preferences = prefs

    for field, value in data.items():
        if value is None and field in {"first_name", "last_name", "is_active"}:
            continue
        setattr(teacher, field, value)
    db.commit()
    db.refresh(teacher)
    return to_teacher_read(teacher)


def deactivate_teacher(db: Session, *, teacher_id: int) -> None:
    teacher = get_teacher_or_404(db, teacher_id)
    teacher.is_active = False
    db.commit()
