"""Group (classroom) management."""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backend.app.models.enums import UserRole
from backend.app.models.group import DEFAULT_GROUP_COLOR, DEFAULT_MAX_STUDENTS, Group
from backend.app.models.student import Student
from backend.app.models.user import User
from backend.app.schemas.group import GroupCreate, GroupRead, GroupUpdate
from backend.app.services.redaction import student_summary, user_summary
from backend.app.services.visibility_policy import Action, Principal, VisibilityPolicy


def to_group_read(group: Group, viewer: Principal, policy: VisibilityPolicy) -> GroupRead:
    members = [s for s in group.students if s.is_active]
    visible = members
    if viewer.role == UserRole.PARENT:
        # Parents only see their own children in a group roster.
        own = policy.index.students_of(viewer.id)
        visible = [s for s in members if s.id in own]
    return GroupRead(
        id=group.id,
        name=group.name,
        description=group.description,
        color=group.color,
        max_students=group.max_students,
        is_active=group.is_active,
        teacher=user_summary(group.teacher, viewer),
        students=[student_summary(s, viewer) for s in sorted(visible, key=lambda s: (s.last_name, s.first_name))],
        student_count=len(members),
        created_at=group.created_at,
    )


def get_group_or_404(db: Session, group_id: int, *, include_inactive: bool = False) -> Group:
    query = db.query(Group).filter(Group.id == group_id)
    if not include_inactive:
        query = query.filter(Group.is_active.is_(True))
    group = query.first()
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def _require_teacher(db: Session, teacher_id: int) -> User:
    teacher = db.query(User).filter(User.id == teacher_id).first()
    if not teacher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    if teacher.role != UserRole.TEACHER.value or not teacher.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Referenced user is not an active teacher")
    return teacher


def _load_students(db: Session, student_ids: list[int]) -> list[Student]:
    unique_ids = list(dict.fromkeys(student_ids))
    if not unique_ids:
        return []
    students = db.query(Student).filter(Student.id.in_(unique_ids), Student.is_active.is_(True)).all()
    if len(students) != len(unique_ids):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="One or more students not found")
    return students


def _check_capacity(count: int, max_students: int) -> None:
    if count > max_students:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Group capacity exceeded ({count}/{max_students})",
        )


def create_group(db: Session, *, payload: GroupCreate, actor: Principal, policy: VisibilityPolicy) -> GroupRead:
    policy.enforce(policy.check_group(actor, None, Action.CREATE))

    teacher_id: Optional[int] = payload.teacher_id
    if actor.role == UserRole.TEACHER:
        if teacher_id is not None and teacher_id != actor.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can assign a group's teacher")
        teacher_id = actor.id
    elif teacher_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="teacher_id is required")
    _require_teacher(db, teacher_id)

    max_students = payload.max_students or DEFAULT_MAX_STUDENTS
    students = _load_students(db, payload.student_ids)
    _check_capacity(len(students), max_students)

    group = Group(
        name=payload.name,
        description=payload.description,
        color=payload.color or DEFAULT_GROUP_COLOR,
        max_students=max_students,
        teacher_id=teacher_id,
    )
    group.students = students
    db.add(group)
    db.commit()
    db.refresh(group)
    return to_group_read(group, actor, policy)


def list_groups(db: Session, *, actor: Principal, policy: VisibilityPolicy, include_inactive: bool = False) -> list[GroupRead]:
    query = db.query(Group)
    scope = policy.group_scope(actor)
    if scope is not None:
        if not scope:
            return []
        query = query.filter(Group.id.in_(scope))
    if not (include_inactive and actor.is_admin):
        query = query.filter(Group.is_active.is_(True))
    return [to_group_read(g, actor, policy) for g in query.order_by(Group.name.asc()).all()]


def get_group(db: Session, *, group_id: int, actor: Principal, policy: VisibilityPolicy) -> GroupRead:
    group = get_group_or_404(db, group_id, include_inactive=actor.is_admin)
    policy.enforce(policy.check_group(actor, group, Action.READ))
    return to_group_read(group, actor, policy)


def update_group(
    db: Session, *, group_id: int, payload: GroupUpdate, actor: Principal, policy: VisibilityPolicy
) -> GroupRead:
    group = get_group_or_404(db, group_id, include_inactive=actor.is_admin)
    policy.enforce(policy.check_group(actor, group, Action.UPDATE))
    policy.enforce(policy.check_group_owner_change(actor, group, payload.teacher_id))

    data = payload.model_dump(exclude_unset=True)
    student_ids = data.pop("student_ids", None)
    if data.get("teacher_id") is not None:
        _require_teacher(db, data["teacher_id"])
    else:
        data.pop("teacher_id", None)
    if "is_active" in data and not actor.is_admin:
        data.pop("is_active")

    max_students = data.get("max_students") or group.max_students
    if student_ids is not None:
        students = _load_students(db, student_ids)
        _check_capacity(len(students), max_students)
        group.students = students
    else:
        _check_capacity(len([s for s in group.students if s.is_active]), max_students)

    for field, value in data.items():
        if value is None and field in {"name", "color", "max_students"}:
            continue
        setattr(group, field, value)
    db.commit()
    db.refresh(group)
    return to_group_read(group, actor, policy)


def deactivate_group(db: Session, *, group_id: int, actor: Principal, policy: VisibilityPolicy) -> None:
    group = get_group_or_404(db, group_id)
    policy.enforce(policy.check_group(actor, group, Action.DELETE))
    group.is_active = False
    db.commit()


def add_students(
    db: Session, *, group_id: int, student_ids: list[int], actor: Principal, policy: VisibilityPolicy
) -> GroupRead:
    group = get_group_or_404(db, group_id)
    policy.enforce(policy.check_group(actor, group, Action.UPDATE))

    students = _load_students(db, student_ids)
    current_ids = {s.id for s in group.students}
    new_students = [s for s in students if s.id not in current_ids]
    if not new_students:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="All students are already in the group")
    active_count = len([s for s in group.students if s.is_active])
    _check_capacity(active_count + len(new_students), group.max_students)

    group.students.extend(new_students)
    db.commit()
    db.refresh(group)
    return to_group_read(group, actor, policy)


def remove_student(
    db: Session, *, group_id: int, student_id: int, actor: Principal, policy: VisibilityPolicy
) -> GroupRead:
    group = get_group_or_404(db, group_id)
    policy.enforce(policy.check_group(actor, group, Action.UPDATE))

    member = next((s for s in group.students if s.id == student_id), None)
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student is not in this group")
    group.students.remove(member)
    db.commit()
    db.refresh(group)
    return to_group_read(group, actor, policy)
