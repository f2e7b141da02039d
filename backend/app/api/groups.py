"""Group (classroom) endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.group import GroupCreate, GroupRead, GroupStudentsAdd, GroupUpdate
from backend.app.services import groups as group_service
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("/", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
async def create_group(
    group_in: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.create_group(db, payload=group_in, actor=Principal.of(current_user), policy=policy)


@router.get("/", response_model=list[GroupRead])
async def list_groups(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.list_groups(
        db, actor=Principal.of(current_user), policy=policy, include_inactive=include_inactive
    )


@router.get("/{group_id}", response_model=GroupRead)
async def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.get_group(db, group_id=group_id, actor=Principal.of(current_user), policy=policy)


@router.put("/{group_id}", response_model=GroupRead)
async def update_group(
    group_id: int,
    group_in: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.update_group(
        db, group_id=group_id, payload=group_in, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{group_id}")
async def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    group_service.deactivate_group(db, group_id=group_id, actor=Principal.of(current_user), policy=policy)
    return {"status": "deleted", "id": group_id}


@router.post("/{group_id}/students", response_model=GroupRead)
async def add_students(
    group_id: int,
    body: GroupStudentsAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.add_students(
        db, group_id=group_id, student_ids=body.student_ids, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{group_id}/students/{student_id}", response_model=GroupRead)
async def remove_student(
    group_id: int,
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return group_service.remove_student(
        db, group_id=group_id, student_id=student_id, actor=Principal.of(current_user), policy=policy
    )
