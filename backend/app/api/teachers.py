"""Teacher management endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin, require_roles
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.schemas.teacher import TeacherCreate, TeacherRead, TeacherUpdate
from backend.app.services import teachers as teacher_service
from backend.app.services.visibility_policy import Principal

router = APIRouter(prefix="/teachers", tags=["teachers"])

staff_user = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post("/", response_model=TeacherRead, status_code=status.HTTP_201_CREATED)
async def create_teacher(
    teacher_in: TeacherCreate, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)
):
    return teacher_service.create_teacher(db, payload=teacher_in)


@router.get("/", response_model=list[TeacherRead])
async def list_teachers(
    include_inactive: bool = False, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)
):
    return teacher_service.list_teachers(db, include_inactive=include_inactive)


@router.get("/{teacher_id}", response_model=TeacherRead)
async def get_teacher(teacher_id: int, db: Session = Depends(get_db), current_user: User = Depends(staff_user)):
    return teacher_service.get_teacher(db, teacher_id=teacher_id, actor=Principal.of(current_user))


@router.put("/{teacher_id}", response_model=TeacherRead)
async def update_teacher(
    teacher_id: int,
    teacher_in: TeacherUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_user),
):
    return teacher_service.update_teacher(
        db, teacher_id=teacher_id, payload=teacher_in, actor=Principal.of(current_user)
    )


@router.delete("/{teacher_id}")
async def delete_teacher(teacher_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    teacher_service.deactivate_teacher(db, teacher_id=teacher_id)
    return {"status": "deleted", "id": teacher_id}
