"""Student endpoints for Centro Lúdico."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin, get_current_user
from backend.app.models.user import User
from backend.app.schemas.student import BirthdayRead, ParentEmailCheck, StudentCreate, StudentRead, StudentUpdate
from backend.app.services import students as student_service
from backend.app.services.email_service import EmailService, get_email_service
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/students", tags=["students"])


@router.post("/", response_model=StudentRead, status_code=status.HTTP_201_CREATED)
async def create_student(
    student_in: StudentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
    email_service: EmailService = Depends(get_email_service),
):
    return student_service.create_student(
        db, payload=student_in, actor=Principal.of(current_user), policy=policy, email_service=email_service
    )


@router.get("/", response_model=list[StudentRead])
async def list_students(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return student_service.list_students(
        db, actor=Principal.of(current_user), policy=policy, include_inactive=include_inactive
    )


@router.get("/check-parent-email", response_model=ParentEmailCheck)
async def check_parent_email(
    email: EmailStr,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return student_service.check_parent_email(db, email=email, actor=Principal.of(current_admin))


@router.get("/upcoming-birthdays", response_model=list[BirthdayRead])
async def upcoming_birthdays(
    days: int = Query(default=30, ge=1, le=366),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return student_service.upcoming_birthdays(db, actor=Principal.of(current_user), policy=policy, days_ahead=days)


@router.get("/{student_id}", response_model=StudentRead)
async def get_student(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return student_service.get_student(db, student_id=student_id, actor=Principal.of(current_user), policy=policy)


@router.put("/{student_id}", response_model=StudentRead)
async def update_student(
    student_id: int,
    student_in: StudentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return student_service.update_student(
        db, student_id=student_id, payload=student_in, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{student_id}")
async def delete_student(
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    student_service.deactivate_student(db, student_id=student_id, actor=Principal.of(current_user), policy=policy)
    return {"status": "deleted", "id": student_id}
