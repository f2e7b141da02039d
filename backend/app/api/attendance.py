"""Daily attendance endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.attendance import AttendanceBulkCreate, AttendanceCreate, AttendanceRead, AttendanceUpdate
from backend.app.services import attendance as attendance_service
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
async def create_attendance(
    record_in: AttendanceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return attendance_service.create_attendance(db, payload=record_in, actor=Principal.of(current_user), policy=policy)


@router.post("/bulk", response_model=list[AttendanceRead], status_code=status.HTTP_201_CREATED)
async def bulk_create_attendance(
    body: AttendanceBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return attendance_service.bulk_create_attendance(
        db, records=body.records, actor=Principal.of(current_user), policy=policy
    )


@router.get("/", response_model=list[AttendanceRead])
async def list_attendance(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return attendance_service.list_attendance(
        db,
        actor=Principal.of(current_user),
        policy=policy,
        start_date=start_date,
        end_date=end_date,
        student_id=student_id,
        group_id=group_id,
    )


@router.get("/{attendance_id:int}", response_model=AttendanceRead)
async def get_attendance(
    attendance_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return attendance_service.get_attendance(
        db, attendance_id=attendance_id, actor=Principal.of(current_user), policy=policy
    )


@router.put("/{attendance_id:int}", response_model=AttendanceRead)
async def update_attendance(
    attendance_id: int,
    record_in: AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return attendance_service.update_attendance(
        db, attendance_id=attendance_id, payload=record_in, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{attendance_id:int}")
async def delete_attendance(
    attendance_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    attendance_service.delete_attendance(db, attendance_id=attendance_id, actor=Principal.of(current_user), policy=policy)
    return {"status": "deleted", "id": attendance_id}
