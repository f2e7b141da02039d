"""Student activity endpoints, mounted under /attendance/activities."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.enums import ActivityType
from backend.app.models.user import User
from backend.app.schemas.attendance import (
    ActivityBatchCreate,
    ActivityCreate,
    ActivityRead,
    ActivityUpdate,
    BatchResult,
)
from backend.app.services import activities as activity_service
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/attendance/activities", tags=["activities"])


@router.post("/", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
async def create_activity(
    activity_in: ActivityCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.create_activity(db, payload=activity_in, actor=Principal.of(current_user), policy=policy)


@router.post("/batch", response_model=list[ActivityRead], status_code=status.HTTP_201_CREATED)
async def create_activity_batch(
    batch_in: ActivityBatchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.create_activity_batch(
        db, payload=batch_in, actor=Principal.of(current_user), policy=policy
    )


@router.get("/", response_model=list[ActivityRead])
async def list_activities(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
    type: Optional[ActivityType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.list_activities(
        db,
        actor=Principal.of(current_user),
        policy=policy,
        start_date=start_date,
        end_date=end_date,
        student_id=student_id,
        group_id=group_id,
        activity_type=type.value if type else None,
    )


@router.patch("/batch/{batch_id}", response_model=BatchResult)
async def update_activity_batch(
    batch_id: str,
    changes: ActivityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.update_activity_batch(
        db, batch_id=batch_id, payload=changes, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/batch/{batch_id}", response_model=BatchResult)
async def delete_activity_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.delete_activity_batch(
        db, batch_id=batch_id, actor=Principal.of(current_user), policy=policy
    )


@router.get("/{activity_id}", response_model=ActivityRead)
async def get_activity(
    activity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.get_activity(db, activity_id=activity_id, actor=Principal.of(current_user), policy=policy)


@router.put("/{activity_id}", response_model=ActivityRead)
async def update_activity(
    activity_id: int,
    changes: ActivityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return activity_service.update_activity(
        db, activity_id=activity_id, payload=changes, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{activity_id}")
async def delete_activity(
    activity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    activity_service.delete_activity(db, activity_id=activity_id, actor=Principal.of(current_user), policy=policy)
    return {"status": "deleted", "id": activity_id}
