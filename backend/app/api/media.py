"""Student media endpoints (photos and documents)."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from backend.app.core.settings import get_settings
from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.enums import MediaType
from backend.app.models.user import User
from backend.app.schemas.media import MediaRead, MediaUpdate, SignedUrlRead, SignedUrlRequest
from backend.app.services import media as media_service
from backend.app.services.storage import LocalStorageService, get_storage
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/media", tags=["media"])


@router.post("/upload", response_model=MediaRead, status_code=status.HTTP_201_CREATED)
async def upload_media(
    file: UploadFile = File(...),
    media_type: MediaType = Form(...),
    student_ids: str = Form(...),
    description: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
    storage: LocalStorageService = Depends(get_storage),
):
    data = await file.read()
    return media_service.upload_media(
        db,
        data=data,
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        media_type=media_type,
        description=description,
        student_ids=media_service.parse_student_ids(student_ids),
        actor=Principal.of(current_user),
        policy=policy,
        storage=storage,
        max_bytes=get_settings().max_upload_bytes,
    )


@router.get("/", response_model=list[MediaRead])
async def list_media(
    student_id: Optional[int] = None,
    media_type: Optional[MediaType] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    uploaded_by_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return media_service.list_media(
        db,
        actor=Principal.of(current_user),
        policy=policy,
        student_id=student_id,
        media_type=media_type,
        from_date=from_date,
        to_date=to_date,
        uploaded_by_id=uploaded_by_id,
    )


@router.get("/{media_id}", response_model=MediaRead)
async def get_media(
    media_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return media_service.get_media(db, media_id=media_id, actor=Principal.of(current_user), policy=policy)


@router.patch("/{media_id}", response_model=MediaRead)
async def update_media(
    media_id: int,
    changes: MediaUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return media_service.update_media(
        db, media_id=media_id, payload=changes, actor=Principal.of(current_user), policy=policy
    )


@router.delete("/{media_id}")
async def delete_media(
    media_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
    storage: LocalStorageService = Depends(get_storage),
):
    media_service.delete_media(
        db, media_id=media_id, actor=Principal.of(current_user), policy=policy, storage=storage
    )
    return {"status": "deleted", "id": media_id}


@router.post("/{media_id}/signed-url", response_model=SignedUrlRead)
async def media_signed_url(
    media_id: int,
    body: SignedUrlRequest = SignedUrlRequest(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
    storage: LocalStorageService = Depends(get_storage),
):
    url, ttl = media_service.media_signed_url(
        db,
        media_id=media_id,
        expires_in=body.expires_in,
        actor=Principal.of(current_user),
        policy=policy,
        storage=storage,
    )
    return SignedUrlRead(url=url, expires_in=ttl)
