"""Photos and documents tagged to students."""

import json
import logging
import os
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from backend.app.models.enums import MediaType, UserRole
from backend.app.models.student import Student
from backend.app.models.student_media import StudentMedia, student_media_students
from backend.app.schemas.media import MediaRead, MediaUpdate
from backend.app.services.redaction import student_summary, user_summary
from backend.app.services.storage import LocalStorageService, StorageError
from backend.app.services.visibility_policy import Action, Principal, Resource, VisibilityPolicy

logger = logging.getLogger(__name__)

MEDIA_FOLDERS = {MediaType.PHOTO: "photos", MediaType.DOCUMENT: "documents"}
DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}
MIN_SIGNED_URL_TTL = 60
MAX_SIGNED_URL_TTL = 7 * 24 * 3600


def to_media_read(media: StudentMedia, viewer: Principal, visible_ids: Optional[set[int]] = None) -> MediaRead:
    students = media.students
    if visible_ids is not None:
        students = [s for s in students if s.id in visible_ids]
    return MediaRead(
        id=media.id,
        file_name=media.file_name,
        original_file_name=media.original_file_name,
        file_url=media.file_url,
        media_type=media.media_type,
        mime_type=media.mime_type,
        file_size=media.file_size,
        description=media.description,
        uploaded_at=media.uploaded_at,
        uploaded_by=user_summary(media.uploaded_by, viewer),
        students=[student_summary(s, viewer) for s in students],
    )


def parse_student_ids(raw: Optional[str]) -> list[int]:
    """Accept a JSON array (``[1, 2]``) or a comma separated list (``1,2``)."""
    if raw is None or not raw.strip():
        return []
    text = raw.strip()
    try:
        if text.startswith("["):
            values = json.loads(text)
            if not isinstance(values, list):
                raise ValueError("student_ids must be a list")
        else:
            values = [part for part in text.split(",") if part.strip()]
        return list(dict.fromkeys(int(v) for v in values))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid student_ids") from exc


def _check_file(media_type: MediaType, content_type: str, size: int, max_bytes: int) -> None:
    if size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if size > max_bytes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File exceeds the maximum allowed size")
    if media_type == MediaType.PHOTO and not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Photos must be image files")
    if media_type == MediaType.DOCUMENT and content_type not in DOCUMENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File type {content_type} is not allowed")


def _load_students(db: Session, student_ids: list[int]) -> list[Student]:
    if not student_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one student must be tagged")
    students = db.query(Student).filter(Student.id.in_(student_ids)).all()
    if len(students) != len(set(student_ids)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="One or more students not found")
    return students


def upload_media(
    db: Session,
    *,
    data: bytes,
    filename: str,
    content_type: str,
    media_type: MediaType,
    description: Optional[str],
    student_ids: list[int],
    actor: Principal,
    policy: VisibilityPolicy,
    storage: LocalStorageService,
    max_bytes: int,
) -> MediaRead:
    policy.enforce(policy.check_students(actor, [], Action.CREATE, Resource.MEDIA))
    _check_file(media_type, content_type, len(data), max_bytes)
    students = _load_students(db, student_ids)
    policy.enforce(policy.check_students(actor, student_ids, Action.CREATE, Resource.MEDIA))

    stored = storage.upload(data, filename, MEDIA_FOLDERS[media_type])
    media = StudentMedia(
        file_name=os.path.basename(stored["key"]),
        original_file_name=filename,
        file_url=stored["url"],
        file_key=stored["key"],
        media_type=media_type.value,
        mime_type=content_type,
        file_size=len(data),
        description=description,
        uploaded_by_id=actor.id,
    )
    media.students = students
    db.add(media)
    db.commit()
    db.refresh(media)
    return to_media_read(media, actor)


def _tagged(student_ids):
    return StudentMedia.id.in_(
        select(student_media_students.c.media_id).where(student_media_students.c.student_id.in_(student_ids))
    )


def list_media(
    db: Session,
    *,
    actor: Principal,
    policy: VisibilityPolicy,
    student_id: Optional[int] = None,
    media_type: Optional[MediaType] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    uploaded_by_id: Optional[int] = None,
) -> list[MediaRead]:
    query = db.query(StudentMedia)
    scope = policy.student_scope(actor)
    if actor.role == UserRole.TEACHER:
        clauses = [StudentMedia.uploaded_by_id == actor.id]
        if scope:
            clauses.append(_tagged(scope))
        query = query.filter(or_(*clauses))
    elif scope is not None:
        if not scope:
            return []
        query = query.filter(_tagged(scope))

    if student_id is not None:
        query = query.filter(_tagged([student_id]))
    if media_type is not None:
        query = query.filter(StudentMedia.media_type == media_type.value)
    if from_date:
        query = query.filter(StudentMedia.uploaded_at >= datetime.combine(from_date, time.min))
    if to_date:
        query = query.filter(StudentMedia.uploaded_at < datetime.combine(to_date + timedelta(days=1), time.min))
    if uploaded_by_id is not None:
        query = query.filter(StudentMedia.uploaded_by_id == uploaded_by_id)
    items = query.order_by(StudentMedia.uploaded_at.desc(), StudentMedia.id.desc()).all()
    visible = _parent_visible(actor, scope)
    return [to_media_read(m, actor, visible) for m in items]


def _parent_visible(actor: Principal, scope: Optional[set[int]]) -> Optional[set[int]]:
    # Parents only see their own children among the tagged students.
    return scope if actor.role == UserRole.PARENT else None


def _get_media(db: Session, media_id: int) -> StudentMedia:
    media = db.query(StudentMedia).filter(StudentMedia.id == media_id).first()
    if not media:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return media


def _can_view(media: StudentMedia, actor: Principal, policy: VisibilityPolicy) -> bool:
    scope = policy.student_scope(actor)
    if scope is None:
        return True
    if actor.role == UserRole.TEACHER and media.uploaded_by_id == actor.id:
        return True
    return any(s.id in scope for s in media.students)


def _require_modify(media: StudentMedia, actor: Principal, policy: VisibilityPolicy, action: Action) -> None:
    if actor.role == UserRole.TEACHER and media.uploaded_by_id == actor.id:
        return
    policy.enforce(policy.check_students(actor, [s.id for s in media.students], action, Resource.MEDIA))


def get_media(db: Session, *, media_id: int, actor: Principal, policy: VisibilityPolicy) -> MediaRead:
    media = _get_media(db, media_id)
    if not _can_view(media, actor, policy):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this media")
    return to_media_read(media, actor, _parent_visible(actor, policy.student_scope(actor)))


def update_media(
    db: Session, *, media_id: int, payload: MediaUpdate, actor: Principal, policy: VisibilityPolicy
) -> MediaRead:
    media = _get_media(db, media_id)
    _require_modify(media, actor, policy, Action.UPDATE)
    data = payload.model_dump(exclude_unset=True)
    if "description" in data:
        media.description = data["description"]
    if data.get("student_ids") is not None:
        ids = list(dict.fromkeys(data["student_ids"]))
        students = _load_students(db, ids)
        policy.enforce(policy.check_students(actor, ids, Action.UPDATE, Resource.MEDIA))
        media.students = students
    db.commit()
    db.refresh(media)
    return to_media_read(media, actor)


def delete_media(
    db: Session, *, media_id: int, actor: Principal, policy: VisibilityPolicy, storage: LocalStorageService
) -> None:
    media = _get_media(db, media_id)
    _require_modify(media, actor, policy, Action.DELETE)
    try:
        storage.delete(media.file_key)
    except StorageError as exc:
        logger.error("Could not delete stored file %s for media %s: %s", media.file_key, media.id, exc.detail)
    db.delete(media)
    db.commit()


def media_signed_url(
    db: Session,
    *,
    media_id: int,
    expires_in: int,
    actor: Principal,
    policy: VisibilityPolicy,
    storage: LocalStorageService,
) -> tuple[str, int]:
    media = _get_media(db, media_id)
    if not _can_view(media, actor, policy):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this media")
    ttl = max(MIN_SIGNED_URL_TTL, min(expires_in, MAX_SIGNED_URL_TTL))
    return storage.signed_url(media.file_key, ttl), ttl
