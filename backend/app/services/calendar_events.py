"""Calendar events and their polymorphic participant lists.

Visibility
----------
* admin: every event.
* teacher: events they created, events inviting them, and events inviting a
  group they teach.
* parent: events inviting them, one of their children, or one of their
  children's groups.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from backend.app.core.time import naive_utc, utc_now
from backend.app.models.calendar_event import CalendarEvent, EventParticipant
from backend.app.models.enums import EventParticipantType, UserRole
from backend.app.models.group import Group
from backend.app.models.student import Student
from backend.app.models.user import User
from backend.app.schemas.calendar import (
    EventCreate,
    EventParticipantRead,
    EventRead,
    EventUpdate,
    ParticipantCreate,
    ParticipantStatusUpdate,
)
from backend.app.services.calendar_integration import CalendarIntegrationService
from backend.app.services.redaction import user_summary
from backend.app.services.visibility_policy import Principal, VisibilityPolicy

logger = logging.getLogger(__name__)

PARTICIPANT_MODELS = {
    EventParticipantType.USER: User,
    EventParticipantType.STUDENT: Student,
    EventParticipantType.GROUP: Group,
}
DEFAULT_UPCOMING_LIMIT = 10


def to_event_read(event: CalendarEvent, viewer: Principal) -> EventRead:
    return EventRead(
        id=event.id,
        title=event.title,
        description=event.description,
        start_date=event.start_date,
        end_date=event.end_date,
        all_day=event.all_day,
        type=event.type,
        status=event.status,
        location=event.location,
        metadata=event.extra,
        google_event_id=event.google_event_id,
        outlook_event_id=event.outlook_event_id,
        created_by=user_summary(event.created_by, viewer),
        participants=[
            EventParticipantRead(
                id=p.id,
                participant_id=p.participant_id,
                participant_type=p.participant_type,
                status=p.status,
                responded_at=p.responded_at,
            )
            for p in sorted(event.participants, key=lambda p: p.id or 0)
        ],
    )


# -- visibility ----------------------------------------------------------------


def _invites(participant_type: EventParticipantType, ids) -> object:
    return CalendarEvent.id.in_(
        select(EventParticipant.event_id).where(
            EventParticipant.participant_type == participant_type.value,
            EventParticipant.participant_id.in_(ids),
        )
    )


def visibility_clause(actor: Principal, policy: VisibilityPolicy):
    """SQL filter restricting events to those visible to the actor. None means unrestricted."""
    if actor.role == UserRole.ADMIN:
        return None
    clauses = [_invites(EventParticipantType.USER, [actor.id])]
    if actor.role == UserRole.TEACHER:
        clauses.append(CalendarEvent.created_by_id == actor.id)
        groups = policy.index.groups_taught_by(actor.id)
        if groups:
            clauses.append(_invites(EventParticipantType.GROUP, groups))
    elif actor.role == UserRole.PARENT:
        children = policy.index.students_of(actor.id)
        if children:
            clauses.append(_invites(EventParticipantType.STUDENT, children))
        groups = policy.index.groups_of_parent(actor.id)
        if groups:
            clauses.append(_invites(EventParticipantType.GROUP, groups))
    return or_(*clauses)


def _can_see(db: Session, event: CalendarEvent, actor: Principal, policy: VisibilityPolicy) -> bool:
    clause = visibility_clause(actor, policy)
    if clause is None:
        return True
    return db.query(CalendarEvent.id).filter(CalendarEvent.id == event.id, clause).first() is not None


def _can_manage(event: CalendarEvent, actor: Principal) -> bool:
    return actor.is_admin or (actor.role == UserRole.TEACHER and event.created_by_id == actor.id)


def _get_event(db: Session, event_id: int) -> CalendarEvent:
    event = db.query(CalendarEvent).filter(CalendarEvent.id == event_id).first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def _get_managed_event(db: Session, event_id: int, actor: Principal) -> CalendarEvent:
    event = _get_event(db, event_id)
    if not _can_manage(event, actor):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators or the event creator can modify this event")
    return event


# -- participants --------------------------------------------------------------


def _require_targets(db: Session, participant_type: EventParticipantType, ids: list[int]) -> list[int]:
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
        return []
    model = PARTICIPANT_MODELS[participant_type]
    found = {row[0] for row in db.query(model.id).filter(model.id.in_(unique_ids)).all()}
    missing = [i for i in unique_ids if i not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{participant_type.value.capitalize()} not found: {missing[0]}",
        )
    return unique_ids


def _replace_participants(db: Session, event: CalendarEvent, participant_type: EventParticipantType, ids: list[int]) -> None:
    wanted = _require_targets(db, participant_type, ids)
    kept = [p for p in event.participants if p.participant_type != participant_type.value or p.participant_id in wanted]
    present = {p.participant_id for p in kept if p.participant_type == participant_type.value}
    event.participants = kept + [
        EventParticipant(participant_id=pid, participant_type=participant_type.value)
        for pid in wanted
        if pid not in present
    ]


def _check_window(event: CalendarEvent) -> None:
    if event.start_date >= event.end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start_date must be before end_date")


# -- operations ----------------------------------------------------------------


def create_event(db: Session, *, payload: EventCreate, actor: Principal) -> EventRead:
    if actor.role == UserRole.PARENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Parents cannot create events")
    event = CalendarEvent(
        title=payload.title,
        description=payload.description,
        start_date=naive_utc(payload.start_date),
        end_date=naive_utc(payload.end_date),
        all_day=payload.all_day,
        type=payload.type.value,
        location=payload.location,
        extra=payload.metadata,
        created_by_id=actor.id,
    )
    _check_window(event)
    event.participants = []
    _replace_participants(db, event, EventParticipantType.USER, payload.attendee_ids)
    _replace_participants(db, event, EventParticipantType.STUDENT, payload.student_ids)
    _replace_participants(db, event, EventParticipantType.GROUP, payload.group_ids)
    db.add(event)
    db.commit()
    db.refresh(event)
    return to_event_read(event, actor)


def list_events(
    db: Session,
    *,
    actor: Principal,
    policy: VisibilityPolicy,
    start=None,
    end=None,
) -> list[EventRead]:
    query = db.query(CalendarEvent)
    clause = visibility_clause(actor, policy)
    if clause is not None:
        query = query.filter(clause)
    if start is not None:
        query = query.filter(CalendarEvent.end_date >= naive_utc(start))
    if end is not None:
        query = query.filter(CalendarEvent.start_date <= naive_utc(end))
    events = query.order_by(CalendarEvent.start_date.asc()).all()
    return [to_event_read(e, actor) for e in events]


def upcoming_events(
    db: Session, *, actor: Principal, policy: VisibilityPolicy, limit: int = DEFAULT_UPCOMING_LIMIT
) -> list[EventRead]:
    query = db.query(CalendarEvent).filter(CalendarEvent.start_date >= naive_utc(utc_now()))
    clause = visibility_clause(actor, policy)
    if clause is not None:
        query = query.filter(clause)
    events = query.order_by(CalendarEvent.start_date.asc()).limit(limit).all()
    return [to_event_read(e, actor) for e in events]


def get_event(db: Session, *, event_id: int, actor: Principal, policy: VisibilityPolicy) -> EventRead:
    event = _get_event(db, event_id)
    if not _can_see(db, event, actor, policy):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this event")
    return to_event_read(event, actor)


def update_event(db: Session, *, event_id: int, payload: EventUpdate, actor: Principal) -> EventRead:
    event = _get_managed_event(db, event_id, actor)
    data = payload.model_dump(exclude_unset=True)
    participant_lists = {
        EventParticipantType.USER: data.pop("attendee_ids", None),
        EventParticipantType.STUDENT: data.pop("student_ids", None),
        EventParticipantType.GROUP: data.pop("group_ids", None),
    }
    if "metadata" in data:
        event.extra = data.pop("metadata")
    for field, value in data.items():
        if value is None and field in {"title", "start_date", "end_date", "all_day", "type", "status"}:
            continue
        if field in {"start_date", "end_date"}:
            value = naive_utc(value)
        setattr(event, field, value.value if hasattr(value, "value") else value)
    _check_window(event)
    for participant_type, ids in participant_lists.items():
        if ids is not None:
            _replace_participants(db, event, participant_type, ids)
    db.commit()
    db.refresh(event)
    return to_event_read(event, actor)


def delete_event(db: Session, *, event_id: int, actor: Principal) -> None:
    event = _get_managed_event(db, event_id, actor)
    db.delete(event)
    db.commit()


def add_participant(db: Session, *, event_id: int, payload: ParticipantCreate, actor: Principal) -> EventRead:
    event = _get_managed_event(db, event_id, actor)
    _require_targets(db, payload.participant_type, [payload.participant_id])
    duplicate = any(
        p.participant_id == payload.participant_id and p.participant_type == payload.participant_type.value
        for p in event.participants
    )
    if duplicate:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Participant already added to this event")
    event.participants.append(
        EventParticipant(participant_id=payload.participant_id, participant_type=payload.participant_type.value)
    )
    db.commit()
    db.refresh(event)
    return to_event_read(event, actor)


def _find_participant(
    event: CalendarEvent, participant_id: int, participant_type: EventParticipantType
) -> Optional[EventParticipant]:
    return next(
        (
            p
            for p in event.participants
            if p.participant_id == participant_id and p.participant_type == participant_type.value
        ),
        None,
    )


def remove_participant(
    db: Session, *, event_id: int, participant_id: int, participant_type: EventParticipantType, actor: Principal
) -> EventRead:
    event = _get_managed_event(db, event_id, actor)
    participant = _find_participant(event, participant_id, participant_type)
    if participant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    event.participants.remove(participant)
    db.commit()
    db.refresh(event)
    return to_event_read(event, actor)


def update_participant_status(
    db: Session,
    *,
    event_id: int,
    participant_id: int,
    payload: ParticipantStatusUpdate,
    actor: Principal,
    policy: VisibilityPolicy,
) -> EventRead:
    event = _get_event(db, event_id)
    if not _can_see(db, event, actor, policy):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have access to this event")
    is_self = payload.participant_type == EventParticipantType.USER and participant_id == actor.id
    if actor.role == UserRole.PARENT and not is_self:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only respond to your own invitations")

    participant = _find_participant(event, participant_id, payload.participant_type)
    if participant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Participant not found")
    participant.status = payload.status.value
    participant.responded_at = utc_now()
    db.commit()
    db.refresh(event)
    return to_event_read(event, actor)


def sync_event(
    db: Session, *, event_id: int, provider: str, access_token: str, actor: Principal, integration: CalendarIntegrationService
) -> str:
    event = _get_managed_event(db, event_id, actor)
    if provider == "google":
        event.google_event_id = integration.sync_to_google(event, access_token)
        external_id = event.google_event_id
    else:
        event.outlook_event_id = integration.sync_to_outlook(event, access_token)
        external_id = event.outlook_event_id
    db.commit()
    logger.info("Event %s synced to %s as %s", event.id, provider, external_id)
    return external_id


def unsync_event(
    db: Session, *, event_id: int, provider: str, access_token: str, actor: Principal, integration: CalendarIntegrationService
) -> None:
    event = _get_managed_event(db, event_id, actor)
    if provider == "google":
        if not event.google_event_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event is not synced to Google Calendar")
        integration.delete_from_google(event.google_event_id, access_token)
        event.google_event_id = None
    else:
        if not event.outlook_event_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event is not synced to Outlook Calendar")
        integration.delete_from_outlook(event.outlook_event_id, access_token)
        event.outlook_event_id = None
    db.commit()
