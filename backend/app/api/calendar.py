"""Calendar events, participants and external calendar sync."""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user, require_roles
from backend.app.models.enums import EventParticipantType, UserRole
from backend.app.models.user import User
from backend.app.schemas.calendar import (
    CalendarSyncRequest,
    CalendarSyncResult,
    EventCreate,
    EventRead,
    EventUpdate,
    OAuthCallback,
    OAuthUrl,
    ParticipantCreate,
    ParticipantStatusUpdate,
)
from backend.app.services import calendar_events as event_service
from backend.app.services.calendar_integration import CalendarIntegrationService, get_calendar_integration
from backend.app.services.visibility_policy import Principal, VisibilityPolicy, get_policy

router = APIRouter(prefix="/calendar", tags=["calendar"])

Provider = Literal["google", "outlook"]
staff_user = require_roles(UserRole.ADMIN, UserRole.TEACHER)


@router.post("/events", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(event_in: EventCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return event_service.create_event(db, payload=event_in, actor=Principal.of(current_user))


@router.get("/events", response_model=list[EventRead])
async def list_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    if start is not None and end is not None and start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must be before end")
    return event_service.list_events(db, actor=Principal.of(current_user), policy=policy, start=start, end=end)


@router.get("/events/upcoming", response_model=list[EventRead])
async def upcoming_events(
    limit: int = Query(default=event_service.DEFAULT_UPCOMING_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return event_service.upcoming_events(db, actor=Principal.of(current_user), policy=policy, limit=limit)


@router.get("/events/{event_id}", response_model=EventRead)
async def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return event_service.get_event(db, event_id=event_id, actor=Principal.of(current_user), policy=policy)


@router.put("/events/{event_id}", response_model=EventRead)
async def update_event(
    event_id: int,
    event_in: EventUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.update_event(db, event_id=event_id, payload=event_in, actor=Principal.of(current_user))


@router.delete("/events/{event_id}")
async def delete_event(event_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    event_service.delete_event(db, event_id=event_id, actor=Principal.of(current_user))
    return {"status": "deleted", "id": event_id}


@router.post("/events/{event_id}/participants", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def add_participant(
    event_id: int,
    participant_in: ParticipantCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.add_participant(
        db, event_id=event_id, payload=participant_in, actor=Principal.of(current_user)
    )


@router.delete("/events/{event_id}/participants/{participant_type}/{participant_id}", response_model=EventRead)
async def remove_participant(
    event_id: int,
    participant_type: EventParticipantType,
    participant_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.remove_participant(
        db,
        event_id=event_id,
        participant_id=participant_id,
        participant_type=participant_type,
        actor=Principal.of(current_user),
    )


@router.put("/events/{event_id}/participants/{participant_id}/status", response_model=EventRead)
async def update_participant_status(
    event_id: int,
    participant_id: int,
    body: ParticipantStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    policy: VisibilityPolicy = Depends(get_policy),
):
    return event_service.update_participant_status(
        db,
        event_id=event_id,
        participant_id=participant_id,
        payload=body,
        actor=Principal.of(current_user),
        policy=policy,
    )


@router.post("/events/{event_id}/sync/{provider}", response_model=CalendarSyncResult)
async def sync_event(
    event_id: int,
    provider: Provider,
    body: CalendarSyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_user),
    integration: CalendarIntegrationService = Depends(get_calendar_integration),
):
    external_id = event_service.sync_event(
        db,
        event_id=event_id,
        provider=provider,
        access_token=body.access_token,
        actor=Principal.of(current_user),
        integration=integration,
    )
    return CalendarSyncResult(provider=provider, external_event_id=external_id)


@router.delete("/events/{event_id}/sync/{provider}")
async def unsync_event(
    event_id: int,
    provider: Provider,
    body: CalendarSyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(staff_user),
    integration: CalendarIntegrationService = Depends(get_calendar_integration),
):
    event_service.unsync_event(
        db,
        event_id=event_id,
        provider=provider,
        access_token=body.access_token,
        actor=Principal.of(current_user),
        integration=integration,
    )
    return {"status": "unsynced", "id": event_id, "provider": provider}


@router.get("/oauth/{provider}/url", response_model=OAuthUrl)
async def oauth_url(
    provider: Provider,
    current_user: User = Depends(staff_user),
    integration: CalendarIntegrationService = Depends(get_calendar_integration),
):
    url = integration.google_auth_url() if provider == "google" else integration.outlook_auth_url()
    return OAuthUrl(url=url)


@router.post("/oauth/{provider}/callback")
async def oauth_callback(
    provider: Provider,
    body: OAuthCallback,
    current_user: User = Depends(staff_user),
    integration: CalendarIntegrationService = Depends(get_calendar_integration),
):
    if provider == "google":
        return integration.google_tokens(body.code)
    return integration.outlook_tokens(body.code)
