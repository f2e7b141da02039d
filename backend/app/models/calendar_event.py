from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.models.enums import EventStatus, EventType, InvitationStatus


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    all_day = Column(Boolean, nullable=False, default=False)
    type = Column(String(20), nullable=False, default=EventType.EVENT.value)
    status = Column(String(20), nullable=False, default=EventStatus.SCHEDULED.value)
    location = Column(String(200), nullable=True)
    extra = Column("metadata", JSON(none_as_null=True), nullable=True)
    google_event_id = Column(String(255), nullable=True)
    outlook_event_id = Column(String(255), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    created_by = relationship("User", foreign_keys=[created_by_id])
    participants = relationship("EventParticipant", back_populates="event", cascade="all, delete-orphan")


class EventParticipant(Base):
    """Polymorphic attendee: participant_id points at a user, student or group row."""

    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True, index=True)
    participant_id = Column(Integer, nullable=False, index=True)
    participant_type = Column(String(10), nullable=False)
    status = Column(String(10), nullable=False, default=InvitationStatus.INVITED.value)
    responded_at = Column(DateTime, nullable=True)
    event_id = Column(Integer, ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("event_id", "participant_id", "participant_type", name="uq_event_participant"),
    )

    event = relationship("CalendarEvent", back_populates="participants")
