"""Daily attendance and activity records."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.models.enums import ActivityStatus, AttendanceStatus


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AttendanceStatus.PRESENT.value)
    check_in_time = Column(String(5), nullable=True)
    check_out_time = Column(String(5), nullable=True)
    notes = Column(Text, nullable=True)
    snack = Column(String(20), nullable=True)
    lunch = Column(String(20), nullable=True)
    participated_in_activities = Column(String(3), nullable=True)
    urination = Column(String(3), nullable=True)
    defecation = Column(String(3), nullable=True)
    mood = Column(String(20), nullable=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    marked_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
    )

    student = relationship("Student")
    marked_by = relationship("User", foreign_keys=[marked_by_id])


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=ActivityStatus.SCHEDULED.value)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    batch_id = Column(String(36), nullable=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    assigned_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    student = relationship("Student")
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])
