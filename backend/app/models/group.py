from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base

DEFAULT_GROUP_COLOR = "#3B82F6"
DEFAULT_MAX_STUDENTS = 20

group_students = Table(
    "group_students",
    Base.metadata,
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False, default=DEFAULT_GROUP_COLOR)
    max_students = Column(Integer, nullable=False, default=DEFAULT_MAX_STUDENTS)
    is_active = Column(Boolean, nullable=False, default=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    teacher = relationship("User", back_populates="taught_groups", foreign_keys=[teacher_id])
    students = relationship("Student", secondary=group_students, back_populates="groups")
