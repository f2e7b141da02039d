"""Student model for Centro Lúdico."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.models.group import group_students


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    birth_date = Column(Date, nullable=False)
    gender = Column(String(10), nullable=True)
    allergies = Column(Text, nullable=True)
    observations = Column(Text, nullable=True)
    emergency_contact = Column(String(200), nullable=True)
    emergency_phone = Column(String(50), nullable=True)
    photo_url = Column(String(512), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    parent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    parent = relationship("User", back_populates="children", foreign_keys=[parent_id])
    groups = relationship("Group", secondary=group_students, back_populates="students")
