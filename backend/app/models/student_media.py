from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base

student_media_students = Table(
    "student_media_students",
    Base.metadata,
    Column("media_id", Integer, ForeignKey("student_media.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True),
)


class StudentMedia(Base):
    __tablename__ = "student_media"

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    file_url = Column(String(1024), nullable=False)
    file_key = Column(String(512), nullable=False)
    media_type = Column(String(10), nullable=False)
    mime_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    uploaded_by = relationship("User")
    students = relationship("Student", secondary=student_media_students)
