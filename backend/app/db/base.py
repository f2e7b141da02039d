from backend.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from backend.app.models.user import User  # noqa: F401
from backend.app.models.group import Group  # noqa: F401
from backend.app.models.student import Student  # noqa: F401
from backend.app.models.attendance import Activity, Attendance  # noqa: F401
from backend.app.models.chat import ChatParticipant, ChatRoom, Message, MessageRead  # noqa: F401
from backend.app.models.calendar_event import CalendarEvent, EventParticipant  # noqa: F401
from backend.app.models.student_media import StudentMedia  # noqa: F401
