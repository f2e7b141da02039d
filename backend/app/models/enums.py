"""Closed value sets shared by models and schemas."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EARLY_DEPARTURE = "early_departure"


class MealStatus(str, Enum):
    ATE_ALL = "ate_all"
    ATE_SOME = "ate_some"
    DID_NOT_EAT = "did_not_eat"


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"


class Mood(str, Enum):
    HAPPY = "happy"
    SOMEWHAT_HAPPY = "somewhat_happy"
    ACTIVE = "active"
    TIRED = "tired"
    HEALTHY = "healthy"
    UNWELL = "unwell"


class ActivityType(str, Enum):
    MEAL = "meal"
    NAP = "nap"
    PLAY = "play"
    LEARNING = "learning"
    OUTDOOR = "outdoor"
    ART = "art"
    MUSIC = "music"
    OTHER = "other"


class ActivityStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChatRoomType(str, Enum):
    DIRECT = "direct"
    GROUP = "group"
    ANNOUNCEMENT = "announcement"


class ParticipantRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class EventType(str, Enum):
    CLASS = "class"
    MEAL = "meal"
    NAP = "nap"
    ACTIVITY = "activity"
    MEETING = "meeting"
    EVENT = "event"
    HOLIDAY = "holiday"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventParticipantType(str, Enum):
    USER = "user"
    STUDENT = "student"
    GROUP = "group"


class InvitationStatus(str, Enum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class MediaType(str, Enum):
    PHOTO = "photo"
    DOCUMENT = "document"
