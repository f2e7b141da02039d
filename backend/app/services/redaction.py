"""Response shaping: builds nested summaries with contact fields redacted per viewer."""

from typing import Optional

from backend.app.models.student import Student
from backend.app.models.user import User
from backend.app.schemas.common import GroupSummary, StudentSummary, UserSummary
from backend.app.services.visibility_policy import Principal, VisibilityPolicy


def user_summary(user: Optional[User], viewer: Optional[Principal], *, with_role: bool = False) -> Optional[UserSummary]:
    # A missing viewer stands for a mixed audience, such as a room broadcast.
    if user is None:
        return None
    show_contact = viewer is not None and VisibilityPolicy.shows_contact_fields(viewer, user.id)
    return UserSummary(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role if with_role else None,
        email=user.email if show_contact else None,
        phone=user.phone if show_contact else None,
    )


def student_summary(student: Student, viewer: Principal) -> StudentSummary:
    return StudentSummary(
        id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        birth_date=student.birth_date,
        parent=user_summary(student.parent, viewer),
    )


def group_summaries(groups) -> list[GroupSummary]:
    return [GroupSummary.model_validate(g) for g in groups if g.is_active]
