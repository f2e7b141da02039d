"""Role-based access decisions shared by every domain service.

The policy is pure: it reads relationships through a RelationshipIndex and
returns a Decision. Callers turn a denial into an HTTP 403 with ``enforce``.

Rules
-----
* admin: every action on every record.
* teacher: records whose student belongs to an active group they teach;
  groups they own. Students and teachers are managed by admins only.
* parent: read-only access to their own children's records.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.services.relationship_index import RelationshipIndex


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Resource(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    GROUP = "group"
    ATTENDANCE = "attendance"
    ACTIVITY = "activity"
    MEDIA = "media"


# Only admins may write these, whatever the relationship.
ADMIN_MANAGED = {Resource.STUDENT, Resource.TEACHER}


@dataclass(frozen=True)
class Principal:
    id: int
    role: UserRole

    @classmethod
    def of(cls, user) -> "Principal":
        return cls(id=user.id, role=UserRole(user.role))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


PERMIT = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


class VisibilityPolicy:
    def __init__(self, index: RelationshipIndex):
        self.index = index

    # -- scopes -----------------------------------------------------------

    def student_scope(self, principal: Principal) -> Optional[set[int]]:
        """Student ids the principal may read; None means unrestricted."""
        if principal.role == UserRole.ADMIN:
            return None
        if principal.role == UserRole.TEACHER:
            return self.index.students_taught_by(principal.id)
        if principal.role == UserRole.PARENT:
            return self.index.students_of(principal.id)
        return set()

    def group_scope(self, principal: Principal) -> Optional[set[int]]:
        if principal.role == UserRole.ADMIN:
            return None
        if principal.role == UserRole.TEACHER:
            return self.index.groups_taught_by(principal.id)
        if principal.role == UserRole.PARENT:
            return self.index.groups_of_parent(principal.id)
        return set()

    # -- student-owned records ---------------------------------------------

    def check_student(
        self,
        principal: Principal,
        student_id: int,
        action: Action = Action.READ,
        resource: Resource = Resource.STUDENT,
    ) -> Decision:
        return self.check_students(principal, [student_id], action, resource)

    def check_students(
        self,
        principal: Principal,
        student_ids: Iterable[int],
        action: Action = Action.READ,
        resource: Resource = Resource.STUDENT,
    ) -> Decision:
        """All-or-nothing: every id must pass for the decision to permit."""
        ids = set(student_ids)
        if principal.role == UserRole.ADMIN:
            return PERMIT

        if principal.role == UserRole.PARENT:
            if action != Action.READ:
                return deny(f"Parents cannot {action.value} {resource.value} records")
            if ids - self.index.students_of(principal.id):
                return deny("You can only access records of your own children")
            return PERMIT

        if principal.role == UserRole.TEACHER:
            if action != Action.READ and resource in ADMIN_MANAGED:
                return deny(f"Only administrators can {action.value} {resource.value} records")
            if ids - self.index.students_taught_by(principal.id):
                return deny("You can only access students in groups you teach")
            return PERMIT

        return deny("Unknown role")

    # -- groups --------------------------------------------------------------

    def check_group(self, principal: Principal, group, action: Action = Action.READ) -> Decision:
        if principal.role == UserRole.ADMIN:
            return PERMIT

        if principal.role == UserRole.TEACHER:
            if action == Action.CREATE:
                return PERMIT
            if group.teacher_id != principal.id:
                return deny("You can only access groups you teach")
            return PERMIT

        if principal.role == UserRole.PARENT:
            if action != Action.READ:
                return deny(f"Parents cannot {action.value} groups")
            if group.id not in self.index.groups_of_parent(principal.id):
                return deny("None of your children belong to this group")
            return PERMIT

        return deny("Unknown role")

    def check_group_owner_change(self, principal: Principal, group, new_teacher_id: Optional[int]) -> Decision:
        if new_teacher_id is None or new_teacher_id == getattr(group, "teacher_id", None):
            return PERMIT
        if principal.role != UserRole.ADMIN:
            return deny("Only administrators can assign a group's teacher")
        return PERMIT

    # -- chat --------------------------------------------------------------

    def check_direct_chat(self, a: Principal, b: Principal) -> Decision:
        roles = {a.role, b.role}
        if UserRole.ADMIN in roles:
            return PERMIT
        if a.role == UserRole.TEACHER and b.role == UserRole.TEACHER:
            return PERMIT
        if roles == {UserRole.TEACHER, UserRole.PARENT}:
            teacher, parent = (a, b) if a.role == UserRole.TEACHER else (b, a)
            if self.index.students_taught_by(teacher.id) & self.index.students_of(parent.id):
                return PERMIT
            return deny("This teacher does not teach any of the parent's children")
        if a.role == UserRole.PARENT and b.role == UserRole.PARENT:
            if self.index.groups_of_parent(a.id) & self.index.groups_of_parent(b.id):
                return PERMIT
            return deny("Parents can only chat when their children share a group")
        return deny("Chat between these users is not allowed")

    # -- redaction -----------------------------------------------------------

    @staticmethod
    def shows_contact_fields(viewer: Principal, subject_id: Optional[int]) -> bool:
        """Email/phone of another user are only exposed to admins (or the user themselves)."""
        return viewer.role == UserRole.ADMIN or (subject_id is not None and viewer.id == subject_id)

    # -- enforcement ---------------------------------------------------------

    @staticmethod
    def enforce(decision: Decision) -> None:
        if not decision.allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason or "Forbidden")


def get_policy(db: Session = Depends(get_db)) -> VisibilityPolicy:
    return VisibilityPolicy(RelationshipIndex(db))
