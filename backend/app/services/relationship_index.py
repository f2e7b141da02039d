"""Derived teacher/parent/group/student relations used for authorization.

Every lookup re-queries the database and returns a (possibly empty) set.
Only active groups grant access; disabling a group revokes its teacher's reach.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.group import Group, group_students
from backend.app.models.student import Student


class RelationshipIndex:
    def __init__(self, db: Session):
        self.db = db

    def students_taught_by(self, teacher_id: int) -> set[int]:
        stmt = (
            select(group_students.c.student_id)
            .join(Group, Group.id == group_students.c.group_id)
            .where(Group.teacher_id == teacher_id, Group.is_active.is_(True))
            .distinct()
        )
        return set(self.db.execute(stmt).scalars().all())

    def students_of(self, parent_id: int) -> set[int]:
        stmt = select(Student.id).where(Student.parent_id == parent_id)
        return set(self.db.execute(stmt).scalars().all())

    def students_in_group(self, group_id: int) -> set[int]:
        stmt = select(group_students.c.student_id).where(group_students.c.group_id == group_id)
        return set(self.db.execute(stmt).scalars().all())

    def groups_taught_by(self, teacher_id: int) -> set[int]:
        stmt = select(Group.id).where(Group.teacher_id == teacher_id, Group.is_active.is_(True))
        return set(self.db.execute(stmt).scalars().all())

    def groups_of_parent(self, parent_id: int) -> set[int]:
        stmt = (
            select(group_students.c.group_id)
            .join(Student, Student.id == group_students.c.student_id)
            .join(Group, Group.id == group_students.c.group_id)
            .where(Student.parent_id == parent_id, Group.is_active.is_(True))
            .distinct()
        )
        return set(self.db.execute(stmt).scalars().all())

    def groups_of_students(self, student_ids: set[int]) -> set[int]:
        if not student_ids:
            return set()
        stmt = (
            select(group_students.c.group_id)
            .join(Group, Group.id == group_students.c.group_id)
            .where(group_students.c.student_id.in_(student_ids), Group.is_active.is_(True))
            .distinct()
        )
        return set(self.db.execute(stmt).scalars().all())

    def parents_of_students(self, student_ids: set[int]) -> set[int]:
        if not student_ids:
            return set()
        stmt = select(Student.parent_id).where(Student.id.in_(student_ids)).distinct()
        return set(self.db.execute(stmt).scalars().all())
