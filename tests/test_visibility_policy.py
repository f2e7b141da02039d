import pytest

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.enums import UserRole
from backend.app.models.group import Group
from backend.app.services.relationship_index import RelationshipIndex
from backend.app.services.visibility_policy import Action, Principal, Resource, VisibilityPolicy
from tests.factories import daycare, make_group, make_student, make_user


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def policy():
    db = SessionLocal()
    try:
        yield VisibilityPolicy(RelationshipIndex(db))
    finally:
        db.close()


def test_teacher_reaches_only_students_in_groups_they_teach(policy):
    ids = daycare()
    t1 = Principal(ids["t1"], UserRole.TEACHER)

    assert policy.check_student(t1, ids["mia"]).allowed
    assert not policy.check_student(t1, ids["leo"]).allowed
    assert policy.student_scope(t1) == {ids["mia"]}
    assert policy.group_scope(t1) == {ids["g1"]}


def test_parent_reaches_only_own_children(policy):
    ids = daycare()
    p1 = Principal(ids["p1"], UserRole.PARENT)

    assert policy.check_student(p1, ids["mia"]).allowed
    assert not policy.check_student(p1, ids["leo"]).allowed
    assert policy.student_scope(p1) == {ids["mia"]}


def test_admin_is_unrestricted(policy):
    ids = daycare()
    admin = Principal(ids["admin"], UserRole.ADMIN)

    assert policy.student_scope(admin) is None
    assert policy.group_scope(admin) is None
    for resource in Resource:
        for action in Action:
            assert policy.check_students(admin, [ids["mia"], ids["leo"]], action, resource).allowed


def test_parents_are_read_only(policy):
    ids = daycare()
    p1 = Principal(ids["p1"], UserRole.PARENT)

    for resource in (Resource.ATTENDANCE, Resource.ACTIVITY, Resource.STUDENT, Resource.MEDIA):
        for action in (Action.CREATE, Action.UPDATE, Action.DELETE):
            decision = policy.check_student(p1, ids["mia"], action, resource)
            assert not decision.allowed
            assert "Parents cannot" in decision.reason


def test_teacher_cannot_write_admin_managed_resources(policy):
    ids = daycare()
    t1 = Principal(ids["t1"], UserRole.TEACHER)

    assert policy.check_student(t1, ids["mia"], Action.READ, Resource.STUDENT).allowed
    assert not policy.check_student(t1, ids["mia"], Action.UPDATE, Resource.STUDENT).allowed
    assert policy.check_student(t1, ids["mia"], Action.UPDATE, Resource.ATTENDANCE).allowed


def test_batch_check_is_all_or_nothing(policy):
    ids = daycare()
    t1 = Principal(ids["t1"], UserRole.TEACHER)
    extra = make_student(ids["p1"], "Sofia")
    make_group(ids["t1"], [extra], name="Mariposas")

    assert policy.check_students(t1, [ids["mia"], extra], Action.DELETE, Resource.ACTIVITY).allowed
    assert not policy.check_students(t1, [ids["mia"], extra, ids["leo"]], Action.DELETE, Resource.ACTIVITY).allowed


def test_inactive_group_grants_no_scope(policy):
    teacher = make_user("t@example.com", UserRole.TEACHER)
    parent = make_user("p@example.com")
    student = make_student(parent)
    make_group(teacher, [student], is_active=False)

    assert policy.student_scope(Principal(teacher, UserRole.TEACHER)) == set()


def test_group_ownership_change_is_admin_only(policy):
    ids = daycare()
    group = policy.index.db.query(Group).filter(Group.id == ids["g1"]).first()
    t1 = Principal(ids["t1"], UserRole.TEACHER)
    admin = Principal(ids["admin"], UserRole.ADMIN)

    assert policy.check_group(t1, group, Action.UPDATE).allowed
    assert not policy.check_group_owner_change(t1, group, ids["t2"]).allowed
    assert policy.check_group_owner_change(t1, group, ids["t1"]).allowed
    assert policy.check_group_owner_change(admin, group, ids["t2"]).allowed
    assert not policy.check_group(Principal(ids["t2"], UserRole.TEACHER), group, Action.READ).allowed
    assert policy.check_group(Principal(ids["p1"], UserRole.PARENT), group, Action.READ).allowed
    assert not policy.check_group(Principal(ids["p1"], UserRole.PARENT), group, Action.UPDATE).allowed


def test_direct_chat_eligibility(policy):
    ids = daycare()
    admin = Principal(ids["admin"], UserRole.ADMIN)
    t1 = Principal(ids["t1"], UserRole.TEACHER)
    t2 = Principal(ids["t2"], UserRole.TEACHER)
    p1 = Principal(ids["p1"], UserRole.PARENT)
    p2 = Principal(ids["p2"], UserRole.PARENT)

    assert policy.check_direct_chat(admin, p2).allowed
    assert policy.check_direct_chat(t1, t2).allowed
    assert policy.check_direct_chat(t1, p1).allowed
    assert policy.check_direct_chat(p1, t1).allowed
    assert not policy.check_direct_chat(t1, p2).allowed

    decision = policy.check_direct_chat(p1, p2)
    assert not decision.allowed
    assert "share a group" in decision.reason


def test_parents_sharing_a_group_may_chat(policy):
    ids = daycare()
    sibling_group_student = make_student(ids["p2"], "Lucas")
    make_group(ids["t1"], [ids["mia"], sibling_group_student], name="Compartido")

    p1 = Principal(ids["p1"], UserRole.PARENT)
    p2 = Principal(ids["p2"], UserRole.PARENT)
    assert policy.check_direct_chat(p1, p2).allowed


def test_contact_fields_visible_to_admin_and_self_only():
    admin = Principal(1, UserRole.ADMIN)
    teacher = Principal(2, UserRole.TEACHER)
    parent = Principal(3, UserRole.PARENT)

    assert VisibilityPolicy.shows_contact_fields(admin, 3)
    assert VisibilityPolicy.shows_contact_fields(parent, 3)
    assert not VisibilityPolicy.shows_contact_fields(teacher, 3)
    assert not VisibilityPolicy.shows_contact_fields(parent, 2)
