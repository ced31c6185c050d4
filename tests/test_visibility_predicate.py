"""
Listing predicates are rendered against the PostgreSQL dialect: the associated-organization
check relies on ``= ANY(array)``, which SQLite cannot execute. Set ``POSTGRES_TEST_URL`` to
also run every predicate against real rows and compare it with ``evaluate_access``.
"""
import itertools
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import sessionmaker

from src.core.visibility import SubjectKind, VisibilitySubject, build_visibility_predicate
from src.database import Base
from src.models import UserExtension

POSTGRES_TEST_URL = os.environ.get("POSTGRES_TEST_URL")

SAME_ORG = "user_extensions.organization_id = 'org-x'"
ASSOCIATED = (
    "user_extensions.organization_id IS NOT NULL"
    " AND 'org-x' = ANY (user_extensions.visible_to_organizations)"
    " AND user_extensions.mentor_visibility != 'CURRENT'"
)
OPEN_TO_ALL = "user_extensions.organization_id IS NOT NULL AND user_extensions.mentor_visibility = 'ALL'"

ALLOWLISTS = [None, ["org-y"], ["org-y", "org-x"]]
POLICIES = [None, "CURRENT", "ASSOCIATED", "ALL"]


def _sql(predicate):
    return str(predicate.to_clause().compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


@pytest.mark.parametrize("policy, allowlist, expected", [
    (None, None, SAME_ORG),
    ("CURRENT", None, SAME_ORG),
    ("ASSOCIATED", None, f"{SAME_ORG} OR {ASSOCIATED}"),
    ("ALL", None, f"{SAME_ORG} OR {ASSOCIATED} OR {OPEN_TO_ALL}"),
    (None, ["org-y"], f"user_extensions.organization_id IN ('org-y') AND {SAME_ORG}"),
    ("CURRENT", ["org-y"], f"user_extensions.organization_id IN ('org-y') AND {SAME_ORG}"),
    ("ASSOCIATED", ["org-y"], f"user_extensions.organization_id IN ('org-y') AND ({SAME_ORG} OR {ASSOCIATED})"),
    ("ALL", ["org-y"], f"user_extensions.organization_id IN ('org-y') AND ({SAME_ORG} OR {ASSOCIATED} OR {OPEN_TO_ALL})"),
    ("CURRENT", ["org-y", "org-x"], f"user_extensions.organization_id IN ('org-x', 'org-y') AND {SAME_ORG}"),
    (
        "ASSOCIATED", ["org-y", "org-x"],
        f"user_extensions.organization_id IN ('org-x', 'org-y') AND ({SAME_ORG} OR {ASSOCIATED})",
    ),
    (
        "ALL", ["org-y", "org-x"],
        f"user_extensions.organization_id IN ('org-x', 'org-y') AND ({SAME_ORG} OR {ASSOCIATED} OR {OPEN_TO_ALL})",
    ),
])
def test_mentor_predicate_sql(policy, allowlist, expected):
    predicate = build_visibility_predicate("org-x", policy, SubjectKind.MENTOR, org_allowlist=allowlist)
    assert _sql(predicate) == expected


def test_mentee_predicate_reads_mentee_visibility():
    sql = _sql(build_visibility_predicate("org-x", "ALL", SubjectKind.MENTEE))
    assert sql == (
        f"{SAME_ORG} OR "
        + ASSOCIATED.replace("mentor_visibility", "mentee_visibility")
        + " OR "
        + OPEN_TO_ALL.replace("mentor_visibility", "mentee_visibility")
    )


def test_session_predicate_uses_mentor_organization():
    sql = _sql(build_visibility_predicate("org-x", "ASSOCIATED", SubjectKind.SESSION))
    assert sql == (
        "sessions.mentor_organization_id = 'org-x'"
        " OR sessions.mentor_organization_id IS NOT NULL"
        " AND 'org-x' = ANY (sessions.visible_to_organizations)"
        " AND sessions.visibility != 'CURRENT'"
    )


@pytest.mark.parametrize("allowlist", ALLOWLISTS)
def test_viewer_without_organization_sees_nothing(allowlist):
    sql = _sql(build_visibility_predicate(None, "ALL", SubjectKind.MENTOR, org_allowlist=allowlist))
    assert sql == "false"


def test_unknown_policy_is_treated_as_unset():
    assert _sql(build_visibility_predicate("org-x", "EVERYONE", SubjectKind.MENTOR)) == SAME_ORG


def test_empty_allowlist_does_not_narrow():
    predicate = build_visibility_predicate("org-x", "ALL", SubjectKind.MENTOR, org_allowlist=[])
    assert predicate.org_allowlist is None
    assert " IN (" not in _sql(predicate)


def test_allowlist_applies_to_same_organization_too():
    predicate = build_visibility_predicate("org-x", "ALL", SubjectKind.MENTOR, org_allowlist=["org-y"])
    own = VisibilitySubject(SubjectKind.MENTOR, "org-x", "CURRENT", frozenset(["org-x"]))
    other = VisibilitySubject(SubjectKind.MENTOR, "org-y", "ALL", frozenset(["org-y"]))
    assert predicate.matches(own) is False
    assert predicate.matches(other) is True


SUBJECTS = [
    VisibilitySubject(SubjectKind.MENTOR, org, visibility, frozenset(visible_to))
    for org, visibility, visible_to in itertools.product(
        ["org-x", "org-y", "org-z", None],
        [None, "CURRENT", "ASSOCIATED", "ALL"],
        [(), ("org-x",), ("org-y",), ("org-x", "org-y")],
    )
]


@pytest.fixture(scope="module")
def postgres_mentors():
    engine = create_engine(POSTGRES_TEST_URL)
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(bind=engine)()
    rows = {}
    try:
        for index, subject in enumerate(SUBJECTS):
            profile = UserExtension(
                user_id=f"mentor-{index}",
                name=f"Mentor {index}",
                organization_id=subject.organization_id,
                is_mentor=True,
                mentor_visibility=subject.visibility,
                visible_to_organizations=sorted(subject.visible_to_organizations),
            )
            db.add(profile)
            rows[f"mentor-{index}"] = subject
        db.commit()
        yield db, rows
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.mark.skipif(not POSTGRES_TEST_URL, reason="POSTGRES_TEST_URL is not set")
@pytest.mark.parametrize("policy, allowlist", list(itertools.product(POLICIES, ALLOWLISTS)))
def test_listing_filter_selects_exactly_the_visible_rows(postgres_mentors, policy, allowlist):
    db, rows = postgres_mentors
    predicate = build_visibility_predicate("org-x", policy, SubjectKind.MENTOR, org_allowlist=allowlist)

    selected = {user_id for (user_id,) in db.query(UserExtension.user_id).filter(predicate.to_clause())}

    assert selected == {user_id for user_id, subject in rows.items() if predicate.matches(subject)}
