import logging

import pytest

from src.constants import ErrorMessages
from src.core.visibility import SubjectKind, Viewer, VisibilitySubject
from src.exceptions import NotFoundError, ProfileIncompleteError

from conftest import DEFAULT_ORG, ORG_X, ORG_Y, ORG_Z


def test_same_org_short_circuits_without_policy_row(visibility_service):
    # No organization rows exist at all; a policy lookup would raise
    viewer = Viewer(user_id="alice", organization_id=ORG_X)
    subject = VisibilitySubject(SubjectKind.MENTOR, ORG_X, None)
    assert visibility_service.evaluate_access(viewer, subject) is True


def test_associated_scenario(visibility_service, make_org):
    make_org(ORG_X, external_mentor_visibility_policy="ASSOCIATED")
    viewer = Viewer(user_id="alice", organization_id=ORG_X)

    open_mentor = VisibilitySubject(SubjectKind.MENTOR, ORG_Y, "ASSOCIATED", frozenset([ORG_X]))
    closed_mentor = VisibilitySubject(SubjectKind.MENTOR, ORG_Y, "CURRENT", frozenset([ORG_X]))

    assert visibility_service.evaluate_access(viewer, open_mentor) is True
    assert visibility_service.evaluate_access(viewer, closed_mentor) is False


def test_policy_is_chosen_by_subject_kind(visibility_service, make_org):
    make_org(ORG_X, external_mentor_visibility_policy="ALL", external_mentee_visibility_policy="CURRENT")
    viewer = Viewer(user_id="alice", organization_id=ORG_X)

    assert visibility_service.evaluate_access(viewer, VisibilitySubject(SubjectKind.MENTOR, ORG_Z, "ALL")) is True
    assert visibility_service.evaluate_access(viewer, VisibilitySubject(SubjectKind.MENTEE, ORG_Z, "ALL")) is False


def test_viewer_without_policy_row_uses_default_organization(visibility_service, make_org):
    make_org(DEFAULT_ORG, external_mentor_visibility_policy="ALL")
    viewer = Viewer(user_id="alice", organization_id=ORG_X)

    assert visibility_service.evaluate_access(viewer, VisibilitySubject(SubjectKind.MENTOR, ORG_Z, "ALL")) is True


def test_missing_default_policy_is_reported(visibility_service):
    viewer = Viewer(user_id="alice", organization_id=ORG_X)
    with pytest.raises(ProfileIncompleteError) as exc_info:
        visibility_service.evaluate_access(viewer, VisibilitySubject(SubjectKind.MENTOR, ORG_Z, "ALL"))
    assert exc_info.value.message == ErrorMessages.ORG_POLICY_NOT_CONFIGURED


def test_pending_policy_is_not_used_until_propagated(db, visibility_service, make_org):
    org_extension = make_org(ORG_X)
    org_extension.external_mentor_visibility_policy = "ALL"
    org_extension.policy_version = 2
    db.commit()
    viewer = Viewer(user_id="alice", organization_id=ORG_X)

    assert visibility_service.evaluate_access(viewer, VisibilitySubject(SubjectKind.MENTOR, ORG_Z, "ALL")) is False


def test_stale_profile_snapshot_is_logged(caplog, visibility_service, make_org, make_profile):
    make_org(ORG_X)
    stale = make_profile("bob", ORG_X, is_mentor=True, policy_version=0)
    viewer = Viewer(user_id="alice", organization_id=ORG_X)

    with caplog.at_level(logging.WARNING):
        assert visibility_service.can_view_profile(viewer, stale) is True
    assert "lags organization" in caplog.text


def test_resolve_viewer_requires_profile(visibility_service):
    with pytest.raises(NotFoundError):
        visibility_service.resolve_viewer("ghost")


# --- sessions ---

@pytest.fixture
def sessions(make_org, make_profile, make_session):
    make_org(ORG_X)
    make_org(ORG_Z, external_session_visibility_policy="ALL")
    make_profile("mia", ORG_X, is_mentor=True)
    make_profile("alice", ORG_X)
    make_profile("zed", ORG_Z)
    return {
        "public": make_session("Intro", "mia", ORG_X, visibility="ALL", visible_to_organizations=[ORG_X]),
        "private": make_session("One on one", "mia", ORG_X, session_type="PRIVATE", visibility="ALL"),
        "enrolled_private": make_session("Cohort", "mia", ORG_X, session_type="PRIVATE", attendees=["alice"]),
        "closed": make_session("Internal", "mia", ORG_X, visibility="CURRENT"),
    }


def test_mentor_and_creator_always_see_session(visibility_service, sessions, make_session):
    assert visibility_service.can_view_session("mia", sessions["private"].id) is True
    other = make_session("Hosted", "someone", ORG_Y, session_type="PRIVATE", created_by="alice")
    assert visibility_service.can_view_session("alice", other.id) is True


def test_enrolled_attendee_sees_private_session(visibility_service, sessions):
    assert visibility_service.is_enrolled("alice", sessions["enrolled_private"].id) is True
    assert visibility_service.can_view_session("alice", sessions["enrolled_private"].id) is True


def test_private_session_hidden_from_same_org_stranger(visibility_service, sessions):
    assert visibility_service.can_view_session("alice", sessions["private"].id) is False


def test_public_session_follows_viewer_policy(visibility_service, sessions):
    assert visibility_service.can_view_session("alice", sessions["public"].id) is True
    assert visibility_service.can_view_session("zed", sessions["public"].id) is True
    assert visibility_service.can_view_session("zed", sessions["closed"].id) is False


def test_missing_session(visibility_service, sessions):
    with pytest.raises(NotFoundError) as exc_info:
        visibility_service.can_view_session("alice", 9999)
    assert exc_info.value.message == ErrorMessages.SESSION_NOT_FOUND


def test_list_sessions_same_org_viewer(visibility_service, sessions, make_session):
    make_session("Elsewhere", "yan", ORG_Y)

    count, rows = visibility_service.list_sessions("alice")

    assert count == 3
    assert {row.title for row in rows} == {"Intro", "Cohort", "Internal"}


# --- listings ---

@pytest.fixture
def directory_of_people(make_org, make_profile):
    make_org(ORG_X)
    make_profile("alice", ORG_X, name="Alice")
    make_profile("mentor-ann", ORG_X, is_mentor=True, name="Ann")
    make_profile("mentor-bo", ORG_X, is_mentor=True, name="Bo")
    make_profile("mentee-cy", ORG_X, name="Cy")
    make_profile("mentor-yan", ORG_Y, is_mentor=True, name="Yan", visibility="ALL", visible_to_organizations=[ORG_X, ORG_Y])


def test_list_mentors_current_policy(visibility_service, directory_of_people):
    count, mentors = visibility_service.list_mentors("alice")
    assert count == 2
    assert [mentor.user_id for mentor in mentors] == ["mentor-ann", "mentor-bo"]


def test_list_mentors_search_and_paging(visibility_service, directory_of_people):
    count, mentors = visibility_service.list_mentors("alice", search="an")
    assert count == 1
    assert mentors[0].name == "Ann"

    count, mentors = visibility_service.list_mentors("alice", page=2, page_size=1)
    assert count == 2
    assert [mentor.name for mentor in mentors] == ["Bo"]


def test_list_mentors_allowlist_narrows(visibility_service, directory_of_people):
    count, mentors = visibility_service.list_mentors("alice", org_allowlist=[ORG_Y])
    assert count == 0
    assert mentors == []


def test_list_mentees_excludes_viewer(visibility_service, directory_of_people):
    count, mentees = visibility_service.list_mentees("alice")
    assert count == 1
    assert mentees[0].user_id == "mentee-cy"
