# src/services/visibility_service.py
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import exists, or_
from sqlalchemy.orm import Session

from ..constants import ErrorMessages
from ..core.policy_store import PolicyStore
from ..core.visibility import (
    SubjectKind,
    Viewer,
    VisibilityPredicate,
    VisibilitySubject,
    build_visibility_predicate,
    evaluate_access,
)
from ..exceptions import NotFoundError
from ..models import MentoringSession, SessionAttendee, SessionType, UserExtension

logger = logging.getLogger(__name__)


class VisibilityService:
    """Applies the cross-organization visibility rules to stored mentors, mentees and sessions."""

    def __init__(self, db: Session, policy_store: PolicyStore):
        self.db = db
        self.policy_store = policy_store

    # --- Lookups ---

    def get_profile(self, user_id: str) -> Optional[UserExtension]:
        return self.db.query(UserExtension).filter(
            UserExtension.user_id == user_id,
            UserExtension.deleted_at.is_(None)
        ).first()

    def resolve_viewer(self, user_id: str) -> Viewer:
        profile = self.get_profile(user_id)
        if profile is None:
            raise NotFoundError(ErrorMessages.USER_EXTENSION_NOT_FOUND)
        return Viewer(user_id=profile.user_id, organization_id=profile.organization_id, is_mentor=bool(profile.is_mentor))

    def is_enrolled(self, user_id: str, session_id: int) -> bool:
        return self.db.query(
            exists().where(
                SessionAttendee.session_id == session_id,
                SessionAttendee.mentee_id == user_id
            )
        ).scalar()

    # --- Single record checks ---

    def evaluate_access(self, viewer: Viewer, subject: VisibilitySubject) -> bool:
        """Decides whether ``viewer`` may see ``subject`` under the viewer organization's policy."""
        if viewer.organization_id and viewer.organization_id == subject.organization_id:
            return True
        if not viewer.organization_id:
            return False
        policy = self.policy_store.resolve_viewer_policy(viewer.organization_id, subject.kind)
        return evaluate_access(viewer.organization_id, policy, subject)

    def can_view_profile(self, viewer: Viewer, profile: UserExtension, kind: Optional[SubjectKind] = None) -> bool:
        if viewer.user_id == profile.user_id:
            return True
        if self.policy_store.is_profile_stale(profile):
            logger.warning(f"Visibility snapshot of user {profile.user_id} lags organization {profile.organization_id} policy")
        return self.evaluate_access(viewer, VisibilitySubject.from_profile(profile, kind))

    def can_view_session(self, viewer_id: str, session_id: int) -> bool:
        """
        Session accessibility for a user.
        The session's mentor, its creator and enrolled attendees always keep access; a private
        session is hidden from everyone else; otherwise the viewer organization's policy decides.
        """
        session = self.db.query(MentoringSession).filter(
            MentoringSession.id == session_id,
            MentoringSession.deleted_at.is_(None)
        ).first()
        if session is None:
            raise NotFoundError(ErrorMessages.SESSION_NOT_FOUND)

        if viewer_id in (session.mentor_id, session.created_by):
            return True
        if self.is_enrolled(viewer_id, session.id):
            return True
        if session.type == SessionType.PRIVATE.value:
            return False

        viewer = self.resolve_viewer(viewer_id)
        return self.evaluate_access(viewer, VisibilitySubject.from_session(session))

    # --- Listing predicates ---

    def build_visibility_predicate(self, viewer: Viewer, kind: SubjectKind, org_allowlist: Optional[Iterable[str]] = None) -> VisibilityPredicate:
        policy = None
        if viewer.organization_id:
            policy = self.policy_store.resolve_viewer_policy(viewer.organization_id, kind)
        return build_visibility_predicate(viewer.organization_id, policy, kind, org_allowlist)

    def list_mentors(self, viewer_id: str, page: int = 1, page_size: int = 20,
                     org_allowlist: Optional[Iterable[str]] = None, search: Optional[str] = None) -> Tuple[int, List[UserExtension]]:
        return self._list_profiles(viewer_id, SubjectKind.MENTOR, page, page_size, org_allowlist, search)

    def list_mentees(self, viewer_id: str, page: int = 1, page_size: int = 20,
                     org_allowlist: Optional[Iterable[str]] = None, search: Optional[str] = None) -> Tuple[int, List[UserExtension]]:
        return self._list_profiles(viewer_id, SubjectKind.MENTEE, page, page_size, org_allowlist, search)

    def _list_profiles(self, viewer_id, kind, page, page_size, org_allowlist, search):
        viewer = self.resolve_viewer(viewer_id)
        predicate = self.build_visibility_predicate(viewer, kind, org_allowlist)

        query = self.db.query(UserExtension).filter(
            UserExtension.deleted_at.is_(None),
            UserExtension.is_active.is_(True),
            UserExtension.is_mentor.is_(kind == SubjectKind.MENTOR),
            UserExtension.user_id != viewer.user_id,
            predicate.to_clause()
        )
        if search:
            query = query.filter(UserExtension.name.ilike(f"%{search}%"))

        count = query.count()
        profiles = query.order_by(UserExtension.name, UserExtension.id).offset((page - 1) * page_size).limit(page_size).all()
        logger.debug(f"{kind.value} listing for {viewer_id}: {count} visible under {predicate.policy}")
        return count, profiles

    def list_sessions(self, viewer_id: str, page: int = 1, page_size: int = 20,
                      org_allowlist: Optional[Iterable[str]] = None) -> Tuple[int, List[MentoringSession]]:
        viewer = self.resolve_viewer(viewer_id)
        predicate = self.build_visibility_predicate(viewer, SubjectKind.SESSION, org_allowlist)

        enrolled = exists().where(
            SessionAttendee.session_id == MentoringSession.id,
            SessionAttendee.mentee_id == viewer.user_id
        )
        owned = or_(MentoringSession.mentor_id == viewer.user_id, MentoringSession.created_by == viewer.user_id)

        query = self.db.query(MentoringSession).filter(
            MentoringSession.deleted_at.is_(None),
            or_(owned, enrolled, predicate.to_clause()),
            or_(MentoringSession.type != SessionType.PRIVATE.value, owned, enrolled)
        )
        count = query.count()
        sessions = query.order_by(MentoringSession.start_date, MentoringSession.id).offset((page - 1) * page_size).limit(page_size).all()
        return count, sessions
