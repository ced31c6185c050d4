"""
Cross-organization visibility rules.

Everything in this module is pure: callers resolve the viewer's organization policy
(see ``PolicyStore``) and hand it in together with the subject being looked at.
The same rules are exposed twice, once as a per-record check (``evaluate_access``)
and once as a SQL predicate for listings (``VisibilityPredicate.to_clause``), and the
two must stay logically identical.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional

from sqlalchemy import and_, any_, false, or_

from ..models import MentoringSession, UserExtension, VisibilityPolicy

logger = logging.getLogger(__name__)


class SubjectKind(str, Enum):
    MENTOR = "mentor"
    MENTEE = "mentee"
    SESSION = "session"


# Viewer organization's policy column consulted for each kind of subject
VIEWER_POLICY_FIELDS = {
    SubjectKind.MENTOR: "external_mentor_visibility_policy",
    SubjectKind.MENTEE: "external_mentee_visibility_policy",
    SubjectKind.SESSION: "external_session_visibility_policy",
}


@dataclass(frozen=True)
class Viewer:
    user_id: str
    organization_id: Optional[str]
    is_mentor: bool = False


@dataclass(frozen=True)
class VisibilitySubject:
    kind: SubjectKind
    organization_id: Optional[str]
    visibility: Optional[str]
    visible_to_organizations: FrozenSet[str] = frozenset()

    @classmethod
    def from_profile(cls, profile: UserExtension, kind: Optional[SubjectKind] = None) -> "VisibilitySubject":
        """Builds a subject from a profile extension, as a mentor or a mentee."""
        if kind is None:
            kind = SubjectKind.MENTOR if profile.is_mentor else SubjectKind.MENTEE
        visibility = profile.mentor_visibility if kind == SubjectKind.MENTOR else profile.mentee_visibility
        return cls(
            kind=kind,
            organization_id=profile.organization_id,
            visibility=visibility,
            visible_to_organizations=frozenset(profile.visible_to_organizations or ()),
        )

    @classmethod
    def from_session(cls, session: MentoringSession) -> "VisibilitySubject":
        return cls(
            kind=SubjectKind.SESSION,
            organization_id=session.mentor_organization_id,
            visibility=session.visibility,
            visible_to_organizations=frozenset(session.visible_to_organizations or ()),
        )


def normalize_policy(policy: Any) -> Optional[VisibilityPolicy]:
    """Maps a stored policy value to the enum. Unknown values are treated as unset."""
    if policy is None or isinstance(policy, VisibilityPolicy):
        return policy
    try:
        return VisibilityPolicy(policy)
    except ValueError:
        logger.warning(f"Unknown visibility policy '{policy}' treated as unset")
        return None


def _is_associated(viewer_org_id: str, subject: VisibilitySubject) -> bool:
    return (
        viewer_org_id in subject.visible_to_organizations
        and subject.visibility is not None
        and subject.visibility != VisibilityPolicy.CURRENT.value
    )


def evaluate_access(viewer_org_id: Optional[str], policy: Any, subject: VisibilitySubject) -> bool:
    """
    Decides whether a viewer from ``viewer_org_id`` may see ``subject``.

    Args:
        viewer_org_id: Organization of the viewer.
        policy: The viewer organization's external visibility policy for ``subject.kind``.
        subject: The mentor, mentee or session being looked at.

    Returns:
        bool: True when the subject is discoverable by the viewer.
    """
    # 1. Same organization is always visible
    if viewer_org_id and subject.organization_id == viewer_org_id:
        return True

    # 2. Fail closed on missing configuration or an anonymous subject
    policy = normalize_policy(policy)
    if not viewer_org_id or policy is None or not subject.organization_id:
        return False

    # 3. Policy switch
    if policy == VisibilityPolicy.CURRENT:
        return False
    associated = _is_associated(viewer_org_id, subject)
    if policy == VisibilityPolicy.ASSOCIATED:
        return associated
    return associated or subject.visibility == VisibilityPolicy.ALL.value


@dataclass(frozen=True)
class SubjectColumns:
    organization_id: Any
    visibility: Any
    visible_to_organizations: Any


SUBJECT_COLUMNS = {
    SubjectKind.MENTOR: SubjectColumns(
        UserExtension.organization_id, UserExtension.mentor_visibility, UserExtension.visible_to_organizations
    ),
    SubjectKind.MENTEE: SubjectColumns(
        UserExtension.organization_id, UserExtension.mentee_visibility, UserExtension.visible_to_organizations
    ),
    SubjectKind.SESSION: SubjectColumns(
        MentoringSession.mentor_organization_id, MentoringSession.visibility, MentoringSession.visible_to_organizations
    ),
}


@dataclass(frozen=True)
class VisibilityPredicate:
    """List filter equivalent to ``evaluate_access`` evaluated as True."""
    kind: SubjectKind
    viewer_org_id: Optional[str]
    policy: Optional[VisibilityPolicy]
    org_allowlist: Optional[FrozenSet[str]] = None

    def matches(self, subject: VisibilitySubject) -> bool:
        if self.org_allowlist and subject.organization_id not in self.org_allowlist:
            return False
        return evaluate_access(self.viewer_org_id, self.policy, subject)

    def to_clause(self):
        """Renders the predicate as a SQLAlchemy boolean clause over the subject's table."""
        columns = SUBJECT_COLUMNS[self.kind]
        if not self.viewer_org_id:
            return false()

        same_org = columns.organization_id == self.viewer_org_id
        associated = and_(
            columns.organization_id.isnot(None),
            self.viewer_org_id == any_(columns.visible_to_organizations),
            columns.visibility != VisibilityPolicy.CURRENT.value,
        )

        if self.policy == VisibilityPolicy.ASSOCIATED:
            clause = or_(same_org, associated)
        elif self.policy == VisibilityPolicy.ALL:
            open_to_all = and_(
                columns.organization_id.isnot(None),
                columns.visibility == VisibilityPolicy.ALL.value,
            )
            clause = or_(same_org, associated, open_to_all)
        else:
            # CURRENT, or no policy configured
            clause = same_org

        if self.org_allowlist:
            clause = and_(columns.organization_id.in_(sorted(self.org_allowlist)), clause)
        return clause


def build_visibility_predicate(
    viewer_org_id: Optional[str],
    policy: Any,
    kind: SubjectKind,
    org_allowlist: Optional[Iterable[str]] = None,
) -> VisibilityPredicate:
    """Builds the listing predicate for a viewer. An empty allowlist does not narrow anything."""
    allowlist = frozenset(org_allowlist) if org_allowlist else None
    return VisibilityPredicate(
        kind=kind,
        viewer_org_id=viewer_org_id,
        policy=normalize_policy(policy),
        org_allowlist=allowlist,
    )
