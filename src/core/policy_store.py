# src/core/policy_store.py
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ..config import get_settings
from ..constants import ErrorMessages
from ..exceptions import BusinessLogicError, NotFoundError, ProfileIncompleteError
from ..models import ORG_POLICY_FIELDS, OrganizationExtension, UserExtension, VisibilityPolicy
from .visibility import VIEWER_POLICY_FIELDS, SubjectKind

logger = logging.getLogger(__name__)


class PolicyStore:
    """Access to the one-row-per-organization visibility policy record."""

    def __init__(self, db: Session, default_org_id: Optional[str] = None):
        self.db = db
        self.settings = get_settings()
        self.default_org_id = default_org_id

    def get_by_org_id(self, organization_id: str) -> Optional[OrganizationExtension]:
        return self.db.query(OrganizationExtension).filter(
            OrganizationExtension.organization_id == organization_id,
            OrganizationExtension.deleted_at.is_(None)
        ).first()

    def find_or_insert(self, organization_id: str, name: Optional[str] = None) -> OrganizationExtension:
        """Returns the organization's policy row, creating it from the default policies on first use."""
        if not organization_id:
            raise NotFoundError(ErrorMessages.ORGANIZATION_NOT_FOUND)

        existing = self.get_by_org_id(organization_id)
        if existing:
            return existing

        defaults = self.settings.default_org_policies()
        org_extension = OrganizationExtension(
            organization_id=organization_id,
            name=name,
            policy_version=1,
            propagated_version=1,
            active_policies=dict(defaults),
            **defaults
        )
        try:
            self.db.add(org_extension)
            self.db.commit()
        except IntegrityError:
            # Another request inserted it first
            self.db.rollback()
            existing = self.get_by_org_id(organization_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(org_extension)
        logger.info(f"Organization extension created for organization {organization_id}")
        return org_extension

    def resolve_extension(self, organization_id: Optional[str]) -> OrganizationExtension:
        """
        Finds the policy row governing members of ``organization_id``.
        Falls back to the default organization's row; raises ProfileIncompleteError when neither exists.
        """
        org_extension = self.get_by_org_id(organization_id) if organization_id else None
        if org_extension is not None:
            return org_extension

        if not self.default_org_id:
            raise ProfileIncompleteError(ErrorMessages.DEFAULT_ORG_ID_NOT_SET)
        default_extension = self.get_by_org_id(self.default_org_id)
        if default_extension is None:
            raise ProfileIncompleteError(ErrorMessages.ORG_POLICY_NOT_CONFIGURED)
        logger.debug(f"Organization {organization_id} has no policy row, using default organization {self.default_org_id}")
        return default_extension

    def resolve_viewer_policy(self, organization_id: Optional[str], kind: SubjectKind) -> Optional[str]:
        """Returns the active external visibility policy members of ``organization_id`` see ``kind`` with."""
        org_extension = self.resolve_extension(organization_id)
        if not org_extension.is_policy_active:
            logger.info(
                f"Organization {org_extension.organization_id} policy version {org_extension.policy_version} "
                f"is still propagating, serving version {org_extension.propagated_version}"
            )
        return org_extension.active_policy(VIEWER_POLICY_FIELDS[kind])

    def upsert_policies(self, organization_id: str, policies: Dict[str, Any], actor_id: Optional[str] = None) -> Tuple[OrganizationExtension, bool]:
        """
        Writes policy fields for an organization.

        Returns:
            Tuple[OrganizationExtension, bool]: The row and whether any policy value changed.
        """
        updates = self._validate_policies(policies)
        org_extension = self.get_by_org_id(organization_id)

        if org_extension is None:
            defaults = self.settings.default_org_policies()
            org_extension = OrganizationExtension(
                organization_id=organization_id,
                policy_version=1,
                propagated_version=0,
                active_policies=dict(defaults),
                created_by=actor_id,
                updated_by=actor_id,
                **{**defaults, **updates}
            )
            self.db.add(org_extension)
            changed = True
        else:
            changed = any(getattr(org_extension, field) != value for field, value in updates.items())
            if changed:
                for field, value in updates.items():
                    setattr(org_extension, field, value)
                org_extension.policy_version = (org_extension.policy_version or 0) + 1
                org_extension.updated_by = actor_id
                self.db.add(org_extension)

        self.db.commit()
        self.db.refresh(org_extension)
        if changed:
            logger.info(f"Organization {organization_id} policies updated to version {org_extension.policy_version}")
        return org_extension, changed

    def mark_propagated(self, organization_id: str, version: int, policies: Dict[str, Any]) -> bool:
        """Activates ``policies`` as ``version`` unless a newer version was already activated."""
        updated = self.db.query(OrganizationExtension).filter(
            OrganizationExtension.organization_id == organization_id,
            OrganizationExtension.deleted_at.is_(None),
            OrganizationExtension.propagated_version < version
        ).update(
            {"propagated_version": version, "active_policies": dict(policies)},
            synchronize_session=False
        )
        self.db.commit()
        return updated > 0

    def pending_propagation(self) -> List[OrganizationExtension]:
        """Organizations whose latest policy version has not reached their profiles yet."""
        return self.db.query(OrganizationExtension).filter(
            OrganizationExtension.deleted_at.is_(None),
            OrganizationExtension.propagated_version < OrganizationExtension.policy_version
        ).order_by(OrganizationExtension.updated_at).all()

    def is_profile_stale(self, profile: UserExtension) -> bool:
        if not profile.organization_id:
            return False
        org_extension = self.get_by_org_id(profile.organization_id)
        if org_extension is None:
            return False
        return (profile.policy_version or 0) < (org_extension.propagated_version or 0)

    @staticmethod
    def _validate_policies(policies: Dict[str, Any]) -> Dict[str, str]:
        updates = {}
        for field, value in policies.items():
            if field not in ORG_POLICY_FIELDS or value is None:
                continue
            try:
                updates[field] = VisibilityPolicy(value).value
            except ValueError:
                raise BusinessLogicError(ErrorMessages.INVALID_VISIBILITY_POLICY)
        return updates
