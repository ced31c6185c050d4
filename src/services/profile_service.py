# src/services/profile_service.py
from typing import Dict, Any, Iterable, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import datetime, timezone

from ..models import ORG_POLICY_FIELDS, OrganizationExtension, UserExtension
from ..core.org_directory import OrganizationDirectory
from ..core.policy_store import PolicyStore
from ..constants import ErrorMessages, ResponseMessages
from ..exceptions import BusinessLogicError, ProfileIncompleteError
from ..schemas import OperationResult, ProfileCreate, ProfileUpdate, PublicProfile
from ..utils.responses import failure_response, success_response
from .policy_service import build_profile_snapshot, needs_related_orgs
import logging

logger = logging.getLogger(__name__)

class ProfileService:
    def __init__(self, db: Session, policy_store: PolicyStore, directory: OrganizationDirectory):
        self.db = db
        self.policy_store = policy_store
        self.directory = directory

    # --- Reads ---

    def get_profile(self, user_id: str) -> Optional[UserExtension]:
        return self.db.query(UserExtension).filter(
            UserExtension.user_id == user_id,
            UserExtension.deleted_at.is_(None)
        ).first()

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, UserExtension]:
        """Live profiles keyed by user id; unknown ids are simply absent."""
        user_ids = list(set(user_ids))
        if not user_ids:
            return {}
        profiles = self.db.query(UserExtension).filter(
            UserExtension.user_id.in_(user_ids),
            UserExtension.deleted_at.is_(None)
        ).all()
        return {profile.user_id: profile for profile in profiles}

    @staticmethod
    def redact(profile: UserExtension) -> Dict[str, Any]:
        """Public view of a profile, without the visibility snapshot or private settings"""
        return PublicProfile.model_validate(profile).model_dump()

    def public_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        profile = self.get_profile(user_id)
        return self.redact(profile) if profile else None

    def get_profile_result(self, user_id: str) -> OperationResult:
        profile = self.get_profile(user_id)
        if profile is None:
            return failure_response(status_code=404, message=ErrorMessages.USER_EXTENSION_NOT_FOUND)
        if self.policy_store.is_profile_stale(profile):
            logger.warning(f"Profile {user_id} carries policy version {profile.policy_version}, behind its organization")
        return success_response(status_code=200, message=ResponseMessages.PROFILE_FETCHED, result=self.redact(profile))

    # --- Writes ---

    def create_profile(self, user_id: str, organization_id: Optional[str], data: ProfileCreate) -> OperationResult:
        """Creates a mentor or mentee extension stamped with its organization's visibility snapshot"""
        organization_id = organization_id or self.policy_store.default_org_id
        if not organization_id:
            raise ProfileIncompleteError(ErrorMessages.DEFAULT_ORG_ID_NOT_SET)
        if self.get_profile(user_id):
            return failure_response(status_code=400, message=ErrorMessages.DUPLICATE_PROFILE)

        try:
            snapshot = self._snapshot_for(organization_id)
        except BusinessLogicError as e:
            return failure_response(status_code=e.status_code, message=e.message)

        profile = UserExtension(
            user_id=user_id,
            organization_id=organization_id,
            name=data.name,
            designation=data.designation,
            about=data.about,
            is_mentor=data.is_mentor,
            settings=data.settings,
            **snapshot
        )
        try:
            self.db.add(profile)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent profile creation for user {user_id}: {e}")
            return failure_response(status_code=400, message=ErrorMessages.DUPLICATE_PROFILE)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error creating profile for user {user_id}: {e}")
            raise BusinessLogicError(ErrorMessages.PROFILE_STORAGE_ERROR, status_code=500)

        self.db.refresh(profile)
        logger.info(f"{'Mentor' if profile.is_mentor else 'Mentee'} profile created for user {user_id} in organization {organization_id}")
        return success_response(status_code=201, message=ResponseMessages.PROFILE_CREATED, result=self.redact(profile))

    def update_profile(self, user_id: str, data: ProfileUpdate) -> OperationResult:
        profile = self.get_profile(user_id)
        if profile is None:
            return failure_response(status_code=404, message=ErrorMessages.USER_EXTENSION_NOT_FOUND)

        try:
            for key, value in data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(profile, key, value)
            profile.updated_at = datetime.now(timezone.utc)
            self.db.add(profile)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error updating profile {user_id}: {e}")
            raise BusinessLogicError(ErrorMessages.PROFILE_STORAGE_ERROR, status_code=500)

        self.db.refresh(profile)
        return success_response(status_code=200, message=ResponseMessages.PROFILE_UPDATED, result=self.redact(profile))

    def change_organization(self, user_id: str, organization_id: str) -> OperationResult:
        """Moves a profile to another organization and re-stamps its visibility snapshot"""
        profile = self.get_profile(user_id)
        if profile is None:
            return failure_response(status_code=404, message=ErrorMessages.USER_EXTENSION_NOT_FOUND)

        try:
            snapshot = self._snapshot_for(organization_id)
        except BusinessLogicError as e:
            return failure_response(status_code=e.status_code, message=e.message)

        previous = profile.organization_id
        try:
            profile.organization_id = organization_id
            for key, value in snapshot.items():
                setattr(profile, key, value)
            self.db.add(profile)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error moving profile {user_id} to organization {organization_id}: {e}")
            raise BusinessLogicError(ErrorMessages.PROFILE_STORAGE_ERROR, status_code=500)

        self.db.refresh(profile)
        logger.info(f"Profile {user_id} moved from organization {previous} to {organization_id}")
        return success_response(status_code=200, message=ResponseMessages.UPDATE_ORG_SUCCESSFULLY, result=self.redact(profile))

    def _snapshot_for(self, organization_id: str) -> Dict[str, Any]:
        # Directory lookups stay outside the profile write
        details = self.directory.fetch_org_details(organization_id)
        if details is None:
            raise BusinessLogicError(ErrorMessages.ORGANIZATION_NOT_FOUND, status_code=404)

        org_extension = self.policy_store.find_or_insert(organization_id, details.name)
        policies = self._active_policies(org_extension)
        related_orgs = [org_id for org_id in details.related_orgs if org_id != organization_id] if needs_related_orgs(policies) else []
        return build_profile_snapshot(organization_id, policies, related_orgs, org_extension.propagated_version)

    @staticmethod
    def _active_policies(org_extension: OrganizationExtension) -> Dict[str, Any]:
        return {field: org_extension.active_policy(field) for field in ORG_POLICY_FIELDS}
