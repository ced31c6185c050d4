# src/services/policy_service.py
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..config import get_settings
from ..constants import ErrorMessages, ResponseMessages
from ..core.org_directory import OrganizationDirectory
from ..core.policy_store import PolicyStore
from ..exceptions import BusinessLogicError, DirectoryUnavailableError, PolicyPropagationError
from ..models import MentoringSession, OrganizationExtension, UserExtension, VisibilityPolicy
from ..schemas import OperationResult, OrgPolicyResponse
from ..utils.responses import failure_from_error, failure_response, success_response
from ..utils.retry import call_with_retries

logger = logging.getLogger(__name__)

# Failures worth retrying; anything else aborts propagation immediately
TRANSIENT_ERRORS = (DirectoryUnavailableError, OperationalError)
PROPAGATION_ERRORS = TRANSIENT_ERRORS + (PolicyPropagationError,)

OPEN_POLICIES = (VisibilityPolicy.ASSOCIATED.value, VisibilityPolicy.ALL.value)


def needs_related_orgs(policies: Dict[str, Any]) -> bool:
    return any(value in OPEN_POLICIES for value in policies.values())


def build_visible_to_organizations(organization_id: str, related_orgs: Iterable[str]) -> list:
    return sorted(set(related_orgs) | {organization_id})


def build_profile_snapshot(organization_id: str, policies: Dict[str, Any], related_orgs: Iterable[str], version: int) -> Dict[str, Any]:
    """Column values a profile of ``organization_id`` carries for the given policy set."""
    return {
        "mentor_visibility": policies.get("mentor_visibility_policy"),
        "mentee_visibility": policies.get("mentee_visibility_policy"),
        "external_mentor_visibility": policies.get("external_mentor_visibility_policy"),
        "external_mentee_visibility": policies.get("external_mentee_visibility_policy"),
        "external_session_visibility": policies.get("external_session_visibility_policy"),
        "visible_to_organizations": build_visible_to_organizations(organization_id, related_orgs),
        "policy_version": version,
    }


class PolicyService:
    """
    Writes organization visibility policies and fans them out to every member profile.

    A policy change is committed first and becomes active for read paths only after the
    fan-out has refreshed all profile snapshots (``PolicyStore.mark_propagated``). When the
    fan-out keeps failing the write stays in place and the reconciler picks it up later.
    """

    def __init__(self, db: Session, policy_store: PolicyStore, directory: OrganizationDirectory,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db
        self.policy_store = policy_store
        self.directory = directory
        self.settings = get_settings()
        self.sleep = sleep

    def set_org_policies(self, organization_id: str, policies: Dict[str, Any], actor_id: Optional[str] = None) -> OperationResult:
        try:
            org_extension, changed = self.policy_store.upsert_policies(organization_id, policies, actor_id)
        except BusinessLogicError as e:
            return failure_from_error(e)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store policies for organization {organization_id}: {e}")
            return failure_response(status_code=500, message=ErrorMessages.PROFILE_STORAGE_ERROR)

        if not changed and org_extension.is_policy_active:
            return success_response(
                status_code=200,
                message=ResponseMessages.ORG_POLICIES_SET_SUCCESSFULLY,
                result={**self._policy_payload(org_extension), "propagation": "not_required"}
            )

        try:
            self.propagate(organization_id)
        except PROPAGATION_ERRORS as e:
            logger.error(
                f"Policy version {org_extension.policy_version} of organization {organization_id} "
                f"could not be propagated, leaving it to the reconciler: {e}"
            )
            self.db.refresh(org_extension)
            return success_response(
                status_code=200,
                message=ResponseMessages.ORG_POLICIES_SET_DEGRADED,
                result={**self._policy_payload(org_extension), "propagation": "degraded"}
            )

        self.db.refresh(org_extension)
        return success_response(
            status_code=200,
            message=ResponseMessages.ORG_POLICIES_SET_SUCCESSFULLY,
            result={**self._policy_payload(org_extension), "propagation": "complete"}
        )

    def get_org_policies(self, organization_id: str) -> OperationResult:
        org_extension = self.policy_store.get_by_org_id(organization_id)
        if org_extension is None:
            return failure_response(status_code=404, message=ErrorMessages.ORG_EXTENSION_NOT_FOUND)
        return success_response(
            status_code=200,
            message=ResponseMessages.ORG_POLICIES_FETCHED_SUCCESSFULLY,
            result=self._policy_payload(org_extension)
        )

    def propagate(self, organization_id: str) -> bool:
        """
        Refreshes the snapshot of every profile and session of ``organization_id`` with its
        latest policy version, retrying transient failures, then activates that version.

        Returns:
            bool: Whether this call activated the version (False if a newer one already was).
        """
        org_extension = self.policy_store.get_by_org_id(organization_id)
        if org_extension is None:
            raise PolicyPropagationError(ErrorMessages.ORG_EXTENSION_NOT_FOUND)

        version = org_extension.policy_version
        policies = org_extension.policies()

        call_with_retries(
            lambda: self._propagate_once(organization_id, policies, version),
            retry_on=TRANSIENT_ERRORS,
            max_attempts=self.settings.POLICY_PROPAGATION_MAX_ATTEMPTS,
            base_delay=self.settings.POLICY_PROPAGATION_BASE_DELAY_SECONDS,
            max_delay=self.settings.POLICY_PROPAGATION_MAX_DELAY_SECONDS,
            description=f"Policy propagation for organization {organization_id}",
            sleep=self.sleep,
        )

        activated = self.policy_store.mark_propagated(organization_id, version, policies)
        if activated:
            logger.info(f"Organization {organization_id} policy version {version} is active")
        return activated

    def _propagate_once(self, organization_id: str, policies: Dict[str, Any], version: int) -> int:
        # Directory lookup happens before the bulk update opens its write
        related_orgs = self.directory.get_related_orgs(organization_id) if needs_related_orgs(policies) else []
        snapshot = build_profile_snapshot(organization_id, policies, related_orgs, version)

        # Rows already stamped with a newer version belong to a later propagation
        try:
            profiles = self.db.query(UserExtension).filter(
                UserExtension.organization_id == organization_id,
                UserExtension.policy_version <= version,
                UserExtension.deleted_at.is_(None)
            ).update(snapshot, synchronize_session=False)
            self.db.query(MentoringSession).filter(
                MentoringSession.mentor_organization_id == organization_id,
                MentoringSession.policy_version <= version,
                MentoringSession.deleted_at.is_(None)
            ).update(
                {
                    "visibility": policies.get("session_visibility_policy"),
                    "visible_to_organizations": snapshot["visible_to_organizations"],
                    "policy_version": version,
                },
                synchronize_session=False
            )
            self.db.commit()
        except OperationalError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Policy fan-out for organization {organization_id} failed: {e}")
            raise PolicyPropagationError()

        logger.info(f"Refreshed {profiles} profiles of organization {organization_id} to policy version {version}")
        return profiles

    def reconcile_pending(self) -> Dict[str, bool]:
        """Re-runs propagation for every organization whose latest policy is not active yet."""
        outcome = {}
        for org_extension in self.policy_store.pending_propagation():
            organization_id = org_extension.organization_id
            try:
                outcome[organization_id] = self.propagate(organization_id)
            except PROPAGATION_ERRORS as e:
                logger.error(f"Reconciliation of organization {organization_id} failed: {e}")
                outcome[organization_id] = False
        return outcome

    @staticmethod
    def _policy_payload(org_extension: OrganizationExtension) -> Dict[str, Any]:
        response = OrgPolicyResponse(
            organization_id=org_extension.organization_id,
            name=org_extension.name,
            policy_version=org_extension.policy_version,
            propagated_version=org_extension.propagated_version,
            policy_active=org_extension.is_policy_active,
            **org_extension.policies()
        )
        return response.model_dump()
