# src/core/org_directory.py
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from ..config import get_settings
from ..exceptions import DirectoryUnavailableError

logger = logging.getLogger(__name__)

ORGANIZATION_READ = "v1/organization/read"


class OrganizationDetails(BaseModel):
    id: str
    name: Optional[str] = None
    related_orgs: List[str] = Field(default_factory=list)


class OrganizationDirectory(ABC):
    """Read-only view of the external organization directory."""

    @abstractmethod
    def fetch_org_details(self, organization_id: str) -> Optional[OrganizationDetails]:
        """Details of ``organization_id``, or None when the directory does not know it."""

    def get_related_orgs(self, organization_id: str) -> List[str]:
        """Returns the organizations affiliated with ``organization_id`` (excluding itself)."""
        details = self.fetch_org_details(organization_id)
        if details is None:
            return []
        return [org_id for org_id in details.related_orgs if org_id != organization_id]


class HttpOrganizationDirectory(OrganizationDirectory):
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, client: Optional[httpx.Client] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.ORG_DIRECTORY_URL).rstrip("/")
        self.client = client or httpx.Client(timeout=timeout or settings.ORG_DIRECTORY_TIMEOUT_SECONDS)

    def fetch_org_details(self, organization_id: str) -> Optional[OrganizationDetails]:
        url = f"{self.base_url}/{ORGANIZATION_READ}"
        try:
            response = self.client.get(url, params={"organization_id": organization_id})
        except httpx.RequestError as e:
            logger.warning(f"Organization directory request failed for {organization_id}: {e}")
            raise DirectoryUnavailableError()

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.warning(f"Organization directory returned {response.status_code} for {organization_id}")
            raise DirectoryUnavailableError()
        if response.status_code >= 400:
            logger.error(f"Organization directory rejected lookup of {organization_id}: {response.status_code}")
            return None

        result = (response.json() or {}).get("result")
        if not result:
            return None
        return OrganizationDetails(
            id=str(result.get("id", organization_id)),
            name=result.get("name"),
            related_orgs=[str(org_id) for org_id in (result.get("related_orgs") or [])],
        )

    def close(self):
        self.client.close()


class StaticOrganizationDirectory(OrganizationDirectory):
    """Directory backed by a fixed mapping, used when no directory service is deployed."""

    def __init__(self, organizations: Optional[Dict[str, OrganizationDetails]] = None):
        self.organizations = dict(organizations or {})

    def add(self, organization_id: str, name: Optional[str] = None, related_orgs: Optional[List[str]] = None):
        self.organizations[organization_id] = OrganizationDetails(
            id=organization_id, name=name, related_orgs=list(related_orgs or [])
        )

    def fetch_org_details(self, organization_id: str) -> Optional[OrganizationDetails]:
        return self.organizations.get(organization_id)
