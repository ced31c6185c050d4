# src/dependencies/service_dependencies.py
from functools import lru_cache
from fastapi import Depends
from sqlalchemy.orm import Session
from ..config import get_settings
from ..database import get_db
from ..core.org_directory import HttpOrganizationDirectory, OrganizationDirectory
from ..core.policy_store import PolicyStore
from ..services.connection_service import ConnectionService
from ..services.policy_service import PolicyService
from ..services.profile_service import ProfileService
from ..services.visibility_service import VisibilityService

@lru_cache()
def get_org_directory() -> OrganizationDirectory:
    return HttpOrganizationDirectory()

def get_policy_store(db: Session = Depends(get_db)) -> PolicyStore:
    return PolicyStore(db, default_org_id=get_settings().DEFAULT_ORG_ID)

def get_visibility_service(db: Session = Depends(get_db), policy_store: PolicyStore = Depends(get_policy_store)) -> VisibilityService:
    return VisibilityService(db, policy_store)

def get_profile_service(
    db: Session = Depends(get_db),
    policy_store: PolicyStore = Depends(get_policy_store),
    directory: OrganizationDirectory = Depends(get_org_directory),
) -> ProfileService:
    return ProfileService(db, policy_store, directory)

def get_connection_service(
    db: Session = Depends(get_db),
    visibility_service: VisibilityService = Depends(get_visibility_service),
    profile_service: ProfileService = Depends(get_profile_service),
) -> ConnectionService:
    return ConnectionService(db, visibility_service, profile_service)

def get_policy_service(
    db: Session = Depends(get_db),
    policy_store: PolicyStore = Depends(get_policy_store),
    directory: OrganizationDirectory = Depends(get_org_directory),
) -> PolicyService:
    return PolicyService(db, policy_store, directory)
