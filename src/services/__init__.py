# src/services/__init__.py
from .connection_service import ConnectionService
from .policy_service import PolicyService
from .profile_service import ProfileService
from .visibility_service import VisibilityService

__all__ = ["ConnectionService", "PolicyService", "ProfileService", "VisibilityService"]
