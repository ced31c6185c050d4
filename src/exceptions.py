# src/exceptions.py
from typing import Optional


class BusinessLogicError(Exception):
    """Base exception for business logic errors"""
    status_code = 400
    default_message = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

class NotFoundError(BusinessLogicError):
    """Raised when a user, connection or policy is absent"""
    status_code = 404
    default_message = "NOT_FOUND"

class AlreadyExistsError(BusinessLogicError):
    """Raised when a duplicate request or connection is attempted"""
    status_code = 400
    default_message = "ALREADY_EXISTS"

class InvariantViolationError(BusinessLogicError):
    """Raised when only one row of a connection pair is found"""
    status_code = 500
    default_message = "CONNECTION_PAIR_TORN"

class UnauthorizedError(BusinessLogicError):
    """Raised when policy denies access. Rendered exactly like a missing user."""
    status_code = 404
    default_message = "USER_NOT_FOUND"

class ProfileIncompleteError(BusinessLogicError):
    """Raised when the default organization or its policy is not configured"""
    status_code = 400
    default_message = "DEFAULT_ORG_ID_NOT_SET"

class DirectoryUnavailableError(BusinessLogicError):
    """Raised when the organization directory cannot be reached"""
    status_code = 503
    default_message = "ORGANIZATION_DIRECTORY_UNAVAILABLE"

class PolicyPropagationError(BusinessLogicError):
    """Raised when profile snapshots could not be refreshed for an organization"""
    status_code = 500
    default_message = "POLICY_PROPAGATION_FAILED"
