from datetime import datetime
from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field
from .constants import BusinessRules
from .models import VisibilityPolicy

# --- Authentication Schemas ---
class TokenUser(BaseModel):
    id: str
    organization_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

# --- Result Envelope ---
class OperationResult(BaseModel):
    success: bool
    status_code: int
    message: str
    result: Any = None

class PaginatedResult(BaseModel):
    count: int
    data: List[Any] = Field(default_factory=list)

# --- Input Models ---
class ConnectionInitiate(BaseModel):
    user_id: str = Field(..., min_length=1, description="The user to send the connection request to.")
    message: Optional[str] = Field(None, max_length=BusinessRules.MAX_REQUEST_MESSAGE_LENGTH, description="Optional message shown to the recipient.")

class ConnectionAction(BaseModel):
    user_id: str = Field(..., min_length=1, description="The user who sent the connection request.")

class OrgPolicyUpdate(BaseModel):
    mentor_visibility_policy: Optional[VisibilityPolicy] = None
    mentee_visibility_policy: Optional[VisibilityPolicy] = None
    session_visibility_policy: Optional[VisibilityPolicy] = None
    external_mentor_visibility_policy: Optional[VisibilityPolicy] = None
    external_mentee_visibility_policy: Optional[VisibilityPolicy] = None
    external_session_visibility_policy: Optional[VisibilityPolicy] = None

class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=BusinessRules.MIN_NAME_LENGTH, max_length=BusinessRules.MAX_NAME_LENGTH)
    designation: Optional[str] = None
    about: Optional[str] = None
    is_mentor: bool = False
    settings: Optional[Dict[str, Any]] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=BusinessRules.MIN_NAME_LENGTH, max_length=BusinessRules.MAX_NAME_LENGTH)
    designation: Optional[str] = None
    about: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None

class OrganizationChange(BaseModel):
    user_id: str
    organization_id: str

# --- Output Models ---
class ConnectionResponse(BaseModel):
    id: int
    user_id: str
    friend_id: str
    status: str
    meta: Optional[Dict[str, Any]] = None
    created_by: str
    updated_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "arbitrary_types_allowed": True
    }

class PublicProfile(BaseModel):
    user_id: str
    name: str
    designation: Optional[str] = None
    about: Optional[str] = None
    organization_id: Optional[str] = None
    is_mentor: bool = False

    model_config = {
        "from_attributes": True
    }

class OrgPolicyResponse(BaseModel):
    organization_id: str
    name: Optional[str] = None
    mentor_visibility_policy: str
    mentee_visibility_policy: str
    session_visibility_policy: str
    external_mentor_visibility_policy: str
    external_mentee_visibility_policy: str
    external_session_visibility_policy: str
    policy_version: int
    propagated_version: int
    policy_active: bool = True

    model_config = {
        "from_attributes": True
    }

class SessionSummary(BaseModel):
    id: int
    title: str
    mentor_id: Optional[str] = None
    mentor_organization_id: Optional[str] = None
    type: str
    status: str
    start_date: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }
