# src/routers/org_admin_router.py
from fastapi import APIRouter, Depends, HTTPException

from ..services import PolicyService, ProfileService
from ..dependencies.auth_dependencies import require_admin, require_org_admin
from ..dependencies.service_dependencies import get_policy_service, get_profile_service
from ..schemas import OrganizationChange, OrgPolicyUpdate, TokenUser
from ..security import get_current_user
from ..exceptions import BusinessLogicError
from ..utils.responses import to_json_response

router = APIRouter(prefix="/api/org-admin", tags=["organization admin"])

@router.put("/policies")
async def set_org_policies(
    payload: OrgPolicyUpdate,
    current_user: TokenUser = Depends(require_org_admin),
    policy_service: PolicyService = Depends(get_policy_service)
):
    """Update the visibility policies of the administrator's organization"""
    try:
        result = policy_service.set_org_policies(
            current_user.organization_id,
            payload.model_dump(exclude_none=True, mode="json"),
            current_user.id
        )
        return to_json_response(result)
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/policies")
async def get_org_policies(
    current_user: TokenUser = Depends(get_current_user),
    policy_service: PolicyService = Depends(get_policy_service)
):
    """Visibility policies of the current user's organization"""
    if not current_user.organization_id:
        raise HTTPException(status_code=400, detail="ORGANIZATION_NOT_FOUND")
    return to_json_response(policy_service.get_org_policies(current_user.organization_id))

@router.post("/policies/reconcile")
async def reconcile_policies(
    current_user: TokenUser = Depends(require_admin),
    policy_service: PolicyService = Depends(get_policy_service)
):
    """Re-run propagation for organizations whose latest policy is not active yet"""
    outcome = policy_service.reconcile_pending()
    return {"reconciled": outcome}

@router.put("/organization")
async def change_organization(
    payload: OrganizationChange,
    current_user: TokenUser = Depends(require_admin),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Move a user to another organization"""
    try:
        return to_json_response(profile_service.change_organization(payload.user_id, payload.organization_id))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
