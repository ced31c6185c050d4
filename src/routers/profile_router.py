# src/routers/profile_router.py
from fastapi import APIRouter, Depends, HTTPException

from ..services import ProfileService
from ..dependencies.service_dependencies import get_profile_service
from ..schemas import ProfileCreate, ProfileUpdate, TokenUser
from ..security import get_current_user
from ..exceptions import BusinessLogicError
from ..utils.responses import to_json_response

router = APIRouter(prefix="/api", tags=["profiles"])

@router.post("/profile")
async def create_profile(
    profile_data: ProfileCreate,
    current_user: TokenUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Create the current user's mentor or mentee profile"""
    try:
        return to_json_response(profile_service.create_profile(current_user.id, current_user.organization_id, profile_data))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/profile")
async def get_profile(
    current_user: TokenUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Get the current user's profile"""
    return to_json_response(profile_service.get_profile_result(current_user.id))

@router.patch("/profile")
async def update_profile(
    profile_data: ProfileUpdate,
    current_user: TokenUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Update the current user's profile"""
    try:
        return to_json_response(profile_service.update_profile(current_user.id, profile_data))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
