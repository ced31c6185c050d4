# src/routers/discovery_router.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..services import ProfileService, VisibilityService
from ..dependencies.service_dependencies import get_visibility_service
from ..schemas import PaginatedResult, SessionSummary, TokenUser
from ..security import get_current_user
from ..constants import ErrorMessages, ResponseMessages
from ..config import get_settings
from ..exceptions import BusinessLogicError
from ..utils.responses import failure_response, success_response, to_json_response

router = APIRouter(prefix="/api", tags=["discovery"])

MAX_PAGE_SIZE = get_settings().CONNECTIONS_MAX_PAGE_SIZE

@router.get("/mentors")
async def list_mentors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    organizations: Optional[List[str]] = Query(None, description="Only return mentors of these organizations"),
    current_user: TokenUser = Depends(get_current_user),
    visibility_service: VisibilityService = Depends(get_visibility_service)
):
    """Mentors the current user is allowed to discover"""
    try:
        count, profiles = visibility_service.list_mentors(current_user.id, page, limit, organizations, search)
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    data = [ProfileService.redact(profile) for profile in profiles]
    return to_json_response(success_response(message=ResponseMessages.MENTOR_LIST, result=PaginatedResult(count=count, data=data).model_dump()))

@router.get("/mentees")
async def list_mentees(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    organizations: Optional[List[str]] = Query(None, description="Only return mentees of these organizations"),
    current_user: TokenUser = Depends(get_current_user),
    visibility_service: VisibilityService = Depends(get_visibility_service)
):
    """Mentees the current user is allowed to discover"""
    try:
        count, profiles = visibility_service.list_mentees(current_user.id, page, limit, organizations, search)
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    data = [ProfileService.redact(profile) for profile in profiles]
    return to_json_response(success_response(message=ResponseMessages.MENTEE_LIST, result=PaginatedResult(count=count, data=data).model_dump()))

@router.get("/sessions")
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    organizations: Optional[List[str]] = Query(None, description="Only return sessions of these organizations"),
    current_user: TokenUser = Depends(get_current_user),
    visibility_service: VisibilityService = Depends(get_visibility_service)
):
    """Sessions the current user is allowed to see"""
    try:
        count, sessions = visibility_service.list_sessions(current_user.id, page, limit, organizations)
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    data = [SessionSummary.model_validate(session).model_dump() for session in sessions]
    return to_json_response(success_response(message=ResponseMessages.SESSION_LIST, result=PaginatedResult(count=count, data=data).model_dump()))

@router.get("/sessions/{session_id}/access")
async def session_access(
    session_id: int,
    current_user: TokenUser = Depends(get_current_user),
    visibility_service: VisibilityService = Depends(get_visibility_service)
):
    """Whether the current user may open a session. A hidden session reads as missing."""
    try:
        accessible = visibility_service.can_view_session(current_user.id, session_id)
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not accessible:
        return to_json_response(failure_response(status_code=404, message=ErrorMessages.SESSION_NOT_FOUND))
    return to_json_response(success_response(message=ResponseMessages.SESSION_ACCESSIBLE, result={"session_id": session_id}))
