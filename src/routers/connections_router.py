# src/routers/connections_router.py
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..services import ConnectionService
from ..dependencies.service_dependencies import get_connection_service
from ..schemas import ConnectionAction, ConnectionInitiate, TokenUser
from ..security import get_current_user
from ..exceptions import BusinessLogicError
from ..utils.responses import to_json_response

router = APIRouter(prefix="/api/connections", tags=["connections"])

@router.post("/initiate")
async def initiate_connection(
    payload: ConnectionInitiate,
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Send a connection request"""
    try:
        return to_json_response(connection_service.initiate(current_user.id, payload.user_id, payload.message))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.post("/accept")
async def accept_connection(
    payload: ConnectionAction,
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Accept a connection request sent by another user"""
    try:
        return to_json_response(connection_service.accept(current_user.id, payload.user_id))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.post("/reject")
async def reject_connection(
    payload: ConnectionAction,
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Reject a connection request sent by another user"""
    try:
        return to_json_response(connection_service.reject(current_user.id, payload.user_id))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/pending")
async def pending_connections(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Connection requests waiting for the current user"""
    try:
        return to_json_response(connection_service.pending(current_user.id, page, limit))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/info")
async def connection_info(
    user_id: str = Query(..., min_length=1),
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Relationship with another user and that user's public profile"""
    try:
        return to_json_response(connection_service.get_connection_info(current_user.id, user_id))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@router.get("/list")
async def list_connections(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: TokenUser = Depends(get_current_user),
    connection_service: ConnectionService = Depends(get_connection_service)
):
    """Accepted connections of the current user"""
    try:
        return to_json_response(connection_service.list_connections(current_user.id, page, limit))
    except BusinessLogicError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
