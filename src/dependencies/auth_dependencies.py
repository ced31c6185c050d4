# src/dependencies/auth_dependencies.py
from fastapi import Depends, HTTPException, status
from ..schemas import TokenUser
from ..security import get_current_user
from ..constants import ErrorMessages, Roles

def require_org_admin(current_user: TokenUser = Depends(get_current_user)) -> TokenUser:
    """Only organization administrators (or platform admins) may change visibility policies"""
    if not current_user.has_role(Roles.ORG_ADMIN, Roles.ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ErrorMessages.UNAUTHORIZED_ORG_ADMIN)
    if not current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ErrorMessages.ORGANIZATION_NOT_FOUND)
    return current_user

def require_admin(current_user: TokenUser = Depends(get_current_user)) -> TokenUser:
    if not current_user.has_role(Roles.ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ErrorMessages.UNAUTHORIZED_ORG_ADMIN)
    return current_user
