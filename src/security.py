from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status, Request
from jose import JWTError, jwt

from .config import get_settings
from .schemas import TokenUser

import logging
from fastapi import Header, Cookie
logger = logging.getLogger(__name__)

# --- JWT Token Handling ---
settings = get_settings()

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

def create_access_token(
    user_id: str,
    organization_id: Optional[str] = None,
    roles: Optional[List[str]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Creates a JWT access token for a user of an organization."""
    to_encode: Dict[str, Any] = {"sub": user_id, "org": organization_id, "roles": list(roles or [])}
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def decode_access_token(token: str) -> TokenUser:
    """Decodes a token into the caller's identity. Raises JWTError on a bad or expired token."""
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        raise JWTError("Token has no subject")
    return TokenUser(id=str(user_id), organization_id=payload.get("org"), roles=payload.get("roles") or [])

def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    access_token_cookie: Optional[str] = Cookie(None),
) -> TokenUser:
    """
    Accepts either Authorization: Bearer <token> OR HttpOnly cookie 'access_token'.
    Prefers Authorization header, falls back to cookie.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    token = None
    if authorization:
        if authorization.startswith("Bearer "):
            token = authorization.split(" ", 1)[1]
        else:
            logger.info("Authorization header present but not Bearer.")

    # Fallback to cookie (either explicit Cookie param or request.cookies)
    if not token:
        token = access_token_cookie or request.cookies.get("access_token")

    if not token:
        raise credentials_exception

    try:
        return decode_access_token(token)
    except JWTError as e:
        logger.info("JWT decode failed: %s", e)
        raise credentials_exception
