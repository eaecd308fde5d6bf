"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens and the FastAPI
dependencies `get_current_user` and `get_admin_user`. The token is read
from an `Authorization: Bearer` header or, for older browser clients,
from an `x-auth-token` header.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from .config import Settings
from .schemas import UserRecord

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    x_auth_token: Optional[str] = Header(default=None),
) -> UserRecord:
    """FastAPI dependency that returns the authenticated user.

    Raises HTTPException(401) when the token is missing, invalid or
    refers to a user that no longer exists.
    """
    token = credentials.credentials if credentials else x_auth_token
    if not token:
        raise HTTPException(status_code=401, detail='No token, authorization denied')
    payload = decode_token(token, request.app.state.settings)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = request.app.state.users.get(str(user_id))
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def get_admin_user(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Like `get_current_user` but requires the admin flag on the stored record."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail='Access denied. Not an admin.')
    return user
