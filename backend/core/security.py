"""Bearer-token authentication.

Tokens are issued by the platform's identity service and signed with the
shared SECRET_KEY. Each names the acting user (``sub``) and the tenant
(``org_id``) every workflow request is scoped to. ``create_access_token``
mints the same shape for tests and internal tooling.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError

from app.config import get_settings

ALGORITHM = "HS256"
TOKEN_TYPE = "access"

bearer_scheme = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    org_id: str
    exp: datetime
    iat: datetime
    type: str = TOKEN_TYPE
    email: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    user_id: str,
    org_id: str,
    email: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "org_id": org_id,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + (expires_in or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> TokenPayload:
    """Decode and check a bearer token; raises a 401 HTTPException otherwise."""
    try:
        claims = jwt.decode(
            token,
            get_settings().SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "org_id", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.MissingRequiredClaimError:
        raise _unauthorized("Invalid token payload")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid token")

    try:
        payload = TokenPayload.model_validate(claims)
    except ValidationError:
        raise _unauthorized("Invalid token payload")

    if payload.type != TOKEN_TYPE:
        raise _unauthorized("Invalid token type")
    return payload


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload:
    if credentials is None:
        raise _unauthorized("Missing authorization header")
    return verify_token(credentials.credentials)
