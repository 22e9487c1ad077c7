"""
Security utilities for the Snapline API.

Bearer tokens are JWTs signed with ``settings.jwt_secret_key`` whose subject
is the user's id.
"""

from datetime import UTC, datetime, timedelta
from typing import Annotated
from uuid import UUID

from authlib.jose import JoseError, jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from snapline.exceptions import UNAUTHORIZED
from snapline.settings import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


class Token(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Schema for JWT token payload."""

    sub: UUID
    exp: datetime | None = None


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> Token:
    """Create a new JWT access token for a user."""
    expires = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    header = {"alg": settings.jwt_algorithm}
    encoded_jwt = jwt.encode(header, {"sub": str(user_id), "exp": expires}, settings.jwt_secret_key)
    return Token(access_token=encoded_jwt.decode())


def decode_token(token: Annotated[str, Depends(oauth2_scheme)]) -> TokenData:
    """Decode and validate a JWT token from the Authorization header."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key)
        token_data = TokenData(**payload)
    except (JoseError, ValueError) as e:
        raise UNAUTHORIZED from e

    if token_data.exp is None or token_data.exp < datetime.now(UTC):
        raise UNAUTHORIZED
    return token_data
