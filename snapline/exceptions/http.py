"""
HTTP errors raised by routers only.

Services and repositories raise domain errors, which the exception handlers
translate. These constants cover request-level problems the domain does not
know about: a missing bearer token or a malformed request field.
"""

from typing import Self

from fastapi import HTTPException, status


class CustomHTTPException(HTTPException):
    """HTTPException template that can be raised with a request-specific detail."""

    def with_context(self, detail: str) -> Self:
        """Copy of this exception with ``detail`` replaced; the template is not changed."""
        return type(self)(status_code=self.status_code, detail=detail, headers=self.headers)


UNAUTHORIZED = CustomHTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid authentication credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

BAD_REQUEST = CustomHTTPException(
    status_code=status.HTTP_400_BAD_REQUEST,
    detail="Invalid request parameters",
)
