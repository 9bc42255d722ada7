# errors.py - Error taxonomy shared by the identity resolver, the ownership validator and the routers
from typing import Optional

from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    """Missing, malformed or unverifiable credential"""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Forbidden(HTTPException):
    """The entity exists but the principal's ownership chain does not reach it.

    Rendered as 404 with the same body as NotFound so callers cannot tell an
    inaccessible entity from a missing one. `reason` is kept for logs only.
    """

    def __init__(self, detail: str = "Not found", reason: Optional[str] = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        self.reason = reason


class Conflict(HTTPException):
    def __init__(self, detail: str = "Already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationFailure(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class PayloadTooLarge(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=detail)
