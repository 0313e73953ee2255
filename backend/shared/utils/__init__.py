"""
Utilities module: Exceptions, schemas.
"""

from shared.utils.exceptions import (
    AuthenticationError,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    DuplicateEntityError,
    InvalidTransitionError,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "AuthenticationError",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "DuplicateEntityError",
    "InvalidTransitionError",
    # schemas
    "ErrorResponse",
]
