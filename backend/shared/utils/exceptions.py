"""
HTTP errors raised by the REST services.

Each error logs itself when raised, with whatever keyword context the
caller passes, and reaches the client as {"detail": "..."}:

    raise NotFoundError("Group", group_id)
    raise ConflictError("Already friends", user_id=me, friend_id=them)
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    log_level = "warning"

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        code = status_code or self.status_code_default
        getattr(logger, self.log_level)(detail, status_code=code, **log_context)
        super().__init__(status_code=code, detail=detail, headers=headers)


class AuthenticationError(AppException):
    """401. Unknown user and wrong password get the same detail."""

    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, detail: str = "Invalid username or password", **log_context: Any):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"}, **log_context)


class NotFoundError(AppException):
    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        detail = f"{entity} not found" if entity_id is None else f"{entity} with ID {entity_id} not found"
        super().__init__(detail, entity=entity, entity_id=entity_id, **log_context)


class InvalidGroupCodeError(AppException):
    """404: no group carries this join code."""

    status_code_default = status.HTTP_404_NOT_FOUND
    log_level = "info"

    def __init__(self, code: str, **log_context: Any):
        super().__init__("Invalid group code", code=code, **log_context)


class ForbiddenError(AppException):
    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, action: str | None = None, **log_context: Any):
        detail = f"Not allowed to {action}" if action else "Access denied"
        super().__init__(detail, action=action, **log_context)


class NotGroupMemberError(ForbiddenError):
    def __init__(self, group_id: int, **log_context: Any):
        super().__init__("access this group", group_id=group_id, **log_context)


class ValidationError(AppException):
    """400 for requests that are well-formed but make no sense (befriending yourself)."""

    status_code_default = status.HTTP_400_BAD_REQUEST


class ConflictError(AppException):
    """409: the request clashes with existing state."""

    status_code_default = status.HTTP_409_CONFLICT


class DuplicateEntityError(ConflictError):
    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        detail = f"{entity} '{identifier}' already exists" if identifier else f"{entity} already exists"
        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


class InvalidTransitionError(ConflictError):
    """A friend request that is no longer pending cannot be accepted again."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        super().__init__(
            f"Invalid transition from '{from_status}' to '{to_status}' for {entity}",
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )
