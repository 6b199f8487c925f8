"""Error kinds surfaced to API callers.

Each error carries its kind in ``extensions.code`` so clients can branch on
it without parsing messages. Store failures propagate unmapped.
"""

from typing import Optional
from graphql import GraphQLError


class ServiceError(GraphQLError):
    code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message, extensions={"code": self.code})


class UnauthenticatedError(ServiceError):
    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class ForbiddenError(ServiceError):
    code = "FORBIDDEN"
    default_message = "Not authorized to perform this action"


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    default_message = "Resource not found"


class BadUserInputError(ServiceError):
    code = "BAD_USER_INPUT"
    default_message = "Invalid input"
