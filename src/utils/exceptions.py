"""
Error taxonomy for the usage threshold service.

Upstream failures are raised as ``UsageServiceError`` subclasses so the refresh
and notification cycles can report which stage failed. ``APIExceptions`` builds
the few HTTP errors the routes return.

Usage:
    from src.utils.exceptions import APIExceptions, LimitsStatusError

    raise LimitsStatusError(503)
    raise APIExceptions.unauthorized()
"""

import logging

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class UsageServiceError(Exception):
    """Base class for every error raised by this service."""


class UnexpectedStatusError(UsageServiceError):
    """An upstream answered with a non-success status code."""

    stage = "upstream"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"unexpected status code in {self.stage}: {status_code}")


class LimitsStatusError(UnexpectedStatusError):
    stage = "limits"


class RelaysStatusError(UnexpectedStatusError):
    stage = "relays"


class DateSurpassedStatusError(UnexpectedStatusError):
    stage = "first date surpassed"


class Auth0TokenError(UsageServiceError):
    """Fetching the Auth0 management token failed."""

    def __init__(self, detail: str = "error fetching management token from Auth0"):
        super().__init__(detail)


class Auth0UserError(UsageServiceError):
    """The Auth0 user search returned a non-success status."""

    def __init__(self, detail: str = "error fetching user from Auth0"):
        super().__init__(detail)


class UserNotFoundError(UsageServiceError):
    """The Auth0 user search returned no usable email."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"user not found in Auth0: {user_id}")


class UnknownTemplateError(UsageServiceError):
    def __init__(self, template_name: str):
        self.template_name = template_name
        super().__init__(f"email template is not whitelisted: {template_name}")


class EmailDeliveryError(UsageServiceError):
    """The email provider rejected or failed to accept a message."""


class RefreshError(UsageServiceError):
    """A refresh cycle failed; ``stage`` is one of limits, relays or persist."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"refresh failed in {stage}: {cause}")


class NotificationError(UsageServiceError):
    """A notification cycle failed; ``stage`` is one of token or send."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"notification cycle failed in {stage}: {cause}")


class APIExceptions:
    """Factory class for creating standardized HTTP exceptions."""

    @staticmethod
    def unauthorized(detail: str = "Invalid API key or unauthorized access") -> HTTPException:
        """
        401 Unauthorized - Authentication failed.

        Args:
            detail: Custom error message

        Returns:
            HTTPException with status 401
        """
        return HTTPException(status_code=401, detail=detail)

