"""
Error taxonomy shared by services and routers.

Services raise these; the handlers registered in ``main.py`` render every
one of them as ``{"error": message}`` with the matching status code.
"""

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class PermissionDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ExternalFetchError(AppError):
    """Upstream provider (YouTube, SMTP) failed; message is passed through"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "External provider request failed"


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
