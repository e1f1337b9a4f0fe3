"""
User-Facing Error Standards
===========================
HTTP errors that show a friendly message to end users while logging the
technical detail for operators.

CRITICAL: Never expose internal error details (or codes) to end users.
"""

from typing import Optional

from fastapi import HTTPException
import structlog

logger = structlog.get_logger(__name__)


USER_FRIENDLY_MESSAGE = "We are experiencing a configuration issue. Please try again later."


def create_user_error(
    internal_code: str,
    log_message: Optional[str] = None,
    status_code: int = 503,
    message: str = USER_FRIENDLY_MESSAGE,
) -> HTTPException:
    """
    Create a user-friendly HTTPException.

    Args:
        internal_code: Internal code for debugging (returned, never explained)
        log_message: Technical message for logs
        status_code: HTTP status code (default 503 for temporary issues)
        message: Text shown to the user

    Returns:
        HTTPException with user-friendly detail
    """
    if log_message:
        logger.warning("User error raised", code=internal_code, detail=log_message)

    return HTTPException(
        status_code=status_code,
        detail={
            "error": "Request could not be completed",
            "message": message,
            "code": internal_code,
        },
    )


class UserErrors:
    """Standard user error factory methods."""

    @staticmethod
    def config_error(log_detail: Optional[str] = None) -> HTTPException:
        """OTP purpose has no policy."""
        return create_user_error("CONFIG_ERROR", log_detail)

    @staticmethod
    def not_found(what: str) -> HTTPException:
        return create_user_error("NOT_FOUND", status_code=404, message=f"{what} not found")

    @staticmethod
    def invalid_request(message: str) -> HTTPException:
        return create_user_error("INVALID_REQUEST", status_code=422, message=message)
