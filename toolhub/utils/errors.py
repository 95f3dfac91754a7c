from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger("toolhub.errors")

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    r"api[_-]?key[=:\s]+\S+",
    r"password[=:\s]+\S+",
    r"token[=:\s]+\S+",
    r"secret[=:\s]+\S+",
    r"bearer\s+\S+",
    r"\b(?:\d{1,3}\.){3}\d{1,3}\b",  # IP addresses
    r"traceback",
    r"stack trace",
]


class ToolError(Exception):
    """Base class for every failure a provider surfaces to its caller.

    The message is passed through to the caller untranslated; ``status_code``
    and ``code`` only decide how the HTTP layer frames it.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "tool_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code}


class AccessDenied(ToolError):
    """Path escapes the root, touches a blocked entry or uses a disallowed extension."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"


class NotFound(ToolError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class PermissionDenied(ToolError):
    """Operation is structurally disallowed, whatever the OS permissions say."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class RouteNotFound(ToolError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "route_not_found"

    def __init__(self, provider: str, route: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{provider} route not found: {route}")
        self.provider = provider
        self.route = route


class StorageError(ToolError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "storage_error"


class InvalidArgument(ToolError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_argument"


class UpstreamError(ToolError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class ProviderUnavailable(ToolError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "provider_unavailable"


def sanitize_error_message(message: str) -> str:
    """Remove potentially sensitive information from error messages.

    This prevents leaking internal details like IP addresses, API keys, or
    stack traces to end users.
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    # Truncate very long messages that might contain stack traces
    if len(sanitized) > 500:
        sanitized = sanitized[:500] + "... [truncated]"

    return sanitized


def api_error(
    message: str,
    *,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    code: str = "bad_request",
    internal_message: Optional[str] = None,
    sanitize: bool = True,
) -> HTTPException:
    """Create an API error with optional message sanitization.

    Args:
        message: The error message to show to users
        status_code: HTTP status code
        code: Error code for programmatic handling
        internal_message: Optional detailed message for logging only
        sanitize: Whether to sanitize the message (default True)

    Returns:
        HTTPException with sanitized error details
    """
    if internal_message:
        logger.error(f"[{code}] Internal: {internal_message}")

    user_message = sanitize_error_message(message) if sanitize else message

    return HTTPException(
        status_code=status_code,
        detail={"error": {"message": user_message, "code": code}}
    )


def tool_error_response(exc: ToolError) -> HTTPException:
    """Frame a provider error for HTTP callers, keeping its message verbatim."""
    return api_error(
        exc.message,
        status_code=exc.status_code,
        code=exc.code,
        sanitize=False,
    )
