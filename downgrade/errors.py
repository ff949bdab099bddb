"""Module errors: structured error taxonomy for the downgrade proxy."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Provides error codes and a typed exception so every layer (rewriter,
# toggle store, proxy manager, control API) reports failures the same way.
#
# ERROR CODE FORMAT:
# - NEGOTIATE_XXX: Negotiation body rewrite errors
# - TOGGLE_XXX: Transport toggle errors
# - CONFIG_XXX: Configuration errors
# - PROXY_XXX: mitmproxy lifecycle errors
#
# USAGE:
#   from downgrade.errors import DowngradeError, ErrorCode
#
#   raise DowngradeError(
#       ErrorCode.TOGGLE_UNKNOWN,
#       "Unknown transport toggle",
#       details={"name": "WebSockets: Gzip"}
#   )
#
class ErrorCode(Enum):
    # Negotiation Errors
    NEGOTIATE_MALFORMED_BODY = "NEGOTIATE_001"
    NEGOTIATE_UNEXPECTED = "NEGOTIATE_002"

    # Toggle Errors
    TOGGLE_UNKNOWN = "TOGGLE_001"
    TOGGLE_PERSIST_FAILED = "TOGGLE_002"

    # Config Errors
    CONFIG_INVALID = "CONFIG_001"

    # Proxy Errors
    PROXY_ALREADY_RUNNING = "PROXY_001"
    PROXY_NOT_RUNNING = "PROXY_002"



class DowngradeError(Exception):
    """
    Base exception class with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "TOGGLE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code for API responses
    """

    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        ErrorCode.NEGOTIATE_MALFORMED_BODY: 422,  # Unprocessable Entity
        ErrorCode.NEGOTIATE_UNEXPECTED: 500,

        ErrorCode.TOGGLE_UNKNOWN: 400,            # Bad Request
        ErrorCode.TOGGLE_PERSIST_FAILED: 500,

        ErrorCode.CONFIG_INVALID: 500,

        ErrorCode.PROXY_ALREADY_RUNNING: 409,     # Conflict
        ErrorCode.PROXY_NOT_RUNNING: 409,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status
        }


__all__ = ["ErrorCode", "DowngradeError"]
