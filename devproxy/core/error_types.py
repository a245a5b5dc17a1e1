"""Shared constants for structured API errors and interception outcomes."""

# Error type constants (for client-facing error responses)
ERROR_TYPE_API = "api_error"

# Error code constants
ERROR_CODE_INTERCEPTOR = "interceptor_error"
ERROR_CODE_UPSTREAM = "upstream_error"

# Interception outcome constants (metrics labels)
OUTCOME_PASSTHROUGH = "passthrough"
OUTCOME_TRANSFORMED = "transformed"
OUTCOME_FALLBACK = "fallback"
OUTCOME_ERROR = "error"


def error_body(message: str, error_type: str, code: str) -> dict:
    """Build the JSON error payload returned to clients."""
    return {
        "error": {
            "message": message,
            "type": error_type,
            "code": code,
        }
    }
