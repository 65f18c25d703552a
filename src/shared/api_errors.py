"""
API error parsing for HTTP clients of the bookmarks API.

Extracts a semantic category and a user-facing message from an HTTP error
response. Server-side failure messages are passed through verbatim.
"""

from dataclasses import dataclass
from typing import Any, Literal

import httpx

ErrorCategory = Literal[
    "auth",        # 401 - Missing, invalid or expired token
    "forbidden",   # 403 - Access denied
    "not_found",   # 404 - Resource not found
    "validation",  # 400/422 - Client input error
    "internal",    # 5xx or unexpected errors
]


@dataclass
class ParsedApiError:
    """Parsed API error with semantic category and message."""

    category: ErrorCategory
    message: str
    status_code: int | None = None


def parse_http_error(e: httpx.HTTPStatusError) -> ParsedApiError:  # noqa: PLR0911
    """
    Parse HTTP error into semantic categories.

    Args:
        e: The HTTP status error from httpx

    Returns:
        ParsedApiError with category, message and status code
    """
    status = e.response.status_code
    detail = _safe_get_detail(e)

    if status == 401:
        return ParsedApiError("auth", detail or "Invalid or expired token", status)

    if status == 403:
        return ParsedApiError("forbidden", "Access denied", status)

    if status == 404:
        return ParsedApiError("not_found", detail or "Not found", status)

    if status in (400, 422):
        return ParsedApiError("validation", _extract_validation_message(e), status)

    return ParsedApiError("internal", detail or f"API error {status}", status)


def _safe_get_detail(e: httpx.HTTPStatusError) -> str:
    """Safely extract a string detail from an error response."""
    try:
        body = e.response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    detail = body.get("detail")
    return detail if isinstance(detail, str) else ""


def _extract_validation_message(e: httpx.HTTPStatusError) -> str:
    """Extract validation error message from 400/422 response."""
    try:
        body: Any = e.response.json()
    except ValueError:
        return "Validation error"
    if not isinstance(body, dict):
        return "Validation error"
    detail = body.get("detail", "Validation error")
    if isinstance(detail, list):
        # FastAPI validation errors return a list of error objects
        messages = []
        for err in detail:
            if isinstance(err, dict):
                loc = err.get("loc", ["unknown"])
                field = loc[-1] if loc else "unknown"
                msg = err.get("msg", "invalid")
                messages.append(f"{field}: {msg}")
        return "; ".join(messages) if messages else "Validation error"
    return str(detail)
