"""
Error Types and Handlers

This module defines the exception hierarchy shared by the fetch, feature and
labelling layers, plus the FastAPI exception handlers that translate them
into HTTP responses.

Design Goals
------------
- One exception type per failure kind, so callers can decide what to retry
- Never leak internal exception details to clients
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("npov.errors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class NPOVError(RuntimeError):
    """Base exception for all npov-classifier failures."""


class InvalidLocator(NPOVError, ValueError):
    """Raised when a revision or article URL lacks a parseable title/id."""


class UpstreamShapeError(NPOVError):
    """Raised when an upstream API response lacks the expected structure."""


class RateLimitExceeded(NPOVError):
    """Raised when the rate-limit retry budget is exhausted."""


class UnexpectedFormat(NPOVError):
    """Raised when a diff payload does not contain exactly one <pre> block."""


class LabelParseError(NPOVError, ValueError):
    """Raised when a label string matches none of the known labels."""


class LLMLabelerError(NPOVError):
    """Raised when the LLM labeler call fails or returns malformed output."""


_STATUS_BY_ERROR = (
    (InvalidLocator, 422, "invalid_locator"),
    (RateLimitExceeded, 503, "rate_limit_exceeded"),
    (UpstreamShapeError, 502, "upstream_shape_error"),
    (UnexpectedFormat, 502, "unexpected_format"),
)


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def npov_error_handler(
    request: Request,
    exc: NPOVError,
) -> JSONResponse:
    """
    Translate a known NPOVError into a deterministic JSON error response.

    Locator errors are the caller's fault and echo the message; upstream
    failures are reported by kind only.
    """
    for error_type, status_code, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        return await unhandled_exception_handler(request, exc)

    logger.warning(
        "%s during request %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc,
    )

    payload: Dict[str, Any] = {"error": code}
    if isinstance(exc, InvalidLocator):
        payload["detail"] = str(exc)

    return JSONResponse(status_code=status_code, content=payload)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
