"""
Common API utilities for consistent response formatting in the transport
layer that hosts the booking core.
"""

import logging
from typing import Any, Optional

from flask import Flask, jsonify

from fitcenter.core.exceptions import (
    ConcurrencyConflictError,
    FitnessCenterError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: 404,
    ValidationError: 400,
    UnauthorizedError: 403,
    InvalidStateError: 409,
    ConcurrencyConflictError: 409,
}


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = data

    return jsonify(response), status_code


def status_code_for(error: FitnessCenterError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500


def register_error_handlers(app: Flask) -> None:
    """Translate domain errors raised by the services into JSON responses."""

    @app.errorhandler(FitnessCenterError)
    def handle_domain_error(error: FitnessCenterError):
        status_code = status_code_for(error)
        log = logger.error if status_code >= 500 else logger.info
        log(
            f"{type(error).__name__}: {error.message}",
            extra={"context": dict(error.context, status_code=status_code)},
        )
        data = {"error": type(error).__name__}
        if error.retryable:
            data["retryable"] = True
        return api_response(False, error.message, data, status_code)
