"""
Error taxonomy and the {statusCode, message, data} response envelope shared by every route.

Handlers raise ApiError subclasses; register_error_handlers() turns them (and werkzeug HTTP
errors) into enveloped JSON with the matching status code.
"""
from __future__ import annotations

from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from env_manager import get_logger

log = get_logger("api_errors")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS, PATCH",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
}


class ApiError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request data"


class StorageError(ApiError):
    """Database read/write failure."""

    status_code = 500
    default_message = "Error writing to database"


class CorsError(ApiError):
    status_code = 403
    default_message = "CORS error - cross-origin request blocked"


def envelope(data: Any = None, message: str = "Success", status: int = 200) -> tuple[dict, int]:
    """Build the standard success body; None data becomes []."""
    return {"statusCode": status, "message": message, "data": [] if data is None else data}, status


def error_body(status: int, message: str) -> dict:
    return {"statusCode": status, "message": message}


def apply_permissive_cors(response: Response) -> Response:
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _handle_api_error(err: ApiError):
        if err.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.path, err.message)
        response = jsonify(error_body(err.status_code, err.message))
        response.status_code = err.status_code
        if isinstance(err, CorsError):
            apply_permissive_cors(response)
        return response

    @app.errorhandler(HTTPException)
    def _handle_http_error(err: HTTPException):
        status = err.code or 500
        if status == 404:
            message = f"Route not found: {request.method} {request.path}"
        elif status == 413:
            message = "Uploaded file is too large"
        else:
            message = err.description or err.name
        response = jsonify(error_body(status, message))
        response.status_code = status
        return response

    @app.errorhandler(Exception)
    def _handle_unexpected(err: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.path)
        response = jsonify(error_body(500, ApiError.default_message))
        response.status_code = 500
        return response
