"""
Error taxonomy shared by the API blueprints.

Route handlers raise one of these; each blueprint registers
`handle_api_error` so the exception becomes a JSON body of the form
{"message": "..."} with the matching status code.
"""

import logging
from typing import Optional, Tuple

from flask import Blueprint, Response, jsonify


class APIError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(APIError):
    status_code = 400
    default_message = "Invalid input"


class InvalidCredentials(APIError):
    status_code = 400
    default_message = "Invalid credentials"


class Unauthorized(APIError):
    status_code = 401
    default_message = "Invalid token"


class Forbidden(APIError):
    status_code = 403
    default_message = "Permission denied"


class NotFound(APIError):
    status_code = 404
    default_message = "Not found"


class Conflict(APIError):
    # Duplicate unique fields are reported as a plain bad request.
    status_code = 400
    default_message = "User already exists"


class ServerError(APIError):
    status_code = 500
    default_message = "Server error"


def handle_api_error(error: APIError) -> Tuple[Response, int]:
    if error.status_code >= 500:
        logging.error(f"Request failed: {error.message}")
    return jsonify({"message": error.message}), error.status_code


def register_error_handlers(blueprint: Blueprint) -> None:
    """
    Attach the JSON error translator to a blueprint (or app).

    Args:
        blueprint (Blueprint): Anything exposing `register_error_handler`.
    """
    blueprint.register_error_handler(APIError, handle_api_error)
