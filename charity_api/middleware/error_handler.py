# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.

Every error leaving the API is an RFC 7807 problem document. Application
exceptions carry their own problem type; werkzeug HTTP errors are mapped by
status code; anything else is either store contention that outlived the
transaction retries (503) or a bug (500).
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
import logging

from ..services.hal import HalFormatter
from ..services.transaction import PatternErrorClassifier

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

# Problem type and title for werkzeug errors raised by routing and Flask itself
HTTP_PROBLEM_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
}


class CustomException(Exception):
    """Base class for custom application exceptions."""

    title = "Application Error"

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Missing or malformed input; never retried."""

    title = "Validation Error"

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    title = "Authentication Required"

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    title = "Insufficient Permissions"

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(CustomException):
    """Entity missing, or hidden from the requester."""

    title = "Resource Not Found"

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictException(CustomException):
    """Business-rule conflict such as claiming an orphan that is taken."""

    title = "Resource Conflict"

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class ErrorHandlerMiddleware:
    """Maps HTTP errors and unexpected exceptions to problem documents."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.transient_classifier = PatternErrorClassifier()

        app.register_error_handler(HTTPException, self.handle_http_error)
        app.register_error_handler(Exception, self.handle_unexpected_error)

    def _problem(self, error_type: str, title: str, status: int, detail: str) -> Dict[str, Any]:
        return self.hal_formatter.builder.build_error_response(
            error_type, title, status, detail, request.path
        )

    def handle_http_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Render a werkzeug HTTP error (unknown route, wrong method, abort()).

        Args:
            error: HTTP exception

        Returns:
            Tuple of (problem document, status code)
        """
        status = error.code or 500
        error_type, title = HTTP_PROBLEM_TYPES.get(status, ("http-error", error.name))
        detail = error.description or title

        with tracer.start_as_current_span("error_handler.http_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if status >= 500 else logger.warning
            log(
                f"HTTP error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": status,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                }
            )

            if status >= 500 and self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"

            return self._problem(error_type, title, status, detail), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle exceptions not caught by specific handlers.

        Store contention that outlived the transaction retries is reported as
        503 so clients know the request may succeed later; anything else is a
        500.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (problem document, status code)
        """
        is_transient = self.transient_classifier.is_transient(error)
        error_type = "service-unavailable" if is_transient else "internal-server-error"

        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": error_type,
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=error
            )

            if is_transient:
                return self.hal_formatter.format_service_unavailable_error(
                    "The database is busy, please retry the request", request.path
                ), 503

            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            return self.hal_formatter.format_server_error(detail, request.path), 500


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """
    Register the handler for application exceptions.

    Args:
        app: Flask application
        hal_formatter: HAL formatter instance
    """

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Request rejected: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "error_message": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            error_response = hal_formatter.builder.build_error_response(
                error.error_type,
                error.title,
                error.status_code,
                error.message,
                request.path,
                getattr(error, "validation_errors", None)
            )
            return jsonify(error_response), error.status_code
