# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation middleware using Pydantic models.

Validated models are appended to the positional arguments of the view, so
the decorators compose with ``require_auth``:
``view(user_context, payload, **path_kwargs)``.
"""

from functools import wraps
from flask import request
from typing import Type, Callable, Dict, Any, List
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from .error_handler import ValidationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

NOT_JSON_ERRORS = [{"field": "content-type", "message": "Expected application/json", "type": "content_type_error"}]
NOT_OBJECT_ERRORS = [{"field": "body", "message": "Expected a JSON object", "type": "json_error"}]


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into ``{field, message, type}`` entries."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in validation_error.errors()
    ]


class ValidationMiddleware:
    """Parses request input into Pydantic models, raising ValidationException."""

    def parse_json_body(self, model_class: Type[BaseModel]) -> BaseModel:
        """
        Validate the current request's JSON body.

        Raises:
            ValidationException: Body missing, not JSON or not matching the model
        """
        if not request.is_json:
            raise ValidationException("Request must have Content-Type: application/json", NOT_JSON_ERRORS)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationException("Invalid JSON in request body", NOT_OBJECT_ERRORS)

        return self._validate(model_class, data, "Request")

    def parse_query_params(self, model_class: Type[BaseModel]) -> BaseModel:
        return self._validate(model_class, request.args.to_dict(), "Query parameter")

    def _validate(self, model_class: Type[BaseModel], data: Dict[str, Any], source: str) -> BaseModel:
        with tracer.start_as_current_span(
            "validation.parse",
            attributes={"validation.model": model_class.__name__, "validation.source": source}
        ) as span:
            try:
                model = model_class.model_validate(data)
            except ValidationError as e:
                errors = format_validation_errors(e)
                span.set_attribute("validation.error_count", len(errors))
                logger.warning(
                    f"{source} validation failed for {model_class.__name__}",
                    extra={"path": request.path, "method": request.method, "errors": errors}
                )
                raise ValidationException(f"{source} validation failed for {model_class.__name__}", errors)
            return model

    def _inject(self, parse: Callable[[Type[BaseModel]], BaseModel], model_class: Type[BaseModel]) -> Callable:
        def decorator(f: Callable) -> Callable:
            @wraps(f)
            def decorated_function(*args, **kwargs):
                return f(*args, parse(model_class), **kwargs)
            return decorated_function
        return decorator

    def validate_json_body(self, model_class: Type[BaseModel]) -> Callable:
        """Decorator passing the validated JSON body to the view."""
        return self._inject(self.parse_json_body, model_class)

    def validate_query_params(self, model_class: Type[BaseModel]) -> Callable:
        """Decorator passing the validated query string to the view."""
        return self._inject(self.parse_query_params, model_class)


validation_middleware = ValidationMiddleware()
validate_json_body = validation_middleware.validate_json_body
validate_query_params = validation_middleware.validate_query_params
