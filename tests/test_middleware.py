# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for authentication, validation and error handling middleware.
"""

import jwt
import pytest
from datetime import datetime, timedelta, timezone
from flask import Flask
from pydantic import BaseModel, Field

from charity_api.middleware.auth import AuthMiddleware
from charity_api.middleware.error_handler import (
    ErrorHandlerMiddleware,
    register_custom_error_handlers,
    AuthenticationException,
    ConflictException,
    ValidationException
)
from charity_api.middleware.validation import ValidationMiddleware
from charity_api.services.auth import AuthService, TokenValidationError
from charity_api.services.hal import HalFormatter

SECRET = "middleware-test-secret"


class TestAuthService:

    def setup_method(self):
        self.auth_service = AuthService(SECRET)

    def test_token_round_trip(self):
        token = self.auth_service.generate_access_token("donor-a", "donor", email="a@example.org")

        payload = self.auth_service.validate_token(token)

        assert payload["sub"] == "donor-a"
        assert payload["role"] == "donor"
        assert payload["email"] == "a@example.org"

    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode({"sub": "donor-a", "role": "donor", "exp": past}, SECRET, algorithm="HS256")

        with pytest.raises(TokenValidationError, match="expired"):
            self.auth_service.validate_token(token)

    def test_wrong_secret(self):
        token = AuthService("another-secret").generate_access_token("donor-a", "donor")

        with pytest.raises(TokenValidationError, match="Invalid token"):
            self.auth_service.validate_token(token)

    def test_unknown_role(self):
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode({"sub": "x", "role": "superuser", "exp": exp}, SECRET, algorithm="HS256")

        with pytest.raises(TokenValidationError, match="unknown role"):
            self.auth_service.validate_token(token)

    def test_refresh_token_rejected(self):
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode({"sub": "x", "role": "donor", "exp": exp, "type": "refresh"}, SECRET, algorithm="HS256")

        with pytest.raises(TokenValidationError, match="token type"):
            self.auth_service.validate_token(token)

    def test_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "from-env")

        assert AuthService().secret == "from-env"


class TestAuthMiddleware:

    def setup_method(self):
        self.app = Flask(__name__)
        self.middleware = AuthMiddleware(AuthService(SECRET))

    def test_builds_user_context(self):
        token = self.middleware.auth_service.generate_access_token("admin-1", "admin", name="Root")

        with self.app.test_request_context('/', headers={"Authorization": f"Bearer {token}"}):
            user_context = self.middleware.authenticate()

        assert user_context.user_id == "admin-1"
        assert user_context.is_admin
        assert user_context.name == "Root"

    def test_missing_header(self):
        with self.app.test_request_context('/'):
            with pytest.raises(AuthenticationException, match="Missing authorization token"):
                self.middleware.authenticate()

    def test_bare_bearer_prefix(self):
        with self.app.test_request_context('/', headers={"Authorization": "Bearer "}):
            assert self.middleware.extract_token_from_request() is None


class Payload(BaseModel):
    title: str
    amount: int = Field(..., ge=1)


class TestValidationMiddleware:

    def setup_method(self):
        self.app = Flask(__name__)
        self.validation = ValidationMiddleware()

    def test_valid_body_is_appended_to_args(self):
        @self.validation.validate_json_body(Payload)
        def view(user, payload, item_id=None):
            return user, payload, item_id

        with self.app.test_request_context('/', method='POST', json={"title": "t", "amount": 2}):
            user, payload, item_id = view("u", item_id="i")

        assert (user, payload.amount, item_id) == ("u", 2, "i")

    def test_invalid_body(self):
        with self.app.test_request_context('/', method='POST', json={"title": "t", "amount": 0}):
            with pytest.raises(ValidationException) as exc_info:
                self.validation.parse_json_body(Payload)

        assert exc_info.value.validation_errors[0]["field"] == "amount"

    def test_non_object_body(self):
        with self.app.test_request_context('/', method='POST', json=[1, 2]):
            with pytest.raises(ValidationException, match="Invalid JSON"):
                self.validation.parse_json_body(Payload)


class TestErrorHandlers:

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.config['ENVIRONMENT'] = 'production'
        ErrorHandlerMiddleware(self.app, "https://api.example.org")
        register_custom_error_handlers(self.app, HalFormatter("https://api.example.org"))

        @self.app.route('/conflict')
        def conflict():
            raise ConflictException("This orphan is not available for sponsorship")

        @self.app.route('/boom')
        def boom():
            raise RuntimeError("secret connection string")

        @self.app.route('/busy')
        def busy():
            raise RuntimeError("WriteConflict error: this operation conflicted with another operation")

        self.client = self.app.test_client()

    def test_custom_exception_problem_document(self):
        response = self.client.get('/conflict')

        assert response.status_code == 409
        data = response.get_json()
        assert data["type"] == "https://api.charity-coordination.org/problems/resource-conflict"
        assert data["detail"] == "This orphan is not available for sponsorship"
        assert data["instance"] == "/conflict"
        assert data["_links"]["available-orphans"]["href"] == "https://api.example.org/api/orphan/available"

    def test_unexpected_error_hides_detail_in_production(self):
        response = self.client.get('/boom')

        assert response.status_code == 500
        assert "secret" not in response.get_json()["detail"]

    def test_transient_error_is_service_unavailable(self):
        response = self.client.get('/busy')

        assert response.status_code == 503

    def test_unknown_route(self):
        response = self.client.get('/nowhere')

        assert response.status_code == 404
        assert response.get_json()["type"].endswith("/resource-not-found")

    def test_wrong_method(self):
        response = self.client.post('/conflict')

        assert response.status_code == 405
        assert response.get_json()["title"] == "Method Not Allowed"
