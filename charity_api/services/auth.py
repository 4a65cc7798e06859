# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management.

Tokens are HS256-signed with a shared secret and carry the user's ID in
``sub`` and platform role in ``role``. Login and password handling live in
the identity provider that issues the tokens; this service only mints tokens
for tooling and validates the ones presented to the API.
"""

import os
import secrets
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from ..models.enums import UserRole

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service with HS256 signing.
    """

    def __init__(self, secret: Optional[str] = None, access_token_expire_minutes: int = 60):
        """
        Initialize the authentication service.

        Args:
            secret: Shared signing secret; defaults to ``JWT_SECRET``
            access_token_expire_minutes: Lifetime of generated access tokens
        """
        self.secret = secret or self._get_secret()
        self.algorithm = "HS256"
        self.access_token_expire_minutes = access_token_expire_minutes

    def _get_secret(self) -> str:
        """Get signing secret from environment or generate one for development."""
        secret = os.getenv("JWT_SECRET")
        if secret:
            return secret

        logger.warning("No JWT_SECRET found, generating an ephemeral development secret")
        return secrets.token_urlsafe(32)

    def generate_access_token(
        self,
        user_id: str,
        role: str,
        email: Optional[str] = None,
        name: Optional[str] = None
    ) -> str:
        """
        Generate an access token for a user.

        Args:
            user_id: Subject of the token
            role: One of the platform roles
            email: Optional email claim
            name: Optional display name claim

        Returns:
            Encoded JWT
        """
        with tracer.start_as_current_span("auth.generate_access_token") as span:
            span.set_attributes({"auth.operation": "generate_access_token", "user.id": user_id})

            now = datetime.now(timezone.utc)
            payload = {
                "sub": user_id,
                "role": UserRole(role).value,
                "iat": now,
                "exp": now + timedelta(minutes=self.access_token_expire_minutes),
                "type": "access"
            }
            if email:
                payload["email"] = email
            if name:
                payload["name"] = name

            return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode an access token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid, expired or lacks claims
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type", "access") != "access":
                raise TokenValidationError("Invalid token type. Expected access")

            role = payload.get("role")
            if role not in {r.value for r in UserRole}:
                span.set_attribute("auth.validation_result", "invalid_role")
                raise TokenValidationError(f"Invalid token: unknown role '{role}'")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload["sub"]
            })
            logger.debug(
                "Token validated successfully",
                extra={"user_id": payload["sub"], "role": role}
            )
            return payload
