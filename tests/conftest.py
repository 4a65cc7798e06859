# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime
from unittest.mock import Mock
from bson import ObjectId

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'charity_test'

from charity_api.models.entities import Orphan, UserContext
from charity_api.services.auth import AuthService
from charity_api.services.transaction import TransactionRunner
from charity_api.services.sponsorship import SponsorshipWorkflow

from memory_store import MemoryStore, MemoryOrphanRepository, MemorySponsorshipRepository

TEST_JWT_SECRET = "test-secret-for-unit-tests-only"
FIXED_NOW = datetime(2024, 1, 15, 9, 30)


@pytest.fixture
def store():
    """Transactional in-memory store."""
    return MemoryStore(lock_timeout=5.0)


@pytest.fixture
def orphans(store):
    return MemoryOrphanRepository(store)


@pytest.fixture
def sponsorships(store):
    return MemorySponsorshipRepository(store)


@pytest.fixture
def sleep_calls():
    """Seconds passed to the runner's sleep, in order."""
    return []


@pytest.fixture
def runner(store, sleep_calls):
    """Transaction runner that records backoff delays instead of sleeping."""
    return TransactionRunner(store, sleep=sleep_calls.append)


@pytest.fixture
def workflow(runner, orphans, sponsorships):
    return SponsorshipWorkflow(runner, orphans, sponsorships, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_orphan(orphans):
    """Factory registering an orphan in the store."""
    def _make_orphan(**overrides):
        data = {
            "name": "Amina",
            "age": 8,
            "gender": "female",
            "orphanage_id": str(ObjectId()),
            "is_available_for_sponsorship": True
        }
        data.update(overrides)
        return orphans.create(Orphan(**data))
    return _make_orphan


@pytest.fixture
def donor_a():
    return UserContext(user_id="donor-a", role="donor")


@pytest.fixture
def donor_b():
    return UserContext(user_id="donor-b", role="donor")


@pytest.fixture
def admin():
    return UserContext(user_id="admin-1", role="admin")


@pytest.fixture
def auth_service():
    return AuthService(TEST_JWT_SECRET)


@pytest.fixture
def mongodb_service():
    """MongoDB service double reporting a healthy database."""
    service = Mock()
    service.health_check.return_value = {
        'status': 'healthy',
        'version': '7.0.0',
        'database': 'charity_test'
    }
    return service


@pytest.fixture
def app(store, orphans, sponsorships, runner, auth_service, mongodb_service):
    """Application wired to the in-memory store."""
    from charity_api.app import create_app

    app = create_app(
        config={'TESTING': True, 'BASE_URL': 'http://localhost:5000'},
        mongodb_service=mongodb_service,
        transactional_store=store,
        orphan_repository=orphans,
        sponsorship_repository=sponsorships,
        transaction_runner=runner,
        auth_service=auth_service
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(auth_service):
    """Factory building Authorization headers for a user and role."""
    def _auth_headers(user_id: str, role: str = "donor"):
        token = auth_service.generate_access_token(user_id, role)
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
