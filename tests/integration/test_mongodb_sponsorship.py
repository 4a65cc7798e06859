# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Sponsorship workflow against a real MongoDB replica set.

Runs only when MONGODB_TEST_URI points at a replica set, e.g.
``mongodb://localhost:27017/?replicaSet=rs0``.
"""

import os
import threading
import pytest
from bson import ObjectId

from charity_api.middleware.error_handler import ConflictException
from charity_api.models.entities import Orphan
from charity_api.models.requests import CreateSponsorshipRequest, UpdateSponsorshipRequest
from charity_api.services.mongodb import MongoDBService, MongoTransactionalStore
from charity_api.services.repositories import MongoOrphanRepository, MongoSponsorshipRepository
from charity_api.services.sponsorship import SponsorshipWorkflow
from charity_api.services.transaction import TransactionRunner, TransactionOptions, RetryPolicy

MONGODB_TEST_URI = os.getenv('MONGODB_TEST_URI')

pytestmark = pytest.mark.skipif(not MONGODB_TEST_URI, reason="MONGODB_TEST_URI not set")


@pytest.fixture
def mongodb_service():
    database_name = f"charity_it_{ObjectId()}"
    service = MongoDBService(MONGODB_TEST_URI, database_name)
    # Collections must exist before they are written inside a transaction on older servers
    service.database.create_collection("orphans")
    service.database.create_collection("sponsorships")
    service.create_indexes()
    yield service
    service.client.drop_database(database_name)
    service.close_connection()


@pytest.fixture
def orphans(mongodb_service):
    return MongoOrphanRepository(mongodb_service)


@pytest.fixture
def sponsorships(mongodb_service):
    return MongoSponsorshipRepository(mongodb_service)


@pytest.fixture
def workflow(mongodb_service, orphans, sponsorships):
    runner = TransactionRunner(
        MongoTransactionalStore(mongodb_service),
        TransactionOptions(retry_policy=RetryPolicy(max_attempts=5, backoff_base_ms=20)),
    )
    return SponsorshipWorkflow(runner, orphans, sponsorships)


@pytest.fixture
def orphan(orphans):
    return orphans.create(Orphan(name="Amina", age=8, gender="female", orphanage_id="home-1"))


def request_for(orphan_id):
    return CreateSponsorshipRequest(orphanId=orphan_id, frequency="monthly", amount=50)


def test_create_and_end_round_trip(workflow, orphans, sponsorships, orphan):
    result = workflow.create(request_for(orphan.id), "donor-a")

    claimed = orphans.find_by_id(orphan.id)
    assert claimed.is_available_for_sponsorship is False
    assert claimed.current_sponsorship_id == result.sponsorship.id

    workflow.update(UpdateSponsorshipRequest(sponsorshipId=result.sponsorship.id, status="ended"), "donor-a")

    released = orphans.find_by_id(orphan.id)
    assert released.is_available_for_sponsorship is True
    assert released.current_sponsorship_id is None
    assert sponsorships.find_by_id(result.sponsorship.id).status == "ended"


def test_failed_claim_leaves_no_sponsorship(workflow, sponsorships, orphans):
    taken = orphans.create(Orphan(
        name="Yusuf", age=5, gender="male", orphanage_id="home-1", is_available_for_sponsorship=False
    ))

    with pytest.raises(ConflictException):
        workflow.create(request_for(taken.id), "donor-a")

    assert sponsorships.collection.count_documents({}) == 0


def test_concurrent_claims(workflow, orphans, sponsorships, orphan):
    barrier = threading.Barrier(4)
    outcomes = []

    def attempt(donor_id):
        barrier.wait()
        try:
            outcomes.append(workflow.create(request_for(orphan.id), donor_id))
        except ConflictException as e:
            outcomes.append(e)

    threads = [threading.Thread(target=attempt, args=(f"donor-{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    winners = [o for o in outcomes if not isinstance(o, ConflictException)]
    assert len(outcomes) == 4
    assert len(winners) == 1
    assert orphans.find_by_id(orphan.id).current_sponsorship_id == winners[0].sponsorship.id
    assert sponsorships.collection.count_documents({}) == 1
