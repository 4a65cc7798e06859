# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for sponsorship domain rules.
"""

import pytest
from datetime import datetime

from charity_api.domain.sponsorship import (
    add_months,
    compute_next_payment_date,
    validate_create_request,
    validate_update_request,
    build_new_sponsorship,
    check_status_transition,
    plan_update
)
from charity_api.models.entities import Orphan, Sponsorship
from charity_api.models.requests import CreateSponsorshipRequest, UpdateSponsorshipRequest

START = datetime(2024, 1, 15)


class TestNextPaymentDate:

    @pytest.mark.parametrize("frequency, expected", [
        ("monthly", datetime(2024, 2, 15)),
        ("quarterly", datetime(2024, 4, 15)),
        ("yearly", datetime(2025, 1, 15)),
        ("one-time", None),
    ])
    def test_frequency_mapping(self, frequency, expected):
        assert compute_next_payment_date(START, frequency) == expected

    def test_unknown_frequency(self):
        with pytest.raises(ValueError, match="weekly"):
            compute_next_payment_date(START, "weekly")

    def test_month_end_is_clamped(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 11, 30), 3) == datetime(2024, 2, 29)
        assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)

    def test_time_of_day_is_kept(self):
        assert add_months(datetime(2024, 12, 15, 9, 30), 1) == datetime(2025, 1, 15, 9, 30)


class TestValidateCreateRequest:

    def test_valid_request(self):
        request = CreateSponsorshipRequest(orphanId="o1", frequency="monthly", amount=50)

        result = validate_create_request(request)

        assert result.is_valid
        assert result.errors == []

    def test_missing_fields(self):
        result = validate_create_request(CreateSponsorshipRequest())

        assert not result.is_valid
        assert "Missing required field: orphanId" in result.errors
        assert "Missing required field: frequency" in result.errors
        assert "Missing required field: amount" in result.errors

    def test_unknown_frequency(self):
        request = CreateSponsorshipRequest(orphanId="o1", frequency="weekly", amount=50)

        result = validate_create_request(request)

        assert not result.is_valid
        assert result.errors[0].startswith("Invalid frequency value: weekly")

    def test_amount_below_minimum(self):
        request = CreateSponsorshipRequest(orphanId="o1", frequency="yearly", amount=0.5)

        result = validate_create_request(request)

        assert result.errors == ["Amount must be at least 1.00"]
        assert result.as_error_list() == [{"message": "Amount must be at least 1.00"}]


def test_update_requires_sponsorship_id():
    result = validate_update_request(UpdateSponsorshipRequest(status="paused"))

    assert not result.is_valid
    assert result.errors == ["Sponsorship ID is required"]


def test_update_rejects_explicit_nulls():
    request = UpdateSponsorshipRequest.model_validate(
        {"sponsorshipId": "s1", "status": None, "amount": None, "frequency": None}
    )

    result = validate_update_request(request)

    assert not result.is_valid
    assert result.errors == [
        "Field cannot be null: status",
        "Field cannot be null: amount",
        "Field cannot be null: frequency",
    ]


def test_update_allows_clearing_notes():
    request = UpdateSponsorshipRequest.model_validate({"sponsorshipId": "s1", "notes": None})

    assert validate_update_request(request).is_valid


def test_build_new_sponsorship():
    request = CreateSponsorshipRequest(orphanId="o1", frequency="quarterly", amount=75.5, notes="For school")

    sponsorship = build_new_sponsorship(request, "donor-a", START)

    assert sponsorship.sponsor_id == "donor-a"
    assert sponsorship.orphan_id == "o1"
    assert sponsorship.status == "active"
    assert sponsorship.start_date == START
    assert sponsorship.next_payment_date == datetime(2024, 4, 15)
    assert sponsorship.amount == 75.5
    assert sponsorship.created_at == START


class TestStatusTransition:

    @pytest.mark.parametrize("current, requested", [
        ("active", "paused"),
        ("paused", "active"),
        ("active", "ended"),
        ("ended", "ended"),
        ("active", None),
    ])
    def test_allowed(self, current, requested):
        assert check_status_transition(current, requested) is None

    @pytest.mark.parametrize("requested", ["active", "paused"])
    def test_ended_cannot_be_reactivated(self, requested):
        assert "cannot be reactivated" in check_status_transition("ended", requested)


class TestPlanUpdate:

    def setup_method(self):
        self.sponsorship = Sponsorship(
            sponsor_id="donor-a",
            orphan_id="o1",
            amount=50,
            frequency="monthly",
            start_date=START,
            next_payment_date=datetime(2024, 2, 15)
        )
        self.orphan = Orphan(
            id="o1",
            name="Amina",
            age=8,
            gender="female",
            orphanage_id="home-1",
            is_available_for_sponsorship=False,
            current_sponsorship_id=self.sponsorship.id
        )
        self.now = datetime(2024, 6, 1)

    def test_ending_releases_claiming_orphan(self):
        plan = plan_update(self.sponsorship, self.orphan, {"status": "ended"}, self.now)

        assert plan.release_orphan
        assert plan.sponsorship_fields == {"status": "ended", "end_date": self.now, "updated_at": self.now}

    def test_explicit_end_date_is_kept(self):
        end = datetime(2024, 5, 31)

        plan = plan_update(self.sponsorship, self.orphan, {"status": "ended", "end_date": end}, self.now)

        assert plan.sponsorship_fields["end_date"] == end

    def test_orphan_claimed_elsewhere_is_not_released(self):
        orphan = self.orphan.model_copy(update={"current_sponsorship_id": "someone-else"})

        plan = plan_update(self.sponsorship, orphan, {"status": "ended"}, self.now)

        assert not plan.release_orphan

    def test_missing_orphan_is_not_released(self):
        assert not plan_update(self.sponsorship, None, {"status": "ended"}, self.now).release_orphan

    def test_other_changes_leave_orphan_alone(self):
        plan = plan_update(self.sponsorship, self.orphan, {"amount": 80.0, "status": "paused"}, self.now)

        assert not plan.release_orphan
        assert plan.sponsorship_fields == {"amount": 80.0, "status": "paused", "updated_at": self.now}

    def test_ending_again_keeps_original_end_date(self):
        ended = self.sponsorship.model_copy(update={"status": "ended", "end_date": datetime(2024, 3, 1)})

        plan = plan_update(ended, self.orphan, {"status": "ended"}, self.now)

        assert "end_date" not in plan.sponsorship_fields

    def test_switch_to_one_time_clears_next_payment(self):
        plan = plan_update(self.sponsorship, self.orphan, {"frequency": "one-time"}, self.now)

        assert plan.sponsorship_fields["next_payment_date"] is None

    def test_frequency_change_recomputes_from_start(self):
        plan = plan_update(self.sponsorship, self.orphan, {"frequency": "yearly"}, self.now)

        assert plan.sponsorship_fields["next_payment_date"] == datetime(2025, 1, 15)
