from datetime import timedelta

import pytest

from campus_orders.data.models import OrderModel
from campus_orders.domain.errors import AlreadyResolved, InvalidTransition, NotEligible, NotFound, ValidationError
from campus_orders.utils import settings
from conftest import CONCESSIONAIRE, CUSTOMER, OTHER_CONCESSIONAIRE, OTHER_CUSTOMER, T0, events_of


@pytest.fixture()
def declined_order(place_order, order_service, sent):
    """Place an order and have the concessionaire decline it at the current clock time."""

    def _declined(payment_method: str = "gcash"):
        order = place_order(payment_method)
        order_service.decline(order["id"], CONCESSIONAIRE, "out_of_stock")
        sent.clear()
        return order["id"]

    return _declined


class TestEligibility:
    def test_fresh_decline_is_eligible(self, declined_order, reopening_service, clock):
        order_id = declined_order()
        clock.advance(hours=1)

        eligibility = reopening_service.can_request_reopening(order_id)

        assert eligibility.can_reopen is True
        assert eligibility.remaining_requests == 3
        assert eligibility.hours_remaining == 23.0
        assert eligibility.has_pending_request is False

    def test_only_declined_orders(self, place_order, reopening_service):
        order = place_order("cash")
        eligibility = reopening_service.can_request_reopening(order["id"])

        assert eligibility.can_reopen is False
        assert "not in declined status" in eligibility.reason

    def test_overdue_receipt_is_expired_before_judging(self, place_order, reopening_service, clock, db, sent):
        order = place_order("gcash")
        clock.advance(hours=1)

        eligibility = reopening_service.can_request_reopening(order["id"])

        assert eligibility.can_reopen is True
        assert eligibility.hours_remaining == 24.0
        declined = db.get(OrderModel, order["id"])
        assert declined.status == "declined"
        assert declined.decline_reason == "receipt_timeout"
        assert len(events_of(sent, "order_update", CUSTOMER)) == 1

        request = reopening_service.create_request(order["id"], CUSTOMER, "missed_deadline")
        assert request["status"] == "pending"

    def test_window_closes_even_without_requests(self, declined_order, reopening_service, clock):
        order_id = declined_order()
        clock.advance(hours=24, minutes=1)

        eligibility = reopening_service.can_request_reopening(order_id)

        assert eligibility.can_reopen is False
        assert "window has expired" in eligibility.reason

    def test_explicit_time(self, declined_order, reopening_service):
        order_id = declined_order()
        later = T0 + timedelta(hours=30)

        assert reopening_service.can_request_reopening(order_id, now=later).can_reopen is False

    def test_pending_request_blocks_another(self, declined_order, reopening_service):
        order_id = declined_order()
        reopening_service.create_request(order_id, CUSTOMER, "forgot_upload")

        eligibility = reopening_service.can_request_reopening(order_id)
        assert eligibility.can_reopen is False
        assert eligibility.has_pending_request is True

        with pytest.raises(NotEligible):
            reopening_service.create_request(order_id, CUSTOMER, "forgot_upload")

    def test_limit_counts_resolved_requests(self, declined_order, reopening_service):
        order_id = declined_order()
        for _ in range(3):
            request = reopening_service.create_request(order_id, CUSTOMER, "emergency")
            reopening_service.respond_to_request(
                request["id"], CONCESSIONAIRE, "decline", decline_reason="insufficient_reason"
            )

        assert reopening_service.can_request_reopening(order_id).can_reopen is False
        with pytest.raises(NotEligible) as exc_info:
            reopening_service.create_request(order_id, CUSTOMER, "emergency")
        assert "Maximum number of reopening requests (3)" in exc_info.value.reason

    def test_limit_follows_settings(self, declined_order, reopening_service, monkeypatch):
        monkeypatch.setattr(settings, "MAX_REOPENING_REQUESTS", 1)
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")
        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "decline", "order_too_old")

        assert reopening_service.can_request_reopening(order_id).can_reopen is False


class TestCreateRequest:
    def test_request_is_pending_and_announced(self, declined_order, reopening_service, sent):
        order_id = declined_order()

        request = reopening_service.create_request(order_id, CUSTOMER, "network_issue", "wifi was down")

        assert request["status"] == "pending"
        assert request["concessionaire_id"] == CONCESSIONAIRE
        assert request["message"] == (
            "I had network connectivity problems. Additional details: wifi was down"
        )
        event = events_of(sent, "reopening_request", CONCESSIONAIRE)[0]["event"]
        assert event["request_id"] == request["id"]

    def test_other_reason_uses_the_custom_text(self, declined_order, reopening_service):
        order_id = declined_order()

        request = reopening_service.create_request(order_id, CUSTOMER, "other", "my phone died")

        assert request["message"] == "my phone died"

    def test_other_reason_needs_text(self, declined_order, reopening_service):
        order_id = declined_order()
        with pytest.raises(ValidationError):
            reopening_service.create_request(order_id, CUSTOMER, "other")

    def test_unknown_reason(self, declined_order, reopening_service):
        order_id = declined_order()
        with pytest.raises(ValidationError):
            reopening_service.create_request(order_id, CUSTOMER, "aliens")

    def test_only_the_customer(self, declined_order, reopening_service):
        order_id = declined_order()
        with pytest.raises(PermissionError):
            reopening_service.create_request(order_id, OTHER_CUSTOMER, "emergency")

    def test_unknown_order(self, reopening_service):
        with pytest.raises(NotFound):
            reopening_service.create_request(999, CUSTOMER, "emergency")


class TestRespond:
    def test_approve_reopens_gcash_order_with_new_deadline(self, declined_order, reopening_service, clock, db, sent):
        o2 = declined_order("gcash")
        clock.advance(hours=1)
        request = reopening_service.create_request(o2, CUSTOMER, "technical_issue")
        assert request["status"] == "pending"

        clock.advance(hours=1)
        sent.clear()
        resolved = reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        assert resolved["status"] == "approved"
        assert resolved["resolved_at"] == T0 + timedelta(hours=2)
        order = db.get(OrderModel, o2)
        assert order.status == "submitted"
        assert order.receipt_deadline == T0 + timedelta(hours=2, minutes=15)
        assert order.decline_reason is None
        assert order.original_decline_reason == "out_of_stock"
        assert order.reopened_at == T0 + timedelta(hours=2)

        assert events_of(sent, "reopening_resolution", CUSTOMER)[0]["event"]["decision"] == "approved"
        assert events_of(sent, "order_update", CUSTOMER)[0]["event"]["status"] == "submitted"

    def test_approve_drops_declined_receipt_and_restarts_deadline(
        self, place_order, order_service, reopening_service, clock, db
    ):
        order = place_order("gcash")
        order_service.upload_proof(order["id"], CUSTOMER, b"receipt", "image/png")
        order_service.decline(order["id"], CONCESSIONAIRE, "invalid_payment")
        request = reopening_service.create_request(order["id"], CUSTOMER, "payment_delay")

        clock.advance(minutes=30)
        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        reopened = db.get(OrderModel, order["id"])
        assert reopened.status == "submitted"
        assert reopened.receipt_image is None
        assert reopened.receipt_submitted_at is None
        assert reopened.receipt_deadline == T0 + timedelta(minutes=45)
        with pytest.raises(InvalidTransition):
            order_service.accept(order["id"], CONCESSIONAIRE)

    def test_settled_gcash_keeps_receipt_when_approving_to_accepted(
        self, place_order, order_service, reopening_service, db, monkeypatch
    ):
        monkeypatch.setattr(settings, "REOPENING_APPROVAL_STATUS", "accepted")
        order = place_order("gcash")
        order_service.upload_proof(order["id"], CUSTOMER, b"receipt", "image/png")
        order_service.decline(order["id"], CONCESSIONAIRE, "concession_closed")
        request = reopening_service.create_request(order["id"], CUSTOMER, "emergency")

        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        reopened = db.get(OrderModel, order["id"])
        assert reopened.status == "accepted"
        assert reopened.receipt_image == b"receipt"

    def test_approve_cash_order_has_no_deadline(self, declined_order, reopening_service, db):
        order_id = declined_order("cash")
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")

        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        order = db.get(OrderModel, order_id)
        assert order.status == "submitted"
        assert order.receipt_deadline is None

    def test_approve_straight_to_accepted_when_configured(self, declined_order, reopening_service, db, monkeypatch):
        monkeypatch.setattr(settings, "REOPENING_APPROVAL_STATUS", "accepted")
        order_id = declined_order("cash")
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")

        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        assert db.get(OrderModel, order_id).status == "accepted"

    def test_unpaid_gcash_goes_back_to_submitted_even_when_configured(
        self, declined_order, reopening_service, db, monkeypatch
    ):
        monkeypatch.setattr(settings, "REOPENING_APPROVAL_STATUS", "accepted")
        order_id = declined_order("gcash")
        request = reopening_service.create_request(order_id, CUSTOMER, "forgot_upload")

        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        assert db.get(OrderModel, order_id).status == "submitted"

    def test_decline_requires_reason(self, declined_order, reopening_service):
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")

        with pytest.raises(ValidationError):
            reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "decline")

    def test_decline_keeps_order_declined(self, declined_order, reopening_service, db, sent):
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")
        sent.clear()

        resolved = reopening_service.respond_to_request(
            request["id"], CONCESSIONAIRE, "decline", "policy_violation", "third time this week"
        )

        assert resolved["status"] == "declined"
        assert resolved["decline_reason"] == "policy_violation"
        assert resolved["response_message"].endswith(
            "Reason: Reopening request violates our policy. Additional details: third time this week"
        )
        assert db.get(OrderModel, order_id).status == "declined"
        assert events_of(sent, "reopening_resolution", CUSTOMER)[0]["event"]["decision"] == "declined"

    def test_resolved_request_cannot_be_answered_again(self, declined_order, reopening_service):
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")
        reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "approve")

        with pytest.raises(AlreadyResolved):
            reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "decline", "other", "changed my mind")

    def test_only_the_concessionaire(self, declined_order, reopening_service):
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")

        with pytest.raises(PermissionError):
            reopening_service.respond_to_request(request["id"], OTHER_CONCESSIONAIRE, "approve")

    def test_unknown_decision(self, declined_order, reopening_service):
        order_id = declined_order()
        request = reopening_service.create_request(order_id, CUSTOMER, "emergency")

        with pytest.raises(ValidationError):
            reopening_service.respond_to_request(request["id"], CONCESSIONAIRE, "maybe")


class TestQueries:
    def test_status_reports_latest_request_and_count(self, declined_order, reopening_service):
        order_id = declined_order()
        first = reopening_service.create_request(order_id, CUSTOMER, "emergency")
        reopening_service.respond_to_request(first["id"], CONCESSIONAIRE, "decline", "insufficient_reason")
        second = reopening_service.create_request(order_id, CUSTOMER, "payment_delay")

        status = reopening_service.get_status(order_id)

        assert status["order_status"] == "declined"
        assert status["has_request"] is True
        assert status["request"]["id"] == second["id"]
        assert status["request_count"] == 2
        assert status["eligibility"]["has_pending_request"] is True

    def test_concessionaire_listing_by_status(self, declined_order, reopening_service):
        first_order = declined_order()
        second_order = declined_order()
        done = reopening_service.create_request(first_order, CUSTOMER, "emergency")
        reopening_service.respond_to_request(done["id"], CONCESSIONAIRE, "approve")
        waiting = reopening_service.create_request(second_order, CUSTOMER, "emergency")

        pending = reopening_service.list_for_concessionaire(CONCESSIONAIRE, "pending")
        everything = reopening_service.list_for_concessionaire(CONCESSIONAIRE, "all")

        assert [r["id"] for r in pending] == [waiting["id"]]
        assert {r["id"] for r in everything} == {done["id"], waiting["id"]}
        assert reopening_service.list_for_concessionaire(OTHER_CONCESSIONAIRE) == []
        assert reopening_service.get_request(waiting["id"])["status"] == "pending"

    def test_unknown_listing_filter(self, reopening_service):
        with pytest.raises(ValidationError):
            reopening_service.list_for_concessionaire(CONCESSIONAIRE, "archived")
