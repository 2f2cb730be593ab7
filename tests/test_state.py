"""Tests for autoquote.services.state lifecycle machines."""

from types import SimpleNamespace

import pytest

from autoquote.services.state import (
    StateTransitionError,
    can_transition,
    is_terminal,
    transition,
)


class TestRequestMachine:
    def test_pending_to_sent(self):
        assert can_transition("request", "pending", "sent")

    def test_pending_to_responded(self):
        assert can_transition("request", "pending", "responded")

    def test_resend_allowed(self):
        assert can_transition("request", "sent", "sent")

    def test_responded_is_terminal(self):
        assert is_terminal("request", "responded")
        assert not can_transition("request", "responded", "responded")
        assert not can_transition("request", "responded", "sent")

    def test_none_status_treated_as_pending(self):
        assert can_transition("request", None, "sent")


class TestCounterOfferMachine:
    @pytest.mark.parametrize("target", ["accepted", "partially_accepted"])
    def test_pending_answers(self, target):
        assert can_transition("counter_offer", "pending", target)

    @pytest.mark.parametrize("status", ["accepted", "partially_accepted"])
    def test_answers_are_terminal(self, status):
        assert is_terminal("counter_offer", status)
        assert not can_transition("counter_offer", status, "accepted")


class TestPurchaseOrderMachine:
    def test_send_cycle(self):
        assert can_transition("purchase_order", "pending", "sending")
        assert can_transition("purchase_order", "sending", "sent")

    def test_failed_send_returns_to_pending(self):
        assert can_transition("purchase_order", "sending", "pending")

    def test_pending_cannot_jump_to_sent(self):
        assert not can_transition("purchase_order", "pending", "sent")


class TestTransition:
    def test_moves_status(self):
        record = SimpleNamespace(id=7, status="pending")
        transition(record, "request", "sent")
        assert record.status == "sent"

    def test_illegal_move_raises_and_keeps_status(self):
        record = SimpleNamespace(id=7, status="responded")
        with pytest.raises(StateTransitionError, match="request #7"):
            transition(record, "request", "sent")
        assert record.status == "responded"

    def test_error_is_not_a_value_error(self):
        # Routers map ValueError to 400; illegal transitions must stay 409
        assert not issubclass(StateTransitionError, ValueError)
