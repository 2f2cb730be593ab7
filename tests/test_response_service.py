"""
test_response_service.py — Tests for services/response_service.py

Covers: price arithmetic on supplier answers, unavailable parts forced to
zero without validation, unanswered parts, available-part validation, the
terminal responded state, and the public form payload.

Called by: pytest
Depends on: autoquote/services/response_service.py, conftest.py
"""

import pytest

from autoquote.schemas.quotations import ResponsePartIn, SupplierResponseSubmit
from autoquote.services import response_service
from autoquote.services.state import StateTransitionError


def _submit(parts, **overrides):
    data = {
        "supplier_name": "Auto Peças A",
        "supplier_phone": "11987654321",
        "parts": parts,
        "delivery_time": "3 dias",
        "payment_method": "Boleto",
    }
    data.update(overrides)
    return SupplierResponseSubmit(**data)


@pytest.fixture()
def sent_request(test_quotation, make_supplier, make_request):
    return make_request(test_quotation, make_supplier("Auto Peças A"), status="sent")


class TestSubmitResponse:
    def test_available_and_unavailable_totals(self, db_session, test_quotation, sent_request):
        payload = _submit(
            [
                {"index": 0, "available": True, "unit_price": 100.00, "condition": "new"},
                {"index": 1, "available": False, "unit_price": 999, "condition": "used"},
            ]
        )

        data = response_service.submit_response(db_session, test_quotation, sent_request, payload)

        first, second = data["parts"]
        assert first["quantity"] == 2
        assert first["unit_price"] == 100.0
        assert first["total_price"] == 200.0
        assert second["available"] is False
        assert second["unit_price"] == 0.0
        assert second["total_price"] == 0.0
        assert data["total_price"] == 200.0
        assert sent_request.status == "responded"
        assert sent_request.responded_at is not None
        assert sent_request.response_data["payment_method"] == "Boleto"

    def test_unavailable_part_skips_validation(self, db_session, test_quotation, sent_request):
        payload = _submit(
            [
                {"index": 0, "available": False},
                {"index": 1, "available": False},
            ]
        )
        data = response_service.submit_response(db_session, test_quotation, sent_request, payload)
        assert data["total_price"] == 0.0

    def test_unanswered_parts_count_as_unavailable(self, db_session, test_quotation, sent_request):
        payload = _submit([{"index": 1, "available": True, "unit_price": 50, "condition": "used"}])
        data = response_service.submit_response(db_session, test_quotation, sent_request, payload)
        assert data["parts"][0]["available"] is False
        assert data["parts"][1]["total_price"] == 50.0
        assert data["total_price"] == 50.0

    def test_available_part_needs_price_and_condition(self, db_session, test_quotation, sent_request):
        payload = _submit([{"index": 0, "available": True, "unit_price": 0}])
        with pytest.raises(ValueError) as exc:
            response_service.submit_response(db_session, test_quotation, sent_request, payload)
        assert "unit price" in str(exc.value)
        assert "condition" in str(exc.value)
        assert sent_request.status == "sent"

    def test_unknown_index_rejected(self, db_session, test_quotation, sent_request):
        payload = _submit([{"index": 5, "available": False}])
        with pytest.raises(ValueError, match="index 5"):
            response_service.submit_response(db_session, test_quotation, sent_request, payload)

    def test_second_answer_rejected(self, db_session, test_quotation, sent_request):
        payload = _submit([{"index": 0, "available": True, "unit_price": 10, "condition": "new"}])
        response_service.submit_response(db_session, test_quotation, sent_request, payload)

        again = _submit([{"index": 0, "available": True, "unit_price": 1, "condition": "new"}])
        with pytest.raises(StateTransitionError):
            response_service.submit_response(db_session, test_quotation, sent_request, again)
        assert sent_request.response_data["parts"][0]["unit_price"] == 10.0

    def test_pending_request_can_be_answered(self, db_session, test_quotation, make_supplier, make_request):
        req = make_request(test_quotation, make_supplier("Fornecedor B"), status="pending")
        payload = _submit([{"index": 0, "available": False}])
        response_service.submit_response(db_session, test_quotation, req, payload)
        assert req.status == "responded"


class TestSchema:
    def test_supplier_name_required(self):
        with pytest.raises(ValueError):
            _submit([], supplier_name="   ")

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            ResponsePartIn(index=0, unit_price=-1)


class TestResponseForm:
    def test_open_form(self, test_quotation, test_vehicle, sent_request):
        form = response_service.response_form(test_quotation, test_vehicle, sent_request)
        assert form["editable"] is True
        assert form["response_data"] is None
        assert [p["index"] for p in form["parts"]] == [0, 1]
        assert form["vehicle"]["brand"] == "Honda"

    def test_answered_form_is_read_only(self, db_session, test_quotation, test_vehicle, sent_request):
        payload = _submit([{"index": 0, "available": True, "unit_price": 10, "condition": "new"}])
        response_service.submit_response(db_session, test_quotation, sent_request, payload)

        form = response_service.response_form(test_quotation, test_vehicle, sent_request)
        assert form["editable"] is False
        assert form["response_data"]["total_price"] == 20.0
