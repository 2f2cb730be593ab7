"""
test_dispatch_service.py — Tests for services/dispatch_service.py

Covers: supplier filtering, dispatch with excluded suppliers (warning, no
row, no message), outright rejection when no supplier is valid, per-
supplier failures that do not roll back created rows, template sequences,
cover images, resend and resend-all.

Called by: pytest
Depends on: autoquote/services/dispatch_service.py, conftest.py
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from autoquote.connectors.whatsapp import WhatsAppError, WhatsAppNotConfigured
from autoquote.models import QuotationRequest
from autoquote.services import dispatch_service, template_service
from autoquote.services.state import StateTransitionError


# ── Filtering ───────────────────────────────────────────────────────


class TestFilterSuppliers:
    def test_and_combined_filters(self, db_session, test_user, make_supplier):
        make_supplier("Auto Peças SP", area_code="11", city="São Paulo", state="SP")
        make_supplier("Auto Peças Campinas", area_code="19", city="Campinas", state="SP")
        make_supplier("Auto Peças Rio", area_code="21", city="Rio de Janeiro", state="RJ")

        rows = dispatch_service.filter_suppliers(db_session, test_user.id, state="sp", area_code="19")
        assert [s.name for s in rows] == ["Auto Peças Campinas"]

    def test_categories_match_any(self, db_session, test_user, make_supplier):
        make_supplier("Faróis Ltda", categories=["Iluminação"])
        make_supplier("Lataria Ltda", categories=["Funilaria", "Para-choques"])
        make_supplier("Motor Ltda", categories=["Motor"])

        rows = dispatch_service.filter_suppliers(
            db_session, test_user.id, categories=["iluminação", "para-choques"]
        )
        assert [s.name for s in rows] == ["Faróis Ltda", "Lataria Ltda"]

    def test_name_substring(self, db_session, test_user, make_supplier):
        make_supplier("Distribuidora Alfa")
        make_supplier("Beta Peças")
        rows = dispatch_service.filter_suppliers(db_session, test_user.id, name="alfa")
        assert [s.name for s in rows] == ["Distribuidora Alfa"]

    def test_scoped_to_user(self, db_session, admin_user, make_supplier):
        make_supplier("Auto Peças SP")
        assert dispatch_service.filter_suppliers(db_session, admin_user.id) == []


# ── Dispatch ────────────────────────────────────────────────────────


class TestDispatchQuotation:
    @pytest.mark.asyncio
    async def test_excluded_supplier_gets_warning_not_request(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A")
        b = make_supplier("Fornecedor B", phone="")

        result = await dispatch_service.dispatch_quotation(
            db_session, test_user.id, test_quotation, [a.id, b.id], client=fake_whatsapp
        )

        requests = db_session.query(QuotationRequest).all()
        assert len(requests) == 1
        assert requests[0].supplier_id == a.id
        assert requests[0].status == "sent"
        assert requests[0].sent_at is not None
        assert fake_whatsapp.send_text.await_count == 1
        assert result["created"] == 1
        assert result["sent"] == 1
        assert result["failures"] == []
        assert len(result["warnings"]) == 1
        assert "Fornecedor B" in result["warnings"][0]
        assert test_quotation.status == "in_progress"

    @pytest.mark.asyncio
    async def test_message_carries_number_and_response_link(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A", area_code="(11)", phone="98765-4321")
        result = await dispatch_service.dispatch_quotation(
            db_session, test_user.id, test_quotation, [a.id], client=fake_whatsapp
        )
        number, text = fake_whatsapp.send_text.await_args.args
        assert number == "5511987654321"
        request_id = result["request_ids"][0]
        assert f"/quotation-response/{test_quotation.id}/{request_id}" in text
        assert "FAROL ESQUERDO" in text

    @pytest.mark.asyncio
    async def test_rejects_when_no_valid_supplier(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        b = make_supplier("Sem Telefone", phone="")
        c = make_supplier("Sem DDD", area_code="")

        with pytest.raises(ValueError, match="No valid supplier"):
            await dispatch_service.dispatch_quotation(
                db_session, test_user.id, test_quotation, [b.id, c.id], client=fake_whatsapp
            )

        assert db_session.query(QuotationRequest).count() == 0
        fake_whatsapp.send_text.assert_not_awaited()
        assert test_quotation.status == "pending"

    @pytest.mark.asyncio
    async def test_unconfigured_whatsapp_rejected_before_rows(
        self, db_session, test_user, test_quotation, make_supplier
    ):
        a = make_supplier("Fornecedor A")
        with pytest.raises(WhatsAppNotConfigured):
            await dispatch_service.dispatch_quotation(db_session, test_user.id, test_quotation, [a.id])
        assert db_session.query(QuotationRequest).count() == 0

    @pytest.mark.asyncio
    async def test_failed_supplier_recorded_and_loop_continues(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A", phone="911111111")
        b = make_supplier("Fornecedor B", phone="922222222")
        fake_whatsapp.send_text = AsyncMock(
            side_effect=[WhatsAppError("Gateway error 500: boom"), {"key": {"id": "ok"}}]
        )

        result = await dispatch_service.dispatch_quotation(
            db_session, test_user.id, test_quotation, [a.id, b.id], client=fake_whatsapp
        )

        assert result["created"] == 2
        assert result["sent"] == 1
        assert result["failures"][0]["supplier_id"] == a.id
        assert "boom" in result["failures"][0]["error"]
        by_supplier = {r.supplier_id: r for r in db_session.query(QuotationRequest)}
        assert by_supplier[a.id].status == "pending"
        assert "boom" in by_supplier[a.id].last_error
        assert by_supplier[b.id].status == "sent"

    @pytest.mark.asyncio
    async def test_sequence_and_cover_image(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        template_service.create_template(db_session, test_user.id, "Principal", "Cotação {marca} {quotation_link}")
        template_service.create_template(db_session, test_user.id, "Extra", "Obrigado! {modelo}")
        a = make_supplier("Fornecedor A")

        with patch("autoquote.services.dispatch_service.asyncio.sleep", new=AsyncMock()) as sleep:
            await dispatch_service.dispatch_quotation(
                db_session,
                test_user.id,
                test_quotation,
                [a.id],
                cover_image="https://cdn.autoquote.test/capa.jpg",
                send_sequence=True,
                client=fake_whatsapp,
            )

        texts = [c.args[1] for c in fake_whatsapp.send_text.await_args_list]
        assert texts[0].startswith("Cotação Honda")
        assert texts[1] == "Obrigado! Civic"
        sleep.assert_awaited_once()
        media_args = fake_whatsapp.send_media.await_args
        assert media_args.args[1] == "https://cdn.autoquote.test/capa.jpg"

    @pytest.mark.asyncio
    async def test_duplicate_ids_create_one_request(
        self, db_session, test_user, test_quotation, make_supplier, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A")
        result = await dispatch_service.dispatch_quotation(
            db_session, test_user.id, test_quotation, [a.id, a.id], client=fake_whatsapp
        )
        assert result["created"] == 1


# ── Resend ──────────────────────────────────────────────────────────


class TestResend:
    @pytest.mark.asyncio
    async def test_resend_keeps_first_sent_at(
        self, db_session, test_user, test_quotation, make_supplier, make_request, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A")
        req = make_request(test_quotation, a, status="sent")
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        req.sent_at = first
        db_session.commit()

        result = await dispatch_service.resend_request(db_session, test_user.id, req, client=fake_whatsapp)

        assert result["sent"] == 1
        assert req.status == "sent"
        assert req.sent_at == first

    @pytest.mark.asyncio
    async def test_resend_responded_rejected(
        self, db_session, test_user, test_quotation, make_supplier, make_request, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A")
        req = make_request(test_quotation, a, prices=[(True, 100), (False, 0)])
        with pytest.raises(StateTransitionError):
            await dispatch_service.resend_request(db_session, test_user.id, req, client=fake_whatsapp)
        fake_whatsapp.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resend_all_skips_responded(
        self, db_session, test_user, test_quotation, make_supplier, make_request, fake_whatsapp
    ):
        a = make_supplier("Fornecedor A")
        b = make_supplier("Fornecedor B")
        make_request(test_quotation, a, prices=[(True, 100), (False, 0)])
        make_request(test_quotation, b, status="pending")

        result = await dispatch_service.resend_all(db_session, test_user.id, test_quotation, client=fake_whatsapp)

        assert result["sent"] == 1
        assert result["skipped"] == 1
        assert fake_whatsapp.send_text.await_count == 1

    @pytest.mark.asyncio
    async def test_resend_all_nothing_to_send(self, db_session, test_user, test_quotation):
        result = await dispatch_service.resend_all(db_session, test_user.id, test_quotation)
        assert result == {"quotation_id": test_quotation.id, "sent": 0, "skipped": 0, "failures": []}


def test_response_link_format(test_quotation):
    assert dispatch_service.response_link(12, 34) == "http://localhost:8000/quotation-response/12/34"
