"""
test_whatsapp_connector.py — Tests for connectors/whatsapp.py

Mocks the shared httpx client to check URL building, headers, payloads,
error mapping and connection-state parsing without a live gateway.

Called by: pytest
Depends on: autoquote/connectors/whatsapp.py
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from autoquote.connectors.whatsapp import (
    EvolutionClient,
    WhatsAppError,
    WhatsAppNotConfigured,
    client_for_user,
    normalize_phone,
)


def _mock_http(status=200, json_data=None, text=None, method="post"):
    mock = MagicMock()
    if text is not None:
        resp = httpx.Response(status, text=text)
    else:
        resp = httpx.Response(status, json=json_data if json_data is not None else {})
    setattr(mock, method, AsyncMock(return_value=resp))
    return mock


def _client():
    return EvolutionClient("https://evolution.autoquote.test/", "evo-key-123", "oficina")


# ── Phone normalization ─────────────────────────────────────────────


class TestNormalizePhone:
    def test_prefix_and_digits(self):
        assert normalize_phone("(11)", "98765-4321") == "5511987654321"

    def test_landline_is_long_enough(self):
        assert normalize_phone("11", "33334444") == "551133334444"

    @pytest.mark.parametrize("area,phone", [("", "987654321"), ("11", ""), ("11", "1234"), (None, None)])
    def test_too_short_rejected(self, area, phone):
        with pytest.raises(ValueError):
            normalize_phone(area, phone)


# ── Sending ─────────────────────────────────────────────────────────


class TestSend:
    def test_trailing_slash_stripped(self):
        assert _client().base_url == "https://evolution.autoquote.test"

    @pytest.mark.asyncio
    async def test_send_text_url_headers_payload(self):
        mock = _mock_http(201, {"key": {"id": "ABC"}})
        with patch("autoquote.http_client.http", mock):
            data = await _client().send_text("5511987654321", "Olá")

        assert data == {"key": {"id": "ABC"}}
        args, kwargs = mock.post.await_args
        assert args[0] == "https://evolution.autoquote.test/message/sendText/oficina"
        assert kwargs["headers"]["apikey"] == "evo-key-123"
        assert kwargs["json"] == {"number": "5511987654321", "text": "Olá"}

    @pytest.mark.asyncio
    async def test_send_media_payload(self):
        mock = _mock_http(200, {})
        with patch("autoquote.http_client.http", mock):
            await _client().send_media(
                "5511987654321", "https://cdn.autoquote.test/civic.jpg", caption="*Civic*"
            )
        args, kwargs = mock.post.await_args
        assert args[0].endswith("/message/sendMedia/oficina")
        assert kwargs["json"] == {
            "number": "5511987654321",
            "media": "https://cdn.autoquote.test/civic.jpg",
            "mediatype": "image",
            "caption": "*Civic*",
        }

    @pytest.mark.asyncio
    async def test_send_document_with_file_name(self):
        mock = _mock_http(200, {})
        with patch("autoquote.http_client.http", mock):
            await _client().send_media("5511987654321", "JVBERi0=", mediatype="document", file_name="po.pdf")
        assert mock.post.await_args.kwargs["json"]["fileName"] == "po.pdf"

    @pytest.mark.asyncio
    async def test_gateway_error_status(self):
        mock = _mock_http(500, text="instance not found")
        with patch("autoquote.http_client.http", mock):
            with pytest.raises(WhatsAppError, match="Gateway error 500: instance not found"):
                await _client().send_text("5511987654321", "x")

    @pytest.mark.asyncio
    async def test_gateway_unreachable(self):
        mock = MagicMock()
        mock.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        with patch("autoquote.http_client.http", mock):
            with pytest.raises(WhatsAppError, match="unreachable"):
                await _client().send_text("5511987654321", "x")

    @pytest.mark.asyncio
    async def test_non_json_body_returns_empty(self):
        mock = _mock_http(200, text="ok")
        with patch("autoquote.http_client.http", mock):
            assert await _client().send_text("5511987654321", "x") == {}


# ── Connection state ────────────────────────────────────────────────


class TestConnectionState:
    @pytest.mark.asyncio
    async def test_open_instance(self):
        mock = _mock_http(200, {"instance": {"instanceName": "oficina", "state": "open"}}, method="get")
        with patch("autoquote.http_client.http", mock):
            state = await _client().connection_state()
        assert state == {"state": "open", "connected": True, "qrcode": None}
        assert mock.get.await_args.args[0] == (
            "https://evolution.autoquote.test/instance/connectionState/oficina"
        )

    @pytest.mark.asyncio
    async def test_closed_instance_returns_qrcode(self):
        mock = _mock_http(200, {"state": "close", "qrcode": "data:image/png;base64,AAA"}, method="get")
        with patch("autoquote.http_client.http", mock):
            state = await _client().connection_state()
        assert state["connected"] is False
        assert state["qrcode"] == "data:image/png;base64,AAA"

    @pytest.mark.asyncio
    async def test_status_error(self):
        mock = _mock_http(401, text="unauthorized", method="get")
        with patch("autoquote.http_client.http", mock):
            with pytest.raises(WhatsAppError, match="401"):
                await _client().connection_state()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["<html>maintenance</html>", "[1, 2]"])
    async def test_unreadable_body_is_gateway_error(self, body):
        mock = _mock_http(200, text=body, method="get")
        with patch("autoquote.http_client.http", mock):
            with pytest.raises(WhatsAppError, match="unreadable connection state"):
                await _client().connection_state()


# ── Per-user configuration ──────────────────────────────────────────


class TestClientForUser:
    def test_missing_config(self, db_session, test_user):
        with pytest.raises(WhatsAppNotConfigured):
            client_for_user(db_session, test_user.id)

    def test_incomplete_config(self, db_session, test_user, whatsapp_config):
        whatsapp_config.instance_name = ""
        db_session.commit()
        with pytest.raises(WhatsAppNotConfigured):
            client_for_user(db_session, test_user.id)

    def test_builds_client(self, db_session, test_user, whatsapp_config):
        c = client_for_user(db_session, test_user.id)
        assert c.base_url == "https://evolution.autoquote.test"
        assert c.api_key == "evo-key-123"
        assert c.instance_name == "oficina"
