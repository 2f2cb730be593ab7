"""WhatsApp gateway connector — Evolution API.

Each user stores a (base URL, API key, instance name) triple in
whatsapp_configs; EvolutionClient wraps that triple. Every call is a
single attempt: no retries, timeout is the shared client default
(settings.http_timeout_seconds).

Business Rules:
- Numbers are normalized to 55 + area code + local number (digits only)
- Normalized numbers shorter than 12 digits are rejected before any network call
- Base URL trailing slashes are stripped
- A non-2xx gateway response raises WhatsAppError with the status and body excerpt

Called by: services/dispatch_service, services/order_service, routers/settings
Depends on: http_client, models.WhatsAppConfig
"""

import logging

import httpx
from sqlalchemy.orm import Session

from ..config import settings
from ..models import WhatsAppConfig
from ..utils import digits_only

log = logging.getLogger("autoquote.whatsapp")

MIN_PHONE_DIGITS = 12


class WhatsAppError(Exception):
    """A send or status call to the messaging gateway failed."""


class WhatsAppNotConfigured(ValueError):
    """The user has no usable gateway configuration."""


def normalize_phone(area_code: str | None, phone: str | None) -> str:
    """Build the gateway number: country code + area code + local number."""
    area = digits_only(area_code)
    local = digits_only(phone)
    number = f"{settings.phone_country_code}{area}{local}"
    if len(number) < MIN_PHONE_DIGITS:
        raise ValueError(
            f"Invalid phone number ({area}) {local}: expected country code, area code and number"
        )
    return number


class EvolutionClient:
    """Thin async client for one Evolution API instance."""

    def __init__(self, base_url: str, api_key: str, instance_name: str):
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        self.instance_name = (instance_name or "").strip()

    @classmethod
    def from_config(cls, config: WhatsAppConfig) -> "EvolutionClient":
        return cls(config.evolution_api_url, config.evolution_api_key, config.instance_name)

    def _headers(self) -> dict:
        return {"apikey": self.api_key, "Content-Type": "application/json"}

    async def _post(self, path: str, payload: dict) -> dict:
        from ..http_client import http

        url = f"{self.base_url}{path}/{self.instance_name}"
        try:
            r = await http.post(url, headers=self._headers(), json=payload)
        except httpx.HTTPError as e:
            raise WhatsAppError(f"Gateway unreachable: {e}") from e
        if r.status_code >= 400:
            raise WhatsAppError(f"Gateway error {r.status_code}: {r.text[:200]}")
        try:
            return r.json()
        except ValueError:
            return {}

    async def send_text(self, number: str, text: str) -> dict:
        """Send a text message. `number` must already be normalized."""
        data = await self._post("/message/sendText", {"number": number, "text": text})
        log.info(f"WhatsApp text sent to {number[-4:].rjust(len(number), '*')}")
        return data

    async def send_media(
        self,
        number: str,
        media: str,
        *,
        caption: str = "",
        mediatype: str = "image",
        file_name: str | None = None,
    ) -> dict:
        """Send a media message. `media` is a URL or base64 payload."""
        payload = {
            "number": number,
            "media": media,
            "mediatype": mediatype,
            "caption": caption,
        }
        if file_name:
            payload["fileName"] = file_name
        return await self._post("/message/sendMedia", payload)

    async def connection_state(self) -> dict:
        """Return {state, connected, qrcode}; qrcode only when disconnected."""
        from ..http_client import http

        url = f"{self.base_url}/instance/connectionState/{self.instance_name}"
        try:
            r = await http.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise WhatsAppError(f"Gateway unreachable: {e}") from e
        if r.status_code >= 400:
            raise WhatsAppError(f"Gateway error {r.status_code}: {r.text[:200]}")

        try:
            data = r.json()
        except ValueError as e:
            raise WhatsAppError(f"Gateway returned an unreadable connection state: {r.text[:200]}") from e
        if not isinstance(data, dict):
            raise WhatsAppError("Gateway returned an unreadable connection state")
        state = (data.get("instance") or {}).get("state") or data.get("state") or "unknown"
        connected = state == "open"
        qrcode = None
        if not connected:
            qrcode = data.get("qrcode") or data.get("base64")
        return {"state": state, "connected": connected, "qrcode": qrcode}


def get_config(db: Session, user_id: int) -> WhatsAppConfig | None:
    return (
        db.query(WhatsAppConfig)
        .filter_by(user_id=user_id)
        .order_by(WhatsAppConfig.created_at.desc())
        .first()
    )


def client_for_user(db: Session, user_id: int) -> EvolutionClient:
    """Resolve the user's gateway client or raise WhatsAppNotConfigured."""
    config = get_config(db, user_id)
    if not config or not (
        config.evolution_api_url and config.evolution_api_key and config.instance_name
    ):
        raise WhatsAppNotConfigured("WhatsApp is not configured for this account")
    return EvolutionClient.from_config(config)
