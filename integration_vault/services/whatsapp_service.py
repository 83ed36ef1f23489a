"""
WhatsApp Cloud API client
Sends messages and read receipts for one tenant's phone number
"""

import logging
import re
from typing import Any, Optional

import httpx

from .. import config
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class WhatsAppClient:
    provider = "whatsapp"

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
    ):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.transport = transport
        self.base_url = (base_url or config.WHATSAPP_GRAPH_URL).rstrip("/")

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=config.PROVIDER_HTTP_TIMEOUT
            ) as client:
                response = await client.request(
                    method, f"{self.base_url}/{path}", json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ WhatsApp request failed: {e}")
            raise ProviderError(self.provider, f"Connection error: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(
                self.provider, _error_message(response), status_code=response.status_code
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                self.provider, "Unexpected non-JSON response", status_code=response.status_code
            ) from e

    async def send_message(self, to: str, text: str) -> dict:
        """Send a text message; returns the Graph API response (messages[0].id is the wamid)"""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": re.sub(r"\D", "", to),
            "type": "text",
            "text": {"body": text},
        }
        return await self._request("POST", f"{self.phone_number_id}/messages", payload)

    async def mark_as_read(self, message_id: str) -> None:
        payload = {"messaging_product": "whatsapp", "status": "read", "message_id": message_id}
        await self._request("POST", f"{self.phone_number_id}/messages", payload)

    async def fetch_phone_number(self) -> dict:
        return await self._request("GET", self.phone_number_id)

    async def test_connection(self) -> dict:
        data = await self.fetch_phone_number()
        return {
            "phone_number_id": data.get("id", self.phone_number_id),
            "display_phone_number": data.get("display_phone_number"),
            "verified_name": data.get("verified_name"),
        }


def extract_message_id(response: dict[str, Any]) -> Optional[str]:
    messages = response.get("messages") or []
    return messages[0].get("id") if messages else None


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text or f"HTTP {response.status_code}"
