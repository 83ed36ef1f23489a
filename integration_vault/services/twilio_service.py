"""
Twilio SMS client
REST API 2010-04-01 with account SID / auth token basic auth
"""

import logging
from typing import Optional

import httpx

from .. import config
from ..errors import ProviderError

logger = logging.getLogger(__name__)


class TwilioClient:
    provider = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        phone_number: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.phone_number = phone_number
        self.transport = transport
        self.base_url = (base_url or config.TWILIO_API_URL).rstrip("/")

    async def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/Accounts/{self.account_sid}{path}"
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=config.PROVIDER_HTTP_TIMEOUT
            ) as client:
                response = await client.request(
                    method, url, data=data, auth=(self.account_sid, self.auth_token)
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Twilio request failed: {e}")
            raise ProviderError(self.provider, f"Connection error: {e}") from e

        if response.status_code == 401:
            raise ProviderError(self.provider, "Invalid Account SID or Auth Token", status_code=401)
        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text or f"HTTP {response.status_code}"
            raise ProviderError(self.provider, message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                self.provider, "Unexpected non-JSON response", status_code=response.status_code
            ) from e

    async def send_sms(self, to: str, body: str) -> dict:
        """
        Send an SMS from the tenant's number

        Returns:
            id (message SID), status, to and from as reported by Twilio
        """
        if not to.startswith("+"):
            raise ProviderError(self.provider, "Phone number must be in E.164 format (e.g., +1234567890)")
        if not self.phone_number:
            raise ProviderError(self.provider, "No sending phone number configured")

        message = await self._request(
            "POST", "/Messages.json", data={"To": to, "From": self.phone_number, "Body": body}
        )
        logger.info(f"📱 SMS queued: {message.get('sid')}")
        return {
            "id": message.get("sid"),
            "status": message.get("status"),
            "to": message.get("to"),
            "from": message.get("from"),
        }

    async def fetch_account(self) -> dict:
        return await self._request("GET", ".json")

    async def test_connection(self) -> dict:
        account = await self.fetch_account()
        return {"friendly_name": account.get("friendly_name"), "status": account.get("status")}
