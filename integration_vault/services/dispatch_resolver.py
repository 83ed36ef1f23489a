"""
Outbound dispatch resolver

Turns (tenant, provider) into a ready-to-use provider client, decrypting only
the fields that client needs.
"""

import logging
from typing import Optional, Union

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.integrations.field_schema import Provider, get_schema
from ..domain.integrations.repository import CredentialRepository
from ..encryption import Failed, FieldCipher
from ..errors import DecryptionFailure, NotConfigured
from .email_service import SmtpClient
from .stripe_service import StripeClient
from .twilio_service import TwilioClient
from .whatsapp_service import WhatsAppClient

logger = logging.getLogger(__name__)

ProviderClient = Union[WhatsAppClient, TwilioClient, StripeClient, SmtpClient]


class DispatchResolver:
    def __init__(
        self,
        db: AsyncSession,
        cipher: FieldCipher,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.cipher = cipher
        self.transport = transport

    async def resolve(self, tenant_id: int, provider: str) -> ProviderClient:
        """
        Build the provider client for a tenant.

        Raises NotConfigured when the tenant has no active configuration and
        DecryptionFailure when a field the client needs cannot be decrypted.
        """
        schema = get_schema(provider)
        row = await CredentialRepository.get(self.db, tenant_id, schema.provider.value)
        if not row or not row.is_active:
            raise NotConfigured(tenant_id, schema.provider.value)

        decrypted = self.cipher.decrypt_fields(row.credentials or {}, schema.dispatch_fields)
        for name in schema.dispatch_fields:
            result = decrypted.results.get(name)
            if isinstance(result, Failed):
                raise DecryptionFailure(schema.provider.value, name, result.reason)
            if result is None:
                raise DecryptionFailure(schema.provider.value, name, "field is empty")

        logger.debug(f"Resolved {schema.provider.value} client for tenant {tenant_id}")
        return self._build(schema.provider, decrypted.values)

    def _build(self, provider: Provider, values: dict) -> ProviderClient:
        if provider == Provider.WHATSAPP:
            return WhatsAppClient(
                phone_number_id=values["phoneNumberId"],
                access_token=values["accessToken"],
                transport=self.transport,
            )
        if provider == Provider.TWILIO:
            return TwilioClient(
                account_sid=values["accountSid"],
                auth_token=values["authToken"],
                phone_number=values.get("phoneNumber"),
                transport=self.transport,
            )
        if provider == Provider.STRIPE:
            return StripeClient(secret_key=values["secretKey"])
        return SmtpClient(
            host=values["host"],
            port=values["port"],
            user=values["user"],
            password=values["password"],
            secure=values.get("secure"),
        )
