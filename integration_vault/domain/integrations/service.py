"""Integration credential service - save, read, mask, deactivate and test provider configurations"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...encryption import FieldCipher
from ...errors import NotConfigured
from ...models_integrations import IntegrationCredential
from .field_schema import get_schema
from .masking import mask_credentials
from .repository import CredentialRepository

logger = logging.getLogger(__name__)


def public_metadata(row: IntegrationCredential) -> dict:
    """Row metadata that is safe to return to callers (no credentials blob)"""
    return {
        "id": row.id,
        "provider": row.provider,
        "is_active": row.is_active,
        "created_at": row.created_at,
    }


class CredentialService:
    """Service layer for per-tenant provider credentials"""

    def __init__(self, db: AsyncSession, cipher: FieldCipher):
        self.db = db
        self.cipher = cipher
        self.repo = CredentialRepository()

    async def save(self, tenant_id: int, provider: str, fields: dict[str, Any]) -> dict:
        """Encrypt the provider's sensitive fields and upsert the (tenant, provider) row"""
        schema = get_schema(provider)
        values = schema.validate(fields)
        encrypted = self.cipher.encrypt_fields(values, schema.sensitive_fields)

        routing_key = None
        if schema.routing_field:
            routing_key = str(values[schema.routing_field]).strip() or None

        row = await self.repo.upsert(
            self.db, tenant_id, schema.provider.value, encrypted, routing_key=routing_key
        )
        logger.info(f"✅ {schema.provider.value} credentials saved for tenant {tenant_id}")
        return public_metadata(row)

    async def get(self, tenant_id: int, provider: str) -> dict:
        """
        Stored metadata plus the raw credentials mapping.

        For internal use by masking and dispatch only; never return this
        from an endpoint.
        """
        schema = get_schema(provider)
        row = await self.repo.get(self.db, tenant_id, schema.provider.value)
        if not row:
            return {"configured": False}
        return {
            "configured": True,
            **public_metadata(row),
            "last_synced_at": row.last_synced_at,
            "credentials": dict(row.credentials or {}),
        }

    async def get_masked(self, tenant_id: int, provider: str) -> dict:
        """Display-safe status view of a provider configuration"""
        schema = get_schema(provider)
        stored = await self.get(tenant_id, provider)
        if not stored["configured"]:
            return {"configured": False}
        return {
            "configured": True,
            "provider": stored["provider"],
            "is_active": stored["is_active"],
            "last_synced_at": stored["last_synced_at"],
            "credentials": mask_credentials(stored["credentials"], schema),
        }

    async def deactivate(self, tenant_id: int, provider: str) -> dict:
        schema = get_schema(provider)
        row = await self.repo.get(self.db, tenant_id, schema.provider.value)
        if not row:
            raise NotConfigured(tenant_id, schema.provider.value)
        row = await self.repo.set_active(self.db, row, False)
        logger.info(f"🔌 {schema.provider.value} deactivated for tenant {tenant_id}")
        return public_metadata(row)

    async def test_connection(self, tenant_id: int, provider: str, resolver) -> dict:
        """Call the provider's cheapest read endpoint and stamp last_synced_at on success"""
        schema = get_schema(provider)
        client = await resolver.resolve(tenant_id, schema.provider.value)
        data = await client.test_connection()

        row = await self.repo.get(self.db, tenant_id, schema.provider.value)
        if row:
            await self.repo.touch_last_synced(self.db, row)
        logger.info(f"✅ {schema.provider.value} connection test passed for tenant {tenant_id}")
        return data
