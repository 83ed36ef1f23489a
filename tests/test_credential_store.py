"""Tests for saving, reading and deactivating provider credentials."""

import pytest
from sqlalchemy import func, select

from integration_vault.domain.integrations.masking import MASK
from integration_vault.domain.integrations.service import CredentialService
from integration_vault.encryption import looks_like_envelope
from integration_vault.errors import InvalidCredentials, NotConfigured, RoutingKeyInUse
from integration_vault.models_integrations import IntegrationCredential

WHATSAPP_FIELDS = {
    "phoneNumberId": "106540352242922",
    "businessAccountId": "102290129340398",
    "accessToken": "EAAB-token",
    "verifyToken": "my-verify-token",
}


@pytest.fixture
def service(db, cipher) -> CredentialService:
    return CredentialService(db, cipher)


class TestSave:

    async def test_save_returns_public_metadata_only(self, service, tenant):
        result = await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        assert set(result) == {"id", "provider", "is_active", "created_at"}
        assert result["provider"] == "whatsapp"
        assert result["is_active"] is True

    async def test_sensitive_fields_stored_as_envelopes(self, service, db, cipher, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        row = (await db.execute(select(IntegrationCredential))).scalar_one()

        assert row.credentials["phoneNumberId"] == "106540352242922"
        assert row.routing_key == "106540352242922"
        for name in ("businessAccountId", "accessToken", "verifyToken"):
            assert looks_like_envelope(row.credentials[name])
        assert cipher.decrypt(row.credentials["accessToken"]) == "EAAB-token"

    async def test_resave_replaces_single_row(self, service, db, cipher, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        await service.save(tenant.id, "whatsapp", {**WHATSAPP_FIELDS, "accessToken": "rotated"})

        count = (await db.execute(select(func.count(IntegrationCredential.id)))).scalar_one()
        assert count == 1
        stored = await service.get(tenant.id, "whatsapp")
        assert cipher.decrypt(stored["credentials"]["accessToken"]) == "rotated"

    async def test_resave_reactivates(self, service, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        await service.deactivate(tenant.id, "whatsapp")
        result = await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        assert result["is_active"] is True

    async def test_missing_required_field(self, service, tenant):
        fields = {k: v for k, v in WHATSAPP_FIELDS.items() if k != "accessToken"}
        with pytest.raises(InvalidCredentials, match="accessToken"):
            await service.save(tenant.id, "whatsapp", fields)

    async def test_unknown_provider(self, service, tenant):
        with pytest.raises(InvalidCredentials):
            await service.save(tenant.id, "paypal", {})

    async def test_undeclared_fields_are_dropped(self, service, tenant):
        await service.save(tenant.id, "stripe", {"secretKey": "sk", "publishableKey": "pk", "junk": "x"})
        stored = await service.get(tenant.id, "stripe")
        assert "junk" not in stored["credentials"]

    async def test_routing_key_owned_by_another_tenant(self, service, tenant, other_tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        with pytest.raises(RoutingKeyInUse):
            await service.save(other_tenant.id, "whatsapp", WHATSAPP_FIELDS)

    async def test_providers_are_independent(self, service, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        await service.save(
            tenant.id,
            "twilio",
            {"accountSid": "AC1", "authToken": "tok", "phoneNumber": "+15550009"},
        )
        assert (await service.get(tenant.id, "whatsapp"))["configured"]
        assert (await service.get(tenant.id, "twilio"))["configured"]


class TestRead:

    async def test_absent_configuration(self, service, tenant):
        assert await service.get(tenant.id, "stripe") == {"configured": False}
        assert await service.get_masked(tenant.id, "stripe") == {"configured": False}

    async def test_masked_view(self, service, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        view = await service.get_masked(tenant.id, "whatsapp")

        assert view["configured"] is True
        assert view["provider"] == "whatsapp"
        assert view["last_synced_at"] is None
        assert view["credentials"] == {
            "phoneNumberId": "106540352242922",
            "businessAccountId": MASK,
            "accessToken": MASK,
            "verifyToken": MASK,
        }

    async def test_configurations_are_tenant_scoped(self, service, tenant, other_tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        assert await service.get(other_tenant.id, "whatsapp") == {"configured": False}


class TestDeactivate:

    async def test_deactivate_keeps_row(self, service, tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        result = await service.deactivate(tenant.id, "whatsapp")
        assert result["is_active"] is False

        stored = await service.get(tenant.id, "whatsapp")
        assert stored["configured"] is True
        assert stored["is_active"] is False

    async def test_deactivate_unconfigured(self, service, tenant):
        with pytest.raises(NotConfigured):
            await service.deactivate(tenant.id, "twilio")

    async def test_deactivate_releases_routing_key(self, service, tenant, other_tenant):
        await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
        await service.deactivate(tenant.id, "whatsapp")

        result = await service.save(other_tenant.id, "whatsapp", WHATSAPP_FIELDS)

        assert result["is_active"] is True
        # The previous owner now conflicts when reconnecting the same number
        with pytest.raises(RoutingKeyInUse):
            await service.save(tenant.id, "whatsapp", WHATSAPP_FIELDS)
