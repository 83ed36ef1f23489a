"""Tests for resolving tenant credentials into provider clients."""

import httpx
import pytest
from sqlalchemy import update

from integration_vault.domain.integrations.service import CredentialService
from integration_vault.domain.messaging.service import mark_as_read_quietly
from integration_vault.errors import DecryptionFailure, NotConfigured, ProviderError
from integration_vault.models_integrations import IntegrationCredential
from integration_vault.services.dispatch_resolver import DispatchResolver
from integration_vault.services.email_service import SmtpClient
from integration_vault.services.stripe_service import StripeClient
from integration_vault.services.twilio_service import TwilioClient
from integration_vault.services.whatsapp_service import WhatsAppClient


@pytest.fixture
def credentials(db, cipher) -> CredentialService:
    return CredentialService(db, cipher)


class TestResolve:

    async def test_not_configured(self, db, cipher, tenant):
        with pytest.raises(NotConfigured):
            await DispatchResolver(db, cipher).resolve(tenant.id, "whatsapp")

    async def test_inactive_is_not_configured(self, db, cipher, credentials, tenant):
        await credentials.save(tenant.id, "stripe", {"secretKey": "sk_test", "publishableKey": "pk"})
        await credentials.deactivate(tenant.id, "stripe")
        with pytest.raises(NotConfigured):
            await DispatchResolver(db, cipher).resolve(tenant.id, "stripe")

    async def test_whatsapp_client(self, db, cipher, credentials, tenant):
        await credentials.save(
            tenant.id,
            "whatsapp",
            {"phoneNumberId": "1065", "businessAccountId": "1", "accessToken": "EAAB", "verifyToken": "v"},
        )
        client = await DispatchResolver(db, cipher).resolve(tenant.id, "whatsapp")
        assert isinstance(client, WhatsAppClient)
        assert client.phone_number_id == "1065"
        assert client.access_token == "EAAB"

    async def test_twilio_client(self, db, cipher, credentials, tenant):
        await credentials.save(
            tenant.id, "twilio", {"accountSid": "AC1", "authToken": "tok", "phoneNumber": "+15559999"}
        )
        client = await DispatchResolver(db, cipher).resolve(tenant.id, "twilio")
        assert isinstance(client, TwilioClient)
        assert (client.account_sid, client.auth_token, client.phone_number) == ("AC1", "tok", "+15559999")

    async def test_stripe_client(self, db, cipher, credentials, tenant):
        await credentials.save(
            tenant.id,
            "stripe",
            {"secretKey": "sk_test_1", "publishableKey": "pk_test_1", "webhookSecret": "whsec_1"},
        )
        client = await DispatchResolver(db, cipher).resolve(tenant.id, "stripe")
        assert isinstance(client, StripeClient)
        assert client.secret_key == "sk_test_1"

    async def test_smtp_client(self, db, cipher, credentials, tenant):
        await credentials.save(
            tenant.id,
            "email",
            {"host": "smtp.example.com", "port": 465, "user": "me@example.com", "password": "pw"},
        )
        client = await DispatchResolver(db, cipher).resolve(tenant.id, "email")
        assert isinstance(client, SmtpClient)
        assert client.password == "pw"
        assert client.secure is True

    async def test_undecryptable_field(self, db, cipher, credentials, tenant):
        await credentials.save(tenant.id, "stripe", {"secretKey": "sk", "publishableKey": "pk"})
        await db.execute(
            update(IntegrationCredential).values(
                credentials={"secretKey": "00" * 16 + ":" + "00" * 16 + ":00", "publishableKey": "pk"}
            )
        )
        await db.commit()

        with pytest.raises(DecryptionFailure) as exc:
            await DispatchResolver(db, cipher).resolve(tenant.id, "stripe")
        assert exc.value.field == "secretKey"

    async def test_only_dispatch_fields_are_decrypted(self, db, cipher, credentials, tenant):
        """A broken non-dispatch secret does not block resolving the client."""
        await credentials.save(
            tenant.id,
            "whatsapp",
            {"phoneNumberId": "1065", "businessAccountId": "1", "accessToken": "EAAB", "verifyToken": "v"},
        )
        stored = (await credentials.get(tenant.id, "whatsapp"))["credentials"]
        await db.execute(
            update(IntegrationCredential).values(credentials={**stored, "verifyToken": "corrupted"})
        )
        await db.commit()

        client = await DispatchResolver(db, cipher).resolve(tenant.id, "whatsapp")
        assert client.access_token == "EAAB"


class TestProviderClients:

    async def test_whatsapp_send_message(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(
            200, json={"messages": [{"id": "wamid.out"}]}
        )
        client = WhatsAppClient("1065", "EAAB", transport=provider_mock.transport)
        response = await client.send_message("+1 (555) 0001", "Hi")

        assert response["messages"][0]["id"] == "wamid.out"
        request = provider_mock.requests[0]
        assert request.url.path.endswith("/1065/messages")
        assert request.headers["Authorization"] == "Bearer EAAB"
        assert b'"to":"15550001"' in request.content.replace(b" ", b"")

    async def test_whatsapp_error_carries_provider_message(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(
            401, json={"error": {"message": "Invalid OAuth access token."}}
        )
        client = WhatsAppClient("1065", "bad", transport=provider_mock.transport)
        with pytest.raises(ProviderError) as exc:
            await client.fetch_phone_number()
        assert exc.value.message == "Invalid OAuth access token."
        assert exc.value.status_code == 401

    async def test_whatsapp_non_json_success_is_provider_error(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(200, text="<html>OK</html>")
        client = WhatsAppClient("1065", "EAAB", transport=provider_mock.transport)
        with pytest.raises(ProviderError) as exc:
            await client.send_message("15550001", "Hi")
        assert exc.value.status_code == 200

    async def test_read_receipt_with_non_json_body_is_swallowed(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(200, text="not json")
        client = WhatsAppClient("1065", "EAAB", transport=provider_mock.transport)
        await mark_as_read_quietly(client, "wamid.1")
        assert len(provider_mock.requests) == 1

    async def test_twilio_send_sms(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(
            201, json={"sid": "SM9", "status": "queued", "to": "+15550001", "from": "+15559999"}
        )
        client = TwilioClient("AC1", "tok", "+15559999", transport=provider_mock.transport)
        result = await client.send_sms("+15550001", "Hello")

        assert result == {"id": "SM9", "status": "queued", "to": "+15550001", "from": "+15559999"}
        request = provider_mock.requests[0]
        assert request.url.path.endswith("/Accounts/AC1/Messages.json")
        assert request.headers["Authorization"].startswith("Basic ")

    async def test_twilio_rejects_non_e164(self, provider_mock):
        client = TwilioClient("AC1", "tok", "+15559999", transport=provider_mock.transport)
        with pytest.raises(ProviderError):
            await client.send_sms("5550001", "Hello")
        assert provider_mock.requests == []

    async def test_twilio_non_json_success_is_provider_error(self, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(201, text="queued")
        client = TwilioClient("AC1", "tok", "+15559999", transport=provider_mock.transport)
        with pytest.raises(ProviderError):
            await client.send_sms("+15550001", "Hello")
