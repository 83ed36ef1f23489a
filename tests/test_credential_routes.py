"""Tests for the /integrations/credentials endpoints."""

import httpx
import pytest
from sqlalchemy import select

from integration_vault.auth import create_access_token
from integration_vault.models_integrations import IntegrationCredential

WHATSAPP_BODY = {
    "phoneNumberId": "106540352242922",
    "businessAccountId": "102290129340398",
    "accessToken": "EAAB-secret-token",
    "verifyToken": "my-verify-token",
}

BASE = "/integrations/credentials"


async def save_whatsapp(client, headers, body=None):
    return await client.post(f"{BASE}/whatsapp", json=body or WHATSAPP_BODY, headers=headers)


class TestAuth:

    async def test_missing_token(self, client):
        response = await save_whatsapp(client, {})
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get(f"{BASE}/whatsapp", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestSaveEndpoints:

    async def test_save_returns_metadata_only(self, client, auth_headers):
        response = await save_whatsapp(client, auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["integration"]["provider"] == "whatsapp"
        assert data["integration"]["is_active"] is True
        assert "EAAB-secret-token" not in response.text

    async def test_ciphertext_at_rest(self, client, auth_headers, db):
        await save_whatsapp(client, auth_headers)
        row = (await db.execute(select(IntegrationCredential))).scalar_one()
        assert row.credentials["accessToken"] != "EAAB-secret-token"
        assert row.credentials["phoneNumberId"] == "106540352242922"

    async def test_blank_field_is_rejected(self, client, auth_headers):
        response = await save_whatsapp(client, auth_headers, {**WHATSAPP_BODY, "accessToken": "   "})
        assert response.status_code == 422

    async def test_missing_field_is_rejected(self, client, auth_headers):
        body = {k: v for k, v in WHATSAPP_BODY.items() if k != "verifyToken"}
        response = await save_whatsapp(client, auth_headers, body)
        assert response.status_code == 422

    async def test_routing_key_conflict(self, client, auth_headers, other_tenant):
        await save_whatsapp(client, auth_headers)
        other_headers = {"Authorization": f"Bearer {create_access_token(other_tenant.id)}"}
        response = await save_whatsapp(client, other_headers)
        assert response.status_code == 409

    async def test_stripe_without_webhook_secret(self, client, auth_headers):
        response = await client.post(
            f"{BASE}/stripe",
            json={"secretKey": "sk_test_1", "publishableKey": "pk_test_1"},
            headers=auth_headers,
        )
        assert response.status_code == 200

    async def test_email_port_must_be_numeric(self, client, auth_headers):
        response = await client.post(
            f"{BASE}/email",
            json={"host": "smtp.example.com", "port": "abc", "user": "u", "password": "p"},
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestMaskedRead:

    async def test_unconfigured(self, client, auth_headers):
        response = await client.get(f"{BASE}/twilio", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["configured"] is False

    async def test_never_returns_secrets_or_ciphertext(self, client, auth_headers, db):
        await save_whatsapp(client, auth_headers)
        row = (await db.execute(select(IntegrationCredential))).scalar_one()

        response = await client.get(f"{BASE}/whatsapp", headers=auth_headers)
        data = response.json()

        assert data["configured"] is True
        assert data["credentials"]["phoneNumberId"] == "106540352242922"
        assert "EAAB-secret-token" not in response.text
        assert row.credentials["accessToken"] not in response.text

    async def test_unknown_provider(self, client, auth_headers):
        response = await client.get(f"{BASE}/paypal", headers=auth_headers)
        assert response.status_code == 422


class TestConnectionTest:

    async def test_success_stamps_last_synced(self, client, auth_headers, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(
            200,
            json={
                "id": "106540352242922",
                "display_phone_number": "+1 555 9999",
                "verified_name": "Bright Cleaning",
            },
        )
        await save_whatsapp(client, auth_headers)

        response = await client.post(f"{BASE}/whatsapp/test", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["details"]["verified_name"] == "Bright Cleaning"
        assert provider_mock.requests[0].headers["Authorization"] == "Bearer EAAB-secret-token"
        status = (await client.get(f"{BASE}/whatsapp", headers=auth_headers)).json()
        assert status["last_synced_at"] is not None

    async def test_provider_rejection_is_502(self, client, auth_headers, provider_mock):
        provider_mock.responder = lambda request: httpx.Response(
            401, json={"error": {"message": "Invalid OAuth access token."}}
        )
        await save_whatsapp(client, auth_headers)

        response = await client.post(f"{BASE}/whatsapp/test", headers=auth_headers)

        assert response.status_code == 502
        assert response.json()["detail"]["provider_error"] == "Invalid OAuth access token."
        status = (await client.get(f"{BASE}/whatsapp", headers=auth_headers)).json()
        assert status["last_synced_at"] is None

    async def test_not_configured(self, client, auth_headers, provider_mock):
        response = await client.post(f"{BASE}/twilio/test", headers=auth_headers)
        assert response.status_code == 404
        assert provider_mock.requests == []


class TestDeactivate:

    async def test_deactivate(self, client, auth_headers):
        await save_whatsapp(client, auth_headers)
        response = await client.post(f"{BASE}/whatsapp/deactivate", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["integration"]["is_active"] is False
        status = (await client.get(f"{BASE}/whatsapp", headers=auth_headers)).json()
        assert status == {**status, "configured": True, "is_active": False}

    async def test_deactivated_provider_cannot_be_tested(self, client, auth_headers):
        await save_whatsapp(client, auth_headers)
        await client.post(f"{BASE}/whatsapp/deactivate", headers=auth_headers)
        response = await client.post(f"{BASE}/whatsapp/test", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("provider", ["whatsapp", "twilio", "stripe", "email"])
    async def test_deactivate_unconfigured(self, client, auth_headers, provider):
        response = await client.post(f"{BASE}/{provider}/deactivate", headers=auth_headers)
        assert response.status_code == 404
