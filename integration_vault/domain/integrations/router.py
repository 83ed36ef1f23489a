"""Integration credentials router - FastAPI endpoints for provider configuration"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth import get_current_tenant
from ...database import get_db
from ...dependencies import get_cipher, get_dispatch_resolver
from ...encryption import FieldCipher
from ...errors import VaultError
from ...models import Tenant
from ...services.dispatch_resolver import DispatchResolver
from ...shared.http_errors import to_http_exception
from .field_schema import Provider
from .schemas import (
    ConnectionTestResponse,
    EmailCredentialsIn,
    IntegrationMetadata,
    MaskedCredentialsResponse,
    SaveCredentialsResponse,
    StripeCredentialsIn,
    TwilioCredentialsIn,
    WhatsAppCredentialsIn,
)
from .service import CredentialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations/credentials", tags=["Integrations"])


def get_credential_service(
    db: AsyncSession = Depends(get_db), cipher: FieldCipher = Depends(get_cipher)
) -> CredentialService:
    """Dependency injection for CredentialService"""
    return CredentialService(db, cipher)


async def _save(service: CredentialService, tenant: Tenant, provider: Provider, body) -> SaveCredentialsResponse:
    try:
        metadata = await service.save(tenant.id, provider.value, body.model_dump(exclude_none=True))
    except VaultError as e:
        raise to_http_exception(e) from e
    return SaveCredentialsResponse(integration=IntegrationMetadata(**metadata))


# ============================================================================
# SAVE
# ============================================================================


@router.post("/whatsapp", response_model=SaveCredentialsResponse)
async def save_whatsapp_credentials(
    body: WhatsAppCredentialsIn,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Save WhatsApp Cloud API credentials"""
    return await _save(service, current_tenant, Provider.WHATSAPP, body)


@router.post("/twilio", response_model=SaveCredentialsResponse)
async def save_twilio_credentials(
    body: TwilioCredentialsIn,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Save Twilio SMS credentials"""
    return await _save(service, current_tenant, Provider.TWILIO, body)


@router.post("/stripe", response_model=SaveCredentialsResponse)
async def save_stripe_credentials(
    body: StripeCredentialsIn,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Save Stripe keys"""
    return await _save(service, current_tenant, Provider.STRIPE, body)


@router.post("/email", response_model=SaveCredentialsResponse)
async def save_email_credentials(
    body: EmailCredentialsIn,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Save SMTP settings"""
    return await _save(service, current_tenant, Provider.EMAIL, body)


# ============================================================================
# READ / STATUS
# ============================================================================


@router.get("/{provider}", response_model=MaskedCredentialsResponse)
async def get_credentials(
    provider: Provider,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Get the masked configuration for a provider"""
    try:
        return await service.get_masked(current_tenant.id, provider.value)
    except VaultError as e:
        raise to_http_exception(e) from e


@router.post("/{provider}/test", response_model=ConnectionTestResponse)
async def test_credentials(
    provider: Provider,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
    resolver: DispatchResolver = Depends(get_dispatch_resolver),
):
    """Verify stored credentials against the provider"""
    try:
        details = await service.test_connection(current_tenant.id, provider.value, resolver)
    except VaultError as e:
        logger.warning(f"⚠️ {provider.value} connection test failed for tenant {current_tenant.id}: {e}")
        raise to_http_exception(e) from e
    return ConnectionTestResponse(provider=provider.value, details=details)


@router.post("/{provider}/deactivate", response_model=SaveCredentialsResponse)
async def deactivate_credentials(
    provider: Provider,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: CredentialService = Depends(get_credential_service),
):
    """Disable a provider without deleting its stored configuration"""
    try:
        metadata = await service.deactivate(current_tenant.id, provider.value)
    except VaultError as e:
        raise to_http_exception(e) from e
    return SaveCredentialsResponse(integration=IntegrationMetadata(**metadata))
