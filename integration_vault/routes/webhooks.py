"""
Provider Webhook Handlers
Verifies inbound WhatsApp, Twilio and Stripe deliveries and records them
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from .. import config
from ..database import get_db
from ..dependencies import get_cipher, get_dispatch_resolver
from ..domain.integrations.repository import CredentialRepository
from ..domain.messaging.normalizer import from_twilio, from_whatsapp
from ..domain.messaging.service import InboundMessageService, mark_as_read_quietly
from ..domain.payments.service import PaymentEventService
from ..encryption import FieldCipher
from ..errors import VaultError, WebhookVerificationError
from ..models_integrations import IntegrationCredential
from ..services.dispatch_resolver import DispatchResolver
from ..webhook_security import (
    verify_meta_signature,
    verify_payment_event,
    verify_subscription_challenge,
    verify_twilio_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def get_inbound_service(db: AsyncSession = Depends(get_db)) -> InboundMessageService:
    """Dependency injection for InboundMessageService"""
    return InboundMessageService(db)


def get_payment_event_service(db: AsyncSession = Depends(get_db)) -> PaymentEventService:
    """Dependency injection for PaymentEventService"""
    return PaymentEventService(db)


def read_secret(cipher: FieldCipher, row: Optional[IntegrationCredential], field: str) -> Optional[str]:
    """Decrypt one stored secret; None (logged) when absent or unreadable"""
    if row is None:
        return None
    decrypted = cipher.decrypt_fields(row.credentials or {}, [field])
    if field in decrypted.failures:
        logger.error(f"❌ Stored {row.provider}.{field} for tenant {row.tenant_id} is unreadable")
        return None
    if field not in decrypted.results:
        return None
    return decrypted.values[field]


def signed_url(request: Request) -> str:
    """The URL the provider signed: PUBLIC_BASE_URL + path when configured, else the request URL"""
    if not config.PUBLIC_BASE_URL:
        return str(request.url)
    url = f"{config.PUBLIC_BASE_URL}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def _forbidden(e: WebhookVerificationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.reason)


# ============================================================================
# WHATSAPP
# ============================================================================


@router.get("/whatsapp")
async def verify_whatsapp_subscription(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    db: AsyncSession = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
):
    """Meta subscription handshake: echo hub.challenge when the verify token matches"""
    if config.WHATSAPP_VERIFY_TOKEN:
        expected = [config.WHATSAPP_VERIFY_TOKEN]
    else:
        rows = await CredentialRepository.find_active(db, "whatsapp")
        expected = [t for t in (read_secret(cipher, row, "verifyToken") for row in rows) if t]

    try:
        echoed = verify_subscription_challenge(mode, token, challenge, expected)
    except WebhookVerificationError as e:
        raise _forbidden(e) from e
    return PlainTextResponse(echoed)


@router.post("/whatsapp")
async def receive_whatsapp_message(
    request: Request,
    background_tasks: BackgroundTasks,
    service: InboundMessageService = Depends(get_inbound_service),
    resolver: DispatchResolver = Depends(get_dispatch_resolver),
):
    """
    Handle WhatsApp Cloud API change notifications

    Actions:
    1. Verify X-Hub-Signature-256 when an app secret is configured
    2. Route to the tenant owning metadata.phone_number_id
    3. Record client / conversation / message in one transaction
    4. Schedule a read receipt after the response
    """
    raw_body = await request.body()
    if config.WHATSAPP_APP_SECRET:
        try:
            verify_meta_signature(
                config.WHATSAPP_APP_SECRET, raw_body, request.headers.get("X-Hub-Signature-256")
            )
        except WebhookVerificationError as e:
            raise _forbidden(e) from e

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.error("❌ Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON") from None

    message = from_whatsapp(payload)
    if message is None:
        return {"status": "ignored"}

    row = await service.resolve_tenant("whatsapp", message.routing_key)
    if row is None:
        return {"status": "ignored"}

    try:
        result = await service.ingest(row.tenant_id, message)
    except VaultError as e:
        logger.error(f"❌ WhatsApp webhook processing failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to process message") from e

    if not result.duplicate and message.external_id:
        try:
            client = await resolver.resolve(row.tenant_id, "whatsapp")
        except VaultError as e:
            logger.warning(f"⚠️ Skipping read receipt for tenant {row.tenant_id}: {e}")
        else:
            background_tasks.add_task(mark_as_read_quietly, client, message.external_id)

    return {"status": "received"}


# ============================================================================
# TWILIO
# ============================================================================


@router.post("/twilio")
async def receive_twilio_sms(
    request: Request,
    service: InboundMessageService = Depends(get_inbound_service),
    cipher: FieldCipher = Depends(get_cipher),
):
    """Handle inbound Twilio SMS; signed with the routed tenant's auth token"""
    form = await request.form()
    params = {key: value for key, value in form.items()}

    message = from_twilio(params)
    row = await service.resolve_tenant("twilio", message.routing_key if message else params.get("To"))

    auth_token = read_secret(cipher, row, "authToken") or config.TWILIO_AUTH_TOKEN
    try:
        verify_twilio_signature(
            auth_token, request.headers.get("X-Twilio-Signature"), signed_url(request), params
        )
    except WebhookVerificationError as e:
        raise _forbidden(e) from e

    if message is not None and row is not None:
        try:
            await service.ingest(row.tenant_id, message)
        except VaultError as e:
            logger.error(f"❌ Twilio webhook processing failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to process message") from e

    return Response(content=EMPTY_TWIML, media_type="application/xml")


# ============================================================================
# STRIPE
# ============================================================================


async def _handle_stripe_event(
    request: Request, secret: Optional[str], service: PaymentEventService, tenant_id: Optional[int]
) -> dict:
    raw_body = await request.body()
    try:
        event = verify_payment_event(
            raw_body,
            request.headers.get("Stripe-Signature"),
            secret,
            tolerance=config.STRIPE_WEBHOOK_TOLERANCE,
        )
    except WebhookVerificationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e

    try:
        outcome = await service.dispatch(event, tenant_id=tenant_id)
    except VaultError as e:
        logger.error(f"❌ Stripe webhook processing failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to process event") from e

    return {"received": True, "event_type": event.type, "status": outcome}


@router.post("/stripe")
async def receive_stripe_event(
    request: Request,
    service: PaymentEventService = Depends(get_payment_event_service),
):
    """Process-wide Stripe endpoint signed with STRIPE_WEBHOOK_SECRET"""
    return await _handle_stripe_event(request, config.STRIPE_WEBHOOK_SECRET, service, None)


@router.post("/stripe/{tenant_id}")
async def receive_tenant_stripe_event(
    tenant_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
    service: PaymentEventService = Depends(get_payment_event_service),
):
    """Per-tenant Stripe endpoint signed with the tenant's stored webhookSecret"""
    row = await CredentialRepository.get(db, tenant_id, "stripe")
    if row is not None and not row.is_active:
        row = None
    return await _handle_stripe_event(request, read_secret(cipher, row, "webhookSecret"), service, tenant_id)
