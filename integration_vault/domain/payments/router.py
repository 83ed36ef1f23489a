"""Payment router - FastAPI endpoints for card payments"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth import get_current_tenant
from ...database import get_db
from ...dependencies import get_dispatch_resolver
from ...errors import VaultError
from ...models import Tenant
from ...services.dispatch_resolver import DispatchResolver
from ...shared.http_errors import to_http_exception
from .schemas import CreatePaymentIntentRequest, PaymentIntentResponse, RefundResponse
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: AsyncSession = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.post("/intents", response_model=PaymentIntentResponse)
async def create_payment_intent(
    data: CreatePaymentIntentRequest,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: PaymentService = Depends(get_payment_service),
    resolver: DispatchResolver = Depends(get_dispatch_resolver),
):
    """Create a Stripe payment intent with the tenant's own keys"""
    try:
        return await service.create_payment_intent(
            current_tenant.id,
            data.amount,
            resolver,
            currency=data.currency,
            appointment_id=data.appointmentId,
            client_id=data.clientId,
            description=data.description,
        )
    except VaultError as e:
        raise to_http_exception(e) from e


@router.post("/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment(
    payment_id: int,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: PaymentService = Depends(get_payment_service),
    resolver: DispatchResolver = Depends(get_dispatch_resolver),
):
    """Refund a Stripe payment"""
    try:
        return await service.refund(current_tenant.id, payment_id, resolver)
    except VaultError as e:
        raise to_http_exception(e) from e
