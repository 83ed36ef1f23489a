"""Payment service - Stripe event dispatch, payment intents and refunds"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import PersistenceError, RecordNotFound
from ...webhook_security import PaymentEvent
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

HANDLED_EVENTS = ("payment_succeeded", "payment_failed", "charge_refunded")

# Stripe may deliver events out of order; a late success or failure never undoes these
SETTLED_STATUSES = ("completed", "refunded")


class PaymentEventService:
    """Applies verified payment events; every transition is a repeatable UPDATE"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = PaymentRepository()

    async def dispatch(self, event: PaymentEvent, tenant_id: Optional[int] = None) -> str:
        """
        Apply one event and commit.

        Returns the resulting payment status, or "ignored" for event types
        that change nothing.
        """
        obj = event.data_object
        key = "payment_intent" if event.type == "charge_refunded" else "id"
        if event.type in HANDLED_EVENTS and not obj.get(key):
            logger.warning(f"⚠️ Payment event {event.id} has no {key}, ignoring")
            return "ignored"

        try:
            if event.type == "payment_succeeded":
                outcome = await self._succeeded(obj, tenant_id)
            elif event.type == "payment_failed":
                await self.repo.set_status(
                    self.db, obj["id"], "failed", tenant_id=tenant_id, unless=SETTLED_STATUSES
                )
                outcome = "failed"
            elif event.type == "charge_refunded":
                await self.repo.set_status(
                    self.db, obj["payment_intent"], "refunded", tenant_id=tenant_id
                )
                outcome = "refunded"
            else:
                logger.info(f"Unhandled event type: {event.raw_type or event.type}")
                return "ignored"
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to apply payment event {event.id}: {e}")
            raise PersistenceError(f"Failed to apply payment event: {e}") from e

        logger.info(f"💳 Payment event {event.id} applied: {outcome}")
        return outcome

    async def _succeeded(self, intent: dict, tenant_id: Optional[int]) -> str:
        matched = await self.repo.set_status(
            self.db,
            intent["id"],
            "completed",
            tenant_id=tenant_id,
            paid_at=datetime.utcnow(),
            unless=("refunded",),
        )
        if not matched:
            logger.warning(f"⚠️ No unrefunded payment row for intent {intent['id']}")

        appointment_id = (intent.get("metadata") or {}).get("appointment_id")
        if appointment_id:
            try:
                await self.repo.mark_appointment_paid(
                    self.db, int(appointment_id), tenant_id=tenant_id
                )
            except (TypeError, ValueError):
                logger.warning(f"⚠️ Invalid appointment_id in intent metadata: {appointment_id}")
        return "completed"


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = PaymentRepository()

    async def create_payment_intent(
        self,
        tenant_id: int,
        amount: float,
        resolver,
        currency: str = "gbp",
        appointment_id: Optional[int] = None,
        client_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> dict:
        """Create a Stripe payment intent and record a pending payment for it"""
        if appointment_id is not None:
            appointment = await self.repo.get_appointment(self.db, tenant_id, appointment_id)
            if not appointment:
                raise RecordNotFound(f"Appointment {appointment_id} not found")
            client_id = client_id or appointment.client_id
            description = description or appointment.title

        stripe_client = await resolver.resolve(tenant_id, "stripe")
        intent = await stripe_client.create_payment_intent(
            amount,
            currency=currency,
            description=description,
            metadata={
                "tenant_id": tenant_id,
                "appointment_id": appointment_id,
                "client_id": client_id,
            },
        )

        try:
            payment = await self.repo.create(
                self.db,
                tenant_id=tenant_id,
                appointment_id=appointment_id,
                client_id=client_id,
                amount=amount,
                currency=currency.lower(),
                status="pending",
                external_payment_id=intent["id"],
                payment_method="stripe",
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Payment intent {intent['id']} created but not recorded: {e}")
            raise PersistenceError(f"Failed to record payment: {e}") from e

        return {
            "payment_id": payment.id,
            "payment_intent_id": intent["id"],
            "client_secret": intent["client_secret"],
            "status": payment.status,
        }

    async def refund(self, tenant_id: int, payment_id: int, resolver) -> dict:
        """Refund a payment through Stripe; the charge.refunded event flips its status"""
        payment = await self.repo.get(self.db, tenant_id, payment_id)
        if not payment or not payment.external_payment_id:
            raise RecordNotFound(f"Payment {payment_id} not found")

        stripe_client = await resolver.resolve(tenant_id, "stripe")
        refund = await stripe_client.refund(payment.external_payment_id)
        logger.info(f"↩️ Refund requested for payment {payment_id}")
        return {"payment_id": payment.id, "refund_id": refund["id"], "status": refund["status"]}
