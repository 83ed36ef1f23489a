"""
Stripe payments client
One client per tenant secret key; the SDK is blocking so calls run in a worker thread
"""

import asyncio
import logging
from typing import Optional

import stripe

from ..errors import ProviderError

logger = logging.getLogger(__name__)


def _stripe_message(e: stripe.StripeError) -> str:
    return getattr(e, "user_message", None) or str(e)


class StripeClient:
    provider = "stripe"

    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    async def _call(self, fn, **params):
        try:
            return await asyncio.to_thread(fn, api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe error: {_stripe_message(e)}")
            raise ProviderError(
                self.provider, _stripe_message(e), status_code=getattr(e, "http_status", None)
            ) from e

    async def create_payment_intent(
        self,
        amount: float,
        currency: str = "gbp",
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        """
        Create a payment intent

        Args:
            amount: Amount in major units (converted to the smallest currency unit)
            currency: ISO currency code
            metadata: Stored on the intent; webhooks read appointment_id back from it
        """
        intent = await self._call(
            stripe.PaymentIntent.create,
            amount=int(round(amount * 100)),
            currency=currency.lower(),
            description=description or "Appointment payment",
            metadata={k: str(v) for k, v in (metadata or {}).items() if v is not None},
        )
        logger.info(f"💳 Created payment intent {intent['id']}")
        return {
            "id": intent["id"],
            "client_secret": intent["client_secret"],
            "status": intent["status"],
        }

    async def refund(self, payment_intent_id: str) -> dict:
        refund = await self._call(stripe.Refund.create, payment_intent=payment_intent_id)
        logger.info(f"↩️ Refund {refund['id']} created for {payment_intent_id}")
        return {"id": refund["id"], "status": refund["status"]}

    async def retrieve_account(self) -> dict:
        account = await self._call(stripe.Account.retrieve)
        return {
            "account_id": account["id"],
            "charges_enabled": account.get("charges_enabled"),
        }

    async def test_connection(self) -> dict:
        return await self.retrieve_account()
