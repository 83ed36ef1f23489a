"""Payment domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CreatePaymentIntentRequest(BaseModel):
    amount: float = Field(gt=0)
    currency: str = "gbp"
    appointmentId: Optional[int] = None
    clientId: Optional[int] = None
    description: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v.lower()


class PaymentIntentResponse(BaseModel):
    payment_id: int
    payment_intent_id: str
    client_secret: str
    status: str


class RefundResponse(BaseModel):
    payment_id: int
    refund_id: str
    status: Optional[str] = None
