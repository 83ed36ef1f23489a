"""Integration domain schemas - Pydantic models for credential endpoints"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator


def _not_blank(v):
    if isinstance(v, str) and not v.strip():
        raise ValueError("must not be empty")
    return v.strip() if isinstance(v, str) else v


class WhatsAppCredentialsIn(BaseModel):
    phoneNumberId: str
    businessAccountId: str
    accessToken: str
    verifyToken: str

    @field_validator("*")
    @classmethod
    def not_blank(cls, v):
        return _not_blank(v)


class TwilioCredentialsIn(BaseModel):
    accountSid: str
    authToken: str
    phoneNumber: str

    @field_validator("*")
    @classmethod
    def not_blank(cls, v):
        return _not_blank(v)


class StripeCredentialsIn(BaseModel):
    secretKey: str
    publishableKey: str
    webhookSecret: Optional[str] = None

    @field_validator("secretKey", "publishableKey")
    @classmethod
    def required_not_blank(cls, v):
        return _not_blank(v)


class EmailCredentialsIn(BaseModel):
    """SMTP settings; port is kept as an int and secure defaults to TLS on 465"""

    host: str
    port: int
    secure: Optional[bool] = None
    user: str
    password: str

    @field_validator("host", "user", "password")
    @classmethod
    def required_not_blank(cls, v):
        return _not_blank(v)


class IntegrationMetadata(BaseModel):
    id: int
    provider: str
    is_active: bool
    created_at: Optional[datetime] = None


class SaveCredentialsResponse(BaseModel):
    success: bool = True
    integration: IntegrationMetadata


class MaskedCredentialsResponse(BaseModel):
    configured: bool
    provider: Optional[str] = None
    is_active: Optional[bool] = None
    last_synced_at: Optional[datetime] = None
    credentials: Optional[dict[str, Any]] = None


class ConnectionTestResponse(BaseModel):
    success: bool = True
    provider: str
    details: dict[str, Any] = {}
