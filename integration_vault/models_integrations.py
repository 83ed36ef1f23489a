"""
Integration Credential Models
Per-tenant, per-provider configuration with field-level encrypted secrets
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base


class IntegrationCredential(Base):
    """One provider configuration per tenant; sensitive fields hold ciphertext envelopes"""

    __tablename__ = "integration_credentials"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider", name="uq_integration_tenant_provider"),
        # An inbound webhook must map to exactly one tenant
        UniqueConstraint("provider", "routing_key", name="uq_integration_provider_routing_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    provider = Column(String(50), nullable=False)  # whatsapp, twilio, stripe, email

    # Field name -> plain value or "<nonce>:<tag>:<ciphertext>" envelope
    credentials = Column(JSON, nullable=False, default=dict)

    # Provider-assigned identifier used to route webhooks (phone-number-id, phone number)
    routing_key = Column(String(255), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
