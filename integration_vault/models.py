from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    clients = relationship("Client", back_populates="tenant")


class Client(Base):
    __tablename__ = "clients"
    # One client per phone number per tenant; inbound upserts rely on it
    __table_args__ = (UniqueConstraint("tenant_id", "phone_number", name="uq_client_tenant_phone"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    tenant = relationship("Tenant", back_populates="clients")


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "client_id", name="uq_conversation_tenant_client"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    last_message_at = Column(DateTime, nullable=True)
    unread_count = Column(Integer, default=0, server_default="0", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Message(Base):
    """Append-only conversation message"""

    __tablename__ = "messages"
    # Provider retries of the same message id collapse onto one row; NULL ids never collide
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "external_message_id", name="uq_message_conversation_external"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_type = Column(String(20), nullable=False)  # client (counterparty) or business
    content = Column(Text, nullable=False, default="")
    platform = Column(String(20), nullable=True)  # whatsapp, sms
    external_message_id = Column(String(255), nullable=True)
    message_type = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    title = Column(String(255), nullable=True)
    payment_status = Column(String(20), default="unpaid", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="gbp")
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed, refunded
    external_payment_id = Column(String(255), nullable=True, index=True)
    payment_method = Column(String(50), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
