"""Messaging service - Inbound webhook ingestion and outbound sends"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import PersistenceError, ProviderError, RaceConditionConflict, RecordNotFound
from ...models_integrations import IntegrationCredential
from ...services.whatsapp_service import WhatsAppClient, extract_message_id
from ..integrations.repository import CredentialRepository
from .normalizer import InboundMessage
from .repository import MessagingRepository

logger = logging.getLogger(__name__)

CHANNEL_PROVIDERS = {"whatsapp": "whatsapp", "sms": "twilio"}


@dataclass
class IngestResult:
    tenant_id: int
    client_id: int
    conversation_id: int
    message_id: Optional[int]

    @property
    def duplicate(self) -> bool:
        return self.message_id is None


class InboundMessageService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = MessagingRepository()

    async def resolve_tenant(self, provider: str, routing_key: Optional[str]) -> Optional[IntegrationCredential]:
        """
        Find the active configuration an inbound delivery belongs to.

        With a routing key only an exact match counts. Without one, the single
        active configuration for the provider is used when exactly one exists.
        """
        if routing_key:
            row = await CredentialRepository.find_by_routing_key(self.db, provider, routing_key)
            if not row:
                logger.warning(f"⚠️ No active {provider} configuration owns {routing_key}")
            return row

        rows = await CredentialRepository.find_active(self.db, provider)
        if len(rows) == 1:
            logger.info(f"{provider} delivery without routing key, using tenant {rows[0].tenant_id}")
            return rows[0]
        logger.warning(
            f"⚠️ {provider} delivery without routing key and {len(rows)} active configurations"
        )
        return None

    async def ingest(self, tenant_id: int, message: InboundMessage) -> IngestResult:
        """
        Record an inbound message in one transaction:
        client -> conversation -> message -> counters.

        A redelivered message (same external id) adds nothing and leaves the
        counters alone.
        """
        try:
            client = await self.repo.find_or_create_client(self.db, tenant_id, message.sender)
            conversation = await self.repo.find_or_create_conversation(self.db, tenant_id, client.id)
            message_id = await self.repo.append_message(
                self.db,
                conversation.id,
                sender_type="client",
                content=message.body,
                platform=message.channel,
                external_message_id=message.external_id,
                message_type=message.channel,
            )
            if message_id is not None:
                await self.repo.bump_inbound_counters(self.db, conversation.id)
            await self.db.commit()
        except RaceConditionConflict:
            await self.db.rollback()
            logger.error(f"❌ Race condition while ingesting {message.channel} message for tenant {tenant_id}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to ingest {message.channel} message for tenant {tenant_id}: {e}")
            raise PersistenceError(f"Failed to store inbound message: {e}") from e

        if message_id is not None:
            logger.info(
                f"📨 Inbound {message.channel} message stored for tenant {tenant_id} "
                f"(conversation {conversation.id})"
            )
        return IngestResult(
            tenant_id=tenant_id,
            client_id=client.id,
            conversation_id=conversation.id,
            message_id=message_id,
        )


class OutboundMessageService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = MessagingRepository()

    async def send(self, tenant_id: int, conversation_id: int, text: str, channel: str, resolver) -> dict:
        """Send through the tenant's provider and record a business-side message"""
        provider = CHANNEL_PROVIDERS.get(channel)
        if provider is None:
            raise RecordNotFound(f"Unknown channel: {channel}")

        conversation = await self.repo.get_conversation(self.db, tenant_id, conversation_id)
        if not conversation:
            raise RecordNotFound(f"Conversation {conversation_id} not found")
        client = await self.repo.get_client(self.db, conversation.client_id)
        if not client or not client.phone_number:
            raise RecordNotFound(f"Conversation {conversation_id} has no reachable client")

        api = await resolver.resolve(tenant_id, provider)
        if channel == "whatsapp":
            response = await api.send_message(client.phone_number, text)
            external_id = extract_message_id(response)
        else:
            response = await api.send_sms(client.phone_number, text)
            external_id = response.get("id")

        try:
            message_id = await self.repo.append_message(
                self.db,
                conversation.id,
                sender_type="business",
                content=text,
                platform=channel,
                external_message_id=external_id,
                message_type=channel,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ {channel} message {external_id} sent but not recorded: {e}")
            raise PersistenceError(f"Failed to record outbound message: {e}") from e

        logger.info(f"📤 {channel} message sent in conversation {conversation.id}")
        return {
            "id": message_id,
            "conversation_id": conversation.id,
            "external_message_id": external_id,
            "platform": channel,
        }


async def mark_as_read_quietly(client: WhatsAppClient, message_id: str) -> None:
    """Background task: WhatsApp read receipt; failures are logged and dropped"""
    try:
        await client.mark_as_read(message_id)
        logger.debug(f"Marked WhatsApp message {message_id} as read")
    except ProviderError as e:
        logger.warning(f"⚠️ Could not mark WhatsApp message {message_id} as read: {e}")
