"""Messaging repository - Atomic find-or-create for clients, conversations and messages

None of these commit; the caller owns the transaction.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from ...database import dialect_insert
from ...errors import RaceConditionConflict
from ...models import Client, Conversation, Message

logger = logging.getLogger(__name__)


class MessagingRepository:
    """Repository for inbound and outbound message persistence"""

    @staticmethod
    async def find_or_create_client(db: AsyncSession, tenant_id: int, phone_number: str) -> Client:
        """Get the tenant's client for a phone number, creating it with the number as name"""
        stmt = (
            dialect_insert(db, Client)
            .values(tenant_id=tenant_id, name=phone_number, phone_number=phone_number)
            .on_conflict_do_nothing(index_elements=["tenant_id", "phone_number"])
        )
        await db.execute(stmt)

        result = await db.execute(
            select(Client).where(Client.tenant_id == tenant_id, Client.phone_number == phone_number)
        )
        client = result.scalar_one_or_none()
        if client is None:
            raise RaceConditionConflict(
                f"Client {phone_number} for tenant {tenant_id} vanished after insert conflict"
            )
        return client

    @staticmethod
    async def find_or_create_conversation(db: AsyncSession, tenant_id: int, client_id: int) -> Conversation:
        stmt = (
            dialect_insert(db, Conversation)
            .values(tenant_id=tenant_id, client_id=client_id, unread_count=0)
            .on_conflict_do_nothing(index_elements=["tenant_id", "client_id"])
        )
        await db.execute(stmt)

        result = await db.execute(
            select(Conversation).where(
                Conversation.tenant_id == tenant_id, Conversation.client_id == client_id
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise RaceConditionConflict(
                f"Conversation for client {client_id} vanished after insert conflict"
            )
        return conversation

    @staticmethod
    async def append_message(
        db: AsyncSession,
        conversation_id: int,
        sender_type: str,
        content: str,
        platform: Optional[str],
        external_message_id: Optional[str] = None,
        message_type: Optional[str] = None,
    ) -> Optional[int]:
        """
        Insert a message row.

        Returns the new message id, or None when a message with the same
        external id already exists in the conversation.
        """
        stmt = (
            dialect_insert(db, Message)
            .values(
                conversation_id=conversation_id,
                sender_type=sender_type,
                content=content or "",
                platform=platform,
                external_message_id=external_message_id,
                message_type=message_type,
            )
            .on_conflict_do_nothing(index_elements=["conversation_id", "external_message_id"])
            .returning(Message.id)
        )
        result = await db.execute(stmt)
        message_id = result.scalar_one_or_none()
        if message_id is None:
            logger.info(f"🔁 Duplicate delivery of message {external_message_id}, skipping")
        return message_id

    @staticmethod
    async def bump_inbound_counters(db: AsyncSession, conversation_id: int) -> None:
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_at=func.now(), unread_count=Conversation.unread_count + 1)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def get_conversation(db: AsyncSession, tenant_id: int, conversation_id: int) -> Optional[Conversation]:
        result = await db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id, Conversation.tenant_id == tenant_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_client(db: AsyncSession, client_id: int) -> Optional[Client]:
        result = await db.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()
