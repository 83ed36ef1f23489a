"""Conversation router - outbound messages"""

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
from .schemas import SendMessageRequest, SendMessageResponse
from .service import OutboundMessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"])


def get_outbound_service(db: AsyncSession = Depends(get_db)) -> OutboundMessageService:
    """Dependency injection for OutboundMessageService"""
    return OutboundMessageService(db)


@router.post("/{conversation_id}/messages", response_model=SendMessageResponse)
async def send_message(
    conversation_id: int,
    data: SendMessageRequest,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: OutboundMessageService = Depends(get_outbound_service),
    resolver: DispatchResolver = Depends(get_dispatch_resolver),
):
    """Send a message to the conversation's client over WhatsApp or SMS"""
    try:
        return await service.send(
            current_tenant.id, conversation_id, data.text, data.channel, resolver
        )
    except VaultError as e:
        raise to_http_exception(e) from e
