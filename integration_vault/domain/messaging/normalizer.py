"""Provider payload -> InboundMessage"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    sender: str
    body: str
    external_id: Optional[str]
    channel: str  # whatsapp, sms
    routing_key: Optional[str]


def from_whatsapp(payload: Mapping[str, Any]) -> Optional[InboundMessage]:
    """
    Extract the first message of a WhatsApp change notification.

    Status callbacks and other notifications without a message return None.
    """
    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        logger.debug("WhatsApp payload has no change value")
        return None

    messages = value.get("messages") or []
    if not messages:
        return None

    message = messages[0]
    sender = message.get("from")
    if not sender:
        logger.warning("⚠️ WhatsApp message without sender, ignoring")
        return None

    metadata = value.get("metadata") or {}
    return InboundMessage(
        sender=str(sender),
        body=(message.get("text") or {}).get("body", ""),
        external_id=message.get("id"),
        channel="whatsapp",
        routing_key=metadata.get("phone_number_id"),
    )


def from_twilio(form: Mapping[str, Any]) -> Optional[InboundMessage]:
    """Twilio inbound SMS form body (From, Body, MessageSid, To)"""
    sender = form.get("From")
    if not sender:
        return None
    return InboundMessage(
        sender=str(sender),
        body=form.get("Body") or "",
        external_id=form.get("MessageSid") or form.get("SmsSid"),
        channel="sms",
        routing_key=form.get("To"),
    )
