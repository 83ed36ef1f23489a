"""Messaging domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, field_validator


class SendMessageRequest(BaseModel):
    text: str
    channel: Literal["whatsapp", "sms"] = "whatsapp"

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Message text must not be empty")
        return v


class SendMessageResponse(BaseModel):
    id: Optional[int] = None
    conversation_id: int
    external_message_id: Optional[str] = None
    platform: str
