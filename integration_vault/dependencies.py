"""Shared FastAPI dependencies"""

from typing import Optional

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .encryption import FieldCipher, get_field_cipher
from .services.dispatch_resolver import DispatchResolver


def get_cipher() -> FieldCipher:
    return get_field_cipher()


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound provider calls; None means the real network"""
    return None


def get_dispatch_resolver(
    db: AsyncSession = Depends(get_db),
    cipher: FieldCipher = Depends(get_cipher),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> DispatchResolver:
    """Dependency injection for DispatchResolver"""
    return DispatchResolver(db, cipher, transport=transport)
