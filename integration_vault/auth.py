import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .database import get_db
from .models import Tenant

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(tenant_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a tenant bearer token

    Args:
        tenant_id: Tenant the token authenticates (stored as ``sub``)
        expires_delta: Token lifetime (default 60 minutes)
    """
    if not config.SECRET_KEY:
        raise HTTPException(status_code=500, detail="Authentication not configured")
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=60))
    to_encode = {"sub": str(tenant_id), "exp": expire}
    return jose_jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """Decoded payload if valid, None if invalid or expired"""
    try:
        return jose_jwt.decode(token, config.SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


async def get_current_tenant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    """Resolve the authenticated tenant from the bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )
    if not config.SECRET_KEY:
        logger.error("❌ SECRET_KEY is not set; cannot verify bearer tokens")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    payload = verify_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        tenant_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
    tenant = result.scalar_one_or_none()
    if not tenant:
        logger.warning(f"⚠️ Token for unknown tenant {tenant_id}")
        raise HTTPException(status_code=401, detail="Tenant not found")
    return tenant
