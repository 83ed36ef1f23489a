"""Integration credential repository - Database operations for provider configurations"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from ...database import dialect_insert
from ...errors import PersistenceError, RoutingKeyInUse
from ...models_integrations import IntegrationCredential

logger = logging.getLogger(__name__)


class CredentialRepository:
    """Repository for integration credential database operations"""

    @staticmethod
    async def get(db: AsyncSession, tenant_id: int, provider: str) -> Optional[IntegrationCredential]:
        """Get a tenant's configuration for a provider, active or not"""
        try:
            result = await db.execute(
                select(IntegrationCredential)
                .where(
                    IntegrationCredential.tenant_id == tenant_id,
                    IntegrationCredential.provider == provider,
                )
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load {provider} credentials: {e}") from e
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        db: AsyncSession,
        tenant_id: int,
        provider: str,
        credentials: dict[str, Any],
        routing_key: Optional[str] = None,
    ) -> IntegrationCredential:
        """Insert or fully replace the (tenant, provider) row and reactivate it"""
        stmt = dialect_insert(db, IntegrationCredential).values(
            tenant_id=tenant_id,
            provider=provider,
            credentials=credentials,
            routing_key=routing_key,
            is_active=True,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "provider"],
            set_={
                "credentials": stmt.excluded.credentials,
                "routing_key": stmt.excluded.routing_key,
                "is_active": True,
                "updated_at": func.now(),
            },
        )
        try:
            await db.execute(stmt)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"⚠️ {provider} routing key already registered to another tenant")
            raise RoutingKeyInUse(
                f"This {provider} account is already connected to another workspace"
            ) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"Failed to save {provider} credentials: {e}") from e

        row = await CredentialRepository.get(db, tenant_id, provider)
        if row is None:
            raise PersistenceError(f"Saved {provider} credentials could not be read back")
        return row

    @staticmethod
    async def set_active(db: AsyncSession, row: IntegrationCredential, is_active: bool) -> IntegrationCredential:
        """Flip is_active; deactivating releases the routing key for other tenants"""
        row.is_active = is_active
        if not is_active:
            row.routing_key = None
        try:
            await db.commit()
            await db.refresh(row)
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"Failed to update {row.provider} status: {e}") from e
        return row

    @staticmethod
    async def touch_last_synced(db: AsyncSession, row: IntegrationCredential) -> None:
        """Stamp last_synced_at after a successful outbound call"""
        try:
            await db.execute(
                update(IntegrationCredential)
                .where(IntegrationCredential.id == row.id)
                .values(last_synced_at=datetime.utcnow())
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError(f"Failed to stamp {row.provider} sync time: {e}") from e

    @staticmethod
    async def find_by_routing_key(
        db: AsyncSession, provider: str, routing_key: str
    ) -> Optional[IntegrationCredential]:
        """Get the active configuration that owns a provider routing identifier"""
        try:
            result = await db.execute(
                select(IntegrationCredential).where(
                    IntegrationCredential.provider == provider,
                    IntegrationCredential.routing_key == routing_key,
                    IntegrationCredential.is_active.is_(True),
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to route {provider} webhook: {e}") from e
        return result.scalar_one_or_none()

    @staticmethod
    async def find_active(db: AsyncSession, provider: str) -> list[IntegrationCredential]:
        """Get every active configuration for a provider"""
        try:
            result = await db.execute(
                select(IntegrationCredential)
                .where(
                    IntegrationCredential.provider == provider,
                    IntegrationCredential.is_active.is_(True),
                )
                .order_by(IntegrationCredential.id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list {provider} configurations: {e}") from e
        return list(result.scalars().all())
