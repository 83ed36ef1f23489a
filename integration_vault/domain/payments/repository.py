"""Payment repository - Database operations for payments and appointment payment status"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...models import Appointment, Payment

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Repository for payment database operations; callers commit"""

    @staticmethod
    async def set_status(
        db: AsyncSession,
        external_payment_id: str,
        status: str,
        tenant_id: Optional[int] = None,
        paid_at: Optional[datetime] = None,
        unless: tuple[str, ...] = (),
    ) -> int:
        """
        Set the status of every payment with this provider id; returns rows matched.

        Rows already in one of the ``unless`` statuses are left alone. An
        existing paid_at is never overwritten.
        """
        values = {"status": status}
        if paid_at is not None:
            values["paid_at"] = func.coalesce(Payment.paid_at, paid_at)

        stmt = update(Payment).where(Payment.external_payment_id == external_payment_id)
        if unless:
            stmt = stmt.where(Payment.status.not_in(unless))
        if tenant_id is not None:
            stmt = stmt.where(Payment.tenant_id == tenant_id)
        result = await db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        return result.rowcount

    @staticmethod
    async def mark_appointment_paid(
        db: AsyncSession, appointment_id: int, tenant_id: Optional[int] = None
    ) -> int:
        stmt = update(Appointment).where(Appointment.id == appointment_id)
        if tenant_id is not None:
            stmt = stmt.where(Appointment.tenant_id == tenant_id)
        result = await db.execute(
            stmt.values(payment_status="paid").execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    async def create(db: AsyncSession, **fields) -> Payment:
        payment = Payment(**fields)
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def get(db: AsyncSession, tenant_id: int, payment_id: int) -> Optional[Payment]:
        result = await db.execute(
            select(Payment).where(Payment.id == payment_id, Payment.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_appointment(db: AsyncSession, tenant_id: int, appointment_id: int) -> Optional[Appointment]:
        result = await db.execute(
            select(Appointment).where(
                Appointment.id == appointment_id, Appointment.tenant_id == tenant_id
            )
        )
        return result.scalar_one_or_none()
