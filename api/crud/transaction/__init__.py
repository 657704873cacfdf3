import uuid
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import insert_ignore
from api.models import Transaction, TransactionStatus, TransactionType
from api.models.base import utcnow
from .interface import LedgerInterface


class TransactionCRUD(LedgerInterface):
    """
    Ledger writes. Nothing here commits: callers own the unit of work,
    so several ledger writes can land atomically.
    """

    async def get_by_reference(self, reference: str, session: AsyncSession) -> Transaction | None:
        res = await session.execute(
            select(Transaction).where(Transaction.reference == reference).execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    async def create(self, values: dict, session: AsyncSession) -> Transaction:
        transaction = Transaction(**values)
        session.add(transaction)
        await session.flush()
        return transaction

    async def insert_if_absent(self, values: dict, session: AsyncSession) -> uuid.UUID | None:
        """
        Atomic insert-or-ignore on the reference.
        Returns the new id, or None when the reference already exists.
        """
        stmt = insert_ignore(session, Transaction, values, "reference")
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def claim_completion(self, reference: str, session: AsyncSession) -> uuid.UUID | None:
        """
        pending -> completed, stamping processed_at. Only one caller can win the
        claim for a reference; everyone else gets None.
        """
        now = utcnow()
        stmt = (
            update(Transaction)
            .where(
                Transaction.reference == reference,
                Transaction.status == TransactionStatus.pending,
            )
            .values(status=TransactionStatus.completed, processed_at=now, updated_at=now)
            .returning(Transaction.id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none()

    async def transition(
        self,
        reference: str,
        from_statuses: Iterable[TransactionStatus],
        to_status: TransactionStatus,
        session: AsyncSession,
    ) -> bool:
        values = {"status": to_status, "updated_at": utcnow()}
        if to_status == TransactionStatus.completed:
            values["processed_at"] = utcnow()
        stmt = (
            update(Transaction)
            .where(Transaction.reference == reference, Transaction.status.in_(list(from_statuses)))
            .values(**values)
            .returning(Transaction.id)
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none() is not None

    async def count_completed(self, partner_id: uuid.UUID, tx_type: TransactionType, session: AsyncSession) -> int:
        res = await session.execute(
            select(func.count(Transaction.id)).where(
                Transaction.partner_id == partner_id,
                Transaction.type == tx_type,
                Transaction.status == TransactionStatus.completed,
            )
        )
        return res.scalar() or 0

    async def pending_payments(self, limit: int, session: AsyncSession) -> list[str]:
        """References of pending payment transactions, oldest first."""
        res = await session.execute(
            select(Transaction.reference)
            .where(
                Transaction.type == TransactionType.payment,
                Transaction.status == TransactionStatus.pending,
            )
            .order_by(Transaction.created_at.asc())
            .limit(limit)
        )
        return list(res.scalars().all())
