import csv
import io
import math
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.errors import ValidationError
from api.crud.partner import PartnerService
from api.models import Commission, CommissionStatus, Partner, Transaction, TransactionStatus, TransactionType
from api.models.base import utcnow

PERIODS = ("month", "quarter", "year")

EXPORT_COLUMNS = [
    "reference",
    "type",
    "status",
    "amount",
    "currency",
    "description",
    "order_id",
    "referral_id",
    "processed_at",
    "created_at",
]


def period_start(period: str | None, now: datetime | None = None) -> datetime | None:
    """First instant of the current calendar month, quarter or year (UTC)."""
    if period is None:
        return None
    if period not in PERIODS:
        raise ValidationError(f"period must be one of {', '.join(PERIODS)}")
    now = now or utcnow()
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "quarter":
        start = start.replace(month=(now.month - 1) // 3 * 3 + 1)
    elif period == "year":
        start = start.replace(month=1)
    return start


class LedgerQueryService:
    """Read-only views over commissions and the partner ledger."""

    def __init__(self, session: AsyncSession, partners: PartnerService | None = None):
        self.session = session
        self.partners = partners or PartnerService()

    async def summary(self, partner_id: uuid.UUID, period: str | None = None) -> dict[str, Any]:
        def total_for(status: CommissionStatus):
            return func.coalesce(
                func.sum(case((Commission.status == status, Commission.commission_amount), else_=0)), 0
            )

        stmt = select(
            total_for(CommissionStatus.pending),
            total_for(CommissionStatus.approved),
            total_for(CommissionStatus.paid),
            func.coalesce(func.sum(Commission.commission_amount), 0),
            func.count(Commission.id),
        ).where(Commission.partner_id == partner_id)
        start = period_start(period)
        if start is not None:
            stmt = stmt.where(Commission.created_at >= start)

        pending, approved, paid, total, count = (await self.session.execute(stmt)).one()
        balance = await self.partners.get_balance(partner_id, self.session)
        return {
            "period": period,
            "pending": int(pending),
            "approved": int(approved),
            "paid": int(paid),
            "total_commission": int(total),
            "commission_count": int(count),
            "balance": balance,
        }

    async def history(
        self,
        partner_id: uuid.UUID | None = None,
        page: int = 1,
        limit: int = 10,
        status: CommissionStatus | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> dict[str, Any]:
        """Newest first. ``partner_id=None`` lists every partner (admin view)."""
        filters = []
        if partner_id is not None:
            filters.append(Commission.partner_id == partner_id)
        if status is not None:
            filters.append(Commission.status == status)
        if date_from is not None:
            filters.append(Commission.created_at >= date_from)
        if date_to is not None:
            filters.append(Commission.created_at <= date_to)

        total = await self.session.scalar(select(func.count(Commission.id)).where(*filters)) or 0
        res = await self.session.execute(
            select(Commission)
            .where(*filters)
            .order_by(Commission.created_at.desc(), Commission.commission_code.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {
            "transactions": list(res.scalars().all()),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def transactions(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        tx_type: TransactionType | None = None,
        status: TransactionStatus | None = None,
    ) -> dict[str, Any]:
        """
        Ledger entries belonging to a user: their own payments and withdrawals,
        plus the commissions of any partner organisation they own. Newest first.
        """
        owned_partners = select(Partner.id).where(Partner.user_id == user_id)
        filters = [or_(Transaction.user_id == user_id, Transaction.partner_id.in_(owned_partners))]
        if tx_type is not None:
            filters.append(Transaction.type == tx_type)
        if status is not None:
            filters.append(Transaction.status == status)

        total = await self.session.scalar(select(func.count(Transaction.id)).where(*filters)) or 0
        res = await self.session.execute(
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.created_at.desc(), Transaction.reference)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {
            "transactions": list(res.scalars().all()),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def ledger_rows(self, partner_id: uuid.UUID) -> list[dict[str, Any]]:
        res = await self.session.execute(
            select(Transaction)
            .where(Transaction.partner_id == partner_id)
            .order_by(Transaction.created_at.asc())
        )
        rows = []
        for tx in res.scalars().all():
            rows.append({
                "reference": tx.reference,
                "type": tx.type.value,
                "status": tx.status.value,
                "amount": tx.amount,
                "currency": tx.currency,
                "description": tx.description,
                "order_id": str(tx.order_id) if tx.order_id else None,
                "referral_id": str(tx.referral_id) if tx.referral_id else None,
                "processed_at": tx.processed_at.isoformat() if tx.processed_at else None,
                "created_at": tx.created_at.isoformat(),
            })
        return rows

    async def export(self, partner_id: uuid.UUID, fmt: str = "json") -> str | list[dict[str, Any]]:
        rows = await self.ledger_rows(partner_id)
        if fmt == "json":
            return rows
        if fmt != "csv":
            raise ValidationError("format must be csv or json")
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()
