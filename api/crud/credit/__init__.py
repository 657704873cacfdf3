import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import insert_ignore
from api.models import CreditScore, CreditScoreEntry
from api.models.base import utcnow


class CreditScoreCRUD:
    async def get_score(self, user_id: uuid.UUID, session: AsyncSession) -> CreditScore | None:
        res = await session.execute(select(CreditScore).where(CreditScore.user_id == user_id))
        return res.scalar_one_or_none()

    async def ensure_score(self, user_id: uuid.UUID, session: AsyncSession) -> uuid.UUID:
        await session.execute(insert_ignore(session, CreditScore, {"user_id": user_id, "score": 0}, "user_id"))
        return await session.scalar(select(CreditScore.id).where(CreditScore.user_id == user_id))

    async def append_entry(self, credit_score_id: uuid.UUID, reference: str, amount: int, session: AsyncSession) -> bool:
        stmt = insert_ignore(
            session,
            CreditScoreEntry,
            {"credit_score_id": credit_score_id, "transaction_reference": reference, "amount": amount},
            "credit_score_id",
            "transaction_reference",
        )
        res = await session.execute(stmt)
        return res.scalar_one_or_none() is not None

    async def entry_amounts(self, credit_score_id: uuid.UUID, session: AsyncSession) -> list[int]:
        res = await session.execute(
            select(CreditScoreEntry.amount).where(CreditScoreEntry.credit_score_id == credit_score_id)
        )
        return list(res.scalars().all())

    async def set_score(self, credit_score_id: uuid.UUID, score: int, session: AsyncSession) -> None:
        await session.execute(
            update(CreditScore)
            .where(CreditScore.id == credit_score_id)
            .values(score=score, updated_at=utcnow())
        )

    async def count_entries(self, user_id: uuid.UUID, session: AsyncSession) -> int:
        res = await session.execute(
            select(func.count(CreditScoreEntry.id))
            .join(CreditScore, CreditScore.id == CreditScoreEntry.credit_score_id)
            .where(CreditScore.user_id == user_id)
        )
        return res.scalar() or 0
