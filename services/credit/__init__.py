import logging
import uuid
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.credit import CreditScoreCRUD
from utils.money import round_amount


class CreditSignalUpdater:
    """
    Buyer creditworthiness signal fed by completed payments.

    Runs in its own unit of work after settlement has committed. Failures are
    logged and counted, never raised: the money is already settled by then.
    """

    def __init__(self, session: AsyncSession, unit: int = 1000, crud: CreditScoreCRUD | None = None):
        self.session = session
        self.failures = 0
        self.unit = unit
        self.crud = crud or CreditScoreCRUD()

    def score_for(self, amounts: list[int]) -> int:
        return sum(round_amount(Decimal(amount) / self.unit) for amount in amounts)

    async def record_payment(self, user_id: uuid.UUID, reference: str, amount: int) -> bool:
        """Returns True when a new entry was recorded."""
        try:
            score_id = await self.crud.ensure_score(user_id, self.session)
            added = await self.crud.append_entry(score_id, reference, amount, self.session)
            if added:
                amounts = await self.crud.entry_amounts(score_id, self.session)
                await self.crud.set_score(score_id, self.score_for(amounts), self.session)
            await self.session.commit()
            return added
        except Exception as e:
            self.failures += 1
            logging.error(f"Credit score update failed for user {user_id} ({reference}): {e}", exc_info=True)
            await self.session.rollback()
            return False
