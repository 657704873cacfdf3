import logging
import uuid
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.commission import CommissionCRUD
from api.crud.errors import InsufficientBalance, InvalidTransition, PermissionDenied, ValidationError
from api.crud.partner import PartnerService
from api.crud.transaction import TransactionCRUD
from api.models import (
    CommissionWithdrawal,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)
from config import Settings
from services.settlement.factories import build_withdrawal
from utils.reference import Reference

# Ledger status mirroring a final withdrawal status
_LEDGER_STATUS = {
    WithdrawalStatus.completed: TransactionStatus.completed,
    WithdrawalStatus.failed: TransactionStatus.failed,
    WithdrawalStatus.cancelled: TransactionStatus.cancelled,
}


class WithdrawalProcessor:
    """
    Partner payouts out of the commission balance.

    The amount is reserved from the balance when requested and put back if
    the payout fails or the partner cancels it.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        partners: PartnerService | None = None,
        commissions: CommissionCRUD | None = None,
        ledger: TransactionCRUD | None = None,
    ):
        self.session = session
        self.settings = settings
        self.partners = partners or PartnerService()
        self.commissions = commissions or CommissionCRUD()
        self.ledger = ledger or TransactionCRUD()

    async def request(
        self,
        partner_id: uuid.UUID,
        amount: int,
        payment_method: PaymentMethod = PaymentMethod.bank_transfer,
        destination: Dict[str, Any] | None = None,
    ) -> CommissionWithdrawal:
        if amount <= 0:
            raise ValidationError("Withdrawal amount must be positive")
        partner = await self.partners.get_partner(partner_id, self.session)

        new_balance = await self.partners.reserve_balance(partner.id, amount, self.session)
        if new_balance is None:
            await self.session.rollback()
            raise InsufficientBalance(f"Insufficient commission balance for a withdrawal of {amount}")

        reference = Reference().withdrawal()
        withdrawal = build_withdrawal(
            partner_id=partner.id,
            amount=amount,
            payment_method=payment_method,
            fee_rate=self.settings.withdrawal_fee_rate(payment_method.value),
            transaction_reference=reference,
            destination=destination,
            currency=self.settings.env.CURRENCY,
        )
        try:
            await self.commissions.add_withdrawal(withdrawal, self.session)
            await self.ledger.create({
                "type": TransactionType.withdrawal,
                "status": TransactionStatus.pending,
                "amount": amount,
                "currency": withdrawal.currency,
                "reference": reference,
                "description": f"Commission withdrawal {withdrawal.withdrawal_code}",
                "user_id": partner.user_id,
                "partner_id": partner.id,
                "payment_provider": payment_method.value,
                "metadata_json": {
                    "withdrawal_id": str(withdrawal.id),
                    "processing_fee": withdrawal.processing_fee,
                    "net_amount": withdrawal.net_amount,
                },
            }, self.session)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logging.info(f"Partner {partner.id} requested withdrawal {withdrawal.withdrawal_code} of {amount}, balance now {new_balance}")
        return withdrawal

    async def _move(
        self,
        withdrawal_id: uuid.UUID,
        from_statuses: list[WithdrawalStatus],
        to_status: WithdrawalStatus,
        restore_balance: bool = False,
        **values,
    ) -> CommissionWithdrawal:
        withdrawal = await self.commissions.get_withdrawal(withdrawal_id, self.session)
        moved = await self.commissions.transition_withdrawal(
            withdrawal.id, from_statuses, to_status, self.session, **values
        )
        if not moved:
            allowed = ", ".join(s.value for s in from_statuses)
            message = (
                f"Withdrawal {withdrawal.withdrawal_code} is {withdrawal.status.value}; "
                f"{to_status.value} requires one of [{allowed}]"
            )
            await self.session.rollback()
            raise InvalidTransition(message)

        if restore_balance:
            await self.partners.credit_balance(withdrawal.partner_id, withdrawal.amount, self.session)
        ledger_status = _LEDGER_STATUS.get(to_status)
        if ledger_status is not None:
            await self.ledger.transition(
                withdrawal.transaction_reference,
                [TransactionStatus.pending],
                ledger_status,
                self.session,
            )
        await self.session.commit()
        await self.session.refresh(withdrawal)
        logging.info(f"Withdrawal {withdrawal.withdrawal_code} -> {to_status.value}")
        return withdrawal

    async def mark_processing(self, withdrawal_id: uuid.UUID) -> CommissionWithdrawal:
        return await self._move(withdrawal_id, [WithdrawalStatus.pending], WithdrawalStatus.processing)

    async def complete(self, withdrawal_id: uuid.UUID) -> CommissionWithdrawal:
        return await self._move(withdrawal_id, [WithdrawalStatus.processing], WithdrawalStatus.completed)

    async def fail(self, withdrawal_id: uuid.UUID, reason: str) -> CommissionWithdrawal:
        return await self._move(
            withdrawal_id,
            [WithdrawalStatus.pending, WithdrawalStatus.processing],
            WithdrawalStatus.failed,
            restore_balance=True,
            failure_reason=reason,
        )

    async def cancel(self, withdrawal_id: uuid.UUID, partner_id: uuid.UUID) -> CommissionWithdrawal:
        withdrawal = await self.commissions.get_withdrawal(withdrawal_id, self.session)
        if withdrawal.partner_id != partner_id:
            raise PermissionDenied("You can only cancel your own withdrawals")
        return await self._move(withdrawal_id, [WithdrawalStatus.pending], WithdrawalStatus.cancelled, restore_balance=True)

    async def history(self, partner_id: uuid.UUID) -> list[CommissionWithdrawal]:
        return await self.commissions.withdrawals_for_partner(partner_id, self.session)

    async def by_status(self, status: WithdrawalStatus) -> list[CommissionWithdrawal]:
        return await self.commissions.withdrawals_by_status(status, self.session)
