import enum
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from api.crud.commission import CommissionCRUD
from api.crud.errors import OrderNotPending, PermissionDenied, UnknownReference
from api.crud.order import OrderCRUD
from api.crud.partner import PartnerService
from api.crud.transaction import TransactionCRUD
from api.models import (
    Order,
    OrderStatus,
    Referral,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserRole,
)
from api.models.base import utcnow
from config import Settings
from services.commission.tiers import CommissionRateResolver
from services.credit import CreditSignalUpdater
from services.gateway import PaymentGateway
from services.gateway.schemas import GatewaySession, VerificationStatus
from utils.money import apply_rate
from utils.reference import Reference, commission_reference, platform_fee_reference
from .factories import build_commission, commission_amount


class ConfirmOutcome(str, enum.Enum):
    SETTLED = "settled"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"
    # gateway has not reached a final state, nothing was written
    PENDING = "pending"


@dataclass
class PartnerShare:
    partner_id: uuid.UUID
    subtotal: int = 0
    referrals: dict[uuid.UUID, int] = field(default_factory=dict)
    referral_id: uuid.UUID | None = None


def group_by_partner(order: Order, referrals: dict[uuid.UUID, Referral]) -> dict[uuid.UUID, PartnerShare]:
    """Splits order lines between the partners that onboarded each line's farmer."""
    shares: dict[uuid.UUID, PartnerShare] = {}
    for item in order.items:
        referral = referrals.get(item.farmer_id)
        if referral is None:
            continue
        share = shares.setdefault(referral.partner_id, PartnerShare(partner_id=referral.partner_id, referral_id=referral.id))
        share.subtotal += item.subtotal
        share.referrals[referral.id] = share.referrals.get(referral.id, 0) + item.subtotal
    return shares


class SettlementEngine:
    """
    Turns a gateway-confirmed payment into a paid order, ledger entries and
    partner commissions. Safe to call any number of times for one reference.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: PaymentGateway,
        settings: Settings,
        ledger: TransactionCRUD | None = None,
        orders: OrderCRUD | None = None,
        partners: PartnerService | None = None,
        commissions: CommissionCRUD | None = None,
        rates: CommissionRateResolver | None = None,
        credit: CreditSignalUpdater | None = None,
    ):
        self.session = session
        self.gateway = gateway
        self.env = settings.env
        self.ledger = ledger or TransactionCRUD()
        self.orders = orders or OrderCRUD()
        self.partners = partners or PartnerService()
        self.commissions = commissions or CommissionCRUD()
        self.rates = rates or CommissionRateResolver(self.env.DEFAULT_COMMISSION_RATE, self.commissions, self.ledger)
        self.credit = credit or CreditSignalUpdater(session, unit=self.env.CREDIT_SCORE_UNIT)
        self.references = Reference(self.env.PAYMENT_REFERENCE_PREFIX)

    async def initiate_payment(self, order_id: uuid.UUID, email: str, actor: User) -> GatewaySession:
        order = await self.orders.get_order(order_id, self.session)
        if actor.role != UserRole.admin and order.buyer_id != actor.id:
            raise PermissionDenied("You can only pay for your own orders")
        if order.status != OrderStatus.pending:
            raise OrderNotPending(f"Order {order.id} is {order.status.value}")

        reference = self.references.payment()
        metadata = {"order_id": str(order.id), "buyer_id": str(order.buyer_id)}
        checkout = await self.gateway.initialize(email, order.total, reference, metadata)

        await self.ledger.create({
            "type": TransactionType.payment,
            "status": TransactionStatus.pending,
            "amount": order.total,
            "currency": order.currency,
            "reference": reference,
            "description": f"Payment for order {order.id}",
            "user_id": order.buyer_id,
            "order_id": order.id,
            "payment_provider": self.gateway.provider,
            "payment_provider_reference": reference,
            "metadata_json": metadata,
        }, self.session)
        await self.session.commit()
        logging.info(f"Payment {reference} initialised for order {order.id} ({order.total} {order.currency})")
        return checkout

    async def confirm_payment(self, reference: str) -> ConfirmOutcome:
        transaction = await self.ledger.get_by_reference(reference, self.session)
        if transaction is None or transaction.type != TransactionType.payment:
            raise UnknownReference(f"No payment with reference {reference}")
        if transaction.status == TransactionStatus.completed:
            logging.info(f"Payment {reference} already settled, nothing to do")
            return ConfirmOutcome.ALREADY_PROCESSED
        if transaction.status in (TransactionStatus.failed, TransactionStatus.cancelled):
            logging.info(f"Payment {reference} is {transaction.status.value}, ignoring confirmation")
            return ConfirmOutcome.FAILED

        # No transaction stays open across the gateway round trip; the claim
        # below starts a fresh one that sees every concurrent commit
        await self.session.commit()

        # Only the gateway's own answer counts, never the caller's payload
        result = await self.gateway.verify(reference)

        if result.status == VerificationStatus.pending:
            logging.info(f"Payment {reference} not final at the gateway yet")
            return ConfirmOutcome.PENDING

        if result.status == VerificationStatus.failed:
            await self.ledger.transition(reference, [TransactionStatus.pending], TransactionStatus.failed, self.session)
            await self.session.commit()
            logging.warning(f"Payment {reference} failed at the gateway")
            return ConfirmOutcome.FAILED

        buyer_id, amount = transaction.user_id, transaction.amount
        try:
            outcome = await self._settle(transaction)
        except Exception:
            await self.session.rollback()
            raise

        if outcome == ConfirmOutcome.SETTLED and buyer_id:
            await self.credit.record_payment(buyer_id, reference, amount)
        return outcome

    async def _settle(self, transaction: Transaction) -> ConfirmOutcome:
        reference = transaction.reference

        # 1. Claim the payment; a concurrent delivery that loses stops here
        if await self.ledger.claim_completion(reference, self.session) is None:
            await self.session.rollback()
            logging.info(f"Payment {reference} was settled by a concurrent delivery")
            return ConfirmOutcome.ALREADY_PROCESSED

        # 2. Order goes paid
        order = await self.orders.get_order(transaction.order_id, self.session)
        if not await self.orders.mark_paid(order.id, self.session):
            # Money arrived for an order that is no longer pending; keep the
            # payment but leave the distribution to reconciliation
            transaction.metadata_json = {**(transaction.metadata_json or {}), "settlement": "skipped_order_not_pending"}
            await self.session.commit()
            logging.error(f"Payment {reference} completed but order {order.id} is {order.status.value}; fees skipped")
            return ConfirmOutcome.SETTLED

        # 3. Platform fee; its reference guards the whole distribution
        fee = apply_rate(order.total, self.env.PLATFORM_FEE_RATE)
        if fee > 0:
            fee_id = await self.ledger.insert_if_absent({
                "type": TransactionType.platform_fee,
                "status": TransactionStatus.completed,
                "amount": fee,
                "currency": order.currency,
                "reference": platform_fee_reference(reference),
                "description": f"Platform fee for order {order.id}",
                "user_id": order.buyer_id,
                "order_id": order.id,
                "payment_provider": "system",
                "metadata_json": {"source_reference": reference, "rate": str(self.env.PLATFORM_FEE_RATE)},
                "processed_at": utcnow(),
            }, self.session)
            if fee_id is None:
                await self.session.commit()
                logging.warning(f"Platform fee for {reference} already exists, skipping commissions")
                return ConfirmOutcome.SETTLED

        # 4. One commission per partner
        referrals = await self.partners.referrals_for_farmers({item.farmer_id for item in order.items}, self.session)
        shares = group_by_partner(order, referrals)
        order_id, currency = order.id, order.currency
        for share in shares.values():
            try:
                async with self.session.begin_nested():
                    await self._write_commission(share, order_id, currency, reference)
            except Exception as e:
                logging.error(f"Commission for partner {share.partner_id} on {reference} failed: {e}", exc_info=True)

        await self.session.commit()
        logging.info(f"Payment {reference} settled: order {order_id} paid, platform fee {fee}")
        return ConfirmOutcome.SETTLED

    async def _write_commission(self, share: PartnerShare, order_id: uuid.UUID, currency: str, reference: str) -> None:
        rate = await self.rates.resolve(share.partner_id, self.session)
        amount = commission_amount(share.subtotal, rate)
        if amount <= 0:
            return

        now = utcnow()
        transaction_id = await self.ledger.insert_if_absent({
            "type": TransactionType.commission,
            "status": TransactionStatus.completed,
            "amount": amount,
            "currency": currency,
            "reference": commission_reference(reference, share.partner_id),
            "description": f"Commission on order {order_id}",
            "partner_id": share.partner_id,
            "order_id": order_id,
            "referral_id": share.referral_id,
            "payment_provider": "system",
            "metadata_json": {"source_reference": reference, "base_amount": share.subtotal, "rate": str(rate)},
            "processed_at": now,
        }, self.session)
        if transaction_id is None:
            return

        commission = build_commission(
            partner_id=share.partner_id,
            referral_id=share.referral_id,
            transaction_id=transaction_id,
            source_reference=reference,
            transaction_amount=share.subtotal,
            commission_rate=rate,
            due_days=self.env.COMMISSION_DUE_DAYS,
            currency=currency,
            now=now,
        )
        await self.commissions.add_commission(commission, self.session)
        balance = await self.partners.credit_balance(share.partner_id, amount, self.session)
        for referral_id, subtotal in share.referrals.items():
            await self.partners.complete_referral(referral_id, subtotal, self.session)
        logging.info(f"Partner {share.partner_id} earned {amount} on {reference} at {rate}, balance {balance}")

    async def reconcile(self, limit: int = 100) -> dict:
        """
        Re-drives the oldest pending payments through ``confirm_payment``.
        Used when a gateway callback never arrived or failed midway.
        """
        references = await self.ledger.pending_payments(limit, self.session)
        await self.session.commit()
        summary = {outcome.value: 0 for outcome in ConfirmOutcome}
        summary.update({"checked": len(references), "errors": 0})
        results = []
        for reference in references:
            try:
                outcome = await self.confirm_payment(reference)
            except Exception as e:
                await self.session.rollback()
                logging.error(f"Reconciliation of {reference} failed: {e}")
                summary["errors"] += 1
                results.append({"reference": reference, "error": str(e)})
                continue
            summary[outcome.value] += 1
            results.append({"reference": reference, "outcome": outcome.value})
        logging.info(f"Reconciled {len(references)} pending payments: {summary}")
        return {"summary": summary, "results": results}
