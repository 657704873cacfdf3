import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from api.crud.errors import GatewayError, OrderNotPending, PermissionDenied, UnknownReference
from api.crud.partner import PartnerService
from api.models import (
    Commission,
    CommissionStatus,
    CreditScore,
    Order,
    OrderStatus,
    Partner,
    Referral,
    ReferralStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from services.credit import CreditSignalUpdater
from services.gateway.schemas import VerificationStatus
from services.settlement import ConfirmOutcome, SettlementEngine
from utils.reference import commission_reference, platform_fee_reference


def make_engine(session, gateway, settings, **kwargs) -> SettlementEngine:
    return SettlementEngine(session, gateway, settings, **kwargs)


async def count(session, stmt) -> int:
    return await session.scalar(select(func.count()).select_from(stmt.subquery()))


async def transactions_of(session, tx_type: TransactionType) -> list[Transaction]:
    res = await session.execute(
        select(Transaction).where(Transaction.type == tx_type).execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def initiate(engine, market) -> str:
    payment = await engine.initiate_payment(market["order"].id, "buyer@example.com", market["buyer"])
    return payment.reference


async def test_order_total_is_sum_of_lines(marketplace):
    order = marketplace["order"]
    assert order.total == sum(item.quantity * item.price for item in order.items) == 13000
    assert order.status == OrderStatus.pending


async def test_initiate_records_pending_payment(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    payment = await engine.initiate_payment(marketplace["order"].id, "buyer@example.com", marketplace["buyer"])

    assert payment.reference.startswith("GROCHAIN_")
    assert payment.amount == 13000
    assert payment.metadata["order_id"] == str(marketplace["order"].id)

    tx = (await transactions_of(session, TransactionType.payment))[0]
    assert tx.reference == payment.reference
    assert tx.status == TransactionStatus.pending
    assert tx.amount == 13000
    assert tx.payment_provider == "fake"
    assert tx.payment_provider_reference == payment.reference
    assert tx.metadata_json["order_id"] == str(marketplace["order"].id)


async def test_initiate_rejects_other_buyers(session, gateway, settings, seed, marketplace):
    stranger = await seed.user(UserRole.buyer)
    engine = make_engine(session, gateway, settings)
    with pytest.raises(PermissionDenied):
        await engine.initiate_payment(marketplace["order"].id, "x@example.com", stranger)
    assert gateway.initialized == []


async def test_initiate_requires_pending_order(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    await engine.confirm_payment(reference)

    with pytest.raises(OrderNotPending):
        await initiate(engine, marketplace)


async def test_gateway_outage_writes_nothing(session, gateway, settings, marketplace):
    gateway.fail_initialize = GatewayError("Paystack unreachable")
    engine = make_engine(session, gateway, settings)
    with pytest.raises(GatewayError):
        await initiate(engine, marketplace)
    assert await transactions_of(session, TransactionType.payment) == []


async def test_confirm_splits_fee_and_commissions(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)

    outcome = await engine.confirm_payment(reference)
    assert outcome == ConfirmOutcome.SETTLED

    order = await session.get(Order, marketplace["order"].id, populate_existing=True)
    assert order.status == OrderStatus.paid
    assert order.paid_at is not None

    payment = (await transactions_of(session, TransactionType.payment))[0]
    assert payment.status == TransactionStatus.completed
    assert payment.processed_at is not None

    fees = await transactions_of(session, TransactionType.platform_fee)
    assert [(f.reference, f.amount) for f in fees] == [(platform_fee_reference(reference), 390)]

    partner_a, partner_b = marketplace["partner_a"], marketplace["partner_b"]
    commissions = {tx.partner_id: tx for tx in await transactions_of(session, TransactionType.commission)}
    assert set(commissions) == {partner_a.id, partner_b.id}
    assert commissions[partner_a.id].amount == 500
    assert commissions[partner_a.id].reference == commission_reference(reference, partner_a.id)
    assert commissions[partner_b.id].amount == 150

    records = (await session.execute(select(Commission).order_by(Commission.commission_amount.desc()))).scalars().all()
    assert [(c.transaction_amount, c.commission_amount) for c in records] == [(10000, 500), (3000, 150)]
    for record in records:
        assert record.status == CommissionStatus.approved
        assert record.commission_rate == Decimal("0.05")
        assert record.commission_code.startswith("COM-MAR-")
        assert (record.due_date - record.created_at).days == 30

    for partner, expected in ((partner_a, 500), (partner_b, 150)):
        refreshed = await session.get(Partner, partner.id, populate_existing=True)
        assert refreshed.commission_balance == expected

    referral = (await session.execute(
        select(Referral).where(Referral.farmer_id == marketplace["farmer_a"].id)
    )).scalar_one()
    await session.refresh(referral)
    assert referral.status == ReferralStatus.completed
    assert referral.transaction_amount == 10000


async def test_replayed_confirmation_is_a_no_op(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)

    assert await engine.confirm_payment(reference) == ConfirmOutcome.SETTLED
    for _ in range(3):
        assert await engine.confirm_payment(reference) == ConfirmOutcome.ALREADY_PROCESSED

    # replays never reach the gateway
    assert gateway.verified == [reference]
    assert len(await transactions_of(session, TransactionType.platform_fee)) == 1
    assert len(await transactions_of(session, TransactionType.commission)) == 2
    assert await count(session, select(Commission)) == 2

    partner = await session.get(Partner, marketplace["partner_a"].id, populate_existing=True)
    assert partner.commission_balance == 500


async def test_existing_fee_guards_distribution(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    # a previous delivery got as far as the platform fee
    session.add(Transaction(
        type=TransactionType.platform_fee,
        status=TransactionStatus.completed,
        amount=390,
        reference=platform_fee_reference(reference),
    ))
    await session.commit()

    assert await engine.confirm_payment(reference) == ConfirmOutcome.SETTLED
    assert len(await transactions_of(session, TransactionType.platform_fee)) == 1
    assert await transactions_of(session, TransactionType.commission) == []


async def test_failed_verification_leaves_order_pending(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    gateway.statuses[reference] = VerificationStatus.failed

    assert await engine.confirm_payment(reference) == ConfirmOutcome.FAILED

    payment = (await transactions_of(session, TransactionType.payment))[0]
    assert payment.status == TransactionStatus.failed
    assert payment.processed_at is None
    order = await session.get(Order, marketplace["order"].id, populate_existing=True)
    assert order.status == OrderStatus.pending
    assert await transactions_of(session, TransactionType.platform_fee) == []
    assert await transactions_of(session, TransactionType.commission) == []

    # terminal: a later callback does not ask the gateway again
    assert await engine.confirm_payment(reference) == ConfirmOutcome.FAILED
    assert gateway.verified == [reference]


async def test_retry_with_new_reference_after_failure(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    first = await initiate(engine, marketplace)
    gateway.statuses[first] = VerificationStatus.failed
    await engine.confirm_payment(first)

    second = await initiate(engine, marketplace)
    assert await engine.confirm_payment(second) == ConfirmOutcome.SETTLED
    assert len(await transactions_of(session, TransactionType.commission)) == 2


async def test_gateway_still_processing_changes_nothing(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    gateway.statuses[reference] = VerificationStatus.pending

    assert await engine.confirm_payment(reference) == ConfirmOutcome.PENDING
    payment = (await transactions_of(session, TransactionType.payment))[0]
    assert payment.status == TransactionStatus.pending


async def test_unknown_reference(session, gateway, settings):
    engine = make_engine(session, gateway, settings)
    with pytest.raises(UnknownReference):
        await engine.confirm_payment("GROCHAIN_missing")


async def test_second_payment_for_paid_order_skips_distribution(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    first = await initiate(engine, marketplace)
    second = await initiate(engine, marketplace)

    assert await engine.confirm_payment(first) == ConfirmOutcome.SETTLED
    assert await engine.confirm_payment(second) == ConfirmOutcome.SETTLED

    payments = {tx.reference: tx for tx in await transactions_of(session, TransactionType.payment)}
    assert payments[second].status == TransactionStatus.completed
    assert payments[second].metadata_json["settlement"] == "skipped_order_not_pending"
    assert len(await transactions_of(session, TransactionType.platform_fee)) == 1
    assert len(await transactions_of(session, TransactionType.commission)) == 2


async def test_one_partner_failing_does_not_block_others(session, gateway, settings, marketplace):
    broken = marketplace["partner_b"].id
    healthy = marketplace["partner_a"].id
    order_id = marketplace["order"].id

    class FlakyPartners(PartnerService):
        async def credit_balance(self, partner_id, amount, session):
            if partner_id == broken:
                raise RuntimeError("balance store unavailable")
            return await super().credit_balance(partner_id, amount, session)

    engine = make_engine(session, gateway, settings, partners=FlakyPartners())
    reference = await initiate(engine, marketplace)

    assert await engine.confirm_payment(reference) == ConfirmOutcome.SETTLED

    commissions = await transactions_of(session, TransactionType.commission)
    assert [tx.partner_id for tx in commissions] == [healthy]
    assert await count(session, select(Commission)) == 1
    order = await session.get(Order, order_id, populate_existing=True)
    assert order.status == OrderStatus.paid


async def test_farmer_without_partner_earns_no_commission(session, gateway, settings, seed):
    farmer = await seed.farmer()
    buyer = await seed.user(UserRole.buyer)
    listing = await seed.listing(farmer, price=2000)
    order = await seed.order(buyer, [(listing, 3)])

    engine = make_engine(session, gateway, settings)
    payment = await engine.initiate_payment(order.id, "buyer@example.com", buyer)
    assert await engine.confirm_payment(payment.reference) == ConfirmOutcome.SETTLED

    fees = await transactions_of(session, TransactionType.platform_fee)
    assert fees[0].amount == 180
    assert await transactions_of(session, TransactionType.commission) == []


async def test_credit_score_gets_one_entry_per_payment(session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    await engine.confirm_payment(reference)
    await engine.confirm_payment(reference)

    score = (await session.execute(
        select(CreditScore).where(CreditScore.user_id == marketplace["buyer"].id)
        .execution_options(populate_existing=True)
    )).scalar_one()
    assert [entry.transaction_reference for entry in score.entries] == [reference]
    # 13000 paid at one point per 1000
    assert score.score == 13


async def test_credit_failure_does_not_undo_settlement(session, gateway, settings, marketplace):
    class BrokenCredit(CreditSignalUpdater):
        async def record_payment(self, user_id, reference, amount):
            self.crud = None  # any use of the repository now fails
            return await super().record_payment(user_id, reference, amount)

    order_id = marketplace["order"].id
    credit = BrokenCredit(session)
    engine = make_engine(session, gateway, settings, credit=credit)
    reference = await initiate(engine, marketplace)

    assert await engine.confirm_payment(reference) == ConfirmOutcome.SETTLED
    assert credit.failures == 1

    # the failed credit unit of work rolled back; reload by id
    order = await session.get(Order, order_id, populate_existing=True)
    assert order.status == OrderStatus.paid
    assert len(await transactions_of(session, TransactionType.commission)) == 2


async def test_concurrent_confirmations_settle_once(database, session, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    reference = await initiate(engine, marketplace)
    partner_a, partner_b = marketplace["partner_a"].id, marketplace["partner_b"].id

    async def confirm():
        async with database.session_factory() as s:
            return await make_engine(s, gateway, settings).confirm_payment(reference)

    outcomes = await asyncio.gather(*(confirm() for _ in range(5)))
    assert sorted(outcome.value for outcome in outcomes) == ["already_processed"] * 4 + ["settled"]

    async with database.session_factory() as s:
        assert len(await transactions_of(s, TransactionType.platform_fee)) == 1
        assert len(await transactions_of(s, TransactionType.commission)) == 2
        assert await count(s, select(Commission)) == 2
        assert (await s.get(Partner, partner_a)).commission_balance == 500
        assert (await s.get(Partner, partner_b)).commission_balance == 150
        score = await s.scalar(select(CreditScore).where(CreditScore.user_id == marketplace["buyer"].id))
        assert score.score == 13


async def test_reconcile_drives_pending_payments(session, seed, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    settled_ref = await initiate(engine, marketplace)
    okra = await seed.listing(marketplace["farmer_a"], price=2000, product="Okra")
    second = await seed.order(marketplace["buyer"], [(okra, 1)])
    second_id = second.id
    waiting = await engine.initiate_payment(second_id, "buyer@example.com", marketplace["buyer"])
    gateway.statuses[waiting.reference] = VerificationStatus.pending

    run = await engine.reconcile()
    assert run["summary"]["checked"] == 2
    assert run["summary"]["settled"] == 1
    assert run["summary"]["pending"] == 1
    assert run["summary"]["errors"] == 0
    assert run["results"][0] == {"reference": settled_ref, "outcome": "settled"}

    # settled payments drop out of the next run
    gateway.statuses[waiting.reference] = VerificationStatus.success
    run = await engine.reconcile()
    assert run["summary"]["checked"] == 1
    assert run["summary"]["settled"] == 1

    order = await session.get(Order, second_id, populate_existing=True)
    assert order.status == OrderStatus.paid
    assert len(await transactions_of(session, TransactionType.platform_fee)) == 2


async def test_reconcile_continues_past_gateway_errors(session, seed, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    broken_ref = await initiate(engine, marketplace)
    gateway.verify_errors[broken_ref] = GatewayError("Paystack unreachable")
    okra = await seed.listing(marketplace["farmer_b"], price=2000, product="Okra")
    second = await seed.order(marketplace["buyer"], [(okra, 1)])
    good = await engine.initiate_payment(second.id, "buyer@example.com", marketplace["buyer"])

    run = await engine.reconcile(limit=100)
    assert run["summary"]["errors"] == 1
    assert run["summary"]["settled"] == 1
    assert run["results"][0]["reference"] == broken_ref
    assert "unreachable" in run["results"][0]["error"]

    tx = (await session.execute(
        select(Transaction).where(Transaction.reference == broken_ref).execution_options(populate_existing=True)
    )).scalar_one()
    assert tx.status == TransactionStatus.pending
    assert good.reference in gateway.verified


async def test_reconcile_limit_takes_oldest_first(session, seed, gateway, settings, marketplace):
    engine = make_engine(session, gateway, settings)
    first_ref = await initiate(engine, marketplace)
    okra = await seed.listing(marketplace["farmer_a"], price=2000, product="Okra")
    second = await seed.order(marketplace["buyer"], [(okra, 1)])
    await engine.initiate_payment(second.id, "buyer@example.com", marketplace["buyer"])

    run = await engine.reconcile(limit=1)
    assert run["summary"]["checked"] == 1
    assert run["results"] == [{"reference": first_ref, "outcome": "settled"}]
