import pytest
from sqlalchemy import select

from api.crud.errors import InsufficientBalance, InvalidTransition, PermissionDenied
from api.models import (
    Partner,
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)
from services.commission.withdrawals import WithdrawalProcessor


async def balance_of(session, partner_id) -> int:
    partner = await session.get(Partner, partner_id, populate_existing=True)
    return partner.commission_balance


async def ledger_entry(session, reference) -> Transaction:
    res = await session.execute(
        select(Transaction).where(Transaction.reference == reference).execution_options(populate_existing=True)
    )
    return res.scalar_one()


@pytest.fixture
def processor(session, settings) -> WithdrawalProcessor:
    return WithdrawalProcessor(session, settings)


async def test_overdraw_is_rejected_and_balance_kept(session, seed, processor):
    partner_id = (await seed.partner(balance=1000)).id
    with pytest.raises(InsufficientBalance):
        await processor.request(partner_id, 1500)
    assert await balance_of(session, partner_id) == 1000


async def test_request_reserves_balance_and_computes_fee(session, seed, processor):
    partner = await seed.partner(balance=1000)
    withdrawal = await processor.request(
        partner.id, 600, PaymentMethod.bank_transfer, {"bank": "First Bank", "account": "0123456789"}
    )

    assert withdrawal.status == WithdrawalStatus.pending
    assert withdrawal.processing_fee == 9
    assert withdrawal.net_amount == 591
    assert withdrawal.withdrawal_code.startswith("WD-")
    assert withdrawal.destination["bank"] == "First Bank"
    assert await balance_of(session, partner.id) == 400

    tx = await ledger_entry(session, withdrawal.transaction_reference)
    assert tx.reference.startswith("WITHDRAW_")
    assert tx.type == TransactionType.withdrawal
    assert tx.status == TransactionStatus.pending
    assert tx.amount == 600


async def test_fee_depends_on_method(seed, processor):
    partner = await seed.partner(balance=5000)
    wallet = await processor.request(partner.id, 1000, PaymentMethod.wallet)
    mobile = await processor.request(partner.id, 1000, PaymentMethod.mobile_money)
    assert (wallet.processing_fee, wallet.net_amount) == (0, 1000)
    assert (mobile.processing_fee, mobile.net_amount) == (10, 990)


async def test_full_balance_can_be_withdrawn(session, seed, processor):
    partner = await seed.partner(balance=750)
    await processor.request(partner.id, 750)
    assert await balance_of(session, partner.id) == 0


async def test_processing_then_complete(session, seed, processor):
    partner = await seed.partner(balance=1000)
    withdrawal = await processor.request(partner.id, 1000)

    withdrawal = await processor.mark_processing(withdrawal.id)
    assert withdrawal.status == WithdrawalStatus.processing
    assert withdrawal.processed_at is not None

    withdrawal = await processor.complete(withdrawal.id)
    assert withdrawal.status == WithdrawalStatus.completed
    assert withdrawal.completed_at is not None
    assert (await ledger_entry(session, withdrawal.transaction_reference)).status == TransactionStatus.completed
    assert await balance_of(session, partner.id) == 0


async def test_failure_restores_balance(session, seed, processor):
    partner = await seed.partner(balance=1000)
    withdrawal = await processor.request(partner.id, 800)
    await processor.mark_processing(withdrawal.id)

    withdrawal = await processor.fail(withdrawal.id, "Account name mismatch")
    assert withdrawal.status == WithdrawalStatus.failed
    assert withdrawal.failure_reason == "Account name mismatch"
    assert await balance_of(session, partner.id) == 1000
    assert (await ledger_entry(session, withdrawal.transaction_reference)).status == TransactionStatus.failed


async def test_partner_cancels_pending_withdrawal(session, seed, processor):
    partner = await seed.partner(balance=1000)
    withdrawal = await processor.request(partner.id, 300)

    withdrawal = await processor.cancel(withdrawal.id, partner.id)
    assert withdrawal.status == WithdrawalStatus.cancelled
    assert await balance_of(session, partner.id) == 1000
    assert (await ledger_entry(session, withdrawal.transaction_reference)).status == TransactionStatus.cancelled


async def test_cannot_cancel_someone_elses_withdrawal(seed, processor):
    owner = await seed.partner(balance=1000)
    other = await seed.partner(name="Other")
    withdrawal = await processor.request(owner.id, 300)
    with pytest.raises(PermissionDenied):
        await processor.cancel(withdrawal.id, other.id)


async def test_illegal_transitions(session, seed, processor):
    partner_id = (await seed.partner(balance=1000)).id
    withdrawal_id = (await processor.request(partner_id, 500)).id

    # a rejected move rolls the session back, so only ids are reused below
    with pytest.raises(InvalidTransition):
        await processor.complete(withdrawal_id)

    await processor.mark_processing(withdrawal_id)
    with pytest.raises(InvalidTransition):
        await processor.cancel(withdrawal_id, partner_id)

    await processor.fail(withdrawal_id, "bounced")
    with pytest.raises(InvalidTransition):
        await processor.fail(withdrawal_id, "again")
    # restored exactly once
    assert await balance_of(session, partner_id) == 1000


async def test_history_lists_partner_withdrawals(seed, processor):
    partner = await seed.partner(balance=1000)
    await processor.request(partner.id, 100)
    await processor.request(partner.id, 200)
    history = await processor.history(partner.id)
    assert sorted(w.amount for w in history) == [100, 200]
    assert len(await processor.by_status(WithdrawalStatus.pending)) == 2
