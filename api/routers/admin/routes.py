import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.crud.commission.schema import (
    CommissionPaymentUpdate,
    CommissionRead,
    TierCreate,
    TierRead,
    WithdrawalFailure,
    WithdrawalRead,
)
from api.crud.errors import SettlementError
from api.models import CommissionStatus, UserRole, WithdrawalStatus
from api.routers.commissions import get_commission_admin, get_ledger_queries, get_withdrawal_processor
from api.routers.commissions.schemas import CommissionPage
from api.routers.payments import get_settlement_engine
from api.security import require_roles
from services.commission.admin import CommissionAdminService
from services.commission.ledger import LedgerQueryService
from services.commission.withdrawals import WithdrawalProcessor
from services.settlement import SettlementEngine

router = APIRouter(dependencies=[Depends(require_roles(UserRole.admin))])


# --- Commissions ---

@router.get("/commissions", response_model=CommissionPage, summary="All commissions, newest first")
async def list_commissions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    partner_id: Optional[uuid.UUID] = Query(None, alias="partnerId"),
    status: Optional[CommissionStatus] = Query(None),
    queries: LedgerQueryService = Depends(get_ledger_queries),
):
    return await queries.history(partner_id, page, limit, status)


@router.patch("/commissions/{commission_id}/pay", response_model=CommissionRead, summary="Mark an approved commission paid")
async def pay_commission(
    commission_id: uuid.UUID,
    dto: CommissionPaymentUpdate,
    service: CommissionAdminService = Depends(get_commission_admin),
):
    try:
        return await service.mark_paid(commission_id, dto)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


# --- Payments ---

@router.post("/payments/reconcile", summary="Re-verify the oldest pending payments")
async def reconcile_payments(
    limit: int = Query(100, ge=1, le=100),
    engine: SettlementEngine = Depends(get_settlement_engine),
):
    """
    Runs each pending payment, oldest first, through the same confirmation as
    the gateway callback. Settled payments are left alone, so repeated runs
    are safe.
    """
    result = await engine.reconcile(limit)
    return {"status": "success", **result}


@router.post("/payments/{reference}/reconcile", summary="Re-verify one payment with the gateway")
async def reconcile_payment(reference: str, engine: SettlementEngine = Depends(get_settlement_engine)):
    try:
        outcome = await engine.confirm_payment(reference)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
    return {"status": "success", "reference": reference, "outcome": outcome.value}


# --- Tiers ---

@router.get("/tiers", response_model=List[TierRead], summary="Commission tiers")
async def list_tiers(service: CommissionAdminService = Depends(get_commission_admin)):
    return await service.list_tiers()


@router.post("/tiers", response_model=TierRead, status_code=201, summary="Create a commission tier")
async def create_tier(dto: TierCreate, service: CommissionAdminService = Depends(get_commission_admin)):
    return await service.create_tier(dto)


# --- Withdrawals ---

@router.get("/withdrawals", response_model=List[WithdrawalRead], summary="Withdrawals by status, oldest first")
async def list_withdrawals(
    status: WithdrawalStatus = Query(WithdrawalStatus.pending),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    return await processor.by_status(status)


@router.patch("/withdrawals/{withdrawal_id}/processing", response_model=WithdrawalRead, summary="Start processing a withdrawal")
async def start_withdrawal(
    withdrawal_id: uuid.UUID,
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    try:
        return await processor.mark_processing(withdrawal_id)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


@router.patch("/withdrawals/{withdrawal_id}/complete", response_model=WithdrawalRead, summary="Mark a withdrawal paid out")
async def complete_withdrawal(
    withdrawal_id: uuid.UUID,
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    try:
        return await processor.complete(withdrawal_id)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


@router.patch("/withdrawals/{withdrawal_id}/fail", response_model=WithdrawalRead, summary="Fail a withdrawal and restore the balance")
async def fail_withdrawal(
    withdrawal_id: uuid.UUID,
    dto: WithdrawalFailure,
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    try:
        return await processor.fail(withdrawal_id, dto.reason)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
