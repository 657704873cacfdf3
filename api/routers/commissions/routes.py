import enum
from datetime import datetime
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, StreamingResponse

from api.crud.commission.schema import WithdrawalCreate, WithdrawalRead
from api.crud.errors import SettlementError
from api.models import CommissionStatus, Partner
from services.commission.ledger import LedgerQueryService
from services.commission.withdrawals import WithdrawalProcessor
from . import get_current_partner, get_ledger_queries, get_withdrawal_processor
from .schemas import HistoryResponse, SummaryResponse, WithdrawalResponse

router = APIRouter()


class SummaryPeriod(str, enum.Enum):
    month = "month"
    quarter = "quarter"
    year = "year"


class ExportFormat(str, enum.Enum):
    csv = "csv"
    json = "json"


@router.get("/summary", response_model=SummaryResponse, summary="Commission totals for the current partner")
async def get_summary(
    period: Optional[SummaryPeriod] = Query(None, description="Restrict to the current month, quarter or year"),
    partner: Partner = Depends(get_current_partner),
    queries: LedgerQueryService = Depends(get_ledger_queries),
):
    try:
        summary = await queries.summary(partner.id, period.value if period else None)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
    return {"status": "success", "summary": summary}


@router.get("/history", response_model=HistoryResponse, summary="Paginated commission history, newest first")
async def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[CommissionStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    partner: Partner = Depends(get_current_partner),
    queries: LedgerQueryService = Depends(get_ledger_queries),
):
    history = await queries.history(partner.id, page, limit, status, date_from, date_to)
    return {"status": "success", "history": history}


@router.post("/withdraw", response_model=WithdrawalResponse, summary="Request a payout from the commission balance")
async def request_withdrawal(
    dto: WithdrawalCreate,
    partner: Partner = Depends(get_current_partner),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    """
    Reserves the amount from the commission balance straight away.

    Status codes:
    - 200: withdrawal created with status `pending`
    - 400: malformed body
    - 409: amount exceeds the commission balance
    """
    try:
        withdrawal = await processor.request(partner.id, dto.amount, dto.payment_method, dto.destination)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())
    return {
        "status": "success",
        "message": "Withdrawal request submitted",
        "withdrawal": withdrawal,
    }


@router.get("/withdrawals", response_model=list[WithdrawalRead], summary="Withdrawal history for the current partner")
async def list_withdrawals(
    partner: Partner = Depends(get_current_partner),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    return await processor.history(partner.id)


@router.post("/withdrawals/{withdrawal_id}/cancel", response_model=WithdrawalRead, summary="Cancel a pending withdrawal")
async def cancel_withdrawal(
    withdrawal_id: uuid.UUID,
    partner: Partner = Depends(get_current_partner),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor),
):
    try:
        return await processor.cancel(withdrawal_id, partner.id)
    except SettlementError as e:
        raise HTTPException(status_code=e.status_code, detail=e.as_detail())


@router.get("/export", summary="Audit export of the partner ledger")
async def export_ledger(
    format: ExportFormat = Query(ExportFormat.json),
    partner: Partner = Depends(get_current_partner),
    queries: LedgerQueryService = Depends(get_ledger_queries),
):
    data = await queries.export(partner.id, format.value)
    if format == ExportFormat.json:
        return JSONResponse(content={"status": "success", "ledger": data})
    return StreamingResponse(
        iter([data]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=ledger_{partner.id}.csv"},
    )
