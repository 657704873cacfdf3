from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.models import TransactionStatus, TransactionType, User
from api.routers.commissions import get_ledger_queries
from api.security import get_current_user
from services.commission.ledger import LedgerQueryService
from ..schemas import TransactionHistoryResponse

router = APIRouter()


@router.get("/transactions", response_model=TransactionHistoryResponse, summary="Ledger entries of the acting user")
async def get_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[TransactionType] = Query(None),
    status: Optional[TransactionStatus] = Query(None),
    user: User = Depends(get_current_user),
    queries: LedgerQueryService = Depends(get_ledger_queries),
):
    history = await queries.transactions(user.id, page, limit, type, status)
    return {"status": "success", "history": history}
