from typing import List, Optional

from pydantic import BaseModel

from api.crud.commission.schema import CommissionRead, WithdrawalRead


class CommissionSummary(BaseModel):
    period: Optional[str] = None
    pending: int
    approved: int
    paid: int
    total_commission: int
    commission_count: int
    balance: int


class SummaryResponse(BaseModel):
    status: str = "success"
    summary: CommissionSummary


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CommissionPage(BaseModel):
    transactions: List[CommissionRead]
    pagination: Pagination


class HistoryResponse(BaseModel):
    status: str = "success"
    history: CommissionPage


class WithdrawalResponse(BaseModel):
    status: str = "success"
    message: str
    withdrawal: WithdrawalRead
