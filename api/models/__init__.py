from .base import Base
from .user import User, UserRole
from .partner import Partner
from .referral import Referral, ReferralStatus
from .listing import Listing, ListingStatus
from .order import Order, OrderItem, OrderStatus
from .transaction import Transaction, TransactionStatus, TransactionType
from .commission import (
    Commission,
    CommissionSource,
    CommissionStatus,
    CommissionTier,
    CommissionWithdrawal,
    PaymentMethod,
    TierStatus,
    WithdrawalStatus,
)
from .credit_score import CreditScore, CreditScoreEntry
