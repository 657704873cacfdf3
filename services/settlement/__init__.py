from .engine import ConfirmOutcome, SettlementEngine, group_by_partner
from .factories import build_commission, build_tier, build_withdrawal, commission_amount
