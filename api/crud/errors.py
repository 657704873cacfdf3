class SettlementError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code.replace("_", " ").capitalize())

    def as_detail(self) -> dict:
        return {"code": self.code, "message": str(self)}


class ValidationError(SettlementError):
    code = "validation_error"
    status_code = 400


class PermissionDenied(SettlementError):
    code = "permission_denied"
    status_code = 403


class NotFoundError(SettlementError):
    code = "not_found"
    status_code = 404


class OrderNotFound(NotFoundError):
    code = "order_not_found"


class ListingNotFound(NotFoundError):
    code = "listing_not_found"


class UnknownReference(NotFoundError):
    code = "unknown_reference"


class PartnerNotFound(NotFoundError):
    code = "partner_not_found"


class WithdrawalNotFound(NotFoundError):
    code = "withdrawal_not_found"


class CommissionNotFound(NotFoundError):
    code = "commission_not_found"


class UserNotFound(NotFoundError):
    code = "user_not_found"


class StateConflictError(SettlementError):
    code = "state_conflict"
    status_code = 409


class OrderNotPending(StateConflictError):
    code = "order_not_pending"


class InsufficientBalance(StateConflictError):
    code = "insufficient_balance"


class InvalidTransition(StateConflictError):
    code = "invalid_transition"


class GatewayError(SettlementError):
    code = "gateway_unavailable"
    status_code = 502


class InternalError(SettlementError):
    code = "internal_error"
    status_code = 500
