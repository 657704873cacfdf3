from fastapi import Depends, FastAPI
import uvicorn
from api.routers.system import routes as SystemRoutes
from api.routers.orders import routes as OrderRoutes
from api.routers.payments import routes as PaymentRoutes
from api.routers.commissions import routes as CommissionRoutes
from api.routers.admin import routes as AdminRoutes
from api.security import require_service


class FastAPIManager:
    def __init__(self):
        # version format: version.subversion:month.year.day:stage (beta, stable)
        self.api = FastAPI(
            version="1.0:10.26.18:beta",
            title="Harvest Marketplace Settlement API",
            description=(
                "Payment settlement and commission distribution for the farm marketplace. "
                "Opens gateway payment sessions for orders, settles confirmed payments exactly once "
                "into the order, the transaction ledger and partner commission balances, and runs "
                "partner withdrawals. All routes except the gateway webhook require the service key "
                "in X-API-Key and the acting user in X-User-Id."
            ),
        )
        self.add_routers()

    def add_routers(self):
        self.api.include_router(
            SystemRoutes.router
        )
        self.api.include_router(
            OrderRoutes.router,
            prefix="/orders",
            tags=["Orders"],
            dependencies=[Depends(require_service)]
        )
        self.api.include_router(
            PaymentRoutes.router,
            prefix="/payments",
            dependencies=[Depends(require_service)]
        )
        self.api.include_router(
            PaymentRoutes.public_router,
            prefix="/payments"
        )
        self.api.include_router(
            CommissionRoutes.router,
            prefix="/commissions",
            tags=["Commissions"],
            dependencies=[Depends(require_service)]
        )
        self.api.include_router(
            AdminRoutes.router,
            prefix="/admin",
            tags=["Admin"],
            dependencies=[Depends(require_service)]
        )

    def start_server(self):
        uvicorn.run(self.api, host="0.0.0.0", port=8000)

    def get_app(self) -> FastAPI:
        return self.api
