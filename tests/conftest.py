import uuid
from typing import Any, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.app import FastAPIManager
from api.crud.order import OrderCRUD
from api.crud.order.schema import OrderCreate, OrderItemCreate
from api.database import Database, get_database
from api.models import Listing, Partner, Referral, User, UserRole
from api.models.base import Base
from config import ENV, Settings, get_settings
from services.gateway import PaymentGateway, get_payment_gateway
from services.gateway.schemas import GatewaySession, VerificationResult, VerificationStatus

API_KEY = "test-service-key"


class FakeGateway(PaymentGateway):
    provider = "fake"

    def __init__(self):
        self.statuses: Dict[str, VerificationStatus] = {}
        self.default_status = VerificationStatus.success
        self.initialized: list[str] = []
        self.verified: list[str] = []
        self.fail_initialize: Exception | None = None
        self.verify_errors: Dict[str, Exception] = {}

    async def initialize(self, email: str, amount: int, reference: str, metadata: Dict[str, Any]) -> GatewaySession:
        if self.fail_initialize:
            raise self.fail_initialize
        self.initialized.append(reference)
        return GatewaySession(
            authorization_url=f"https://checkout.test/{reference}",
            reference=reference,
            amount=amount,
            metadata=metadata,
        )

    async def verify(self, reference: str) -> VerificationResult:
        self.verified.append(reference)
        if reference in self.verify_errors:
            raise self.verify_errors[reference]
        return VerificationResult(status=self.statuses.get(reference, self.default_status), reference=reference)


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}",
        "SERVICE_API_TOKEN": API_KEY,
        "PAYSTACK_SECRET_KEY": "sk_test_secret",
        "DEBUG": True,
    }
    values.update(overrides)
    return Settings(ENV(**values))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def database(settings):
    database = Database(settings)
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


class Seeder:
    """Creates users, partners, listings and orders straight through the ORM."""

    def __init__(self, session):
        self.session = session

    async def user(self, role: UserRole = UserRole.buyer, name: str | None = None) -> User:
        name = name or f"{role.value}-{uuid.uuid4().hex[:6]}"
        user = User(name=name, email=f"{name}@example.com", role=role)
        self.session.add(user)
        await self.session.commit()
        return user

    async def partner(self, name: str = "Agro Partners", balance: int = 0) -> Partner:
        owner = await self.user(UserRole.partner)
        partner = Partner(user_id=owner.id, name=name, commission_balance=balance)
        self.session.add(partner)
        await self.session.commit()
        return partner

    async def farmer(self, partner: Partner | None = None) -> User:
        farmer = await self.user(UserRole.farmer)
        if partner is not None:
            self.session.add(Referral(farmer_id=farmer.id, partner_id=partner.id))
            await self.session.commit()
        return farmer

    async def listing(self, farmer: User, price: int, quantity: int = 100, product: str = "Maize") -> Listing:
        listing = Listing(farmer_id=farmer.id, product=product, price=price, quantity=quantity)
        self.session.add(listing)
        await self.session.commit()
        return listing

    async def order(self, buyer: User, lines: list[tuple[Listing, int]]):
        dto = OrderCreate(items=[OrderItemCreate(listing_id=listing.id, quantity=qty) for listing, qty in lines])
        order = await OrderCRUD().create_order(buyer.id, dto, self.session)
        await self.session.commit()
        return order


@pytest.fixture
def seed(session) -> Seeder:
    return Seeder(session)


@pytest_asyncio.fixture
async def marketplace(seed):
    """
    Buyer ordering 2 x 5000 from a farmer onboarded by partner A and
    1 x 3000 from a farmer onboarded by partner B.
    """
    partner_a = await seed.partner("Partner A")
    partner_b = await seed.partner("Partner B")
    farmer_a = await seed.farmer(partner_a)
    farmer_b = await seed.farmer(partner_b)
    buyer = await seed.user(UserRole.buyer)
    tomatoes = await seed.listing(farmer_a, price=5000, product="Tomatoes")
    yams = await seed.listing(farmer_b, price=3000, product="Yams")
    order = await seed.order(buyer, [(tomatoes, 2), (yams, 1)])
    return {
        "buyer": buyer,
        "partner_a": partner_a,
        "partner_b": partner_b,
        "farmer_a": farmer_a,
        "farmer_b": farmer_b,
        "order": order,
    }


@pytest.fixture
def app(settings, database, gateway):
    app = FastAPIManager().get_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def headers_for(user: User | None = None) -> dict:
    headers = {"X-API-Key": API_KEY}
    if user is not None:
        headers["X-User-Id"] = str(user.id)
    return headers
