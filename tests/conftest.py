# Standard Library
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

# Third-Party Libraries
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# First-Party Libraries
import marketplace.models  # noqa: F401
from marketplace.addresses.models import Address
from marketplace.auth.security import create_access_token
from marketplace.catalog.models import Product, Shop
from marketplace.core.utils import utcnow
from marketplace.coupons.models import Coupon, DiscountType
from marketplace.database import get_db_session
from marketplace.geo.dependencies import get_geocoder
from marketplace.geo.geocoder import DEFAULT_COORDINATES, AbstractGeocoder
from marketplace.main import app
from marketplace.notifications.dependencies import get_email_sender
from marketplace.notifications.sender import AbstractEmailSender
from marketplace.payments.dependencies import get_payment_gateway
from marketplace.payments.exceptions import PaymentGatewayException
from marketplace.payments.gateway import AbstractPaymentGateway, PaymentIntent
from marketplace.payments.signature import compute_payment_signature, verify_payment_signature
from marketplace.users.models import CartItem, User, UserRole

# URL de base pour la DB en mémoire
TEST_DATABASE_BASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_GATEWAY_SECRET = "test_gateway_secret"


# --- Doublures des services externes ---

class FakePaymentGateway(AbstractPaymentGateway):
    """Passerelle simulée: enregistre les appels et signe avec un secret de test."""

    def __init__(self):
        self.fail = False
        self.calls: List[Dict] = []

    async def create_payment_intent(self, amount: Decimal, currency: str, receipt_id: str) -> PaymentIntent:
        self.calls.append({"amount": amount, "currency": currency, "receipt_id": receipt_id})
        if self.fail:
            raise PaymentGatewayException("Passerelle indisponible (simulation).")
        return PaymentIntent(
            gateway_order_ref=f"gw_order_{len(self.calls)}",
            amount_minor=int(amount * 100),
            currency=currency,
            receipt_id=receipt_id,
        )

    def verify_payment_signature(self, gateway_order_ref: str, gateway_payment_ref: str, signature: str) -> bool:
        return verify_payment_signature(gateway_order_ref, gateway_payment_ref, signature, TEST_GATEWAY_SECRET)

    @staticmethod
    def sign(gateway_order_ref: str, gateway_payment_ref: str) -> str:
        return compute_payment_signature(gateway_order_ref, gateway_payment_ref, TEST_GATEWAY_SECRET)


class FakeEmailSender(AbstractEmailSender):
    def __init__(self):
        self.sent: List[Dict] = []

    async def send_email(self, recipient_email: str, subject: str, html_content: str,
                         sender_email: Optional[str] = None) -> bool:
        self.sent.append({"recipient_email": recipient_email, "subject": subject, "html_content": html_content})
        return True


class FakeGeocoder(AbstractGeocoder):
    def __init__(self):
        self.result = DEFAULT_COORDINATES
        self.queries: List[str] = []

    async def geocode(self, address: str):
        self.queries.append(address)
        return self.result


# --- Fixtures de Base ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Crée un engine, des tables, et fournit une session DB en mémoire pour chaque test."""
    engine: AsyncEngine = create_async_engine(TEST_DATABASE_BASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest_asyncio.fixture(scope="function")
async def test_client(
    db_session: AsyncSession,
    payment_gateway: FakePaymentGateway,
    email_sender: FakeEmailSender,
    geocoder: FakeGeocoder,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient httpx utilisant la session DB de test et des services externes simulés."""
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_geocoder] = lambda: geocoder

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# --- Fixtures Utilisateur et Authentification ---

async def _create_user(db_session: AsyncSession, email: str, name: str, role: UserRole) -> User:
    user = User(email=email, name=name, role=role)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _auth_headers(user: User) -> dict[str, str]:
    if user.id is None:
        pytest.fail("L'ID de l'utilisateur est None après commit/refresh.")
    access_token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture(scope="function")
async def customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "buyer@example.com", "Test Buyer", UserRole.CUSTOMER)


@pytest_asyncio.fixture(scope="function")
async def other_customer(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "buyer2@example.com", "Other Buyer", UserRole.CUSTOMER)


@pytest_asyncio.fixture(scope="function")
async def vendor(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "vendor@example.com", "Test Vendor", UserRole.VENDOR)


@pytest_asyncio.fixture(scope="function")
async def other_vendor(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "vendor2@example.com", "Other Vendor", UserRole.VENDOR)


@pytest_asyncio.fixture(scope="function")
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "Admin User", UserRole.ADMIN)


@pytest.fixture
def auth_headers_customer(customer: User) -> dict[str, str]:
    return _auth_headers(customer)


@pytest.fixture
def auth_headers_other_customer(other_customer: User) -> dict[str, str]:
    return _auth_headers(other_customer)


@pytest.fixture
def auth_headers_vendor(vendor: User) -> dict[str, str]:
    return _auth_headers(vendor)


@pytest.fixture
def auth_headers_other_vendor(other_vendor: User) -> dict[str, str]:
    return _auth_headers(other_vendor)


@pytest.fixture
def auth_headers_admin(admin_user: User) -> dict[str, str]:
    return _auth_headers(admin_user)


# --- Fixtures Catalogue, Adresse et Panier ---

@pytest_asyncio.fixture(scope="function")
async def test_shop(db_session: AsyncSession, vendor: User) -> Shop:
    shop = Shop(name="Ferme du Vendeur", vendor_id=vendor.id, latitude=12.9716, longitude=77.5946)
    db_session.add(shop)
    await db_session.commit()
    await db_session.refresh(shop)
    return shop


@pytest_asyncio.fixture(scope="function")
async def test_product(db_session: AsyncSession, test_shop: Shop, vendor: User) -> Product:
    """Produit A: prix 100, remise 10%, stock 10."""
    product = Product(
        name="Produit A",
        price=Decimal("100.00"),
        discount=Decimal("10"),
        stock=10,
        shop_id=test_shop.id,
        vendor_id=vendor.id,
    )
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest_asyncio.fixture(scope="function")
async def test_address(db_session: AsyncSession, customer: User) -> Address:
    address = Address(
        user_id=customer.id,
        street="12 MG Road",
        district="Bangalore Urban",
        state="Karnataka",
        pincode="560001",
        phone="+919999999999",
    )
    db_session.add(address)
    await db_session.commit()
    await db_session.refresh(address)
    return address


@pytest_asyncio.fixture(scope="function")
async def test_cart(db_session: AsyncSession, customer: User, test_product: Product) -> List[CartItem]:
    """Panier de l'acheteur: 2 x Produit A."""
    item = CartItem(user_id=customer.id, product_id=test_product.id, quantity=2)
    db_session.add(item)
    await db_session.commit()
    await db_session.refresh(item)
    return [item]


async def _create_coupon(db_session: AsyncSession, **overrides) -> Coupon:
    now = utcnow()
    values = dict(
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("20"),
        min_order_value=Decimal("100"),
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
    )
    values.update(overrides)
    coupon = Coupon(**values)
    db_session.add(coupon)
    await db_session.commit()
    await db_session.refresh(coupon)
    return coupon


@pytest_asyncio.fixture(scope="function")
async def fixed_coupon(db_session: AsyncSession) -> Coupon:
    """Coupon fixe de 20, minimum de commande 100."""
    return await _create_coupon(db_session, code="FLAT20")


@pytest_asyncio.fixture(scope="function")
async def percentage_coupon(db_session: AsyncSession) -> Coupon:
    """Coupon de 50% plafonné à 30, sans minimum."""
    return await _create_coupon(
        db_session,
        code="HALF",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("50"),
        min_order_value=Decimal("0"),
        max_discount_amount=Decimal("30"),
    )


@pytest.fixture
def coupon_factory(db_session: AsyncSession):
    async def factory(**overrides) -> Coupon:
        return await _create_coupon(db_session, **overrides)
    return factory


@pytest.fixture
def fetch_stock(db_session: AsyncSession):
    """Lit le stock courant directement en base (la session est partagée avec l'API)."""
    async def fetch(product_id: int) -> int:
        return await db_session.scalar(select(Product.stock).where(Product.id == product_id))
    return fetch
