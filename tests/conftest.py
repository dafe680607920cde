"""Shared fixtures: a throwaway SQLite database, in-memory collaborators and an ASGI client"""

import uuid
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.exceptions import DependencyError
from main import create_app
from models import alert, invoice, organization, purchase_order, travel_bill  # noqa: F401
from models.base import Base, get_db
from models.invoice import InvoiceSeries
from models.organization import BuyerSupplierLink, MemberAccess, Organization, OrganizationMember
from settings.config import Settings

PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF\n"


class InMemoryObjectStore:
    """ObjectStore keeping objects in a dict; records every upload"""

    def __init__(self, bucket: str = "test-bucket"):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[str] = []
        self.fail_upload = False
        self.fail_remove = False

    async def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        if self.fail_upload:
            raise DependencyError("File upload failed")
        self.uploads.append(key)
        self.objects[key] = data

    async def download(self, key: str) -> bytes:
        if key not in self.objects:
            raise DependencyError("File download failed", details=key)
        return self.objects[key]

    async def remove(self, keys: List[str]) -> None:
        if self.fail_remove:
            raise DependencyError("File removal failed")
        for key in keys:
            self.objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"https://files.test/{self.bucket}/{key}"

    async def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.public_url(key)}?expires={expires_in}"


class FakeEmailClient:
    """Collects sent emails instead of talking to SMTP"""

    def __init__(self, settings: Settings, fail_for: Optional[set] = None):
        self.settings = settings
        self.sent: List[Dict] = []
        self.fail_for = fail_for or set()

    async def send_email(self, to, subject, html_body, from_email=None):
        if set(to) & self.fail_for:
            raise RuntimeError("SMTP unavailable")
        self.sent.append({"to": list(to), "subject": subject, "html": html_body})


class FakeShopifyClient:
    def __init__(self, admins: Optional[List[Dict]] = None):
        self.admins = admins or []

    async def get_admin_customers(self, first: int = 250):
        return list(self.admins)


@pytest.fixture
def settings():
    return Settings(
        ENABLE_RATE_LIMITER=False,
        API_KEY=None,
        COMPANY_NAME="Acme Exports",
        EMAIL_MIN_INTERVAL_MS=0,
        EMAIL_RETRY_DELAY_SECONDS=0,
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def po_store():
    return InMemoryObjectStore("pofy26")


@pytest.fixture
def invoice_store():
    return InMemoryObjectStore("invoice-documents")


@pytest.fixture
def travel_bill_store():
    return InMemoryObjectStore("travel-bill-fy26")


@pytest.fixture
def email_client(settings):
    return FakeEmailClient(settings)


@pytest.fixture
def shopify_client():
    return FakeShopifyClient(
        admins=[
            {"id": "9001", "email": "admin1@shop.test", "name": "Admin One"},
            {"id": "9002", "email": "admin2@shop.test", "name": "Admin Two"},
        ]
    )


@pytest.fixture
def app(settings, session_factory, po_store, invoice_store, travel_bill_store, email_client, shopify_client):
    application = create_app(
        settings,
        po_store=po_store,
        invoice_store=invoice_store,
        travel_bill_store=travel_bill_store,
        email_client=email_client,
        shopify_client=shopify_client,
    )

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = _get_test_db
    return application


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def seed_network(session_factory, merchant_members: int = 2) -> Dict:
    """
    B1 (buyer) <-> S1 (supplier) with an active link, a merchant organization whose members hold
    access to B1, and one member of B1 itself.
    """
    ids: Dict = {"merchant_shopify_ids": [], "merchant_member_ids": []}
    async with session_factory() as session:
        buyer = Organization(id=uuid.uuid4(), name="B1", org_type="buyer")
        supplier = Organization(id=uuid.uuid4(), name="S1", org_type="supplier")
        merchant = Organization(id=uuid.uuid4(), name="Merchant Co", org_type="merchant")
        session.add_all([buyer, supplier, merchant])
        await session.flush()

        link = BuyerSupplierLink(id=uuid.uuid4(), buyer_org_id=buyer.id, supplier_org_id=supplier.id, status="active")
        buyer_member = OrganizationMember(
            id=uuid.uuid4(), organization_id=buyer.id, name="Bea Buyer", email="bea@b1.test", shopify_customer_id="5001"
        )
        session.add_all([link, buyer_member])

        for n in range(merchant_members):
            member = OrganizationMember(
                id=uuid.uuid4(),
                organization_id=merchant.id,
                name=f"Merchant {n + 1}",
                email=f"merchant{n + 1}@merchant.test",
                shopify_customer_id=f"700{n + 1}",
            )
            session.add(member)
            await session.flush()
            session.add(MemberAccess(id=uuid.uuid4(), member_id=member.id, organization_id=buyer.id))
            ids["merchant_shopify_ids"].append(member.shopify_customer_id)
            ids["merchant_member_ids"].append(member.id)

        await session.commit()
        ids.update(
            buyer_org_id=buyer.id,
            supplier_org_id=supplier.id,
            merchant_org_id=merchant.id,
            link_id=link.id,
            buyer_member_id=buyer_member.id,
            buyer_shopify_id=buyer_member.shopify_customer_id,
        )
    return ids


async def seed_series(session_factory, buyer_org_id, current_number: int = 5, initialized: bool = True,
                      prefix: str = "ACME", financial_year: str = "FY25"):
    async with session_factory() as session:
        session.add(
            InvoiceSeries(
                id=uuid.uuid4(),
                buyer_org_id=buyer_org_id,
                prefix=prefix,
                financial_year=financial_year,
                current_number=current_number,
                initialized=initialized,
            )
        )
        await session.commit()
