import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

os.environ.setdefault("CONFIG", str(Path(__file__).parent / "resources" / "test.yaml"))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from leasehold_backend.core.exceptions import ExternalServiceError  # noqa: E402
from leasehold_backend.database import Base, get_db  # noqa: E402
from leasehold_backend.main import app  # noqa: E402
from leasehold_backend.modules.auth.jwt_service import create_access_token  # noqa: E402
from leasehold_backend.modules.auth.models import Organization  # noqa: E402
from leasehold_backend.modules.lease_management import crud as lease_crud  # noqa: E402
from leasehold_backend.modules.lease_management.models import (  # noqa: E402
    LeaseStatus,
    PaymentCycle,
)
from leasehold_backend.modules.notifications.processor import (  # noqa: E402
    get_notification_processor,
)
from leasehold_backend.modules.notifications.schemas import (  # noqa: E402
    NotificationResult,
)
from leasehold_backend.modules.property_management.models import (  # noqa: E402
    Property,
    Unit,
)
from leasehold_backend.modules.tenant_management.models import (  # noqa: E402
    Tenant,
    TenantStatus,
)

NOW = datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc)
CRON_SECRET = "test-cron-secret"


class FakeNotifier:
    """Records every ``process`` call; optionally fails like a broken channel."""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def process(self, organization_id, trigger, related_entity_id=None):
        self.calls.append((organization_id, trigger, related_entity_id))
        if self.fail:
            raise ExternalServiceError("email", "send")
        return NotificationResult(processed=1, sent=1)

    @property
    def triggers(self):
        return [call[1] for call in self.calls]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def organization(db):
    org = Organization(name="Acme Rentals")
    db.add(org)
    await db.commit()
    return org


@pytest.fixture
async def unit(db, organization):
    prop = Property(organization_id=organization.id, name="Sunset Villas")
    db.add(prop)
    await db.flush()
    unit = Unit(organization_id=organization.id, property_id=prop.id, name="A1")
    db.add(unit)
    await db.commit()
    return unit


@pytest.fixture
async def other_unit(db, unit):
    other = Unit(
        organization_id=unit.organization_id, property_id=unit.property_id, name="B2"
    )
    db.add(other)
    await db.commit()
    return other


@pytest.fixture
async def tenant(db, organization):
    tenant = Tenant(
        organization_id=organization.id,
        full_name="Jane Doe",
        email="jane@example.com",
        phone="+6281200000001",
        status=TenantStatus.LEAD,
    )
    db.add(tenant)
    await db.commit()
    return tenant


@pytest.fixture
def make_lease(db, organization, unit, tenant):
    """Insert a lease directly, bypassing the services."""

    async def _make(**overrides):
        fields = dict(
            organization_id=organization.id,
            unit_id=unit.id,
            tenant_id=tenant.id,
            start_date=NOW - timedelta(days=10),
            end_date=NOW + timedelta(days=20),
            payment_cycle=PaymentCycle.MONTHLY,
            rent_amount=Decimal("1000.00"),
            status=LeaseStatus.DRAFT,
        )
        fields.update(overrides)
        lease = await lease_crud.create_lease(db, **fields)
        await db.commit()
        return await lease_crud.get_lease_by_id(db, lease.id)

    return _make


@pytest.fixture
async def client(session_factory, notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_processor] = lambda: notifier
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(organization):
    token = create_access_token(
        user_id=7, organization_id=organization.id, email="manager@example.com"
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}
