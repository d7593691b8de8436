"""
Shared pytest fixtures

- In-memory aiosqlite session per test
- Seeded stores
- Fake vision client
- ASGI test client with dependencies overridden
"""
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pricetracker.core.database import Base, get_db
from pricetracker.models import PriceHistory, Product, Store
from pricetracker.services.vision import ImageValidation, TagExtraction, VisionError


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def stores(db_session: AsyncSession) -> list[Store]:
    rows = [
        Store(id="yangjae", name="양재점", region="서울", latitude=37.4630, longitude=127.0400),
        Store(id="sangbong", name="상봉점", region="서울", latitude=37.5960, longitude=127.0859),
        Store(id="ilsan", name="일산점", region="경기", latitude=37.6656, longitude=126.7490),
        Store(id="online", name="온라인몰", region="온라인"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.fixture
async def product(db_session: AsyncSession) -> Product:
    row = Product(product_id="1234567", name="커클랜드 올리브오일 2L", category="가공식품")
    db_session.add(row)
    await db_session.commit()
    return row


async def add_price(
    db: AsyncSession,
    store_id: str,
    recorded_at: datetime,
    selling_price: int,
    current_price: int,
    product_id: str = "1234567",
    discount_price: Optional[int] = None,
    discount_amount: Optional[int] = None,
    discounted_price: Optional[int] = None,
    discount_period: Optional[str] = None,
    user_id: str = "user-1",
) -> PriceHistory:
    row = PriceHistory(
        product_id=product_id,
        store_id=store_id,
        user_id=user_id,
        selling_price=selling_price,
        current_price=current_price,
        discount_price=discount_price,
        discount_amount=discount_amount,
        discounted_price=discounted_price,
        discount_period=discount_period,
        recorded_at=recorded_at,
    )
    db.add(row)
    await db.commit()
    return row


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Vision
# ---------------------------------------------------------------------------

class FakeVision:
    """Stands in for VisionClient; records the images it was asked about."""

    def __init__(
        self,
        validation: Optional[ImageValidation] = None,
        extraction: Optional[TagExtraction] = None,
        error: Optional[Exception] = None,
        configured: bool = True,
    ):
        self.validation = validation or ImageValidation(is_valid=True, confidence=95)
        self.extraction = extraction or TagExtraction()
        self.error = error
        self.configured = configured
        self.calls = 0

    async def validate_price_tag(self, image_base64: str) -> ImageValidation:
        self.calls += 1
        if self.error:
            raise self.error
        return self.validation

    async def extract_price_tag(self, image_base64: str) -> TagExtraction:
        self.calls += 1
        if self.error:
            raise self.error
        return self.extraction


@pytest.fixture
def fake_vision() -> FakeVision:
    return FakeVision()


@pytest.fixture
def failing_vision() -> FakeVision:
    return FakeVision(error=VisionError("gateway down"))


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(db_session: AsyncSession, fake_vision: FakeVision) -> AsyncGenerator[httpx.AsyncClient, None]:
    from pricetracker.api import registrations
    from pricetracker.main import app

    async def override_db():
        yield db_session

    async def override_vision():
        yield fake_vision

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[registrations.get_vision_client] = override_vision
    registrations.limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    registrations.limiter.enabled = True
