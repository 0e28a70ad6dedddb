"""Shared fixtures for marketplace tests.

Every test gets its own SQLite database file so transactions, row locks
and retries behave the way they do against a real database.
"""

from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from marketplace.api.dependencies import get_audit_dispatcher
from marketplace.domain.events import ChangeEvent
from marketplace.infrastructure.audit import AuditDispatcher
from marketplace.infrastructure.config import settings
from marketplace.infrastructure.crypto import PasswordHasher
from marketplace.infrastructure.database import (
    build_engine,
    build_session_factory,
    get_session_factory,
    init_models,
)
from marketplace.infrastructure.models import ProductModel, PromotionModel, UserModel
from marketplace.main import app


class RecordingAuditSink:
    """Audit sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    async def emit(self, events: Sequence[ChangeEvent]) -> None:
        self.events.extend(events)


class Seeder:
    """Inserts fixture rows directly, bypassing the services."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._users = 0

    async def user(self, username: str | None = None) -> int:
        self._users += 1
        username = username or f"user{self._users}"
        async with self.session_factory() as session:
            async with session.begin():
                user = UserModel(
                    first_name="Test",
                    last_name="User",
                    email=f"{username}@example.com",
                    username=username,
                    password_hash="not-a-real-hash",
                )
                session.add(user)
            return user.id

    async def product(
        self,
        price: str = "10.00",
        stock: int = 10,
        name: str = "Widget",
    ) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                product = ProductModel(name=name, price=Decimal(price), stock_quantity=stock)
                session.add(product)
            return product.id

    async def promotion(
        self,
        product_ids: Sequence[int],
        discount: int,
        start: datetime,
        end: datetime,
    ) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                products = list(
                    await session.scalars(
                        select(ProductModel).where(ProductModel.id.in_(product_ids))
                    )
                )
                promotion = PromotionModel(
                    discount_percentage=discount,
                    start_date=start,
                    end_date=end,
                    products=products,
                )
                session.add(promotion)
            return promotion.id

    async def stock(self, product_id: int) -> int:
        async with self.session_factory() as session:
            return await session.scalar(
                select(ProductModel.stock_quantity).where(ProductModel.id == product_id)
            )

    async def count(self, model: type) -> int:
        async with self.session_factory() as session:
            return await session.scalar(select(func.count()).select_from(model))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    """Fresh SQLite database with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def audit(audit_sink: RecordingAuditSink) -> AuditDispatcher:
    return AuditDispatcher(audit_sink)


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    """Argon2 hasher with minimal cost parameters."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {settings.api_key}"}


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    audit: AuditDispatcher,
    auth_headers: dict[str, str],
) -> AsyncIterator[httpx.AsyncClient]:
    """Authenticated client wired to the per-test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_audit_dispatcher] = lambda: audit
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
        headers=auth_headers,
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[httpx.AsyncClient]:
    """Client without credentials."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
