import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./po_confirmation_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine

from po_confirmation.main import app
from po_confirmation.api.deps import get_submission_lock
from po_confirmation.authz.context import CallerContext
from po_confirmation.core.config import settings
from po_confirmation.core.enums import OrderStatus, UserRole
from po_confirmation.core.security import JWT_ALGORITHM, create_access_token, hash_password
from po_confirmation.db.migrations import run_migrations
from po_confirmation.db.routines import register_user
from po_confirmation.db.session import get_session_factory, make_session_factory, write_scope
from po_confirmation.models.order import Order


class InMemorySubmissionLock:
    """Stands in for the Redis lock: same interface, one process."""

    def __init__(self):
        self.held = set()
        self.acquired = []

    async def acquire(self, order_id: int) -> bool:
        if order_id in self.held:
            return False
        self.held.add(order_id)
        self.acquired.append(order_id)
        return True

    async def release(self, order_id: int) -> None:
        self.held.discard(order_id)


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True)
    await run_migrations(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def submission_lock():
    return InMemorySubmissionLock()


@pytest.fixture
async def test_client(session_factory, submission_lock):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_submission_lock] = lambda: submission_lock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def create_user_factory(session_factory):
    counter = {"n": 0}

    async def _create_user(username=None, role=UserRole.CLIENT, password="password123", **fields):
        counter["n"] += 1
        username = username or f"{role.value.lower()}_{counter['n']}"
        async with write_scope(session_factory, CallerContext.system()) as db:
            user = await register_user(db, username, hash_password(password), role=role, **fields)
        return user

    return _create_user


@pytest.fixture
def create_order_factory(session_factory):
    async def _create_order(client, status=OrderStatus.PENDING_PO, amount=100.0, **fields):
        async with write_scope(session_factory, CallerContext.system()) as db:
            order = Order(client_id=client.id, status=status, amount=amount, **fields)
            db.add(order)
        return order

    return _create_order


@pytest.fixture
async def client_user(create_user_factory):
    return await create_user_factory("client_1", credit_limit=1000.0)


@pytest.fixture
async def other_client(create_user_factory):
    return await create_user_factory("client_2", credit_limit=1000.0)


@pytest.fixture
async def admin_user(create_user_factory):
    return await create_user_factory("admin_1", role=UserRole.ADMIN)


def _bearer_headers(user) -> dict:
    token = create_access_token(str(user.id), user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return _bearer_headers


@pytest.fixture
def expired_token(client_user):
    payload = {
        "sub": str(client_user.id),
        "role": UserRole.CLIENT.value,
        "exp": datetime.now(timezone.utc) - timedelta(hours=1)
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests related to authentication"
    )
    config.addinivalue_line(
        "markers", "authz: marks tests related to row write authorization"
    )
    config.addinivalue_line(
        "markers", "migrations: marks tests related to schema migrations"
    )
    config.addinivalue_line(
        "markers", "workflow: marks tests related to the PO confirmation workflow"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
