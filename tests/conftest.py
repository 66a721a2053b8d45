"""
Pytest fixtures for the retail backend test suite.

Provides:
- A fresh SQLite database file per test (async engine + session factory)
- Seeded acting users and a product factory
- An httpx client bound to the FastAPI app with auth and DB overridden
- Structured log capture
"""

import json
import logging
import os
from io import StringIO

# Configuration is read at import time.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DB_TYPE"] = "sqlite"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient

from retail_backend.core import config
from retail_backend.core.db import build_engine, build_session_factory, get_db, init_models
from retail_backend.core.logging_config import StructuredFormatter, configure_logging, reset_logging
from retail_backend.models.user_models import User
from retail_backend.schemas.inventory_schemas import ProductCreate
from retail_backend.services.inventory_services.stock_ledger_service import create_product
from retail_backend.utils.get_user import get_current_user


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture
def captured_logs():
    """
    Capture retail_backend logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            assert any(r["message"] == "order_placed" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("retail_backend")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'retail_test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def strict_stock(monkeypatch):
    """Reject movements that would take stock below zero."""
    monkeypatch.setattr(config, "ALLOW_NEGATIVE_STOCK", False)


# =============================================================================
# Data fixtures
# =============================================================================


async def _add_user(db, username, role, phone=None):
    user = User(username=username, name=username.title(), phone=phone, role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def admin(db):
    return await _add_user(db, "admin", "admin", phone="01700000000")


@pytest.fixture
async def salesman(db):
    return await _add_user(db, "sam", "salesman", phone="01711111111")


@pytest.fixture
def make_product(db):
    """Create a catalog product through the ledger (opening entry included)."""

    async def _make(name="Widget", quantity=10, purchase_price=5.0, sale_price=8.0, **extra):
        return await create_product(
            db,
            ProductCreate(
                name=name,
                quantity=quantity,
                purchase_price=purchase_price,
                sale_price=sale_price,
                **extra,
            ),
        )

    return _make


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
async def acting_user(admin):
    """Mutable holder for the user the API sees; tests swap ``["user"]``."""
    return {"user": admin}


@pytest.fixture
async def client(session_factory, acting_user):
    from main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _current_user():
        return acting_user["user"]

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = _current_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
