import os
import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import mailledger` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test database URL before any mailledger imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from mailledger.ledger import base  # noqa: E402
from mailledger.ledger.models import LedgerEntry  # noqa: E402,F401


@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh in-memory ledger per test.

    The engine and session factory are patched into mailledger.ledger.base so
    UnitOfWork, SqlLedger and get_db all use it.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(base.Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    original_engine, original_factory = base.engine, base.AsyncSessionLocal
    base.engine = engine
    base.AsyncSessionLocal = factory
    try:
        yield factory
    finally:
        base.engine = original_engine
        base.AsyncSessionLocal = original_factory
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db):
    """Get a database session for a test."""
    async with test_db() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop process-wide singletons between tests."""
    from mailledger.core import automation
    from mailledger.reconciliation import orchestrator

    automation.set_automation_service(None)
    orchestrator.set_orchestrator(None)
    yield
    automation.set_automation_service(None)
    orchestrator.set_orchestrator(None)
