import os
import tempfile

os.environ["ENCRYPTION_KEY"] = "8f1c2d3e4b5a69788796a5b4c3d2e1f00f1e2d3c4b5a69788796a5b4c3d2e1f0"
os.environ["JWT_SECRET"] = "test-session-secret-0123456789abcdef"
os.environ["ADMIN_EMAILS"] = '["admin@example.com"]'
os.environ["AUTH_SYNC_SECRET"] = ""
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'idea_expansion_test.db')}",
)

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
import models  # noqa: F401
from models.account import Account
from services.credits import ensure_credit_balance


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


async def _create_account(db: AsyncSession, email: str) -> Account:
    account = Account(email=email, name="Writer")
    db.add(account)
    await db.flush()
    await ensure_credit_balance(account.id, db)
    await db.commit()
    return account


@pytest_asyncio.fixture
async def make_account(db):
    async def _make(email: str = "writer@example.com") -> Account:
        return await _create_account(db, email)

    return _make


@pytest_asyncio.fixture
async def account(make_account):
    return await make_account()
