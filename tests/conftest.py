import pytest_asyncio
from datetime import timedelta
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shortener.database import Base, get_db
from shortener.expiration import utc_now
from shortener.main import app
from shortener.models import Link

# Each test gets its own SQLite file so separate sessions really are separate
# connections (needed for the concurrent click tests).
@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()

@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            yield session

    # ASGITransport does not run the lifespan, so no sweeper or Redis here.
    app.dependency_overrides[get_db] = override_get_db
    async with ASGITransport(app=app) as transport:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    app.dependency_overrides.clear()

@pytest_asyncio.fixture
async def expire_link(session_factory):
    """Move a link's expiry into the past without waiting for it."""
    async def _expire(short_code: str, ago: timedelta = timedelta(minutes=5)):
        async with session_factory() as db:
            await db.execute(
                update(Link)
                .where(Link.short_code == short_code)
                .values(expires_at=utc_now() - ago)
            )
            await db.commit()
    return _expire
