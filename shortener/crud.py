from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, case, or_
from sqlalchemy.engine import Row
from .models import Link
from typing import Optional, List, Sequence, Tuple
import uuid
from datetime import datetime

def _active_clause(now: datetime):
    return or_(Link.expires_at.is_(None), Link.expires_at > now)

def _expired_clause(now: datetime):
    return Link.expires_at.is_not(None) & (Link.expires_at <= now)

# Link CRUD
async def create_link(db: AsyncSession, link: Link) -> Link:
    db.add(link)
    await db.commit()
    await db.refresh(link)
    return link

async def get_link_by_short_code(db: AsyncSession, short_code: str) -> Optional[Link]:
    result = await db.execute(select(Link).where(Link.short_code == short_code))
    return result.scalar_one_or_none()

async def short_code_exists(db: AsyncSession, short_code: str) -> bool:
    result = await db.execute(select(Link.id).where(Link.short_code == short_code).limit(1))
    return result.scalar_one_or_none() is not None

async def increment_click_count(db: AsyncSession, short_code: str, now: datetime) -> Optional[Link]:
    # Single UPDATE ... RETURNING: the increment is applied to the stored value,
    # and an expired row is never counted.
    stmt = (
        update(Link)
        .where(Link.short_code == short_code, _active_clause(now))
        .values(clicks=Link.clicks + 1)
        .returning(Link)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    result = await db.execute(stmt)
    link = result.scalar_one_or_none()
    await db.commit()
    return link

async def delete_link_by_id(db: AsyncSession, link_id: uuid.UUID) -> bool:
    result = await db.execute(
        delete(Link).where(Link.id == link_id).execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0

async def list_links(db: AsyncSession, now: datetime, active_only: bool = True) -> List[Link]:
    stmt = select(Link).order_by(Link.created_at.desc())
    if active_only:
        stmt = stmt.where(_active_clause(now))
    result = await db.execute(stmt)
    return list(result.scalars().all())

async def get_link_counts(db: AsyncSession, now: datetime) -> Tuple[int, int, int]:
    """Return ``(total, active, total_clicks)`` in one round trip."""
    stmt = select(
        func.count(Link.id),
        func.coalesce(func.sum(case((_active_clause(now), 1), else_=0)), 0),
        func.coalesce(func.sum(Link.clicks), 0),
    )
    total, active, clicks = (await db.execute(stmt)).one()
    return int(total), int(active), int(clicks)

# Cleanup
async def delete_expired_links(db: AsyncSession, now: datetime) -> Sequence[Row]:
    stmt = (
        delete(Link)
        .where(_expired_clause(now))
        .returning(Link.short_code, Link.created_at, Link.expires_at, Link.clicks)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    rows = result.all()
    await db.commit()
    return rows
