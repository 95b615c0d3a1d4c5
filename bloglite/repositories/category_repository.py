from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.models import Category


async def exists(db: AsyncSession, category_id: str) -> bool:
    """Category existence check injected into the aggregate as a boolean."""
    q = select(Category.id).where(Category.id == category_id)
    return (await db.execute(q)).scalar_one_or_none() is not None


async def get_all(db: AsyncSession) -> list[Category]:
    result = await db.execute(select(Category).order_by(Category.id))
    return list(result.scalars().all())
