from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.cache import cache
from bloglite.database import get_db
from bloglite.outbox.store import outbox_stats
from bloglite.schemas import MetricsResponse

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("", response_model=MetricsResponse)
async def get_metrics(request: Request, db: AsyncSession = Depends(get_db)):
    dispatcher = getattr(request.app.state, "dispatcher", None)
    return MetricsResponse(
        outbox=await outbox_stats(db),
        dispatcher=dispatcher.stats if dispatcher is not None else {"running": False},
        cache_info=cache.stats,
    )
