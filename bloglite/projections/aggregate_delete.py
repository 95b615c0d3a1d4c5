import logging
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.domain.events import ArticleDeleted
from bloglite.models import ArticleRecord

logger = logging.getLogger(__name__)


class AggregateDeletePolicy:
    """Removes the write-side row of a deleted article; a repeat is a no-op."""

    async def on_deleted(self, db: AsyncSession, event: ArticleDeleted, occurred_at: datetime) -> None:
        result = await db.execute(
            delete(ArticleRecord)
            .where(ArticleRecord.id == event.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Purged deleted article %s", event.id)
