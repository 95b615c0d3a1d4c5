"""
Article repository — loads aggregates and is the outbox writer.

Design notes
------------
- ``save_all`` is the only way an aggregate change reaches storage. It
  upserts the aggregate row and appends every event to the outbox in one
  transaction and commits; on any failure the transaction is rolled back
  and the original exception is re-raised untouched. State and events are
  therefore always visible together or not at all.
- Lookups never return deleted aggregates; a deleted row only lingers
  until the delete policy removes it.
- Rows are decoded through ``version_codec``; a corrupt row raises
  ``DataIntegrityError`` instead of producing a half-valid aggregate.
"""
import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.database import dialect_insert
from bloglite.domain.article import Article, ArticleState
from bloglite.domain.events import DomainEvent
from bloglite.exceptions import BlogliteError, DataIntegrityError
from bloglite.models import ArticleRecord
from bloglite.outbox import store as outbox_store
from bloglite.repositories.version_codec import decode_history, encode_history

logger = logging.getLogger(__name__)


def _record_to_article(record: ArticleRecord) -> Article:
    try:
        state = ArticleState(record.state)
    except ValueError as exc:
        raise DataIntegrityError(f"Invalid article state {record.state!r}") from exc

    history = decode_history(record.version_history)
    try:
        return Article(
            id=record.id,
            slug=record.slug,
            author=record.author,
            category=record.category,
            state=state,
            history=history,
        )
    except BlogliteError as exc:
        raise DataIntegrityError(f"Stored article {record.id} is invalid: {exc}") from exc


class ArticleRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find(self, article_id: str) -> Article | None:
        q = select(ArticleRecord).where(
            ArticleRecord.id == article_id,
            ArticleRecord.state != int(ArticleState.DELETED),
        ).execution_options(populate_existing=True)
        record = (await self.db.execute(q)).scalar_one_or_none()
        return _record_to_article(record) if record is not None else None

    async def find_by_slug(self, slug: str) -> Article | None:
        q = select(ArticleRecord).where(
            ArticleRecord.slug == slug,
            ArticleRecord.state != int(ArticleState.DELETED),
        ).execution_options(populate_existing=True)
        record = (await self.db.execute(q)).scalar_one_or_none()
        return _record_to_article(record) if record is not None else None

    async def save_all(self, article: Article, events: Iterable[DomainEvent]) -> None:
        events = list(events)
        try:
            await self._upsert(article)
            outbox_store.append_events(self.db, events)
            await self.db.flush()
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise
        logger.debug(
            "Saved article %s with %d event(s): %s",
            article.id,
            len(events),
            ", ".join(e.topic for e in events),
        )

    async def _upsert(self, article: Article) -> None:
        values = {
            "id": article.id,
            "slug": article.slug,
            "author": article.author,
            "category": article.category,
            "state": int(article.state),
            "version_history": encode_history(article.history),
        }
        stmt = dialect_insert(self.db, ArticleRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ArticleRecord.id],
            set_={
                "slug": stmt.excluded.slug,
                "category": stmt.excluded.category,
                "state": stmt.excluded.state,
                "version_history": stmt.excluded.version_history,
                "updated_at": outbox_store.utc_now(),
            },
        )
        await self.db.execute(stmt)
