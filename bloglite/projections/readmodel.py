"""
Read-model projector — one idempotent projection per event type.

Design notes
------------
- Every handler runs inside the dispatcher's transaction for the batch,
  so a failing projection rolls back its partial writes together with the
  "processed" mark.
- Created is an upsert keyed by article id; version rows are inserted with
  ``ON CONFLICT DO NOTHING`` keyed by (article, version), so a redelivered
  event converges to the same rows.
- ContentReverted is the one projection that reads before it writes: it
  loads the target version row and re-renders it. A missing row means the
  event arrived ahead of the version it points to and raises
  ``ProjectionError`` so the dispatcher retries it.
- Updates that find no read row raise ``ProjectionError`` for the same
  reason.
- ``article_tags_rm`` mirrors ``articles_rm.tags`` one row per tag and is
  rewritten whenever the tags change.
"""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.database import dialect_insert
from bloglite.domain import events
from bloglite.domain.content import ContentRenderer
from bloglite.exceptions import ProjectionError
from bloglite.models import (
    ArticleReadModel,
    ArticleTagReadModel,
    ArticleVersionReadModel,
    Category,
)

logger = logging.getLogger(__name__)


def _category_name(category_id: str):
    return (
        select(Category.display_name)
        .where(Category.id == category_id)
        .scalar_subquery()
    )


class ReadModelProjector:
    def __init__(self, renderer: ContentRenderer) -> None:
        self.renderer = renderer

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    async def on_created(
        self, db: AsyncSession, event: events.ArticleCreated, occurred_at: datetime
    ) -> None:
        stmt = dialect_insert(db, ArticleReadModel).values(
            id=event.id,
            slug=event.slug,
            category_id=event.category_id,
            category_name=_category_name(event.category_id),
            author=event.author,
            state=event.state,
            current_version=event.current_version,
            title=event.title,
            tags=event.tags,
            rendered_summary=event.rendered_summary,
            rendered_content=event.rendered_body,
            created_at=occurred_at,
            updated_at=occurred_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ArticleReadModel.id],
            set_={
                name: stmt.excluded[name]
                for name in (
                    "slug",
                    "category_id",
                    "category_name",
                    "author",
                    "state",
                    "current_version",
                    "title",
                    "tags",
                    "rendered_summary",
                    "rendered_content",
                    "updated_at",
                )
            },
        )
        await db.execute(stmt)
        await self._append_version(
            db,
            article_id=event.id,
            version=event.current_version,
            prev_version=None,
            title=event.title,
            summary=event.summary,
            body=event.body,
            tags=event.tags,
            created_at=occurred_at,
        )
        await self._replace_tags(db, event.id, event.tags)

    async def on_content_updated(
        self, db: AsyncSession, event: events.ArticleContentUpdated, occurred_at: datetime
    ) -> None:
        await self._append_version(
            db,
            article_id=event.id,
            version=event.current_version,
            prev_version=event.parent_version,
            title=event.title,
            summary=event.summary,
            body=event.body,
            tags=event.tags,
            created_at=occurred_at,
        )
        await self._update_row(
            db,
            event.id,
            current_version=event.current_version,
            title=event.title,
            tags=event.tags,
            rendered_summary=event.rendered_summary,
            rendered_content=event.rendered_body,
            updated_at=occurred_at,
        )
        await self._replace_tags(db, event.id, event.tags)

    async def on_content_reverted(
        self, db: AsyncSession, event: events.ArticleContentReverted, occurred_at: datetime
    ) -> None:
        q = select(ArticleVersionReadModel).where(
            ArticleVersionReadModel.article_id == event.id,
            ArticleVersionReadModel.version == event.current_version,
        )
        version = (await db.execute(q)).scalar_one_or_none()
        if version is None:
            raise ProjectionError(
                f"Version {event.current_version} of article {event.id} is not projected yet"
            )

        rendered_content = await self.renderer.render(version.body)
        rendered_summary = await self.renderer.render(version.summary)
        tags = list(version.tags)
        await self._update_row(
            db,
            event.id,
            current_version=version.version,
            title=version.title,
            tags=tags,
            rendered_summary=rendered_summary,
            rendered_content=rendered_content,
            updated_at=occurred_at,
        )
        await self._replace_tags(db, event.id, tags)

    async def on_category_changed(
        self, db: AsyncSession, event: events.ArticleCategoryChanged, occurred_at: datetime
    ) -> None:
        await self._update_row(
            db,
            event.id,
            category_id=event.new_category_id,
            category_name=_category_name(event.new_category_id),
            updated_at=occurred_at,
        )

    async def on_state_changed(
        self, db: AsyncSession, event: events.ArticleStateChanged, occurred_at: datetime
    ) -> None:
        await self._update_row(db, event.id, state=event.state, updated_at=occurred_at)

    async def on_deleted(
        self, db: AsyncSession, event: events.ArticleDeleted, occurred_at: datetime
    ) -> None:
        await db.execute(delete(ArticleTagReadModel).where(ArticleTagReadModel.article_id == event.id))
        await db.execute(
            delete(ArticleVersionReadModel).where(ArticleVersionReadModel.article_id == event.id)
        )
        await db.execute(delete(ArticleReadModel).where(ArticleReadModel.id == event.id))
        logger.debug("Removed read model rows of article %s", event.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _append_version(db: AsyncSession, **values) -> None:
        stmt = dialect_insert(db, ArticleVersionReadModel).values(**values)
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[ArticleVersionReadModel.article_id, ArticleVersionReadModel.version]
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            logger.debug(
                "Version %s of article %s already projected",
                values["version"],
                values["article_id"],
            )

    @staticmethod
    async def _update_row(db: AsyncSession, article_id: str, **values) -> None:
        result = await db.execute(
            update(ArticleReadModel)
            .where(ArticleReadModel.id == article_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ProjectionError(f"Read model row of article {article_id} does not exist")

    @staticmethod
    async def _replace_tags(db: AsyncSession, article_id: str, tags: list[str]) -> None:
        await db.execute(delete(ArticleTagReadModel).where(ArticleTagReadModel.article_id == article_id))
        if tags:
            await db.execute(
                insert(ArticleTagReadModel),
                [{"article_id": article_id, "tag": tag} for tag in sorted(set(tags))],
            )
