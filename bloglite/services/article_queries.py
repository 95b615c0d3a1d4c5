"""
Article query handlers — the read side.

Design notes
------------
- Queries read only the read model (``articles_rm`` and friends); they
  never load aggregates.
- ``include_private`` decides visibility: admin callers see private
  articles, public callers see published ones only.
- Public results go through the Redis cache-aside layer. Keys encode every
  filter that affects the result; the dispatcher purges them after each
  committed batch. Admin results are never cached.
- A tag filter matches articles carrying *every* requested tag.
"""
import math
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.cache import cache
from bloglite.config import settings
from bloglite.domain.article import ArticleState
from bloglite.exceptions import ArticleNotFound
from bloglite.models import (
    ArticleReadModel,
    ArticleTagReadModel,
    ArticleVersionReadModel,
    Category,
)
from bloglite.repositories import category_repository

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _article_to_dict(row: ArticleReadModel) -> dict:
    """List view of a read-model row."""
    return {
        "id": row.id,
        "slug": row.slug,
        "title": row.title,
        "author": row.author,
        "category_id": row.category_id,
        "category_name": row.category_name,
        "state": row.state,
        "current_version": row.current_version,
        "tags": list(row.tags),
        "rendered_summary": row.rendered_summary,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


def _article_detail_to_dict(row: ArticleReadModel) -> dict:
    data = _article_to_dict(row)
    data["rendered_content"] = row.rendered_content
    return data


def _version_to_dict(row: ArticleVersionReadModel, current: str) -> dict:
    return {
        "version": row.version,
        "prev_version": row.prev_version,
        "title": row.title,
        "summary": row.summary,
        "body": row.body,
        "tags": list(row.tags),
        "created_at": _iso(row.created_at),
        "is_current": row.version == current,
    }


def _visible(include_private: bool):
    if include_private:
        return ArticleReadModel.state != int(ArticleState.DELETED)
    return ArticleReadModel.state == int(ArticleState.PUBLIC)


async def _find_visible(db: AsyncSession, slug: str, include_private: bool) -> ArticleReadModel:
    q = (
        select(ArticleReadModel)
        .where(ArticleReadModel.slug == slug, _visible(include_private))
        .order_by(ArticleReadModel.created_at.desc())
        .limit(1)
    )
    row = (await db.execute(q)).scalars().first()
    if row is None:
        raise ArticleNotFound()
    return row


# ---------------------------------------------------------------------------
# Public query functions
# ---------------------------------------------------------------------------

async def search_articles(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    category: str | None = None,
    tags: list[str] | None = None,
    author: str | None = None,
    include_private: bool = False,
) -> dict:
    """
    Return one page of articles, most recently updated first.

    The result carries ``count`` (items on this page), ``total`` (matching
    articles), ``pages``, ``page`` and ``limit``.
    """
    tags = sorted({t for t in (tags or []) if t})
    cache_key = cache.key("list", page, limit, category or "", ",".join(tags), author or "")
    if not include_private:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached

    conditions = [_visible(include_private)]
    if category:
        conditions.append(ArticleReadModel.category_id == category)
    if author:
        conditions.append(ArticleReadModel.author == author)
    if tags:
        tagged = (
            select(ArticleTagReadModel.article_id)
            .where(ArticleTagReadModel.tag.in_(tags))
            .group_by(ArticleTagReadModel.article_id)
            .having(func.count(ArticleTagReadModel.tag) == len(tags))
        )
        conditions.append(ArticleReadModel.id.in_(tagged))

    count_q = select(func.count()).select_from(ArticleReadModel).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    rows_q = (
        select(ArticleReadModel)
        .where(*conditions)
        .order_by(ArticleReadModel.updated_at.desc(), ArticleReadModel.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(rows_q)).scalars().all()

    response = {
        "items": [_article_to_dict(row) for row in rows],
        "count": len(rows),
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total > 0 else 0,
    }
    if not include_private:
        await cache.set(cache_key, response, ttl=settings.CACHE_TTL_LIST)
    return response


async def get_article(db: AsyncSession, slug: str, *, include_private: bool = False) -> dict:
    cache_key = cache.key("detail", slug)
    if not include_private:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached

    data = _article_detail_to_dict(await _find_visible(db, slug, include_private))
    if not include_private:
        await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_article_versions(
    db: AsyncSession, slug: str, *, include_private: bool = False
) -> list[dict]:
    """Stored versions of an article in the order they were created."""
    article = await _find_visible(db, slug, include_private)
    q = (
        select(ArticleVersionReadModel)
        .where(ArticleVersionReadModel.article_id == article.id)
        .order_by(ArticleVersionReadModel.created_at, ArticleVersionReadModel.version)
    )
    rows = (await db.execute(q)).scalars().all()
    return [_version_to_dict(row, article.current_version) for row in rows]


async def get_tags(db: AsyncSession, *, include_private: bool = False) -> list[str]:
    cache_key = cache.key("tags")
    if not include_private:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached

    q = (
        select(ArticleTagReadModel.tag)
        .join(ArticleReadModel, ArticleReadModel.id == ArticleTagReadModel.article_id)
        .where(_visible(include_private))
        .distinct()
        .order_by(ArticleTagReadModel.tag)
    )
    tags = list((await db.execute(q)).scalars().all())
    if not include_private:
        await cache.set(cache_key, tags, ttl=settings.CACHE_TTL_LIST)
    return tags


async def get_categories(db: AsyncSession) -> list[dict]:
    cache_key = cache.key("categories")
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    categories: list[Category] = await category_repository.get_all(db)
    data = [{"id": c.id, "display_name": c.display_name} for c in categories]
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data
