"""
Article command handlers — the write side.

Design notes
------------
- Each handler loads the aggregate, applies exactly one domain operation
  and hands the aggregate plus the resulting events to
  ``ArticleRepository.save_all``, which commits both atomically. A domain
  error raised before ``save_all`` leaves nothing to roll back; a storage
  error inside it rolls back the whole write.
- Handlers never touch the read model. Readers see the change once the
  outbox dispatcher has projected the events.
- The slug check in ``create_article`` is a fast path for a friendly
  error; the partial unique index on live slugs is the real guard and a
  concurrent duplicate surfaces as ``IntegrityError``.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.domain.article import Article, ArticleBuilder, ArticleState, validate_slug
from bloglite.domain.content import ContentFactory
from bloglite.exceptions import ArticleNotFound, InvalidState, SlugAlreadyExists
from bloglite.repositories import category_repository
from bloglite.repositories.article_repository import ArticleRepository

logger = logging.getLogger(__name__)


async def _load(repo: ArticleRepository, article_id: str) -> Article:
    article = await repo.find(article_id)
    if article is None:
        raise ArticleNotFound()
    return article


async def create_article(
    db: AsyncSession,
    factory: ContentFactory,
    *,
    slug: str,
    category: str,
    author: str,
    markdown: str,
) -> str:
    """Create a private article and return its id."""
    validate_slug(slug)
    repo = ArticleRepository(db)
    if await repo.find_by_slug(slug) is not None:
        raise SlugAlreadyExists()

    category_exists = await category_repository.exists(db, category)
    content = await factory.process(markdown)
    article, created = (
        ArticleBuilder()
        .slug(slug)
        .author(author)
        .category(category, is_valid=category_exists)
        .content(content)
        .build()
    )
    await repo.save_all(article, [created])
    logger.info("Created article %s (slug=%s, version=%s)", article.id, slug, article.current_version)
    return article.id


async def update_article_content(
    db: AsyncSession, factory: ContentFactory, article_id: str, markdown: str
) -> str:
    """Add a new content version and return its hash."""
    repo = ArticleRepository(db)
    article = await _load(repo, article_id)
    content = await factory.process(markdown)
    event = article.update_content(content)
    await repo.save_all(article, [event])
    logger.info(
        "Updated article %s content %s -> %s",
        article_id,
        event.parent_version,
        event.current_version,
    )
    return article.current_version


async def revert_article_content(db: AsyncSession, article_id: str, version: str) -> str:
    repo = ArticleRepository(db)
    article = await _load(repo, article_id)
    event = article.revert_to_version(version)
    await repo.save_all(article, [event])
    logger.info("Reverted article %s to version %s", article_id, version)
    return article.current_version


async def set_article_category(db: AsyncSession, article_id: str, category: str) -> None:
    repo = ArticleRepository(db)
    article = await _load(repo, article_id)
    category_exists = await category_repository.exists(db, category)
    event = article.change_category(category, category_exists)
    await repo.save_all(article, [event])
    logger.info(
        "Moved article %s from %s to %s", article_id, event.old_category_id, event.new_category_id
    )


async def set_article_state(db: AsyncSession, article_id: str, state: int) -> None:
    """Publish (``1``) or unpublish (``0``) an article."""
    if state not in (ArticleState.PRIVATE, ArticleState.PUBLIC):
        raise InvalidState()
    repo = ArticleRepository(db)
    article = await _load(repo, article_id)
    if state == ArticleState.PUBLIC:
        article, event = article.public()
    else:
        article, event = article.private()
    await repo.save_all(article, [event])
    logger.info("Article %s is now %s", article_id, article.state.name.lower())


async def delete_article(db: AsyncSession, article_id: str) -> None:
    repo = ArticleRepository(db)
    article = await _load(repo, article_id)
    event = article.delete()
    await repo.save_all(article, [event])
    logger.info("Deleted article %s", article_id)
