from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.config import settings
from bloglite.database import get_db
from bloglite.dependencies import ArticleFilters, PaginationParams, get_content_factory, require_admin
from bloglite.domain.content import ContentFactory
from bloglite.schemas import (
    ArticleCreate,
    ArticleCreated,
    ArticleDetail,
    ArticlePage,
    ArticleVersion,
    CategoryChange,
    ContentUpdate,
    StateChange,
    VersionResult,
    VersionRevert,
)
from bloglite.services import article_commands, article_queries

router = APIRouter(
    prefix="/api/v1/admin/articles",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)

# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@router.post("", status_code=201, response_model=ArticleCreated)
async def create_article(
    data: ArticleCreate,
    db: AsyncSession = Depends(get_db),
    factory: ContentFactory = Depends(get_content_factory),
):
    try:
        article_id = await article_commands.create_article(
            db,
            factory,
            slug=data.slug,
            category=data.category,
            author=data.author or settings.DEFAULT_AUTHOR,
            markdown=data.markdown,
        )
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="An article with this slug already exists",
        )
    return ArticleCreated(id=article_id)


@router.put("/{article_id}/content", response_model=VersionResult)
async def update_content(
    article_id: str,
    data: ContentUpdate,
    db: AsyncSession = Depends(get_db),
    factory: ContentFactory = Depends(get_content_factory),
):
    version = await article_commands.update_article_content(db, factory, article_id, data.markdown)
    return VersionResult(id=article_id, current_version=version)


@router.patch("/{article_id}/version", response_model=VersionResult)
async def revert_content(article_id: str, data: VersionRevert, db: AsyncSession = Depends(get_db)):
    version = await article_commands.revert_article_content(db, article_id, data.version)
    return VersionResult(id=article_id, current_version=version)


@router.patch("/{article_id}/category", status_code=204)
async def change_category(article_id: str, data: CategoryChange, db: AsyncSession = Depends(get_db)):
    await article_commands.set_article_category(db, article_id, data.category)


@router.patch("/{article_id}/state", status_code=204)
async def change_state(article_id: str, data: StateChange, db: AsyncSession = Depends(get_db)):
    await article_commands.set_article_state(db, article_id, data.state)


@router.delete("/{article_id}", status_code=204)
async def delete_article(article_id: str, db: AsyncSession = Depends(get_db)):
    await article_commands.delete_article(db, article_id)


# ---------------------------------------------------------------------------
# Queries (private articles included, never cached)
# ---------------------------------------------------------------------------

@router.get("", response_model=ArticlePage)
async def list_articles(
    pagination: PaginationParams = Depends(),
    filters: ArticleFilters = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_queries.search_articles(
        db,
        page=pagination.page,
        limit=pagination.limit,
        category=filters.category,
        tags=filters.tags,
        author=filters.author,
        include_private=True,
    )


@router.get("/tags", response_model=list[str])
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await article_queries.get_tags(db, include_private=True)


@router.get("/{slug}", response_model=ArticleDetail)
async def get_article(slug: str, db: AsyncSession = Depends(get_db)):
    return await article_queries.get_article(db, slug, include_private=True)


@router.get("/{slug}/versions", response_model=list[ArticleVersion])
async def list_versions(slug: str, db: AsyncSession = Depends(get_db)):
    return await article_queries.get_article_versions(db, slug, include_private=True)
