from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.database import get_db
from bloglite.dependencies import ArticleFilters, PaginationParams
from bloglite.schemas import ArticleDetail, ArticlePage, CategoryResponse
from bloglite.services import article_queries

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


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
    )


@router.get("/tags", response_model=list[str])
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await article_queries.get_tags(db)


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await article_queries.get_categories(db)


@router.get("/{slug}", response_model=ArticleDetail)
async def get_article(slug: str, db: AsyncSession = Depends(get_db)):
    return await article_queries.get_article(db, slug)
