import secrets

from fastapi import Header, HTTPException, Query, Request, status

from bloglite.config import settings
from bloglite.domain.content import ContentFactory


class PaginationParams:
    """
    ``page``/``limit`` query parameters for the article listings.

    ``limit`` is additionally capped at ``settings.MAX_PAGE_SIZE``, which may
    be lower than the 100 enforced by validation.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="1-based page number."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Articles per page.",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)


class ArticleFilters:
    """Optional list filters shared by the public and admin listings."""

    def __init__(
        self,
        category: str | None = Query(None, description="Category id."),
        tags: str | None = Query(None, description="Comma-separated tags; all must match."),
        author: str | None = Query(None, description="Author name."),
    ) -> None:
        self.category = category
        self.tags = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
        self.author = author


async def require_admin(x_admin_token: str | None = Header(None)) -> None:
    """Guard for admin routes: the request must carry the shared admin token."""
    if x_admin_token is None or not secrets.compare_digest(
        x_admin_token.encode(), settings.ADMIN_TOKEN.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token",
        )


def get_content_factory(request: Request) -> ContentFactory:
    """The ContentFactory built at start-up (see ``bloglite.main.lifespan``)."""
    return request.app.state.content_factory
