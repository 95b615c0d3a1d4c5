from pydantic import BaseModel, ConfigDict, Field


# --- Commands ---

class ArticleCreate(BaseModel):
    slug: str = Field(max_length=25)
    category: str = Field(min_length=1, max_length=50)
    markdown: str
    author: str | None = Field(None, max_length=100)


class ContentUpdate(BaseModel):
    markdown: str


class VersionRevert(BaseModel):
    version: str = Field(min_length=1, max_length=64)


class CategoryChange(BaseModel):
    category: str = Field(min_length=1, max_length=50)


class StateChange(BaseModel):
    # Range is checked by the command handler so it surfaces as InvalidState
    state: int


# --- Command results ---

class ArticleCreated(BaseModel):
    id: str


class VersionResult(BaseModel):
    id: str
    current_version: str


# --- Read model ---

class ArticleSummary(BaseModel):
    id: str
    slug: str
    title: str
    author: str
    category_id: str
    category_name: str | None = None
    state: int
    current_version: str
    tags: list[str] = []
    rendered_summary: str
    created_at: str | None = None
    updated_at: str | None = None
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleSummary):
    rendered_content: str


class ArticleVersion(BaseModel):
    version: str
    prev_version: str | None = None
    title: str
    summary: str
    body: str
    tags: list[str] = []
    created_at: str | None = None
    is_current: bool


class CategoryResponse(BaseModel):
    id: str
    display_name: str


# --- Pagination ---

class ArticlePage(BaseModel):
    items: list[ArticleSummary]
    count: int
    total: int
    page: int
    limit: int
    pages: int


# --- Errors / metrics ---

class ErrorResponse(BaseModel):
    detail: str
    code: str


class MetricsResponse(BaseModel):
    outbox: dict
    dispatcher: dict = {}
    cache_info: dict = {}
