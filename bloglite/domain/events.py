"""
Domain events emitted by the article aggregate.

Events are immutable facts. Each carries the article id plus every
denormalised field a projection needs, never a reference to the live
aggregate, so an outbox row can be replayed on its own. ``topic`` is the
name under which an event is stored in the outbox and resolved by the
dispatcher.
"""
from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class DomainEvent(BaseModel):
    topic: ClassVar[str]

    model_config = ConfigDict(frozen=True)

    id: str

    def to_payload(self) -> dict:
        return self.model_dump(mode="json")


class ArticleCreated(DomainEvent):
    topic: ClassVar[str] = "article.created"

    slug: str
    current_version: str
    category_id: str
    author: str
    state: int

    title: str
    tags: list[str]
    body: str
    rendered_body: str
    summary: str
    rendered_summary: str


class ArticleContentUpdated(DomainEvent):
    topic: ClassVar[str] = "article.content_updated"

    parent_version: str
    current_version: str

    title: str
    tags: list[str]
    body: str
    rendered_body: str
    summary: str
    rendered_summary: str


class ArticleContentReverted(DomainEvent):
    topic: ClassVar[str] = "article.content_reverted"

    prev_version: str
    current_version: str


class ArticleCategoryChanged(DomainEvent):
    topic: ClassVar[str] = "article.category_changed"

    old_category_id: str
    new_category_id: str


class ArticleStateChanged(DomainEvent):
    topic: ClassVar[str] = "article.state_changed"

    state: int


class ArticleDeleted(DomainEvent):
    topic: ClassVar[str] = "article.deleted"


ALL_EVENTS: tuple[type[DomainEvent], ...] = (
    ArticleCreated,
    ArticleContentUpdated,
    ArticleContentReverted,
    ArticleCategoryChanged,
    ArticleStateChanged,
    ArticleDeleted,
)
