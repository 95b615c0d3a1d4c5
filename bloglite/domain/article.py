"""
Article aggregate.

Design notes
------------
- ``public()`` and ``private()`` treat the aggregate as a value: they
  return a new ``Article`` together with the event and leave the receiver
  untouched. Content, category and delete operations update the
  aggregate in place and return only the event.
- Category existence is an I/O concern; callers look it up and pass the
  result in as a boolean so the aggregate never touches storage.
- ``delete()`` is unconditional. Callers check the current state first
  (the repository never returns deleted articles).
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from enum import IntEnum

from bloglite.domain import events
from bloglite.domain.content import Content
from bloglite.domain.errors import (
    AlreadyDeleted,
    ArticleBuildError,
    CategoryFormatError,
    DuplicateCategory,
    InvalidCategory,
    SlugFormatError,
    StatusNotChanged,
)
from bloglite.domain.version import VersionHistory

SLUG_MAX_LENGTH = 25
_SLUG_RE = re.compile(r"^[a-zA-Z0-9-]+$")


class ArticleState(IntEnum):
    DELETED = -1
    PRIVATE = 0
    PUBLIC = 1


def validate_slug(slug: str) -> str:
    if not slug or len(slug) > SLUG_MAX_LENGTH or " " in slug or not _SLUG_RE.match(slug):
        raise SlugFormatError()
    return slug


def validate_category(category: str) -> str:
    if not category:
        raise CategoryFormatError()
    return category


@dataclass
class Article:
    id: str
    slug: str
    author: str
    category: str
    state: ArticleState
    history: VersionHistory = field(repr=False)

    def __post_init__(self) -> None:
        validate_category(self.category)

    def __setattr__(self, name: str, value) -> None:
        # id and author are fixed once set; slug is checked on every assignment
        if name in ("id", "author") and name in self.__dict__:
            raise AttributeError(f"Article.{name} cannot be reassigned")
        if name == "slug":
            validate_slug(value)
        super().__setattr__(name, value)

    @property
    def current_version(self) -> str:
        return self.history.current

    @property
    def is_deleted(self) -> bool:
        return self.state == ArticleState.DELETED

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def public(self) -> tuple[Article, events.ArticleStateChanged]:
        return self._transition_to(ArticleState.PUBLIC)

    def private(self) -> tuple[Article, events.ArticleStateChanged]:
        return self._transition_to(ArticleState.PRIVATE)

    def _transition_to(self, target: ArticleState) -> tuple[Article, events.ArticleStateChanged]:
        if self.is_deleted:
            raise AlreadyDeleted()
        if self.state == target:
            raise StatusNotChanged()
        article = replace(self, state=target, history=self.history.copy())
        return article, events.ArticleStateChanged(id=self.id, state=int(target))

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def update_content(self, content: Content) -> events.ArticleContentUpdated:
        parent = self.history.current
        self.history.add_version(content.hash)
        return events.ArticleContentUpdated(
            id=self.id,
            parent_version=parent,
            current_version=self.history.current,
            title=content.title,
            tags=content.tags,
            body=content.body,
            rendered_body=content.rendered_body,
            summary=content.summary,
            rendered_summary=content.rendered_summary,
        )

    def revert_to_version(self, version_hash: str) -> events.ArticleContentReverted:
        previous = self.history.current
        self.history.rollback_to_version(version_hash)
        return events.ArticleContentReverted(
            id=self.id,
            prev_version=previous,
            current_version=self.history.current,
        )

    # ------------------------------------------------------------------
    # Category / lifecycle
    # ------------------------------------------------------------------

    def change_category(
        self, new_category: str, category_exists: bool
    ) -> events.ArticleCategoryChanged:
        if not category_exists:
            raise InvalidCategory()
        if new_category == self.category:
            raise DuplicateCategory()
        validate_category(new_category)
        old_category, self.category = self.category, new_category
        return events.ArticleCategoryChanged(
            id=self.id,
            old_category_id=old_category,
            new_category_id=new_category,
        )

    def delete(self) -> events.ArticleDeleted:
        self.state = ArticleState.DELETED
        return events.ArticleDeleted(id=self.id)


class ArticleBuilder:
    """
    Staged factory for new articles.

    Every stage must be supplied before ``build()``; a missing stage is
    reported by name in ``ArticleBuildError``::

        article, created = (
            ArticleBuilder()
            .slug("hello-world")
            .author("admin")
            .category("tech", is_valid=True)
            .content(content)
            .build()
        )
    """

    def __init__(self) -> None:
        self._slug: str | None = None
        self._author: str | None = None
        self._category: str | None = None
        self._category_is_valid = False
        self._content: Content | None = None

    def slug(self, slug: str) -> ArticleBuilder:
        self._slug = slug
        return self

    def author(self, author: str) -> ArticleBuilder:
        self._author = author
        return self

    def category(self, category: str, is_valid: bool) -> ArticleBuilder:
        self._category = category
        self._category_is_valid = is_valid
        return self

    def content(self, content: Content) -> ArticleBuilder:
        self._content = content
        return self

    def build(self) -> tuple[Article, events.ArticleCreated]:
        missing = [
            name
            for name, value in (
                ("slug", self._slug),
                ("author", self._author),
                ("category", self._category),
                ("content", self._content),
            )
            if value is None
        ]
        if missing:
            raise ArticleBuildError(missing)
        if not self._category_is_valid:
            raise InvalidCategory()

        content = self._content
        article = Article(
            id=str(uuid.uuid4()),
            slug=self._slug,
            author=self._author,
            category=self._category,
            state=ArticleState.PRIVATE,
            history=VersionHistory.new(content.hash),
        )
        created = events.ArticleCreated(
            id=article.id,
            slug=article.slug,
            current_version=article.current_version,
            category_id=article.category,
            author=article.author,
            state=int(article.state),
            title=content.title,
            tags=content.tags,
            body=content.body,
            rendered_body=content.rendered_body,
            summary=content.summary,
            rendered_summary=content.rendered_summary,
        )
        return article, created
