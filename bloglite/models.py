from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from bloglite.database import Base

# ---------------------------------------------------------------------------
# Category (collaborator table: existence check + display name)
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)


# ---------------------------------------------------------------------------
# Article (write model: one row per aggregate)
# ---------------------------------------------------------------------------
class ArticleRecord(Base):
    __tablename__ = "articles"

    __table_args__ = (
        # Slugs are unique among live articles; a deleted article keeps its
        # row until the delete policy runs, without blocking slug reuse.
        Index(
            "uq_articles_slug_live",
            "slug",
            unique=True,
            postgresql_where=text("state <> -1"),
            sqlite_where=text("state <> -1"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    slug: Mapped[str] = mapped_column(String(25), nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    state: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    # Pooled encoding, see bloglite.repositories.version_codec
    version_history: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )


# ---------------------------------------------------------------------------
# Outbox (written with the aggregate, drained by the dispatcher)
# ---------------------------------------------------------------------------
class OutboxEntry(Base):
    __tablename__ = "outbox"

    __table_args__ = (
        # Claim query: unprocessed rows, oldest first
        Index("ix_outbox_processed_occurred_at", "processed", "occurred_at"),
    )

    # Monotonic tiebreaker for events that share an occurrence time
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    topic: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    retries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ---------------------------------------------------------------------------
# Read model: derived from events, owned by the projector
# ---------------------------------------------------------------------------
class ArticleReadModel(Base):
    __tablename__ = "articles_rm"

    __table_args__ = (
        # Public feed: visible articles, most recently updated first
        Index("ix_articles_rm_state_updated_at", "state", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    slug: Mapped[str] = mapped_column(String(25), nullable=False, index=True)
    category_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    category_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    author: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    current_version: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    rendered_summary: Mapped[str] = mapped_column(Text, nullable=False)
    rendered_content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ArticleVersionReadModel(Base):
    __tablename__ = "article_versions_rm"

    article_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    version: Mapped[str] = mapped_column(String(64), primary_key=True)
    prev_version: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ArticleTagReadModel(Base):
    """One row per (article, tag); lets tag filters stay dialect-neutral."""

    __tablename__ = "article_tags_rm"

    article_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("articles_rm.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(20), primary_key=True, index=True)
