"""Article aggregate: staged builder and the visibility state machine."""
import pytest

from bloglite.domain import events
from bloglite.domain.article import Article, ArticleBuilder, ArticleState
from bloglite.domain.content import Content, FrontMatter
from bloglite.domain.errors import (
    AlreadyDeleted,
    ArticleBuildError,
    CategoryFormatError,
    DuplicateCategory,
    DuplicateVersion,
    InvalidCategory,
    SlugFormatError,
    StatusNotChanged,
    VersionNotFound,
)


def _content(content_hash: str = "h1", title: str = "T", tags=("python",)) -> Content:
    return Content(
        front_matter=FrontMatter(title=title, summary="S", tags=tuple(tags)),
        body="body",
        hash=content_hash,
        rendered_body="<p>body</p>",
        rendered_summary="<p>S</p>",
    )


def _build(slug: str = "hello", category: str = "private", content_hash: str = "h1"):
    return (
        ArticleBuilder()
        .slug(slug)
        .author("admin")
        .category(category, is_valid=True)
        .content(_content(content_hash))
        .build()
    )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def test_build_creates_private_article_and_created_event():
    article, created = _build()

    assert article.state == ArticleState.PRIVATE
    assert article.current_version == "h1"
    assert isinstance(created, events.ArticleCreated)
    assert created.id == article.id
    assert created.slug == "hello"
    assert created.category_id == "private"
    assert created.state == 0
    assert created.current_version == "h1"
    assert created.title == "T"
    assert created.tags == ["python"]
    assert created.rendered_body == "<p>body</p>"


def test_build_lists_every_missing_stage():
    with pytest.raises(ArticleBuildError) as exc_info:
        ArticleBuilder().slug("hello").build()
    assert exc_info.value.missing == ["author", "category", "content"]


def test_build_rejects_unknown_category():
    builder = ArticleBuilder().slug("hello").author("a").category("nope", is_valid=False)
    with pytest.raises(InvalidCategory):
        builder.content(_content()).build()


@pytest.mark.parametrize("slug", ["", "has space", "a" * 26, "under_score", "ümlaut"])
def test_build_rejects_bad_slug(slug):
    with pytest.raises(SlugFormatError):
        _build(slug=slug)


def test_build_rejects_empty_category():
    with pytest.raises(CategoryFormatError):
        (
            ArticleBuilder()
            .slug("hello")
            .author("a")
            .category("", is_valid=True)
            .content(_content())
            .build()
        )


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

def test_public_returns_new_article_and_leaves_receiver_untouched():
    article, _ = _build()

    published, event = article.public()

    assert published.state == ArticleState.PUBLIC
    assert article.state == ArticleState.PRIVATE
    assert event == events.ArticleStateChanged(id=article.id, state=1)


def test_public_twice_fails_with_status_not_changed():
    article, _ = _build()
    published, _ = article.public()
    with pytest.raises(StatusNotChanged):
        published.public()


def test_private_after_public_succeeds():
    article, _ = _build()
    published, _ = article.public()
    unpublished, event = published.private()
    assert unpublished.state == ArticleState.PRIVATE
    assert event.state == 0


def test_private_on_private_fails():
    article, _ = _build()
    with pytest.raises(StatusNotChanged):
        article.private()


def test_deleted_article_rejects_visibility_changes():
    article, _ = _build()
    article.delete()
    with pytest.raises(AlreadyDeleted):
        article.public()
    with pytest.raises(AlreadyDeleted):
        article.private()


def test_delete_is_unconditional():
    article, _ = _build()
    first = article.delete()
    second = article.delete()
    assert article.state == ArticleState.DELETED
    assert first == second == events.ArticleDeleted(id=article.id)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def test_update_content_adds_version():
    article, _ = _build()
    event = article.update_content(_content("h2", title="T2"))

    assert article.current_version == "h2"
    assert event.parent_version == "h1"
    assert event.current_version == "h2"
    assert event.title == "T2"


def test_update_with_known_hash_fails():
    article, _ = _build()
    article.update_content(_content("h2"))
    with pytest.raises(DuplicateVersion):
        article.update_content(_content("h1"))
    assert article.current_version == "h2"


def test_revert_to_version():
    article, _ = _build()
    article.update_content(_content("h2"))

    event = article.revert_to_version("h1")

    assert article.current_version == "h1"
    assert event == events.ArticleContentReverted(
        id=article.id, prev_version="h2", current_version="h1"
    )


def test_revert_to_unknown_version_fails():
    article, _ = _build()
    with pytest.raises(VersionNotFound):
        article.revert_to_version("zzz")


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------

def test_change_category_carries_old_category():
    article, _ = _build(category="private")
    event = article.change_category("tech", category_exists=True)
    assert article.category == "tech"
    assert event.old_category_id == "private"
    assert event.new_category_id == "tech"


def test_change_to_unknown_category_fails():
    article, _ = _build()
    with pytest.raises(InvalidCategory):
        article.change_category("nope", category_exists=False)
    assert article.category == "private"


def test_change_to_same_category_fails():
    article, _ = _build()
    with pytest.raises(DuplicateCategory):
        article.change_category("private", category_exists=True)


def test_article_validates_fields_on_construction():
    article, _ = _build()
    with pytest.raises(SlugFormatError):
        Article(
            id=article.id,
            slug="bad slug",
            author="a",
            category="private",
            state=ArticleState.PRIVATE,
            history=article.history,
        )


def test_article_slug_reassignment_is_validated():
    article, _ = _build()
    with pytest.raises(SlugFormatError):
        article.slug = "not a valid slug!!"
    assert article.slug == "hello"

    article.slug = "hello-again"
    assert article.slug == "hello-again"


@pytest.mark.parametrize("name", ["id", "author"])
def test_article_identity_cannot_be_reassigned(name):
    article, _ = _build()
    before = getattr(article, name)
    with pytest.raises(AttributeError):
        setattr(article, name, "someone-else")
    assert getattr(article, name) == before
