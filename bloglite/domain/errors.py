"""Errors raised by the article aggregate, its version history and content."""
from bloglite.exceptions import Conflict, NotFound, Transient, ValidationFailed


# ---------------------------------------------------------------------------
# Version history
# ---------------------------------------------------------------------------

class EmptyHash(ValidationFailed):
    default_message = "Version hash must not be empty"


class DuplicateVersion(Conflict):
    def __init__(self, version_hash: str) -> None:
        super().__init__(f"Version {version_hash!r} already exists")
        self.hash = version_hash


class VersionNotFound(NotFound):
    def __init__(self, version_hash: str) -> None:
        super().__init__(f"Version {version_hash!r} does not exist")
        self.hash = version_hash


# ---------------------------------------------------------------------------
# Article aggregate
# ---------------------------------------------------------------------------

class SlugFormatError(ValidationFailed):
    default_message = "Slug must be 1-25 characters of letters, digits or '-'"


class CategoryFormatError(ValidationFailed):
    default_message = "Category must not be empty"


class InvalidCategory(ValidationFailed):
    default_message = "Category is not registered"


class DuplicateCategory(Conflict):
    default_message = "Article already belongs to this category"


class StatusNotChanged(Conflict):
    default_message = "Article is already in the requested state"


class AlreadyDeleted(Conflict):
    default_message = "Article is deleted"


class ArticleBuildError(ValidationFailed):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Cannot build article, missing: {', '.join(missing)}")
        self.missing = missing


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

class MissingField(ValidationFailed):
    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field {field!r}")
        self.field = field


class EmptyField(ValidationFailed):
    def __init__(self, field: str) -> None:
        super().__init__(f"Field {field!r} must not be empty")
        self.field = field


class FieldTooLong(ValidationFailed):
    def __init__(self, field: str, max_bytes: int) -> None:
        super().__init__(f"Field {field!r} exceeds {max_bytes} bytes")
        self.field = field
        self.max_bytes = max_bytes


class TooManyTags(ValidationFailed):
    def __init__(self, max_tags: int) -> None:
        super().__init__(f"At most {max_tags} tags are allowed")


class InvalidTagFormat(ValidationFailed):
    def __init__(self, tag: str) -> None:
        super().__init__(f"Tag {tag!r} may only contain letters, digits and '-'")


class ContentParseError(ValidationFailed):
    default_message = "Document could not be parsed"


class RenderError(Transient):
    default_message = "Markdown rendering failed"
