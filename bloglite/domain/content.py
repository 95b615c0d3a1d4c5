"""
Article content: front-matter validation and the factory that turns a raw
markdown document into a ``Content`` value.

``Content`` is never stored on its own. It is consumed once by the
aggregate to add a version and to fill the event that carries its
denormalised fields to the read model.

Parsing, hashing and rendering are collaborators (see
``bloglite.content``); the factory only orchestrates them and enforces
the field rules.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from bloglite.domain.errors import (
    EmptyField,
    FieldTooLong,
    InvalidTagFormat,
    MissingField,
    TooManyTags,
)

TITLE_MAX_BYTES = 800
SUMMARY_MAX_BYTES = 1024
BODY_MAX_BYTES = 2 * 1024 * 1024
TAG_MAX_BYTES = 20
MAX_TAGS = 4


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def _byte_len(value: str) -> int:
    return len(value.encode("utf-8"))


def validate_title(value: str) -> str:
    if not value:
        raise EmptyField("title")
    if _byte_len(value) > TITLE_MAX_BYTES:
        raise FieldTooLong("title", TITLE_MAX_BYTES)
    return value


def validate_summary(value: str) -> str:
    if not value:
        raise EmptyField("summary")
    if _byte_len(value) > SUMMARY_MAX_BYTES:
        raise FieldTooLong("summary", SUMMARY_MAX_BYTES)
    return value


def validate_body(value: str) -> str:
    if _byte_len(value) > BODY_MAX_BYTES:
        raise FieldTooLong("body", BODY_MAX_BYTES)
    return value


def validate_tag(value: str) -> str:
    if _byte_len(value) > TAG_MAX_BYTES:
        raise FieldTooLong("tag", TAG_MAX_BYTES)
    if not value or not all(c.isalnum() or c == "-" for c in value):
        raise InvalidTagFormat(value)
    return value


def parse_tags(raw: str) -> tuple[str, ...]:
    """
    Split a comma-separated tag string into a sorted, de-duplicated tuple.

    Blank entries are ignored; order is normalised so the content hash
    does not depend on how the author listed the tags.
    """
    tags = {validate_tag(part.strip()) for part in raw.split(",") if part.strip()}
    if len(tags) > MAX_TAGS:
        raise TooManyTags(MAX_TAGS)
    return tuple(sorted(tags))


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FrontMatter:
    title: str
    summary: str
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Content:
    front_matter: FrontMatter
    body: str
    hash: str
    rendered_body: str
    rendered_summary: str

    @property
    def title(self) -> str:
        return self.front_matter.title

    @property
    def summary(self) -> str:
        return self.front_matter.summary

    @property
    def tags(self) -> list[str]:
        return list(self.front_matter.tags)


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------

class ContentParser(Protocol):
    def parse(self, raw: str) -> tuple[dict[str, str], str]: ...


class ContentHasher(Protocol):
    def hash(self, front_matter: FrontMatter, body: str) -> str: ...


class ContentRenderer(Protocol):
    async def render(self, text: str) -> str: ...


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class ContentFactory:
    def __init__(
        self,
        parser: ContentParser,
        hasher: ContentHasher,
        renderer: ContentRenderer,
    ) -> None:
        self.parser = parser
        self.hasher = hasher
        self.renderer = renderer

    async def process(self, raw: str) -> Content:
        metadata, body = self.parser.parse(raw)
        body = validate_body(body)
        front_matter = self.build_front_matter(metadata)
        content_hash = self.hasher.hash(front_matter, body)
        rendered_body = await self.renderer.render(body)
        rendered_summary = await self.renderer.render(front_matter.summary)
        return Content(
            front_matter=front_matter,
            body=body,
            hash=content_hash,
            rendered_body=rendered_body,
            rendered_summary=rendered_summary,
        )

    @staticmethod
    def build_front_matter(metadata: dict[str, str]) -> FrontMatter:
        if "title" not in metadata:
            raise MissingField("title")
        if "summary" not in metadata:
            raise MissingField("summary")
        return FrontMatter(
            title=validate_title(metadata["title"]),
            summary=validate_summary(metadata["summary"]),
            tags=parse_tags(metadata.get("tags", "")),
        )
