# Content collaborators.
#
# Concrete implementations of the interfaces declared in
# bloglite.domain.content:
#
#   parser: YAML front matter + body splitter
#   hasher: short SHA-256 content hash (the version key)
#   render: markdown renderers (local Python-Markdown, remote GitHub)
#
# build_renderer() picks the renderer named by settings.RENDERER; the same
# renderer instance is shared by the command side (ContentFactory) and the
# read-model projector, which re-renders on content revert.
from bloglite.config import settings
from bloglite.content.hasher import Sha256ContentHasher
from bloglite.content.parser import FrontMatterParser
from bloglite.content.render import GithubRenderer, LocalRenderer
from bloglite.domain.content import ContentFactory, ContentRenderer


def build_renderer() -> ContentRenderer:
    if settings.RENDERER == "github":
        return GithubRenderer(
            settings.GITHUB_TOKEN,
            base_url=settings.GITHUB_API_URL,
            timeout=settings.RENDER_TIMEOUT,
        )
    return LocalRenderer()


def build_content_factory(renderer: ContentRenderer) -> ContentFactory:
    return ContentFactory(FrontMatterParser(), Sha256ContentHasher(), renderer)
