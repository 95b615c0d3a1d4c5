"""
Markdown → HTML renderers.

Two interchangeable implementations of the ``ContentRenderer`` interface:

- ``LocalRenderer``  — in-process rendering with Python-Markdown. Adds
  GitHub-style alert blockquotes (``> [!NOTE]``, ``> [!WARNING]`` ...).
- ``GithubRenderer`` — remote rendering through the GitHub ``/markdown``
  endpoint (``mode=gfm``) over a shared ``httpx.AsyncClient``.

Both raise ``RenderError`` on failure. The error is ``Transient``, so a
failure inside a projection is retried by the outbox dispatcher.
"""
import logging
import re
import xml.etree.ElementTree as etree

import httpx
import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from bloglite.domain.errors import RenderError

logger = logging.getLogger(__name__)

_ALERT_RE = re.compile(r"^\s*\[!(NOTE|TIP|IMPORTANT|WARNING|CAUTION)\]\s*", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Local rendering
# ---------------------------------------------------------------------------

class AlertBlockquoteProcessor(Treeprocessor):
    """Rewrite ``> [!KIND]`` blockquotes into ``markdown-alert`` blocks."""

    def run(self, root: etree.Element) -> None:
        for blockquote in list(root.iter("blockquote")):
            first = blockquote.find("p")
            if first is None or not first.text:
                continue
            match = _ALERT_RE.match(first.text)
            if match is None:
                continue

            kind = match.group(1).lower()
            first.text = first.text[match.end():]
            blockquote.set("class", f"markdown-alert markdown-alert-{kind}")

            title = etree.Element("p", {"class": "markdown-alert-title", "dir": "auto"})
            title.text = kind.capitalize()
            blockquote.insert(0, title)

            if not first.text.strip() and len(first) == 0:
                blockquote.remove(first)


class AlertBlockquoteExtension(Extension):
    def extendMarkdown(self, md: markdown.Markdown) -> None:
        # Runs after inline processing (priority 20) so paragraph text is final.
        md.treeprocessors.register(AlertBlockquoteProcessor(md), "alert_blockquote", 5)


class LocalRenderer:
    extensions = ("tables", "fenced_code", "footnotes", "sane_lists", "attr_list")

    async def render(self, text: str) -> str:
        try:
            return markdown.markdown(
                text,
                extensions=[*self.extensions, AlertBlockquoteExtension()],
                output_format="html",
            )
        except Exception as exc:
            raise RenderError(f"Local markdown rendering failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Remote rendering (GitHub)
# ---------------------------------------------------------------------------

class GithubRenderer:
    user_agent = "bloglite-markdown-render"
    api_version = "2022-11-28"

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.api_version,
            "User-Agent": self.user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def render(self, text: str) -> str:
        try:
            resp = await self._client.post("/markdown", json={"text": text, "mode": "gfm"})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("GitHub markdown render failed: %s", exc)
            raise RenderError(f"Remote markdown rendering failed: {exc}") from exc
        return resp.text

    async def aclose(self) -> None:
        await self._client.aclose()
