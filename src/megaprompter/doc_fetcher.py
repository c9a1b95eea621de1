"""Fetch documentation from local paths or by crawling HTTP(S) pages."""

from __future__ import annotations

import re
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urldefrag, urljoin, urlparse

import httpx

from megaprompter.documentation import PROMPT_MAX_DOCS, FetchedDoc
from megaprompter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

DOC_EXTS = (".md", ".rst", ".adoc", ".txt", ".html", ".htm", ".mdx")
README_NAMES = ("readme", "readme.md")
PREVIEW_LINES = 40
HTTP_TIMEOUT_SECONDS = 30
ACCEPT_HEADER = "text/html, text/plain; q=0.8"

TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
LINK_RE = re.compile(r"""<a\s+[^>]*href=['"]([^'"]+)['"]""", re.IGNORECASE)


def preview(text: str) -> str:
    """First 40 non-empty lines of the trimmed text."""
    trimmed = text.strip()
    if not trimmed:
        return ""
    return "\n".join([line for line in trimmed.split("\n") if line][:PREVIEW_LINES])


def extract_title(html: str) -> str | None:
    if m := TITLE_RE.search(html):
        return m[1].strip()
    return None


def extract_links(html: str, base: str) -> list[str]:
    """Absolute URLs of the `<a href>` targets in `html`, fragments removed."""
    return [urldefrag(urljoin(base, m[1].strip())).url for m in LINK_RE.finditer(html)]


def is_doc_file(path: Path) -> bool:
    name = path.name.lower()
    return name.endswith(DOC_EXTS) or name in README_NAMES


class DocFetcher:
    """Collect `FetchedDoc` entries from files, directories or web pages.

    Args:
        allow_domains (Iterable[str]): hosts that may be fetched; empty allows any
            host for the starting URL while crawling stays on that host
        max_depth (int): link depth for crawling, 1 fetches only the given URL
        client (httpx.Client | None): HTTP client to use; one with a 30 s
            timeout is created when omitted
    """

    def __init__(
        self,
        allow_domains: Iterable[str] = (),
        max_depth: int = 1,
        client: httpx.Client | None = None,
    ) -> None:
        self.allow_domains = frozenset(allow_domains)
        self.max_depth = max(1, max_depth)
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
            headers={"Accept": ACCEPT_HEADER},
        )

    def __enter__(self) -> DocFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def fetch(self, uri: str) -> list[FetchedDoc]:
        """Fetch one URI: `http(s)://` is crawled, anything else is read from disk."""
        if uri.lower().startswith(("http://", "https://")):
            return self._fetch_http(uri)
        return self._fetch_local(uri)

    @staticmethod
    def summarize(docs: Sequence[FetchedDoc]) -> str:
        if not docs:
            return "No docs fetched."
        lines = [f"Fetched {len(docs)} doc(s):"]
        lines.extend(f"- {d.title} [{d.uri}]" for d in docs[:PROMPT_MAX_DOCS])
        if len(docs) > PROMPT_MAX_DOCS:
            lines.append(f"... {len(docs) - PROMPT_MAX_DOCS} more")
        return "\n".join(lines)

    def _fetch_local(self, uri: str) -> list[FetchedDoc]:
        path = Path(uri.removeprefix("file://"))
        if not path.exists():
            logger.warning("Local path not found: %s", uri)
            return []
        if path.is_file():
            candidates = [path]
        else:
            candidates = sorted(
                f
                for f in path.rglob("*")
                if f.is_file() and is_doc_file(f) and not any(p.startswith(".") for p in f.relative_to(path).parts)
            )

        docs: list[FetchedDoc] = []
        for f in candidates:
            try:
                text = f.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable doc %s: %s", f, e)
                continue
            docs.append(FetchedDoc(uri=str(f), title=f.name, content_preview=preview(text)))
        return docs

    def _allowed(self, host: str | None) -> bool:
        return not self.allow_domains or (host is not None and host in self.allow_domains)

    def _fetch_http(self, uri: str) -> list[FetchedDoc]:
        host = urlparse(uri).hostname
        if not self._allowed(host):
            logger.warning("Domain %s not allowed; skipping %s", host, uri)
            return []

        visited: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(uri, 1)])
        docs: list[FetchedDoc] = []
        while queue:
            url, depth = queue.popleft()
            if url in visited:
                continue
            visited.add(url)
            page = self._get_text(url)
            if page is None:
                continue
            html, title = page
            docs.append(FetchedDoc(uri=url, title=title, content_preview=preview(html)))
            if depth >= self.max_depth:
                continue
            queue.extend(
                (link, depth + 1)
                for link in extract_links(html, url)
                if urlparse(link).hostname == host and link not in visited
            )
        logger.info("Fetched %d page(s) from %s", len(docs), uri)
        return docs

    def _get_text(self, url: str) -> tuple[str, str] | None:
        try:
            resp = self.client.get(url)
            resp.raise_for_status()
            html = resp.content.decode("utf-8")
        except httpx.HTTPError as e:
            logger.warning("Failed to fetch %s: %s", url, e)
            return None
        except UnicodeDecodeError:
            logger.warning("Skipping non UTF-8 page %s", url)
            return None
        title = extract_title(html) or (urlparse(url).path.rstrip("/").rsplit("/", 1)[-1] or url)
        return html, title
