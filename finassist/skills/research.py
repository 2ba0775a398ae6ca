"""
Generic research agent for "which / best" questions.

A research agent answers from live sources: it searches the web for its
topic, keeps only results from allow-listed domains, fetches each page,
extracts a raw record with a topic-specific parser, normalises it into a
typed item and ranks the items. Network access goes through an injectable
:class:`WebFns` so packs and tests can swap the transport.

Usage:
    agent = ResearchAgent(
        topic="high yield savings account",
        web_fns=HttpWebFns(extract=extract_hysa),
        sources=SourcePolicy(editorial_allow=("nerdwallet.com",)),
        normalize=to_hysa_item,
        score=score_hysa_item,
    )
    result = await agent.run("best hysa with no fees")
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar
from urllib.parse import urlparse

import httpx

from finassist.config.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_USER_AGENT = "finassist-research/0.1"


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchHit:
    title: str
    url: str


class WebFns(Protocol):
    """Transport used by :class:`ResearchAgent`."""

    async def search(self, query: str, recency_days: int = 30) -> list[SearchHit]:
        ...

    async def fetch_text(self, url: str) -> str:
        ...

    def extract(self, html: str) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class SourcePolicy:
    """Which search results may be fetched.

    Attributes:
        editorial_allow: Trusted editorial domains; subdomains match too
        domain_allow_patterns: Regexes for institution sites (bank domains)
    """
    editorial_allow: tuple[str, ...] = ()
    domain_allow_patterns: tuple[re.Pattern[str], ...] = ()

    def allows(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        for domain in self.editorial_allow:
            if host == domain or host.endswith("." + domain):
                return True
        return any(p.search(host) for p in self.domain_allow_patterns)


@dataclass
class ResearchResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    checked_at: str = ""


def hostname(url: str) -> str:
    host = urlparse(url).hostname or url
    return host[4:] if host.startswith("www.") else host


def html_title(html: str) -> str:
    m = re.search(r"<title[^>]*>([^<]+)</title>", html, re.IGNORECASE)
    return m.group(1).strip() if m else ""


def collapse_whitespace(html: str) -> str:
    return re.sub(r"\s+", " ", html)


# ---------------------------------------------------------------------------
# ResearchAgent
# ---------------------------------------------------------------------------

class ResearchAgent(Generic[T]):
    """Search, fetch, extract, normalise and rank items for one topic.

    Parameters
    ----------
    topic:
        Appended to every query so searches stay on-topic.
    web_fns:
        Search / fetch / extract transport.
    sources:
        Allow-list applied to search results before fetching.
    normalize:
        ``(url, raw) -> item`` or None to drop the record.
    score:
        ``(item, query) -> float``; items are returned highest first.
    max_results:
        Cap on allow-listed pages fetched per run.
    """

    def __init__(
        self,
        topic: str,
        web_fns: WebFns,
        sources: SourcePolicy,
        normalize: Callable[[str, dict[str, Any]], Optional[T]],
        score: Callable[[T, str], float],
        max_results: int = 5,
        recency_days: Optional[int] = None,
    ) -> None:
        self.topic = topic
        self.web_fns = web_fns
        self.sources = sources
        self._normalize = normalize
        self._score = score
        self.max_results = max_results
        self.recency_days = (
            recency_days if recency_days is not None else settings.RESEARCH_RECENCY_DAYS
        )

    async def run(self, query: str) -> ResearchResult[T]:
        hits = await self.web_fns.search(f"{query} {self.topic}", self.recency_days)
        allowed = [h for h in hits if self.sources.allows(h.url)]
        dropped = len(hits) - len(allowed)
        if dropped:
            logger.debug("Dropped %d search results outside the allow-list", dropped)

        pages = await asyncio.gather(
            *(self._fetch_item(h.url) for h in allowed[: self.max_results])
        )
        items = [item for item in pages if item is not None]
        items.sort(key=lambda item: self._score(item, query), reverse=True)
        return ResearchResult(
            items=items,
            checked_at=datetime.now(timezone.utc).strftime("%Y-%m-%d"),
        )

    async def _fetch_item(self, url: str) -> Optional[T]:
        """One page's item, or None when any step for this page fails."""
        try:
            html = await self.web_fns.fetch_text(url)
            raw = self.web_fns.extract(html)
            return self._normalize(url, raw)
        except Exception as exc:
            logger.warning("Skipping %s: %s: %s", url, type(exc).__name__, exc)
            return None


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------

class HttpWebFns:
    """:class:`WebFns` over ``httpx.AsyncClient``.

    The search endpoint is any JSON API answering ``GET ?q=&recency_days=``
    with ``{"results": [{"title": ..., "url": ...}]}``. With no endpoint
    configured searches return nothing and the agent reports no data.

    Parameters
    ----------
    extract:
        Topic-specific page parser.
    search_url / api_key / timeout_s:
        Default to the ``RESEARCH_*`` settings.
    client:
        Optional pre-built client (tests pass one with a mock transport).
    """

    def __init__(
        self,
        extract: Callable[[str], dict[str, Any]],
        search_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._extract = extract
        self.search_url = search_url if search_url is not None else settings.RESEARCH_SEARCH_URL
        self._api_key = api_key if api_key is not None else settings.RESEARCH_API_KEY
        self.timeout_s = timeout_s if timeout_s is not None else settings.RESEARCH_HTTP_TIMEOUT_S
        self._client = client

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_s,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            resp = await self._client.get(url, **kwargs)
        else:
            async with self._new_client() as client:
                resp = await client.get(url, **kwargs)
        resp.raise_for_status()
        return resp

    async def search(self, query: str, recency_days: int = 30) -> list[SearchHit]:
        if not self.search_url:
            logger.warning("RESEARCH_SEARCH_URL is not configured; search skipped")
            return []
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        resp = await self._get(
            self.search_url,
            params={"q": query, "recency_days": recency_days},
            headers=headers,
        )
        hits = []
        for row in resp.json().get("results", []):
            url = row.get("url")
            if url:
                hits.append(SearchHit(title=row.get("title", ""), url=url))
        return hits

    async def fetch_text(self, url: str) -> str:
        if urlparse(url).scheme not in ("http", "https"):
            raise ValueError(f"Refusing to fetch non-HTTP URL: {url}")
        resp = await self._get(url)
        return resp.text

    def extract(self, html: str) -> dict[str, Any]:
        return self._extract(html)
