"""
Breadth-first deep crawl of a church site.

One FIFO queue seeded with the navigation tree (flattened, document order)
and the boards, one visited-URL set, one fetch counter bounded by
max_pages. Fetches are strictly sequential with a fixed pause in between.

Per dequeued node:
- skip: no URL, already visited, deeper than max_depth, other host, external
- fetch; a failure is recorded on the node and the crawl moves on
- success: page metadata, popups, classification-driven dictionary passes,
  and (below max_depth) content links enqueued as depth + 1 children

max_depth is inclusive: a node at max_depth is fetched but its links are
not followed. Tree nodes are unique by URL; a link to a URL that already has
a node is not attached again, and crawl status is written to every node
that shares a URL.

After the queue drains, collected popups are fetched in a second pass under
the same page budget and visited set.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import CrawlOptions
from ..constants import GENERIC_DICTIONARY_EVERY
from ..extractors.dictionary import (
    extract_dictionary_from_html,
    extract_organization_from_page,
    extract_people_by_pattern,
    merge_entries,
)
from ..extractors.links import extract_links_from_page
from ..extractors.page_classifier import classify_page
from ..extractors.popups import detect_popups
from ..extractors.structured_data import extract_page_metadata
from ..llm.structure_analyzer import StructureAnalysisError
from ..models import CrawlProgress, DictionaryEntry, PageInfo, PopupInfo
from ..utils.logger import CrawlerLogger
from ..utils.rate_limiter import RateLimiter
from ..utils.url_helpers import is_same_domain
from .fetcher import PageFetcher

logger = logging.getLogger(__name__)


class PageIndex:
    """URL -> every tree node carrying that URL."""

    def __init__(self, roots: Iterable[PageInfo] = ()):
        self._nodes: dict[str, list[PageInfo]] = {}
        for root in roots:
            for node in root.iter_tree():
                self.add(node)

    def __contains__(self, url: str) -> bool:
        return url in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def add(self, node: PageInfo):
        if node.url:
            self._nodes.setdefault(node.url, []).append(node)

    def nodes(self, url: str) -> list[PageInfo]:
        return self._nodes.get(url, [])

    def mark_crawled(self, url: str, extracted_data: dict):
        for node in self.nodes(url):
            node.crawled = True
            node.crawl_error = None
            node.extracted_data = extracted_data

    def mark_failed(self, url: str, error: str):
        for node in self.nodes(url):
            node.crawled = False
            node.crawl_error = error


@dataclass
class DeepCrawlResult:
    """Everything a deep crawl produced besides the mutated tree."""

    pages: list[PageInfo] = field(default_factory=list)  # visited nodes, fetch order
    popup_pages: list[PageInfo] = field(default_factory=list)
    popups: list[PopupInfo] = field(default_factory=list)
    dictionary: list[DictionaryEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    progress: Optional[CrawlProgress] = None
    fetch_count: int = 0


class DeepCrawler:
    """
    Sequential BFS crawler.

    The fetcher and analyzer are injected; the analyzer may be None, in which
    case people pages use the pattern extractor only.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        options: CrawlOptions,
        analyzer=None,
        logger: Optional[CrawlerLogger] = None,
    ):
        self.fetcher = fetcher
        self.options = options
        self.analyzer = analyzer
        self.logger = logger
        self.rate_limiter = RateLimiter(options.delay_seconds)

        self.visited: set[str] = set()
        self.fetch_count = 0
        self.crawled_count = 0
        self.errors: list[str] = []
        self.dictionary: list[DictionaryEntry] = []
        self.popups: list[PopupInfo] = []
        self._popup_urls: set[str] = set()
        self.index = PageIndex()

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def crawl(
        self,
        navigation: list[PageInfo],
        boards: list[PageInfo],
        base_url: str,
        popups: Iterable[PopupInfo] = (),
        already_fetched: Iterable[str] = (),
    ) -> DeepCrawlResult:
        """
        Crawl from the navigation tree and boards.

        Args:
            navigation: Navigation tree; nodes are updated in place
            boards: Board pages (depth 0); updated in place
            base_url: Effective base URL; other hosts are never fetched
            popups: Popups already found on the homepage
            already_fetched: URLs fetched before the crawl (homepage), never refetched

        Returns:
            DeepCrawlResult with visited pages, popups and dictionary
        """
        self.index = PageIndex([*navigation, *boards])
        self.visited.update(already_fetched)
        self._merge_popups(popups)

        queue: deque[PageInfo] = deque(
            node for item in navigation for node in item.iter_tree() if node.url
        )
        queue.extend(board for board in boards if board.url)

        if self.logger:
            self.logger.info(
                "Deep crawl started",
                seeds=len(queue),
                max_depth=self.options.max_depth,
                max_pages=self.options.max_pages,
            )

        pages: list[PageInfo] = []
        while queue and self.fetch_count < self.options.max_pages:
            node = queue.popleft()
            if not self._should_visit(node, base_url):
                continue

            self.visited.add(node.url)
            self.fetch_count += 1
            pages.append(node)
            self._emit_progress(self.fetch_count + len(queue), node.url, node.depth)

            html, error = await self._fetch(node.url, node.depth)
            if error is not None:
                self.index.mark_failed(node.url, error)
                continue
            self.crawled_count += 1

            for child in await self._process_page(node, html, base_url):
                queue.append(child)

        popup_pages = await self._crawl_popups(base_url)

        progress = CrawlProgress(
            total_pages=len(pages) + len(popup_pages),
            crawled_pages=self.crawled_count,
            errors=list(self.errors),
        )
        if self.logger:
            self.logger.info(
                "Deep crawl finished",
                fetched=self.fetch_count,
                crawled=self.crawled_count,
                popups=len(self.popups),
                dictionary=len(self.dictionary),
                errors=len(self.errors),
            )

        return DeepCrawlResult(
            pages=pages,
            popup_pages=popup_pages,
            popups=list(self.popups),
            dictionary=list(self.dictionary),
            errors=list(self.errors),
            progress=progress,
            fetch_count=self.fetch_count,
        )

    # ------------------------------------------------------------------
    # Queue handling
    # ------------------------------------------------------------------

    def _should_visit(self, node: PageInfo, base_url: str) -> bool:
        if not node.url or node.url in self.visited:
            return False
        if node.depth > self.options.max_depth or node.page_type == "external":
            return False
        return is_same_domain(node.url, base_url)

    def _emit_progress(self, total: int, url: str, depth: int):
        if self.options.on_progress is None:
            return
        self.options.on_progress(
            CrawlProgress(
                total_pages=total,
                crawled_pages=self.crawled_count,
                current_url=url,
                current_depth=depth,
                errors=list(self.errors),
            )
        )

    async def _fetch(self, url: str, depth: int) -> tuple[str, Optional[str]]:
        """Fetch one page after the rate-limit pause; returns (html, error)."""
        await self.rate_limiter.wait()
        result = await self.fetcher.fetch(url)
        if self.logger:
            self.logger.log_page_fetch(url, depth, self.fetch_count, self.options.max_pages, error=result.error)

        if not result.success:
            error = result.error or "unknown error"
            self.errors.append(f"{url}: {error}")
            return "", error
        return result.html or "", None

    # ------------------------------------------------------------------
    # Per-page work
    # ------------------------------------------------------------------

    async def _process_page(self, node: PageInfo, html: str, base_url: str) -> list[PageInfo]:
        """Record a fetched page and return the children to enqueue."""
        self.index.mark_crawled(node.url, extract_page_metadata(html))
        self._merge_popups(detect_popups(html, node.url))

        await self._extract_dictionary(node, html)

        if node.depth >= self.options.max_depth:
            return []

        children = []
        for link in extract_links_from_page(html, node.url, node.depth):
            if link.url in self.index or not is_same_domain(link.url, base_url):
                continue
            node.children.append(link)
            self.index.add(link)
            children.append(link)
        return children

    async def _extract_dictionary(self, node: PageInfo, html: str):
        classification = classify_page(node.title, node.url)

        if classification.is_people:
            people = await self.extract_people(html, node.url)
            self.dictionary = merge_entries(self.dictionary, people)

        if classification.is_organization:
            self.dictionary = merge_entries(self.dictionary, extract_organization_from_page(html, node.url))

        if self.fetch_count % GENERIC_DICTIONARY_EVERY == 1 or node.depth == 1:
            self.dictionary = merge_entries(self.dictionary, extract_dictionary_from_html(html, node.url))

    async def extract_people(self, html: str, url: str) -> list[DictionaryEntry]:
        """Analyzer first; the name+title patterns when it finds nobody."""
        people: list[DictionaryEntry] = []
        if self.analyzer is not None:
            try:
                people = await self.analyzer.extract_people(html, url)
            except StructureAnalysisError as e:
                logger.warning(f"People extraction failed for {url}: {e}")
        return people or extract_people_by_pattern(html, url)

    def _merge_popups(self, popups: Iterable[PopupInfo]):
        for popup in popups:
            if popup.url not in self._popup_urls:
                self._popup_urls.add(popup.url)
                self.popups.append(popup)

    # ------------------------------------------------------------------
    # Popup pass
    # ------------------------------------------------------------------

    async def _crawl_popups(self, base_url: str) -> list[PageInfo]:
        """Fetch non-layer popups with what is left of the page budget."""
        pages: list[PageInfo] = []
        for popup in list(self.popups):
            if self.fetch_count >= self.options.max_pages:
                break
            if popup.trigger_type == "layer" or popup.url in self.visited:
                continue
            if not is_same_domain(popup.url, base_url):
                continue

            self.visited.add(popup.url)
            self.fetch_count += 1
            page = PageInfo(
                url=popup.url,
                title=popup.title,
                page_type="popup",
                depth=0,
                content_type="popup",
            )
            pages.append(page)
            self._emit_progress(self.fetch_count, popup.url, 0)

            html, error = await self._fetch(popup.url, 0)
            if error is not None:
                page.crawl_error = error
                continue
            self.crawled_count += 1
            page.crawled = True
            page.extracted_data = extract_page_metadata(html)
        return pages
