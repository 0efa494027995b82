"""
Site crawler - one organization website from homepage to stored structure.

Pipeline per crawl:
1. Resolve the entry page (meta refresh, intro, iframe, XML menu)
2. Navigation waterfall, boards, page metadata on the effective homepage
3. Contacts, social media, media assets, worship times, popups
4. Structure analyzer; its dictionary wins when non-empty, otherwise the
   pattern extractor runs on the homepage
5. Deep crawl (optional) or the pastor-page people pass
6. Assemble SiteStructure, save through the repository, write the crawl log

The fetcher, analyzer and repository are handed in by the caller. Without a
repository the crawl runs the same but nothing is stored.
"""

import time
from datetime import datetime
from typing import Optional

from ..config import CrawlOptions
from ..constants import PEOPLE_PAGES_LIMIT
from ..db.repository import CrawlRepository, OrganizationNotFoundError
from ..extractors.deterministic import DeterministicExtractor
from ..extractors.dictionary import extract_dictionary_from_html, merge_entries
from ..extractors.links import detect_boards, detect_technologies, has_login, has_mobile_version
from ..extractors.media import extract_media_info
from ..extractors.navigation import extract_navigation, sanitize_navigation
from ..extractors.page_classifier import find_pastor_pages
from ..extractors.popups import detect_popups
from ..extractors.structured_data import extract_page_metadata
from ..extractors.worship_times import extract_worship_times
from ..llm.structure_analyzer import StructureAnalysisError
from ..models import (
    CrawlResult,
    DictionaryEntry,
    ExtendedInfo,
    OrganizationIdentity,
    PageInfo,
    PopupInfo,
    SiteMetadata,
    SiteStructure,
    StructureAnalysis,
)
from ..utils.logger import CrawlerLogger
from ..utils.rate_limiter import RateLimiter
from ..utils.url_helpers import normalize_url
from .deep_crawler import DeepCrawler
from .entry_resolver import EntryResolver, HomepageUnreachableError
from .fetcher import PageFetcher


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def popups_as_pages(popups: list[PopupInfo], fetched: Optional[list[PageInfo]] = None) -> list[PageInfo]:
    """Render popups as depth-0 special pages, reusing pages the popup pass fetched."""
    by_url = {page.url: page for page in fetched or []}
    return [
        by_url.get(popup.url)
        or PageInfo(url=popup.url, title=popup.title, page_type="popup", depth=0, content_type="popup")
        for popup in popups
    ]


class ChurchSiteCrawler:
    """
    Crawls one organization website per call.

    Usage:
        async with PageFetcher() as fetcher:
            crawler = ChurchSiteCrawler(fetcher, analyzer, repository, logger)
            result = await crawler.crawl("sarang", CrawlOptions(deep_crawl=True))
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        analyzer=None,
        repository: Optional[CrawlRepository] = None,
        logger: Optional[CrawlerLogger] = None,
    ):
        """
        Args:
            fetcher: Open PageFetcher shared by every step of the crawl
            analyzer: StructureAnalyzer (or any object with async analyze/extract_people); None skips it
            repository: CrawlRepository for lookup and storage; None for an unsaved crawl
            logger: CrawlerLogger (a default console logger is created if omitted)
        """
        self.fetcher = fetcher
        self.analyzer = analyzer
        self.repository = repository
        self.logger = logger or CrawlerLogger("church_crawler.site")
        self.extractor = DeterministicExtractor()

    async def crawl(self, code: str, options: Optional[CrawlOptions] = None) -> CrawlResult:
        """
        Crawl an organization registered in the repository.

        Args:
            code: Organization code
            options: Crawl options (defaults apply when omitted)

        Returns:
            CrawlResult; success=False with one error for an unknown code
        """
        start = time.monotonic()
        if self.repository is None:
            raise ValueError("crawl(code) needs a repository; use crawl_url() for unsaved crawls")

        try:
            organization = self.repository.get_organization(code)
        except OrganizationNotFoundError as e:
            self.logger.error(str(e))
            return CrawlResult(success=False, errors=[str(e)], crawl_time=_elapsed_ms(start))

        return await self.crawl_url(
            organization.homepage_url,
            name=organization.name,
            code=organization.code,
            options=options,
            organization_id=organization.id,
        )

    async def crawl_url(
        self,
        url: str,
        name: str = "",
        code: str = "",
        options: Optional[CrawlOptions] = None,
        organization_id: int = 0,
    ) -> CrawlResult:
        """
        Crawl a homepage URL.

        The result is saved only when a repository is configured and
        organization_id refers to a stored organization.
        """
        options = options or CrawlOptions()
        start = time.monotonic()
        started_at = datetime.now()
        homepage_url = normalize_url(url)
        identity = OrganizationIdentity(name=name or code or homepage_url, code=code, url=homepage_url)
        self.logger.log_crawl_start(code or homepage_url, homepage_url, options.deep_crawl, options.max_depth, options.max_pages)

        # 1. Entry resolution; the homepage fetch is the only fatal step
        try:
            resolution = await EntryResolver(self.fetcher).resolve(homepage_url)
        except HomepageUnreachableError as e:
            self.logger.error(f"Crawl aborted: {e}")
            return CrawlResult(
                success=False,
                organization_id=organization_id,
                errors=[str(e)],
                crawl_time=_elapsed_ms(start),
            )

        html, base_url = resolution.html, resolution.base_url
        if resolution.steps:
            self.logger.info(f"Effective homepage: {base_url}", steps=",".join(resolution.steps))

        # 2. Homepage structure
        with self.logger.time_operation("homepage extraction", url=base_url):
            navigation = extract_navigation(html, base_url)
            if not navigation and resolution.xml_navigation:
                navigation = resolution.xml_navigation
                self.logger.info(f"Using XML menu: {len(navigation)} items")
            boards = detect_boards(html, base_url)
            page_metadata = extract_page_metadata(html)

            # 3. Extended information
            contacts = self.extractor.extract_contact_info(html) if options.extract_contacts else None
            social_media = self.extractor.extract_social_media(html) if options.extract_media else None
            media = extract_media_info(html, base_url) if options.extract_media else None
            worship_times = extract_worship_times(html)
            popups = detect_popups(html, base_url)

        self.logger.info(
            "Homepage extracted",
            navigation=len(navigation),
            boards=len(boards),
            popups=len(popups),
            worship_times=len(worship_times),
        )

        # 4. Structure analyzer and dictionary
        analysis = await self._analyze(html, base_url)
        if not navigation and analysis.navigation:
            navigation = sanitize_navigation(analysis.navigation, base_url)
            self.logger.info(f"Using analyzer navigation: {len(navigation)} items")

        if analysis.dictionary:
            dictionary = merge_entries([], analysis.dictionary)
            self.logger.info(f"Analyzer dictionary: {len(dictionary)} entries")
        else:
            dictionary = extract_dictionary_from_html(html, base_url)
            self.logger.info(f"Pattern dictionary: {len(dictionary)} entries")

        # 5. Deep crawl or people pass
        errors: list[str] = []
        progress = None
        popup_pages: list[PageInfo] = []
        if options.deep_crawl:
            deep_crawler = DeepCrawler(self.fetcher, options, analyzer=self.analyzer, logger=self.logger)
            deep_result = await deep_crawler.crawl(
                navigation,
                boards,
                base_url,
                popups=popups,
                already_fetched={homepage_url, base_url},
            )
            popups = deep_result.popups
            popup_pages = deep_result.popup_pages
            dictionary = merge_entries(dictionary, deep_result.dictionary)
            errors.extend(deep_result.errors)
            progress = deep_result.progress
        elif options.extract_people:
            dictionary = merge_entries(dictionary, await self._people_pass(navigation, options))

        # 6. Assemble
        structure = SiteStructure(
            organization=identity,
            navigation=navigation,
            boards=boards,
            special_pages=popups_as_pages(popups, popup_pages),
            metadata=SiteMetadata(
                total_pages=(progress.total_pages if progress else 0)
                or sum(1 + len(item.children) for item in navigation),
                max_depth=options.max_depth,
                has_login=has_login(html),
                has_mobile_version=has_mobile_version(html, page_metadata["viewport"]),
                technologies=detect_technologies(html),
            ),
            contacts=contacts,
            social_media=social_media,
            media=media,
            worship_times=worship_times,
        )

        result = CrawlResult(
            success=True,
            organization_id=organization_id,
            structure=structure,
            dictionary=dictionary,
            taxonomy=analysis.taxonomy,
            popups=popups,
            errors=errors,
            progress=progress,
            extended_info=ExtendedInfo(
                contacts_count=len(contacts.phones) + len(contacts.emails) if contacts else 0,
                social_media_count=len(social_media.platforms()) if social_media else 0,
                media_count=(len(media.banner_images) + len(media.gallery_images) + len(media.videos)) if media else 0,
                worship_times_count=len(worship_times),
            ),
        )

        if self.repository is not None and organization_id:
            self._save(organization_id, result, options, started_at)

        result.crawl_time = _elapsed_ms(start)
        self.logger.log_crawl_complete(
            code or homepage_url,
            success=True,
            navigation=len(navigation),
            dictionary=len(dictionary),
            errors=len(errors),
            duration_seconds=result.crawl_time / 1000,
        )
        return result

    async def _analyze(self, html: str, base_url: str) -> StructureAnalysis:
        """Analyzer call; any failure degrades to an empty analysis."""
        if self.analyzer is None:
            return StructureAnalysis()
        try:
            return await self.analyzer.analyze(html, base_url)
        except StructureAnalysisError as e:
            self.logger.warning(f"Structure analysis failed, falling back to patterns: {e}")
            return StructureAnalysis()

    async def _people_pass(self, navigation: list[PageInfo], options: CrawlOptions) -> list[DictionaryEntry]:
        """Fetch up to five pastor pages from the menu and extract people."""
        people: list[DictionaryEntry] = []
        rate_limiter = RateLimiter(options.delay_seconds)
        deep_crawler = DeepCrawler(self.fetcher, options, analyzer=self.analyzer, logger=self.logger)

        for page in find_pastor_pages(navigation)[:PEOPLE_PAGES_LIMIT]:
            await rate_limiter.wait()
            fetched = await self.fetcher.fetch(page.url)
            if not fetched.success:
                self.logger.warning(f"People page unavailable: {page.url}", error=fetched.error)
                continue
            people = merge_entries(people, await deep_crawler.extract_people(fetched.html or "", page.url))

        self.logger.info(f"People pass: {len(people)} entries")
        return people

    def _save(self, organization_id: int, result: CrawlResult, options: CrawlOptions, started_at: datetime):
        with self.logger.time_operation("save crawl result", organization_id=organization_id):
            failed_rows = self.repository.save_crawl_result(
                organization_id, result.structure, result.dictionary, result.taxonomy
            )
        if failed_rows:
            self.logger.warning(f"{failed_rows} rows failed to save", organization_id=organization_id)
        self.repository.write_crawl_log(
            organization_id, result, options.crawl_type, started_at, failed_rows=failed_rows
        )
