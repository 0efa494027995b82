"""End-to-end crawls of fake church sites through ChurchSiteCrawler."""

import pytest
from conftest import BASE, HOST, FakeAnalyzer, FakeSite, RecordingClient, run_with_fetcher

from church_crawler.collectors.site_crawler import ChurchSiteCrawler, popups_as_pages
from church_crawler.config import CrawlOptions
from church_crawler.db.repository import CrawlRepository
from church_crawler.llm.structure_analyzer import StructureAnalysisError
from church_crawler.models import DictionaryEntry, PageInfo, PopupInfo, StructureAnalysis, TaxonomyNode

MENU_PAGE = """
<html><head><title>사랑의교회</title></head><body>
<nav>
  <ul>
    <li><a href="/about">교회소개</a>
      <ul>
        <li><a href="/about/vision">비전</a></li>
        <li><a href="/about/history">연혁</a></li>
      </ul>
    </li>
    <li><a href="/mission">선교</a>
      <ul>
        <li><a href="/mission/domestic">국내선교</a></li>
        <li><a href="/mission/overseas">해외선교</a></li>
      </ul>
    </li>
  </ul>
</nav>
<footer><p>전화 02-1234-5678</p></footer>
</body></html>
"""

SUBPAGES = ["/about/vision", "/about/history", "/mission/domestic", "/mission/overseas"]


def deep_site() -> FakeSite:
    pages = {
        "/": '<html><head><meta http-equiv="refresh" content="0; url=/main"></head></html>',
        "/main": MENU_PAGE,
        "/about": '<main><a href="/about/vision">비전</a><a href="/about/history">연혁</a></main>',
        "/mission": '<main><a href="/mission/domestic">국내선교</a><a href="/mission/overseas">해외선교</a></main>',
    }
    for path in SUBPAGES:
        pages[path] = f'<main><a href="{path}/detail">자세히</a></main>'
    return FakeSite(pages)


def crawl_url(site: FakeSite, options: CrawlOptions, analyzer=None, logger=None, **kwargs):
    async def work(fetcher):
        crawler = ChurchSiteCrawler(fetcher, analyzer=analyzer, logger=logger)
        return await crawler.crawl_url(f"{BASE}/", options=options, **kwargs)

    return run_with_fetcher(site, work)


class TestDeepCrawl:
    def test_meta_refresh_then_two_level_menu(self, fast_options, quiet_logger):
        site = deep_site()

        result = crawl_url(site, fast_options, logger=quiet_logger)

        assert result.success
        navigation = result.structure.navigation
        assert [item.title for item in navigation] == ["교회소개", "선교"]
        for item in navigation:
            assert len(item.children) == 2
            assert all(child.depth == 2 for child in item.children)
            assert all(child.crawled for child in item.children)
        assert not any(path.endswith("/detail") for path in site.fetched_paths)
        assert site.fetched_paths.count("/") == 1
        assert site.fetched_paths.count("/main") == 1
        assert result.progress.crawled_pages == 6
        assert result.errors == []

    def test_failed_subpage_recorded_on_node(self, fast_options, quiet_logger):
        site = deep_site()
        site.pages["/mission"] = (500, "<p>error</p>")

        result = crawl_url(site, fast_options, logger=quiet_logger)

        assert result.success
        mission = result.structure.navigation[1]
        assert mission.crawl_error == "HTTP 500"
        assert result.errors == [f"{BASE}/mission: HTTP 500"]
        assert all(child.crawled for child in mission.children)

    def test_fetched_popups_become_special_pages(self, fast_options, quiet_logger):
        homepage = """
        <nav><ul><li><a href="/about">교회소개</a></li></ul></nav>
        <button onclick="window.open('/popup/notice.html')">공지</button>
        """
        site = FakeSite({"/": homepage, "/about": "<p>소개</p>", "/popup/notice.html": "<title>공지</title><p>본문</p>"})

        result = crawl_url(site, fast_options, logger=quiet_logger)

        special = result.structure.special_pages
        assert [page.url for page in special] == [f"{BASE}/popup/notice.html"]
        assert special[0].crawled
        assert special[0].extracted_data["title"] == "공지"


class TestRedirectedHomepage:
    WWW = f"https://www.{HOST}"

    def test_absolute_links_on_redirect_target_are_kept(self, quiet_logger):
        homepage = f"""
        <nav><ul>
          <li><a href="{self.WWW}/about">교회소개</a></li>
          <li><a href="{self.WWW}/mission">선교</a></li>
        </ul></nav>
        """
        site = FakeSite({f"{self.WWW}/": homepage}, redirects={"/": f"{self.WWW}/"})

        result = crawl_url(site, CrawlOptions(delay_ms=0), logger=quiet_logger)

        assert result.success
        assert [item.url for item in result.structure.navigation] == [f"{self.WWW}/about", f"{self.WWW}/mission"]


class TestHomepageFailure:
    def test_unreachable_homepage_is_fatal(self, fast_options, quiet_logger):
        site = FakeSite({"/": (500, "<p>error</p>")})

        result = crawl_url(site, fast_options, logger=quiet_logger)

        assert not result.success
        assert result.errors == [f"Homepage unreachable: {BASE}/ (HTTP 500)"]
        assert result.structure is None
        assert site.fetched_paths == ["/"]


class TestAnalyzer:
    HOMEPAGE = "<html><body><p>환영합니다. 국제선교부 소식</p></body></html>"

    def test_analyzer_failure_uses_pattern_dictionary(self, quiet_logger):
        analyzer = FakeAnalyzer(error=StructureAnalysisError("invalid JSON"))
        site = FakeSite({"/": self.HOMEPAGE})

        result = crawl_url(site, CrawlOptions(delay_ms=0), analyzer=analyzer, logger=quiet_logger)

        assert result.success
        assert "국제선교부" in [entry.term for entry in result.dictionary]
        assert result.taxonomy == []

    def test_analyzer_navigation_and_dictionary(self, quiet_logger):
        analysis = StructureAnalysis(
            navigation=[PageInfo(url="/about", title="교회소개", children=[PageInfo(url="/about/vision", title="비전")])],
            dictionary=[DictionaryEntry(term="새가족부", category="department")],
            taxonomy=[TaxonomyNode(name="교회", children=[TaxonomyNode(name="교육부")])],
        )
        analyzer = FakeAnalyzer(analysis=analysis)
        site = FakeSite({"/": self.HOMEPAGE})

        result = crawl_url(site, CrawlOptions(delay_ms=0), analyzer=analyzer, logger=quiet_logger)

        navigation = result.structure.navigation
        assert [item.url for item in navigation] == [f"{BASE}/about"]
        assert navigation[0].children[0].url == f"{BASE}/about/vision"
        assert navigation[0].children[0].depth == 2
        assert [entry.term for entry in result.dictionary] == ["새가족부"]
        assert result.taxonomy[0].children[0].name == "교육부"
        assert analyzer.calls == [("analyze", f"{BASE}/")]

    def test_page_navigation_wins_over_analyzer(self, quiet_logger):
        analysis = StructureAnalysis(navigation=[PageInfo(url="/elsewhere", title="다른 메뉴")])
        site = FakeSite({"/": MENU_PAGE})

        result = crawl_url(site, CrawlOptions(delay_ms=0), analyzer=FakeAnalyzer(analysis=analysis), logger=quiet_logger)

        assert [item.title for item in result.structure.navigation] == ["교회소개", "선교"]


class TestShallowCrawl:
    def test_no_subpages_fetched(self, quiet_logger):
        site = FakeSite({"/": MENU_PAGE})

        result = crawl_url(site, CrawlOptions(delay_ms=0), logger=quiet_logger)

        assert site.fetched_paths == ["/"]
        assert result.progress is None
        assert result.structure.metadata.total_pages == 6
        assert result.structure.contacts.phones == ["02-1234-5678"]
        assert result.extended_info.contacts_count == 1

    def test_people_pass_reads_pastor_pages(self, quiet_logger):
        homepage = MENU_PAGE.replace('<a href="/about/vision">비전</a>', '<a href="/about/pastor">담임목사</a>')
        site = FakeSite({"/": homepage, "/about/pastor": "<p>담임목사 홍길동</p>"})
        options = CrawlOptions(delay_ms=0, extract_people=True)

        result = crawl_url(site, options, logger=quiet_logger)

        assert site.fetched_paths == ["/", "/about/pastor"]
        people = {entry.term: entry for entry in result.dictionary if entry.category == "person"}
        assert people["홍길동"].source_url == f"{BASE}/about/pastor"

    def test_extraction_toggles(self, quiet_logger):
        site = FakeSite({"/": MENU_PAGE})
        options = CrawlOptions(delay_ms=0, extract_contacts=False, extract_media=False)

        result = crawl_url(site, options, logger=quiet_logger)

        assert result.structure.contacts is None
        assert result.structure.media is None
        assert result.extended_info.contacts_count == 0


class TestRepositoryCrawl:
    CHURCH = {"id": 7, "name": "사랑의교회", "code": "sarang", "homepage_url": f"{BASE}/", "is_active": 1}

    def run_crawl(self, client: RecordingClient, code: str, site: FakeSite, logger):
        async def work(fetcher):
            crawler = ChurchSiteCrawler(fetcher, repository=CrawlRepository(client), logger=logger)
            return await crawler.crawl(code, CrawlOptions(delay_ms=0))

        return run_with_fetcher(site, work)

    def test_crawl_saves_structure_and_log(self, recording_client, quiet_logger):
        recording_client.one["FROM churches WHERE code"] = self.CHURCH
        site = FakeSite({"/": MENU_PAGE})

        result = self.run_crawl(recording_client, "sarang", site, quiet_logger)

        assert result.success
        assert result.organization_id == 7
        assert result.structure.organization.code == "sarang"
        assert len(recording_client.inserted("church_site_structure")) == 6
        logs = recording_client.inserted("church_crawl_logs")
        assert len(logs) == 1
        assert logs[0]["church_id"] == 7
        assert logs[0]["crawl_type"] == "full"
        assert logs[0]["status"] == "completed"

    def test_unknown_code(self, recording_client, quiet_logger):
        site = FakeSite({})

        result = self.run_crawl(recording_client, "nope", site, quiet_logger)

        assert not result.success
        assert result.errors == ["Organization not found: nope"]
        assert site.requests == []
        assert recording_client.inserts == []

    def test_crawl_by_code_needs_repository(self, quiet_logger):
        async def work(fetcher):
            return await ChurchSiteCrawler(fetcher, logger=quiet_logger).crawl("sarang")

        with pytest.raises(ValueError):
            run_with_fetcher(FakeSite({}), work)

    def test_crawl_url_without_id_is_not_saved(self, recording_client, quiet_logger):
        async def work(fetcher):
            crawler = ChurchSiteCrawler(fetcher, repository=CrawlRepository(recording_client), logger=quiet_logger)
            return await crawler.crawl_url(f"{BASE}/", options=CrawlOptions(delay_ms=0))

        result = run_with_fetcher(FakeSite({"/": MENU_PAGE}), work)

        assert result.success
        assert recording_client.statements == []


def test_popups_as_pages():
    popups = [PopupInfo(url=f"{BASE}/popup/1", title="공지", trigger_type="window-open")]

    pages = popups_as_pages(popups)

    assert pages[0].page_type == "popup"
    assert pages[0].depth == 0
    assert pages[0].content_type == "popup"


def test_popups_as_pages_reuses_fetched_pages():
    popups = [
        PopupInfo(url=f"{BASE}/popup/1", title="공지", trigger_type="window-open"),
        PopupInfo(url=f"{BASE}/#layer1", title="안내", trigger_type="layer"),
    ]
    fetched = PageInfo(url=f"{BASE}/popup/1", title="공지", page_type="popup", depth=0, crawled=True)

    pages = popups_as_pages(popups, [fetched])

    assert pages[0] is fetched
    assert not pages[1].crawled
