"""Shared fixtures for crawler tests.

HTTP goes through httpx.MockTransport and storage through an in-memory
recording client, so no test needs the network or a MySQL server.
"""

import asyncio
import sys
from pathlib import Path

import httpx
import pymysql
import pytest

# Add the repo root to path so tests can import church_crawler
sys.path.insert(0, str(Path(__file__).parent.parent))

from church_crawler.collectors.fetcher import PageFetcher  # noqa: E402
from church_crawler.config import CrawlOptions  # noqa: E402
from church_crawler.models import StructureAnalysis  # noqa: E402
from church_crawler.utils.logger import CrawlerLogger  # noqa: E402

HOST = "church.test"
BASE = f"https://{HOST}"


class FakeSite:
    """
    Serves path -> html (or (status, html)) for one host and records requests.

    Keys may also be absolute URLs, for pages on other hosts. `redirects`
    maps a path of the main host to the Location of a 301.
    HEAD requests and unknown pages answer 404.
    """

    def __init__(self, pages: dict, host: str = HOST, redirects: dict | None = None):
        self.pages = pages
        self.host = host
        self.redirects = redirects or {}
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, str(request.url)))
        if request.method == "HEAD":
            return httpx.Response(404, text="not found")
        own_host = request.url.host == self.host
        if own_host and request.url.path in self.redirects:
            return httpx.Response(301, headers={"Location": self.redirects[request.url.path]})
        page = self.pages.get(str(request.url))
        if page is None and own_host:
            page = self.pages.get(request.url.path)
        if page is None:
            return httpx.Response(404, text="not found")
        status, html = page if isinstance(page, tuple) else (200, page)
        return httpx.Response(status, html=html)

    @property
    def fetched_paths(self) -> list[str]:
        return [httpx.URL(url).path for method, url in self.requests if method == "GET"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def run_with_fetcher(site: FakeSite, work):
    """Run `await work(fetcher)` with a PageFetcher bound to the fake site."""

    async def runner():
        async with PageFetcher(transport=site.transport()) as fetcher:
            return await work(fetcher)

    return asyncio.run(runner())


class RecordingClient:
    """
    Stand-in for DatabaseClient that records every statement.

    execute_insert returns incrementing ids; tables listed in fail_tables
    raise pymysql.MySQLError on insert. execute/execute_one answer from
    the `rows` and `one` queues keyed by a SQL substring.
    """

    def __init__(self, fail_tables: tuple[str, ...] = ()):
        self.fail_tables = fail_tables
        self.statements: list[tuple[str, tuple]] = []
        self.inserts: list[tuple[str, dict]] = []
        self.one: dict[str, dict | None] = {}
        self.rows: dict[str, list[dict]] = {}
        self._next_id = 0

    def execute_insert(self, sql: str, params: tuple | None = None) -> int:
        self.statements.append((sql, params or ()))
        table = sql.split()[2]
        if table in self.fail_tables:
            raise pymysql.MySQLError(f"insert into {table} rejected")
        columns = [c.strip("` ") for c in sql[sql.index("(") + 1 : sql.index(")")].split(",")]
        self.inserts.append((table, dict(zip(columns, params or ()))))
        self._next_id += 1
        return self._next_id

    def execute_write(self, sql: str, params: tuple | None = None) -> int:
        self.statements.append((sql, params or ()))
        return 1

    def execute_one(self, sql: str, params: tuple | None = None) -> dict | None:
        self.statements.append((sql, params or ()))
        for key, row in self.one.items():
            if key in sql:
                return row
        return None

    def execute(self, sql: str, params: tuple | None = None) -> list[dict]:
        self.statements.append((sql, params or ()))
        for key, rows in self.rows.items():
            if key in sql:
                return rows
        return []

    def inserted(self, table: str) -> list[dict]:
        return [row for name, row in self.inserts if name == table]


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def quiet_logger():
    return CrawlerLogger("church_crawler.tests", log_level="WARNING")


@pytest.fixture
def fast_options():
    """Deep-crawl options without rate-limit pauses."""
    return CrawlOptions(max_depth=2, max_pages=10, delay_ms=0, deep_crawl=True)


class FakeAnalyzer:
    """Async analyzer double; raises `error` from every call when set."""

    def __init__(self, analysis=None, people=None, error: Exception | None = None):
        self.analysis = analysis
        self.people = people or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def analyze(self, html: str, base_url: str):
        self.calls.append(("analyze", base_url))
        if self.error is not None:
            raise self.error
        return self.analysis or StructureAnalysis()

    async def extract_people(self, html: str, url: str):
        self.calls.append(("extract_people", url))
        if self.error is not None:
            raise self.error
        return list(self.people)
