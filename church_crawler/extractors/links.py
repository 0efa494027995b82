"""
Link discovery for the deep crawl: content-region links, boards, and
technology markers of the homepage.
"""

import re

from bs4 import BeautifulSoup

from ..constants import BOARD_URL_PATTERNS, MAX_LINK_TITLE_LENGTH, SKIP_HREF_PREFIXES
from ..models import ContentType, PageInfo, PageType
from ..utils.url_helpers import is_same_domain, last_path_segment, normalize_url

CONTENT_SELECTORS = [
    "main", "#content", ".content", "#container", ".container",
    "article", ".article", ".board-list", ".list-wrap",
    ".sub-content", ".page-content", "#sub", ".sub",
]

# (url pattern, page type, content type), first match wins
CONTENT_TYPE_RULES: list[tuple[re.Pattern, PageType, ContentType]] = [
    (re.compile(r"board|bbs|notice|news", re.IGNORECASE), "board", "board"),
    (re.compile(r"gallery|photo|album", re.IGNORECASE), "content", "gallery"),
    (re.compile(r"video|vod|media", re.IGNORECASE), "content", "video"),
    (re.compile(r"list|archive", re.IGNORECASE), "content", "list"),
]

BOARD_URL_RE = [re.compile(pattern, re.IGNORECASE) for pattern in BOARD_URL_PATTERNS]

# (technology, markers) checked as plain substrings of the raw HTML
TECHNOLOGY_MARKERS = [
    ("jQuery", ["jQuery", "jquery"]),
    ("React", ["React", "react"]),
    ("Vue.js", ["Vue", "vue"]),
    ("Angular", ["Angular", "ng-"]),
    ("Bootstrap", ["bootstrap"]),
    ("Tailwind CSS", ["tailwind"]),
    ("WordPress", ["wordpress", "wp-content"]),
    ("그누보드", ["gnuboard", "bbs.php"]),
    ("XpressEngine", ["xpress", "xe.min"]),
    ("Cafe24", ["cafe24"]),
]


def infer_content_type(url: str) -> tuple[PageType, ContentType]:
    """
    Guess page and content type from URL keywords.

    Examples:
        >>> infer_content_type("https://church.org/bbs/list.php")
        ('board', 'board')
        >>> infer_content_type("https://church.org/about/vision")
        ('content', 'static')
    """
    for pattern, page_type, content_type in CONTENT_TYPE_RULES:
        if pattern.search(url):
            return page_type, content_type
    return "content", "static"


def extract_links_from_page(html: str, page_url: str, current_depth: int) -> list[PageInfo]:
    """
    Extract same-domain links from the page's main content region.

    The first matching content selector defines the region; the whole body
    is used when none matches.

    Args:
        html: Page HTML
        page_url: URL of the page (resolution base and parent URL)
        current_depth: Depth of the page; links are returned at depth + 1

    Returns:
        PageInfo list, unique by URL, in document order
    """
    soup = BeautifulSoup(html, "html.parser")
    region = next(
        (found for found in (soup.select_one(selector) for selector in CONTENT_SELECTORS) if found is not None),
        soup.body or soup,
    )

    links: list[PageInfo] = []
    seen: set[str] = set()
    for anchor in region.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(SKIP_HREF_PREFIXES):
            continue

        url = normalize_url(href, page_url)
        if url in seen or not is_same_domain(url, page_url):
            continue
        seen.add(url)

        title = anchor.get_text().strip() or anchor.get("title") or last_path_segment(url)
        if not title or len(title) > MAX_LINK_TITLE_LENGTH:
            continue

        page_type, content_type = infer_content_type(url)
        links.append(
            PageInfo(
                url=url,
                title=title,
                page_type=page_type,
                depth=current_depth + 1,
                parent_url=page_url,
                content_type=content_type,
            )
        )
    return links


def detect_boards(html: str, base_url: str) -> list[PageInfo]:
    """Same-domain anchors whose URL looks like a bulletin board (depth 0)."""
    soup = BeautifulSoup(html, "html.parser")
    boards: list[PageInfo] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        url = normalize_url(href, base_url)
        if url in seen or not is_same_domain(url, base_url):
            continue
        if not any(pattern.search(url) for pattern in BOARD_URL_RE):
            continue
        seen.add(url)
        title = anchor.get_text().strip() or last_path_segment(url) or "게시판"
        boards.append(PageInfo(url=url, title=title, page_type="board", depth=0, content_type="board"))

    return boards


def detect_technologies(html: str) -> list[str]:
    return [name for name, markers in TECHNOLOGY_MARKERS if any(marker in html for marker in markers)]


def has_login(html: str) -> bool:
    return "login" in html or "로그인" in html


def has_mobile_version(html: str, viewport: str) -> bool:
    return "mobile" in html or "width=device-width" in viewport
