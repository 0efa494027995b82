"""
Entry resolution for organization homepages.

Many church sites do not serve their real content at the homepage URL: the
homepage meta-refreshes elsewhere, shows a video intro with a "skip" link,
wraps the site in a full-page iframe, or builds its menu from an XML file.
Four detectors run in fixed order against the homepage HTML:

1. meta refresh
2. intro/landing page
3. iframe shell
4. XML menu file

Each detector takes (html, base_url) and returns nothing or a URL. A detector
that finds nothing, or whose target cannot be fetched, is skipped silently.
The resulting effective base URL anchors all later relative-URL resolution.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional
from urllib.parse import unquote
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup

from ..constants import INTRO_MAX_LINKS, INTRO_MIN_BODY_TEXT, IFRAME_SHELL_MAX_TEXT, XML_MENU_PATHS
from ..models import PAGE_TYPE_BY_DEPTH, PageInfo
from ..utils.url_helpers import normalize_url
from .fetcher import PageFetcher

logger = logging.getLogger(__name__)


class HomepageUnreachableError(Exception):
    """The homepage itself could not be fetched; the crawl cannot start."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Homepage unreachable: {url} ({reason})")
        self.url = url
        self.reason = reason


@dataclass
class EntryResolution:
    """Outcome of the resolution chain."""

    homepage_url: str
    base_url: str
    html: str
    steps: list[str] = field(default_factory=list)  # detector names that changed the entry
    xml_menu_url: Optional[str] = None
    xml_navigation: list[PageInfo] = field(default_factory=list)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _body_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    return body.get_text().strip()


def _usable_href(href: Optional[str]) -> bool:
    return bool(href) and not href.startswith(("javascript:", "#"))


# ─── Detectors ──────────────────────────────────────────────────────────────

META_REFRESH_URL_RE = re.compile(r"""url=([^"'\s]+)""", re.IGNORECASE)


def detect_meta_refresh(html: str, base_url: str) -> Optional[str]:
    """<meta http-equiv="refresh" content="0; url=..."> target, if any."""
    soup = _soup(html)
    for meta in soup.find_all("meta"):
        if (meta.get("http-equiv") or "").lower() != "refresh":
            continue
        match = META_REFRESH_URL_RE.search(meta.get("content") or "")
        if match:
            return normalize_url(match.group(1), base_url)
    return None


INTRO_SKIP_SELECTORS = [
    'a[href*="index.do"]',
    'a[href*="main.do"]',
    'a[href*="/main/"]',
    "a.btn-close",
    'a[href*="home"]',
    ".video_content a",
    ".intro-skip a",
    ".skip-intro a",
]


def detect_intro_page(html: str, base_url: str) -> Optional[str]:
    """
    Find the "enter site" link of an intro/landing page.

    A page counts as an intro when it has no navigation container and
    either shows a video intro block or is nearly empty with few links.
    """
    soup = _soup(html)

    has_navigation = bool(soup.select("nav, #gnb, .gnb, .menu, header nav"))
    if has_navigation:
        return None

    has_video_intro = bool(soup.select('.video_wrap, .intro-video, .main-video, [class*="intro"]'))
    has_minimal_content = len(_body_text(soup)) < INTRO_MIN_BODY_TEXT
    link_count = len(soup.find_all("a"))
    if not (has_video_intro or (has_minimal_content and link_count < INTRO_MAX_LINKS)):
        return None

    for selector in INTRO_SKIP_SELECTORS:
        link = soup.select_one(selector)
        if link is not None:
            href = link.get("href")
            if _usable_href(href):
                return normalize_url(href, base_url)

    for link in soup.find_all("a"):
        href = link.get("href")
        if _usable_href(href) and any(word in href for word in ("index", "main", "home")):
            return normalize_url(href, base_url)

    return None


def detect_iframe_content(html: str, base_url: str) -> Optional[str]:
    """src of the iframe that holds the real content of a thin shell page."""
    soup = _soup(html)

    main_frame = soup.select_one('iframe#mainFrame, iframe[name="mainFrame"], .mainLayer iframe, body > div > iframe')
    if main_frame is not None and main_frame.get("src"):
        return normalize_url(main_frame["src"], base_url)

    iframes = soup.find_all("iframe")
    if iframes and len(_body_text(soup)) < IFRAME_SHELL_MAX_TEXT:
        src = iframes[0].get("src")
        if src and "youtube" not in src and "vimeo" not in src:
            return normalize_url(src, base_url)

    return None


XML_REFERENCE_PATTERNS = [
    re.compile(r"""xmlFile\s*=\s*["']([^"']+\.xml[^"']*)"""),
    re.compile(r"menu\.xml"),
    re.compile(r"sitemap\.xml"),
]
XML_FILE_ASSIGNMENT_RE = re.compile(r"""(?:this\.)?xmlFile\s*=\s*["']([^"']+)["']""")


def find_xml_menu_reference(html: str, base_url: str) -> Optional[str]:
    """Menu XML path referenced inline in the page, without any network I/O."""
    for pattern in XML_REFERENCE_PATTERNS:
        match = pattern.search(html)
        if match:
            path = match.group(1) if match.groups() else match.group(0)
            return normalize_url(path, base_url)

    scripts = " ".join(script.get_text() for script in _soup(html).find_all("script"))
    for path in XML_MENU_PATHS:
        if path in scripts or path.replace("/", "\\/") in scripts:
            return normalize_url(path, base_url)

    return None


def _decode_menu_name(value: str) -> str:
    """Menu names are base64 encoded UTF-8; plain text passes through."""
    if not value:
        return ""
    try:
        return base64.b64decode(value, validate=True).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return value.strip()


def parse_xml_menu(xml_text: str, base_url: str) -> list[PageInfo]:
    """
    Parse nested depth1/depth2/depth3 menu elements into a navigation tree.

    Elements carry `name` (base64), `link` (URL-encoded) and `isDisplay`
    ("N" hides the entry). Malformed XML yields an empty tree.
    """
    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        logger.debug(f"Menu XML is not well-formed: {e}")
        return []

    def build(element: ET.Element, depth: int, parent_url: Optional[str]) -> Optional[PageInfo]:
        if element.get("isDisplay") == "N":
            return None
        name = _decode_menu_name(element.get("name", ""))
        if not name:
            return None
        link = unquote(element.get("link", ""))
        node = PageInfo(
            url=normalize_url(link, base_url) if link else "",
            title=name,
            page_type=PAGE_TYPE_BY_DEPTH[depth],
            depth=depth,
            parent_url=parent_url,
        )
        if depth < 3:
            for child_element in element.iter(f"depth{depth + 1}"):
                child = build(child_element, depth + 1, node.url)
                if child is not None:
                    node.children.append(child)
        return node

    navigation = []
    for element in root.iter("depth1"):
        item = build(element, 1, None)
        if item is not None:
            navigation.append(item)
    return navigation


# ─── Resolver ───────────────────────────────────────────────────────────────

Detector = Callable[[str, str], Optional[str]]


class EntryResolver:
    """
    Runs the detector chain against a homepage.

    The fetcher is passed in; the resolver owns no connections.
    """

    REDIRECT_DETECTORS: list[tuple[str, Detector]] = [
        ("meta_refresh", detect_meta_refresh),
        ("intro_page", detect_intro_page),
    ]

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher

    async def resolve(self, homepage_url: str) -> EntryResolution:
        """
        Fetch the homepage and follow the detector chain.

        Raises:
            HomepageUnreachableError: the homepage fetch failed
        """
        result = await self.fetcher.fetch(homepage_url)
        if not result.success:
            raise HomepageUnreachableError(homepage_url, result.error or "unknown error")

        # Redirects decide the host that links are checked against
        base_url = result.final_url or homepage_url
        resolution = EntryResolution(homepage_url=homepage_url, base_url=base_url, html=result.html or "")

        for name, detector in self.REDIRECT_DETECTORS:
            target = detector(resolution.html, resolution.base_url)
            if not target or target == resolution.base_url:
                continue
            redirected = await self.fetcher.fetch(target)
            if redirected.success:
                logger.info(f"Entry redirected by {name}: {target}")
                resolution.html = redirected.html or ""
                resolution.base_url = redirected.final_url or target
                resolution.steps.append(name)

        iframe_url = detect_iframe_content(resolution.html, resolution.base_url)
        if iframe_url and iframe_url != resolution.base_url:
            framed = await self.fetcher.fetch(iframe_url)
            if framed.success:
                logger.info(f"Entry moved into iframe content: {iframe_url}")
                # Chrome and content can live on different sides of the frame
                resolution.html = (framed.html or "") + resolution.html
                resolution.base_url = framed.final_url or iframe_url
                resolution.steps.append("iframe")

        xml_url = await self.discover_xml_menu_url(resolution.html, resolution.base_url)
        if xml_url:
            menu = await self.fetcher.fetch(xml_url)
            if menu.success:
                resolution.xml_menu_url = xml_url
                resolution.xml_navigation = parse_xml_menu(menu.html or "", resolution.base_url)
                if resolution.xml_navigation:
                    resolution.steps.append("xml_menu")
                    logger.info(f"XML menu parsed: {len(resolution.xml_navigation)} top-level items from {xml_url}")

        return resolution

    async def discover_xml_menu_url(self, html: str, base_url: str) -> Optional[str]:
        """Inline reference first, then a menu script, then HEAD probes."""
        reference = find_xml_menu_reference(html, base_url)
        if reference:
            return reference

        menu_script = _soup(html).select_one('script[src*="menu"]')
        if menu_script is not None:
            script_url = normalize_url(menu_script["src"], base_url)
            script = await self.fetcher.fetch(script_url)
            if script.success:
                match = XML_FILE_ASSIGNMENT_RE.search(script.html or "")
                if match:
                    return normalize_url(match.group(1), base_url)

        for path in XML_MENU_PATHS:
            candidate = normalize_url(path, base_url)
            if await self.fetcher.head_ok(candidate):
                return candidate

        return None
