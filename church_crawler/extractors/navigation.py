"""
Navigation tree extraction.

Church sites are built on dozens of home-grown templates, so no single
selector finds the main menu. NAVIGATION_STRATEGIES is an ordered list of
independent strategies tried as a waterfall:

    1. standard_containers  nav/#gnb/.menu... with up to three list levels
    2. depth_classes        .depth1 / .depth2 class-named lists
    3. data_attributes      [data-menu], [data-nav], [data-depth="1"]
    4. mega_menu_sections   all-menu/sitemap layers grouped by heading
    5. bootstrap_navbar     .navbar-nav > .nav-item > .nav-link
    6. linked_panels        ul.gnbul tabs whose children live in #panelNN
    7. dropdown_panels      .mega-menu/.dropdown-menu panels under a titled li
    8. header_links         every header anchor except login/search/member links

"replace" strategies run only while the tree is still empty. "enrich"
strategies (6 and 7) also run when every top-level item is childless and
merge their children into items with the same title.

Every strategy gets a fresh URL seen-set, drops titles that are empty or
longer than 100 characters, resolves hrefs against the base URL and drops
cross-domain targets. Output depths are 1 to 3 with child.depth == parent.depth + 1.
"""

import re
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from bs4 import BeautifulSoup, Tag

from ..constants import MAX_NAV_TITLE_LENGTH
from ..models import PAGE_TYPE_BY_DEPTH, PageInfo
from ..utils.url_helpers import is_same_domain, normalize_url

WHITESPACE_RE = re.compile(r"\s+")
TRAILING_MORE_RE = re.compile(r"more$", re.IGNORECASE)
HEADER_UTILITY_RE = re.compile(r"login|search|member|join|signup", re.IGNORECASE)


def clean_title(text: Optional[str]) -> str:
    return WHITESPACE_RE.sub(" ", text or "").strip()


def link_text(link: Tag) -> str:
    """
    Visible label of a menu anchor.

    Prefers the first span/strong/em (icon fonts and badges sit beside the
    label), then the anchor's own text nodes, then its full text.
    """
    inner = link.find(["span", "strong", "em"])
    if inner is not None:
        text = inner.get_text().strip()
        if text:
            return text
    own = "".join(child for child in link.find_all(string=True, recursive=False)).strip()
    return own or link.get_text().strip()


def resolve_href(href: Optional[str], base_url: str) -> str:
    """Absolute URL of a menu href; '' for placeholders like '#' or javascript:."""
    href = (href or "").strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return ""
    return normalize_url(href, base_url)


def _scoped(selector: str) -> str:
    """Turn jQuery-style '> ul > li' child selectors into ':scope > ul > li'."""
    return ", ".join(
        f":scope {part.strip()}" if part.strip().startswith(">") else part.strip()
        for part in selector.split(",")
    )


def select_children(element: Tag, selector: str) -> list[Tag]:
    return element.select(_scoped(selector))


def direct_link(element: Tag) -> Optional[Tag]:
    return element.find("a", recursive=False)


class TreeBuilder:
    """Creates navigation nodes for one strategy pass."""

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.seen: set[str] = set()

    def node(
        self,
        href: Optional[str],
        title: Optional[str],
        depth: int,
        parent_url: Optional[str] = None,
    ) -> Optional[PageInfo]:
        title = clean_title(title)
        if not title or len(title) > MAX_NAV_TITLE_LENGTH:
            return None

        url = resolve_href(href, self.base_url)
        if url:
            if not is_same_domain(url, self.base_url) or url in self.seen:
                return None
            self.seen.add(url)

        return PageInfo(
            url=url,
            title=title,
            page_type=PAGE_TYPE_BY_DEPTH[depth],
            depth=depth,
            parent_url=parent_url or None,
        )

    def from_link(self, link: Tag, depth: int, parent_url: Optional[str] = None) -> Optional[PageInfo]:
        return self.node(link.get("href"), link_text(link), depth, parent_url)


def _is_real_href(href: Optional[str]) -> bool:
    return bool(href) and href != "#" and not href.startswith("javascript:")


# ─── Strategy 1: standard containers ────────────────────────────────────────

NAV_CONTAINER_SELECTORS = [
    "nav", "header nav", "#gnb", ".gnb", "#nav", ".nav",
    "#menu", ".menu", ".main-menu", ".main_menu", ".main-nav",
    "#header nav", ".header nav", ".navigation", ".top-menu",
    "ul.depth1", "ul.lnb", "ul.gnb", ".menu-depth1",
    "#site_menus", ".site_menu", "#topMenu", ".gnb-menu",
    ".menu-wrap", ".nav-wrap", ".gnb-wrap", "#gnb-wrap",
    ".header-menu", ".header_menu", ".top-nav", "#top-nav",
    ".allmenu", "#all-menu", ".all-menu",
    "ul.gnb-ul", ".gnb-ul",
]
DEPTH1_ITEM_SELECTOR = "> ul > li, > li, > div > ul > li, > div > li"
SUBMENU_SELECTORS = [
    "> ul > li", "> .sub > li", "> .submenu > li", "> .sub-menu > li",
    "> .depth2 > li", "> ul.depth2 > li", "> div > ul > li",
    "> .sub-wrap > ul > li", "> .gnb-sub > li", "> .lnb > li",
    "> .gnb-inner > .sub-mn > li", ".gnb-inner .sub-mn > li",
]
THIRD_LEVEL_SELECTORS = [
    "> ul > li", "> .sub > li", "> .depth3 > li", "> ul.depth3 > li",
    "> .third-menu > li", "> div > ul > li",
    "> .sub-mn02 > li", ".sub-mn02 > li",
]


def _nested_items(
    builder: TreeBuilder,
    parent_li: Tag,
    parent: PageInfo,
    selectors: list[str],
) -> list[tuple[Tag, PageInfo]]:
    """Children of a menu <li>: the first selector that yields any node wins."""
    for selector in selectors:
        found = []
        for li in select_children(parent_li, selector):
            link = direct_link(li)
            if link is None:
                continue
            node = builder.from_link(link, parent.depth + 1, parent.url)
            if node is not None:
                found.append((li, node))
        if found:
            return found
    return []


def standard_containers(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)

    for selector in NAV_CONTAINER_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue

        direct_links = container.find_all("a", recursive=False)
        if direct_links:
            navigation = [n for n in (builder.from_link(a, 1) for a in direct_links) if n is not None]
            if navigation:
                return navigation

        navigation = []
        for li in select_children(container, DEPTH1_ITEM_SELECTOR):
            link = direct_link(li)
            if link is None:
                continue
            item = builder.from_link(link, 1)
            if item is None:
                continue
            for sub_li, sub_item in _nested_items(builder, li, item, SUBMENU_SELECTORS):
                sub_item.children = [node for _, node in _nested_items(builder, sub_li, sub_item, THIRD_LEVEL_SELECTORS)]
                item.children.append(sub_item)
            navigation.append(item)

        if navigation:
            return navigation

    return []


# ─── Strategy 2: depth-class containers ─────────────────────────────────────


def _link_of(element: Tag) -> Optional[Tag]:
    return element if element.name == "a" else direct_link(element)


def depth_classes(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    menu = soup.select_one('.depth1, .menu-depth1, [class*="depth1"]')
    if menu is None:
        return []

    builder = TreeBuilder(base_url)
    navigation = []
    for element in select_children(menu, "> li, > a"):
        link = _link_of(element)
        if link is None:
            continue
        item = builder.from_link(link, 1)
        if item is None:
            continue
        for depth2 in element.select('.depth2, .sub-menu, [class*="depth2"]'):
            for sub in select_children(depth2, "> li, > a"):
                sub_link = _link_of(sub)
                if sub_link is None:
                    continue
                sub_item = builder.from_link(sub_link, 2, item.url)
                if sub_item is not None:
                    item.children.append(sub_item)
        navigation.append(item)
    return navigation


# ─── Strategy 3: data attributes ────────────────────────────────────────────


def data_attributes(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)
    navigation = []
    for element in soup.select('[data-menu], [data-nav], [data-depth="1"]'):
        link = element if element.name == "a" else element.find("a")
        if link is None:
            continue
        href = link.get("href") or element.get("data-href") or element.get("data-url")
        title = link_text(link) or element.get("data-title") or ""
        item = builder.node(href, title, 1)
        if item is not None:
            navigation.append(item)
    return navigation


# ─── Strategy 4: mega-menu sections ─────────────────────────────────────────

MEGA_MENU_SELECTORS = [
    ".mega-menu", ".all-menu", "#all-menu", ".total-menu", "#total-menu",
    ".full-menu", ".allmenu-wrap", ".sitemap",
]


def mega_menu_sections(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)
    for selector in MEGA_MENU_SELECTORS:
        navigation = []
        for mega in soup.select(selector):
            sections = select_children(mega, ".menu-section, .menu-group, .menu-category, > div, > section")
            for index, section in enumerate(sections):
                heading = section.select_one("h2, h3, h4, .title, .menu-title")
                title = clean_title(heading.get_text()) if heading is not None else ""
                item = builder.node(None, title or f"메뉴 {index + 1}", 1)
                if item is None:
                    continue
                for link in section.find_all("a"):
                    child = builder.from_link(link, 2, item.url)
                    if child is not None:
                        item.children.append(child)
                if item.children:
                    navigation.append(item)
        if navigation:
            return navigation
    return []


# ─── Strategy 5: Bootstrap navbar ───────────────────────────────────────────


def bootstrap_navbar(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    navbar = soup.select_one("nav.navbar, .navbar-nav, ul.navbar-nav")
    if navbar is None:
        return []

    builder = TreeBuilder(base_url)
    navigation = []
    for nav_item in select_children(navbar, "> li.nav-item, > .nav-item"):
        link = nav_item.select_one(":scope > a.nav-link")
        if link is None:
            continue
        item = builder.from_link(link, 1)
        if item is None:
            continue
        for dropdown in nav_item.select(".dropdown-menu, .mega-menu"):
            for sub_link in dropdown.find_all("a"):
                href = sub_link.get("href")
                if not href or href == "#":
                    continue
                child = builder.from_link(sub_link, 2, item.url)
                if child is not None:
                    item.children.append(child)
        navigation.append(item)
    return navigation


# ─── Strategy 6: tab list with linked panels ────────────────────────────────


def _panel_children(builder: TreeBuilder, panel: Tag, item: PageInfo):
    headed: dict[int, PageInfo] = {}

    for link in panel.select("h4 > a, .el h4 a"):
        if not _is_real_href(link.get("href")):
            continue
        child = builder.node(link.get("href"), TRAILING_MORE_RE.sub("", link_text(link)).strip(), 2, item.url)
        if child is not None:
            item.children.append(child)
            heading = link.find_parent("h4")
            if heading is not None:
                headed[id(heading)] = child

    for link in panel.select("ul.lst a, .lst a"):
        if not _is_real_href(link.get("href")):
            continue
        heading = link.find_previous("h4")
        owner = headed.get(id(heading)) if heading is not None else None
        if owner is not None:
            grandchild = builder.from_link(link, 3, owner.url)
            if grandchild is not None:
                owner.children.append(grandchild)
        else:
            child = builder.from_link(link, 2, item.url)
            if child is not None:
                item.children.append(child)

    for link in panel.find_all("a"):
        if not _is_real_href(link.get("href")):
            continue
        title = TRAILING_MORE_RE.sub("", link_text(link)).strip()
        child = builder.node(link.get("href"), title, 2, item.url)
        if child is not None:
            item.children.append(child)


def linked_panels(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)
    navigation = []

    tab_list = soup.select_one("ul.gnbul, .gnbul")
    if tab_list is not None:
        for index, li in enumerate(select_children(tab_list, "> li")):
            link = direct_link(li)
            if link is None:
                continue
            href = link.get("href") or ""
            item = builder.node("" if href.startswith("#") else href, link_text(link), 1)
            if item is None:
                continue
            panel_id = href[1:] if href.startswith("#") and len(href) > 1 else f"panel0{index + 1}"
            panel = soup.find(id=panel_id)
            if panel is not None:
                _panel_children(builder, panel, item)
            navigation.append(item)

    if navigation:
        return navigation

    gnb = soup.select_one("nav.gnb, .gnb, #gnb")
    if gnb is None:
        return []
    for li in select_children(gnb, "> ul > li, .gnbul > li"):
        link = direct_link(li)
        if link is None:
            continue
        item = builder.from_link(link, 1)
        if item is None:
            continue
        for sub_link in select_children(li, "> ul > li > a, > .sub > li > a"):
            href = sub_link.get("href")
            if not href or href == "#":
                continue
            child = builder.from_link(sub_link, 2, item.url)
            if child is not None:
                item.children.append(child)
        navigation.append(item)
    return navigation


# ─── Strategy 7: dropdown / mega panels ─────────────────────────────────────


def dropdown_panels(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)
    by_title: dict[str, PageInfo] = {}

    for index, panel in enumerate(soup.select(".mega-menu, .mega-menu-content, .dropdown-menu")):
        title = ""
        owner_li = panel.find_parent("li")
        if owner_li is not None:
            owner_link = direct_link(owner_li)
            if owner_link is not None:
                title = clean_title(owner_link.get_text())
        if not title:
            heading = panel.select_one("h2, h3, h4, .title")
            title = clean_title(heading.get_text()) if heading is not None else ""
        title = title or f"메뉴 {index + 1}"

        item = by_title.get(title)
        if item is None:
            item = builder.node(None, title, 1)
            if item is None:
                continue
            by_title[title] = item

        for link in panel.find_all("a"):
            if not _is_real_href(link.get("href")):
                continue
            child_title = clean_title(link_text(link))
            if not child_title or any(c.title == child_title for c in item.children):
                continue
            child = builder.node(link.get("href"), child_title, 2, item.url)
            if child is not None:
                item.children.append(child)

    return list(by_title.values())


# ─── Strategy 8: header anchors ─────────────────────────────────────────────


def header_links(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    builder = TreeBuilder(base_url)
    navigation = []
    for link in soup.select("header a, #header a, .header a"):
        href = link.get("href") or ""
        if HEADER_UTILITY_RE.search(href) or href.startswith(("#", "javascript:")):
            continue
        item = builder.from_link(link, 1)
        if item is not None:
            navigation.append(item)
    return navigation


# ─── Waterfall ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NavigationStrategy:
    name: str
    extract: Callable[[BeautifulSoup, str], list[PageInfo]]
    mode: Literal["replace", "enrich"] = "replace"

    def applies_to(self, navigation: list[PageInfo]) -> bool:
        if self.mode == "replace":
            return not navigation
        return not navigation or all(not item.children for item in navigation)


NAVIGATION_STRATEGIES: list[NavigationStrategy] = [
    NavigationStrategy("standard_containers", standard_containers),
    NavigationStrategy("depth_classes", depth_classes),
    NavigationStrategy("data_attributes", data_attributes),
    NavigationStrategy("mega_menu_sections", mega_menu_sections),
    NavigationStrategy("bootstrap_navbar", bootstrap_navbar),
    NavigationStrategy("linked_panels", linked_panels, mode="enrich"),
    NavigationStrategy("dropdown_panels", dropdown_panels, mode="enrich"),
    NavigationStrategy("header_links", header_links),
]


def _tree_urls(navigation: list[PageInfo]) -> set[str]:
    return {node.url for item in navigation for node in item.iter_tree() if node.url}


def _reparent(node: PageInfo, parent: PageInfo):
    node.depth = parent.depth + 1
    node.page_type = PAGE_TYPE_BY_DEPTH[node.depth]
    node.parent_url = parent.url or None
    node.children = [child for child in node.children if node.depth < 3]
    for child in node.children:
        _reparent(child, node)


def merge_navigation(navigation: list[PageInfo], additions: list[PageInfo]) -> list[PageInfo]:
    """
    Merge enrich-strategy output into an existing tree.

    Items whose title matches an existing top-level item donate their
    children; other items are appended. URLs already in the tree are skipped.
    """
    merged = list(navigation)
    known = _tree_urls(merged)
    by_title = {item.title: item for item in merged}

    for addition in additions:
        target = by_title.get(addition.title)
        if target is None:
            if addition.url and addition.url in known:
                continue
            merged.append(addition)
            by_title[addition.title] = addition
            known |= _tree_urls([addition])
            continue
        for child in addition.children:
            if child.url and child.url in known:
                continue
            _reparent(child, target)
            target.children.append(child)
            known |= _tree_urls([child])

    return merged


def extract_navigation_from_soup(soup: BeautifulSoup, base_url: str) -> list[PageInfo]:
    navigation: list[PageInfo] = []
    for strategy in NAVIGATION_STRATEGIES:
        if not strategy.applies_to(navigation):
            continue
        found = strategy.extract(soup, base_url)
        if not found:
            continue
        navigation = found if strategy.mode == "replace" else merge_navigation(navigation, found)
    return navigation


def extract_navigation(html: str, base_url: str) -> list[PageInfo]:
    """
    Extract the site's primary navigation tree.

    Args:
        html: Homepage HTML (after entry resolution)
        base_url: Effective base URL for resolving hrefs

    Returns:
        Ordered top-level PageInfo items with nested children (depths 1-3)
    """
    return extract_navigation_from_soup(BeautifulSoup(html, "html.parser"), base_url)


def sanitize_navigation(items: list[PageInfo], base_url: str) -> list[PageInfo]:
    """
    Normalize a tree that came from outside the strategies (analyzer output).

    Resolves URLs against the base, drops cross-domain and duplicate URLs,
    and rewrites depths so every child sits one level below its parent.
    """
    seen: set[str] = set()

    def clean(node: PageInfo, depth: int, parent_url: Optional[str]) -> Optional[PageInfo]:
        title = clean_title(node.title)
        if not title or len(title) > MAX_NAV_TITLE_LENGTH:
            return None
        url = resolve_href(node.url, base_url)
        if url:
            if not is_same_domain(url, base_url) or url in seen:
                return None
            seen.add(url)
        cleaned = PageInfo(
            url=url,
            title=title,
            page_type=PAGE_TYPE_BY_DEPTH[depth],
            depth=depth,
            parent_url=parent_url or None,
        )
        if depth < 3:
            cleaned.children = [c for c in (clean(child, depth + 1, url) for child in node.children) if c is not None]
        return cleaned

    return [n for n in (clean(item, 1, None) for item in items) if n is not None]
