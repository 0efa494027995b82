"""
Pattern-based dictionary extraction: departments, districts, small groups,
people, events and places.

Two entry points share the curated vocabulary in data/organization_terms.yaml:

- extract_organization_from_page: run on pages classified as organization
  pages. Regex scans of the body text plus menu, table and org-chart items.
- extract_dictionary_from_html: the generic recall backstop. Person regex
  pair, curated terms from menus and headings first and then from the body
  text, an open "XX부/팀/회/교구" pattern, and event/place terms found
  anywhere in the body.

Both return entries unique by term. Use merge_entries to combine results
from several pages without breaking (term, category) uniqueness.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urljoin

import yaml
from bs4 import BeautifulSoup

from ..models import DictionaryEntry

logger = logging.getLogger(__name__)

MENU_SELECTORS = [
    "nav a", ".menu a", ".gnb a", ".lnb a", ".snb a",
    "ul.menu li a", ".sub-menu a", ".submenu a",
    '[class*="menu"] a', '[class*="nav"] a', '[class*="org"] a',
    ".dept-list a", ".ministry-list a",
]
HEADING_AND_MENU_SELECTORS = [
    "nav a", ".menu a", ".gnb a", ".lnb a", ".snb a",
    '[class*="dept"] a', '[class*="ministry"] a', '[class*="org"] a',
    "h2", "h3", "h4", "h5", ".title", ".tit",
    "li a", "ul a", ".sub-menu a", ".submenu a",
    '[class*="menu"] a', '[class*="nav"] a',
]
ORG_ROW_SELECTOR = "table tr, .org-chart li, .ministry-list li, ul.dept li"

MENU_UNIT_RE = re.compile(r"([가-힣]+)(부|팀|회|사역|사역부|교구|권역|구역)")
ORG_ROW_RE = re.compile(r"([가-힣]+(?:부|팀|회|사역부?))\s*[:\-]\s*(.+)")
GENERIC_UNIT_RE = re.compile(r"([가-힣]{2,8})(부|팀|회|사역|사역부|사역팀|교구|권역|구역)\b")
ORGANIZATION_MARKERS = ("교구", "권역", "구역")

# Module-level cache
_terms_cache: Optional[dict] = None


def _get_terms_path() -> Path:
    return Path(__file__).parent.parent / "data" / "organization_terms.yaml"


def _alternation(terms: Iterable[str]) -> str:
    return "|".join(re.escape(term) for term in sorted(set(terms), key=len, reverse=True))


def load_terms() -> dict:
    """Load the curated vocabulary and compile its patterns (cached)."""
    global _terms_cache
    if _terms_cache is not None:
        return _terms_cache

    with open(_get_terms_path(), encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    ministry = [term for group in raw["ministry_departments"].values() for term in group]
    places = raw["district_place_names"]
    titles = raw["person_titles"]
    title_group = _alternation(titles)

    _terms_cache = {
        "ministry": ministry,
        "district_places": places,
        "districts": raw["districts"],
        "district_regions": raw["district_regions"],
        "small_group_organizations": raw["small_group_organizations"],
        "small_group_terms": raw["small_group_terms"],
        "events": raw["events"],
        "places": raw["places"],
        "name_exclusions": set(raw["person_name_exclusions"]),
        "generic_exclusions": set(raw["generic_exclusions"]),
        "subcategory_keywords": [(name, keywords) for name, keywords in raw["subcategory_keywords"]],
        "ministry_re": re.compile(_alternation(ministry)),
        "district_re": re.compile(
            rf"(?:{_alternation(places)})(?:교구|(?![가-힣]))"
            rf"|{_alternation(raw['districts'])}"
            r"|제?[1-9]교구|[A-Z]교구"
            rf"|{_alternation(raw['district_regions'])}"
        ),
        "small_group_re": re.compile(
            rf"[가-힣]+(?:{_alternation(raw['small_group_suffixes'])})"
            rf"|{_alternation(raw['small_group_organizations'])}"
        ),
        "person_res": [
            # (pattern, name group, title group)
            (re.compile(rf"(?<![가-힣])([가-힣]{{2,4}})\s*({title_group})"), 1, 2),
            (re.compile(rf"({title_group})\s*([가-힣]{{2,4}})(?![가-힣])"), 2, 1),
        ],
    }
    logger.debug(f"Loaded {len(ministry)} ministry terms, {len(places)} district names")
    return _terms_cache


def clear_cache():
    """Clear the vocabulary cache (useful for testing)."""
    global _terms_cache
    _terms_cache = None


def categorize_department(name: str) -> Optional[str]:
    """
    Best-effort subcategory of a department or unit name.

    Examples:
        >>> categorize_department("국제선교부")
        'mission'
        >>> categorize_department("청년부")
        'education'
        >>> categorize_department("문서실") is None
        True
    """
    for subcategory, keywords in load_terms()["subcategory_keywords"]:
        if any(keyword in name for keyword in keywords):
            return subcategory
    return None


def merge_entries(existing: list[DictionaryEntry], additions: Iterable[DictionaryEntry]) -> list[DictionaryEntry]:
    """Append additions whose (term, category) key is not present yet."""
    merged = list(existing)
    keys = {entry.key for entry in merged}
    for entry in additions:
        if entry.key not in keys:
            keys.add(entry.key)
            merged.append(entry)
    return merged


def _body_text(soup: BeautifulSoup) -> str:
    return (soup.body or soup).get_text(" ")


class _EntryCollector:
    """Entries for one page, unique by term."""

    def __init__(self, source_url: str):
        self.source_url = source_url
        self.seen: set[str] = set()
        self.entries: list[DictionaryEntry] = []

    def __contains__(self, term: str) -> bool:
        return term in self.seen

    def add(
        self,
        term: str,
        category: str,
        subcategory: Optional[str] = None,
        definition: Optional[str] = None,
        source_url: Optional[str] = None,
    ):
        if term in self.seen:
            return
        self.seen.add(term)
        self.entries.append(
            DictionaryEntry(
                term=term,
                category=category,
                subcategory=subcategory,
                definition=definition or term,
                source_url=source_url or self.source_url,
            )
        )


def _add_people(collector: _EntryCollector, text: str):
    terms = load_terms()
    for pattern, name_group, title_group in terms["person_res"]:
        for match in pattern.finditer(text):
            name, title = match.group(name_group), match.group(title_group)
            if name in terms["name_exclusions"]:
                continue
            collector.add(name, "person", subcategory=title, definition=title)


def _add_curated_terms(collector: _EntryCollector, text: str):
    """Curated ministries, districts and small groups anywhere in text, particles allowed."""
    terms = load_terms()
    for match in terms["ministry_re"].finditer(text):
        department = match.group(0)
        collector.add(department, "department", categorize_department(department))

    for match in terms["district_re"].finditer(text):
        collector.add(match.group(0), "organization", "district")

    for match in terms["small_group_re"].finditer(text):
        group = match.group(0)
        if 3 <= len(group) <= 15:
            collector.add(group, "organization", "small_group")


def extract_people_by_pattern(html: str, source_url: str) -> list[DictionaryEntry]:
    """
    Person entries from "name + title" and "title + name" text patterns.

    The Korean title (담임목사, 장로, ...) becomes the subcategory.
    """
    collector = _EntryCollector(source_url)
    _add_people(collector, _body_text(BeautifulSoup(html, "html.parser")))
    return collector.entries


def extract_organization_from_page(html: str, page_url: str) -> list[DictionaryEntry]:
    """
    Extract departments, districts and small groups from an organization page.

    Args:
        html: Page HTML
        page_url: Page URL, recorded as source and used to resolve menu links

    Returns:
        Entries unique by term
    """
    terms = load_terms()
    soup = BeautifulSoup(html, "html.parser")
    collector = _EntryCollector(page_url)

    _add_curated_terms(collector, _body_text(soup))

    for selector in MENU_SELECTORS:
        for link in soup.select(selector):
            text = link.get_text().strip()
            if not 2 <= len(text) <= 20 or text in collector:
                continue
            if not MENU_UNIT_RE.search(text) or any(word in text for word in terms["generic_exclusions"]):
                continue
            href = link.get("href") or ""
            category = "organization" if any(marker in text for marker in ORGANIZATION_MARKERS) else "department"
            collector.add(
                text,
                category,
                categorize_department(text),
                source_url=urljoin(page_url, href) if href else page_url,
            )

    for row in soup.select(ORG_ROW_SELECTOR):
        match = ORG_ROW_RE.search(row.get_text().strip())
        if match and match.group(1) not in collector:
            unit = match.group(1)
            collector.add(unit, "department", categorize_department(unit), definition=match.group(2).strip()[:100])

    logger.debug(f"Organization page {page_url}: {len(collector.entries)} entries")
    return collector.entries


def _curated_match(text: str, terms: dict) -> Optional[tuple[str, str, Optional[str]]]:
    """(term, category, subcategory) of the first curated term contained in text."""
    for place in terms["district_places"]:
        if place in text:
            term = f"{place}교구" if f"{place}교구" in text else place
            return term, "organization", "district"
    for term in terms["districts"] + terms["district_regions"]:
        if term in text:
            return term, "organization", "district"
    for term in terms["small_group_organizations"] + terms["small_group_terms"]:
        if term in text:
            return term, "organization", "small_group"
    for term in sorted(terms["ministry"], key=len, reverse=True):
        if term in text:
            return term, "department", categorize_department(term)
    return None


def extract_dictionary_from_html(html: str, base_url: str) -> list[DictionaryEntry]:
    """
    Generic pattern-based dictionary extraction for any page.

    Args:
        html: Page HTML
        base_url: Page URL, recorded as source

    Returns:
        Entries unique by term
    """
    terms = load_terms()
    soup = BeautifulSoup(html, "html.parser")
    body_text = _body_text(soup)
    collector = _EntryCollector(base_url)

    _add_people(collector, body_text)

    for selector in HEADING_AND_MENU_SELECTORS:
        for element in soup.select(selector):
            text = element.get_text().strip()
            if not text or len(text) >= 50:
                continue
            found = _curated_match(text, terms)
            if found is None or found[0] in collector:
                continue
            term, category, subcategory = found
            href = element.get("href") or ""
            collector.add(
                term,
                category,
                subcategory,
                definition=text if len(text) < 80 else term,
                source_url=urljoin(base_url, href) if href else base_url,
            )

    _add_curated_terms(collector, body_text)

    for match in GENERIC_UNIT_RE.finditer(body_text):
        unit = match.group(0)
        if not 3 <= len(unit) <= 10 or unit in terms["generic_exclusions"]:
            continue
        category = "organization" if any(marker in unit for marker in ORGANIZATION_MARKERS) else "department"
        collector.add(unit, category, categorize_department(unit))

    for event in terms["events"]:
        if event in body_text:
            collector.add(event, "event")
    for place in terms["places"]:
        if place in body_text:
            collector.add(place, "place")

    logger.debug(f"Pattern dictionary {base_url}: {len(collector.entries)} entries")
    return collector.entries
