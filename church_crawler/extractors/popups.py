"""
Popup and modal page detection.

Finds same-domain pages that are only reachable through script triggers,
so ordinary anchor traversal never sees them. Signals by trigger type:

    onclick        window.open(...), location.href = ..., popup-ish string args
    data-url       six data attributes that hold a URL
    href           javascript: anchors with an embedded URL literal
    layer          modal triggers pointing at an in-page #fragment

Layer popups resolve to "<base>#fragment" and are never fetched.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..models import PopupInfo, TriggerType
from ..utils.url_helpers import is_same_domain, normalize_url, strip_fragment

WINDOW_OPEN_RE = re.compile(r"""window\.open\s*\(\s*['"]([^'"]+)['"]""", re.IGNORECASE)
LOCATION_ASSIGN_RE = re.compile(r"""location\.href\s*=\s*['"]([^'"]+)['"]""", re.IGNORECASE)
POPUP_ARGUMENT_RE = re.compile(r"""['"]([^'"]*(?:popup|layer|modal|view|detail)[^'"]*)['"]""", re.IGNORECASE)
JAVASCRIPT_URL_RE = re.compile(r"""['"]([^'"]+\.[a-z]{2,4}(?:\?[^'"]*)?)['"]""", re.IGNORECASE)

URL_DATA_ATTRIBUTES = ["data-url", "data-href", "data-link", "data-popup", "data-src", "data-target-url"]
MODAL_TRIGGER_SELECTOR = '[data-toggle="modal"], [data-bs-toggle="modal"], .layer-open, .popup-open, .modal-trigger'


def _element_title(element: Tag, default: str = "팝업") -> str:
    return element.get_text().strip() or element.get("title") or default


class _PopupCollector:
    """Accumulates popups for one page, deduplicated by absolute URL."""

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.seen: set[str] = set()
        self.popups: list[PopupInfo] = []

    def add(self, raw_url: str, title: str, trigger_type: TriggerType, element: str) -> Optional[PopupInfo]:
        url = normalize_url(raw_url, self.base_url)
        if url in self.seen or not is_same_domain(url, self.base_url):
            return None
        self.seen.add(url)
        popup = PopupInfo(url=url, title=title, trigger_type=trigger_type, trigger_element=element)
        self.popups.append(popup)
        return popup


def _scan_onclick(soup: BeautifulSoup, collector: _PopupCollector):
    for element in soup.select("[onclick]"):
        onclick = element.get("onclick") or ""
        title = _element_title(element)

        match = WINDOW_OPEN_RE.search(onclick)
        if match:
            collector.add(match.group(1), title, "window-open", element.name)

        match = LOCATION_ASSIGN_RE.search(onclick)
        if match:
            collector.add(match.group(1), title, "onclick", element.name)

        match = POPUP_ARGUMENT_RE.search(onclick)
        if match and "/" in match.group(1):
            collector.add(match.group(1), title, "onclick", element.name)


def _scan_data_attributes(soup: BeautifulSoup, collector: _PopupCollector):
    for attribute in URL_DATA_ATTRIBUTES:
        for element in soup.find_all(attrs={attribute: True}):
            value = element.get(attribute) or ""
            if value.startswith(("/", "http")):
                collector.add(value, _element_title(element), "data-url", element.name)


def _scan_javascript_anchors(soup: BeautifulSoup, collector: _PopupCollector):
    for link in soup.select('a[href^="javascript:"]'):
        match = JAVASCRIPT_URL_RE.search(link.get("href") or "")
        if match:
            collector.add(match.group(1), link.get_text().strip() or "팝업", "href", "a")


def _scan_modal_triggers(soup: BeautifulSoup, collector: _PopupCollector):
    page_url = strip_fragment(collector.base_url)
    for trigger in soup.select(MODAL_TRIGGER_SELECTOR):
        target = trigger.get("data-target") or trigger.get("data-bs-target") or trigger.get("href") or ""
        if not target.startswith("#") or len(target) < 2:
            continue
        layer = soup.find(id=target[1:])
        if layer is None or not layer.decode_contents().strip():
            continue
        collector.add(
            page_url + target,
            trigger.get_text().strip() or "레이어 팝업",
            "layer",
            trigger.name,
        )


POPUP_SCANNERS = [
    _scan_onclick,
    _scan_data_attributes,
    _scan_javascript_anchors,
    _scan_modal_triggers,
]


def detect_popups(html: str, base_url: str) -> list[PopupInfo]:
    """
    Detect script- and modal-triggered pages in one HTML document.

    Args:
        html: Page HTML
        base_url: URL of the page, used to resolve and domain-check targets

    Returns:
        PopupInfo list, same-domain only, unique by URL
    """
    soup = BeautifulSoup(html, "html.parser")
    collector = _PopupCollector(base_url)
    for scan in POPUP_SCANNERS:
        scan(soup, collector)
    return collector.popups
