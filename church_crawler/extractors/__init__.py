"""
Extractors module for the church site crawler.

Pure functions over already-fetched HTML; none perform network I/O:
- navigation: eight-strategy navigation tree waterfall
- popups: script/modal-triggered page detection
- links: content-region links, boards, technology markers
- structured_data: head metadata of a page
- deterministic: contact and social-media regexes
- media, worship_times: media assets and worship schedules
- dictionary: departments, districts, small groups, people, events, places
- page_classifier: people/organization page keywords
"""

from .deterministic import DeterministicExtractor
from .dictionary import extract_dictionary_from_html, extract_organization_from_page
from .links import detect_boards, extract_links_from_page
from .media import extract_media_info
from .navigation import extract_navigation
from .page_classifier import classify_page
from .popups import detect_popups
from .structured_data import extract_page_metadata
from .worship_times import extract_worship_times

__all__ = [
    "DeterministicExtractor",
    "extract_navigation",
    "detect_popups",
    "extract_links_from_page",
    "detect_boards",
    "extract_page_metadata",
    "extract_media_info",
    "extract_worship_times",
    "extract_dictionary_from_html",
    "extract_organization_from_page",
    "classify_page",
]
